from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

from src.routes.schemas import Money

class StopTime(BaseModel):
    """Scheduled arrival at an intermediate stop"""
    model_config = ConfigDict(populate_by_name=True)

    stop_name: str = Field(..., alias="stopName")
    arrival_time: Optional[datetime] = Field(None, alias="arrivalTime")

class ScheduleContext(BaseModel):
    """What booking needs to know about the bus running on a travel date"""
    schedule_id: str
    route_id: str
    route_pk: int
    bus_number: str
    bus_type: str
    capacity: int
    stop_sequence: List[str]
    start_time: datetime
    end_time: datetime

class BusSearchResult(BaseModel):
    """A bus serving a boarding/destination pair on a date"""
    model_config = ConfigDict(populate_by_name=True)

    schedule_id: str = Field(..., alias="scheduleId")
    route_id: str = Field(..., alias="routeId")
    bus_number: str = Field(..., alias="busNumber")
    bus_type: str = Field(..., alias="type")
    capacity: int
    boarding_place: str = Field(..., alias="boardingPlace")
    destination_place: str = Field(..., alias="destinationPlace")
    price: Money
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime = Field(..., alias="endTime")
    stops: List[StopTime] = []
    available_seats: Optional[int] = Field(None, alias="availableSeats")

class BusSearchResponse(BaseModel):
    buses: List[BusSearchResult]
