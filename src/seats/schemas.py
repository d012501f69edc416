from pydantic import BaseModel, ConfigDict, Field
from typing import List
from datetime import date
from enum import Enum

class SeatState(str, Enum):
    """Seat slot state held by the ledger"""
    FREE = "free"
    HELD = "held"
    BOOKED = "booked"

# Labels shown to commuters
SEAT_STATE_LABELS = {
    SeatState.FREE: "Available",
    SeatState.HELD: "Held",
    SeatState.BOOKED: "Booked",
}

class SeatAvailability(BaseModel):
    """Status of a single seat"""
    model_config = ConfigDict(populate_by_name=True)

    seat_number: int = Field(..., alias="seatNumber")
    status: str

class BusSeatMap(BaseModel):
    """Seat availability for a bus on a travel date"""
    model_config = ConfigDict(populate_by_name=True)

    bus_number: str = Field(..., alias="busNumber")
    travel_date: date = Field(..., alias="date")
    capacity: int
    available_count: int = Field(..., alias="availableCount")
    seats: List[SeatAvailability]
