from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
import re

from src.routes.schemas import Money

MOBILE_PATTERN = re.compile(r"^\+?[0-9]{7,15}$")

class BookingStatus(str, Enum):
    """Booking status enumeration"""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

def parse_travel_datetime(value):
    """Accept a date or an ISO date-time (with optional trailing Z)"""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            raise ValueError("date must be an ISO date (YYYY-MM-DD) or date-time")
    raise ValueError("date must be an ISO date (YYYY-MM-DD) or date-time")

# Request Models
class SeatBookingRequest(BaseModel):
    """Request to book and pay for one seat"""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    bus_number: str = Field(..., alias="busNumber", min_length=1, max_length=50)
    seat_number: int = Field(..., alias="seatNumber", ge=1)
    passenger_name: str = Field(..., alias="passengerName", min_length=1, max_length=255)
    mobile_number: str = Field(..., alias="mobileNumber")
    email: EmailStr
    boarding_place: str = Field(..., alias="boardingPlace", min_length=1, max_length=255)
    destination_place: str = Field(..., alias="destinationPlace", min_length=1, max_length=255)
    travel_time: datetime = Field(..., alias="date")

    @field_validator("travel_time", mode="before")
    @classmethod
    def validate_travel_time(cls, v):
        return parse_travel_datetime(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower()

    @field_validator("mobile_number")
    @classmethod
    def validate_mobile_number(cls, v):
        compact = re.sub(r"[\s-]", "", v)
        if not MOBILE_PATTERN.match(compact):
            raise ValueError("mobileNumber must contain 7 to 15 digits")
        return compact

    @property
    def travel_date(self) -> date:
        return self.travel_time.date()

class CancellationRequest(BaseModel):
    """Request to cancel a booking with its cancellation token"""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    transaction_id: str = Field(..., alias="transactionId", min_length=1)
    cancellation_token: str = Field(..., alias="cancellationToken", min_length=1)

# Internal Models
class BookingRecord(BaseModel):
    """A confirmed booking as it is written to storage (and to the outbox)"""
    transaction_id: str
    schedule_id: str
    route_id: str
    bus_number: str
    seat_number: int
    travel_date: date
    travel_time: datetime
    passenger_name: str
    mobile_number: str
    email: str
    boarding_place: str
    destination_place: str
    fare: Decimal
    cancellation_token: str
    payment_reference: Optional[str] = None
    status: BookingStatus = BookingStatus.CONFIRMED
    created_at: datetime = Field(default_factory=datetime.now)
    cancelled_at: Optional[datetime] = None

# Response Models
class BookingDetails(BaseModel):
    """Booking as returned to the commuter right after booking"""
    model_config = ConfigDict(populate_by_name=True)

    bus_number: str = Field(..., alias="busNumber")
    seat_number: int = Field(..., alias="seatNumber")
    passenger_name: str = Field(..., alias="passengerName")
    mobile_number: str = Field(..., alias="mobileNumber")
    email: str
    boarding_place: str = Field(..., alias="boardingPlace")
    destination_place: str = Field(..., alias="destinationPlace")
    travel_time: datetime = Field(..., alias="date")
    transaction_id: str = Field(..., alias="transactionId")
    cancellation_token: str = Field(..., alias="cancellationToken")
    price: Money

    @classmethod
    def from_record(cls, record: BookingRecord) -> "BookingDetails":
        return cls(
            bus_number=record.bus_number,
            seat_number=record.seat_number,
            passenger_name=record.passenger_name,
            mobile_number=record.mobile_number,
            email=record.email,
            boarding_place=record.boarding_place,
            destination_place=record.destination_place,
            travel_time=record.travel_time,
            transaction_id=record.transaction_id,
            cancellation_token=record.cancellation_token,
            price=record.fare
        )

class BookingConfirmation(BaseModel):
    message: str
    booking: BookingDetails

class BookingView(BaseModel):
    """Stored booking as shown on lookup; the cancellation token is never echoed back"""
    model_config = ConfigDict(populate_by_name=True)

    transaction_id: str = Field(..., alias="transactionId")
    schedule_id: str = Field(..., alias="scheduleId")
    bus_number: str = Field(..., alias="busNumber")
    seat_number: int = Field(..., alias="seatNumber")
    passenger_name: str = Field(..., alias="passengerName")
    boarding_place: str = Field(..., alias="boardingPlace")
    destination_place: str = Field(..., alias="destinationPlace")
    travel_time: datetime = Field(..., alias="date")
    price: Money
    status: BookingStatus
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    cancelled_at: Optional[datetime] = Field(None, alias="cancelledAt")

    @classmethod
    def from_record(cls, record: BookingRecord) -> "BookingView":
        return cls(
            transaction_id=record.transaction_id,
            schedule_id=record.schedule_id,
            bus_number=record.bus_number,
            seat_number=record.seat_number,
            passenger_name=record.passenger_name,
            boarding_place=record.boarding_place,
            destination_place=record.destination_place,
            travel_time=record.travel_time,
            price=record.fare,
            status=record.status,
            created_at=record.created_at,
            cancelled_at=record.cancelled_at
        )

class CancellationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    transaction_id: str = Field(..., alias="transactionId")
    status: BookingStatus
