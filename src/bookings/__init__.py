"""
Seat Booking Module

This module books and cancels individual bus seats for commuters. It includes:

- Booking orchestration: fare lookup, seat hold, payment capture, booking record
- Compensating release of the seat hold when payment fails or times out
- Bounded retries and a durable outbox for charged bookings that could not be stored
- Token-based cancellation that frees the seat exactly once
- Fire-and-forget confirmation and cancellation emails

Key Components:
- booking_service.py: Booking orchestration (book_seat)
- cancellation_service.py: Cancellation with constant-time token check
- payment_gateway.py: Simulated and HTTP payment gateway clients
- notification_service.py: Background email delivery with retries
- repository.py: Booking storage (SQLAlchemy)
- outbox.py: JSON-lines outbox for bookings awaiting storage
- maintenance.py: Hold sweeping, outbox retries and ledger recovery at startup
- router.py: FastAPI endpoints for booking and cancellation
- schemas.py: Pydantic models for booking requests and responses
"""

from .router import router
from .booking_service import BookingService
from .cancellation_service import CancellationService
from .schemas import (
    SeatBookingRequest, BookingConfirmation, BookingDetails, BookingView,
    BookingRecord, BookingStatus, CancellationRequest, CancellationResponse
)

__all__ = [
    "router",
    "BookingService",
    "CancellationService",
    "SeatBookingRequest",
    "BookingConfirmation",
    "BookingDetails",
    "BookingView",
    "BookingRecord",
    "BookingStatus",
    "CancellationRequest",
    "CancellationResponse"
]
