from fastapi import APIRouter, Depends, status

from src.bookings.schemas import (
    SeatBookingRequest, BookingConfirmation, BookingView,
    CancellationRequest, CancellationResponse
)
from src.bookings.booking_service import BookingService
from src.bookings.cancellation_service import CancellationService
from src.bookings.dependencies import get_booking_service, get_cancellation_service

router = APIRouter()

@router.post(
    "/book-and-pay",
    response_model=BookingConfirmation,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Seat already booked, payment failed, or price not found"},
        404: {"description": "Bus or schedule not found for the given details"},
        503: {"description": "Payment captured, booking still being recorded"},
    }
)
def book_seat_with_payment(
    request: SeatBookingRequest,
    booking_service: BookingService = Depends(get_booking_service)
):
    """Book a seat, charge the fare and email the confirmation"""
    return booking_service.book_seat(request)

@router.post(
    "/cancel-booking",
    response_model=CancellationResponse,
    responses={
        403: {"description": "Cancellation token does not match"},
        404: {"description": "Booking not found"},
    }
)
def cancel_booking(
    request: CancellationRequest,
    cancellation_service: CancellationService = Depends(get_cancellation_service)
):
    """Cancel a booking with its cancellation token"""
    return cancellation_service.cancel(request.transaction_id, request.cancellation_token)

@router.get("/bookings/{transaction_id}", response_model=BookingView)
def get_booking(
    transaction_id: str,
    booking_service: BookingService = Depends(get_booking_service)
):
    """Get booking details by transaction ID"""
    return booking_service.get_booking(transaction_id)
