from fastapi import status

from src.exceptions import DomainError, NotFoundError, ForbiddenError
from src.routes.fare_service import FareNotFound
from src.schedules.service import ScheduleNotFound
from src.seats.exceptions import SeatUnavailable, InvalidHandle

class BookingValidationError(DomainError):
    """Malformed or missing booking input; raised before any side effect"""

class PaymentFailed(DomainError):
    """The gateway declined, errored or did not answer in time"""

class PersistenceRetryExhausted(DomainError):
    """Payment was captured but the booking could not be stored yet"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(
            f"Payment received but the booking is still being recorded. "
            f"Keep transaction ID {transaction_id} for reference."
        )

class BookingPending(DomainError):
    """The booking is still parked in the outbox and the database is not accepting writes"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

class BookingNotFound(NotFoundError):
    pass

class CancellationUnauthorized(ForbiddenError):
    pass

class AlreadyCancelled(DomainError):
    """Raised by the store when a booking is no longer Confirmed"""

    status_code = status.HTTP_409_CONFLICT

__all__ = [
    "BookingValidationError",
    "ScheduleNotFound",
    "FareNotFound",
    "SeatUnavailable",
    "PaymentFailed",
    "PersistenceRetryExhausted",
    "BookingPending",
    "BookingNotFound",
    "CancellationUnauthorized",
    "AlreadyCancelled",
    "InvalidHandle",
]
