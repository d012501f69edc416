import hmac
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.seats.ledger import SeatLedger
from src.bookings.exceptions import (
    BookingNotFound, BookingPending, CancellationUnauthorized, AlreadyCancelled
)
from src.bookings.notification_service import NotificationService, cancellation_email
from src.bookings.outbox import BookingOutbox
from src.bookings.repository import BookingRepository
from src.bookings.schemas import BookingRecord, BookingStatus, CancellationResponse

logger = logging.getLogger(__name__)

class CancellationService:
    """Cancels a booking on presentation of its cancellation token"""

    def __init__(
        self,
        db: Session,
        ledger: SeatLedger,
        notifier: NotificationService,
        outbox: Optional[BookingOutbox] = None
    ):
        self.db = db
        self.ledger = ledger
        self.notifier = notifier
        self.outbox = outbox
        self.repository = BookingRepository(db)

    def cancel(self, transaction_id: str, cancellation_token: str) -> CancellationResponse:
        booking = self.repository.get(transaction_id)
        parked = booking is None and self.outbox is not None
        if parked:
            booking = self.outbox.get(transaction_id)
        if booking is None:
            raise BookingNotFound("Booking not found")

        if not hmac.compare_digest(
            booking.cancellation_token.encode("utf-8"),
            cancellation_token.encode("utf-8")
        ):
            logger.warning(f"Rejected cancellation of {transaction_id}: token mismatch")
            raise CancellationUnauthorized("Invalid cancellation token")

        if parked:
            self._store_parked(booking)

        try:
            # The conditional update lets exactly one concurrent cancellation through
            self.repository.mark_cancelled(transaction_id, datetime.now())
        except AlreadyCancelled:
            logger.info(f"Booking {transaction_id} was already cancelled")
            return CancellationResponse(
                message="Booking is already cancelled",
                transaction_id=transaction_id,
                status=BookingStatus.CANCELLED
            )

        self.ledger.release_booked(
            booking.bus_number, booking.travel_date, booking.seat_number, transaction_id
        )
        logger.info(f"Booking {transaction_id} cancelled")

        try:
            self.notifier.notify(cancellation_email(booking))
        except Exception:
            logger.exception(f"Could not queue cancellation email for {transaction_id}")

        return CancellationResponse(
            message="Booking cancelled successfully",
            transaction_id=transaction_id,
            status=BookingStatus.CANCELLED
        )

    def _store_parked(self, booking: BookingRecord):
        """Write an outbox booking to the database so it can be cancelled there"""
        try:
            self.repository.save(booking)
        except SQLAlchemyError as e:
            logger.error(f"Booking {booking.transaction_id} is still in the outbox: {e}")
            raise BookingPending(
                f"Booking {booking.transaction_id} is still being recorded; "
                f"try cancelling again shortly"
            )
        logger.info(f"Booking {booking.transaction_id} recorded from outbox before cancellation")
