import logging
import secrets
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.config import settings
from src.routes.fare_service import FareResolver
from src.schedules.service import ScheduleLookupService
from src.seats.ledger import SeatLedger
from src.bookings.exceptions import (
    BookingValidationError, BookingNotFound, PaymentFailed,
    PersistenceRetryExhausted, InvalidHandle, SeatUnavailable
)
from src.bookings.notification_service import NotificationService, booking_confirmation_email
from src.bookings.outbox import BookingOutbox
from src.bookings.payment_gateway import PaymentGateway, PaymentGatewayError, PaymentResult, Payer
from src.bookings.repository import BookingRepository
from src.bookings.saga import CompensationStack
from src.bookings.schemas import (
    SeatBookingRequest, BookingRecord, BookingDetails, BookingConfirmation,
    BookingView, BookingStatus
)

logger = logging.getLogger(__name__)

# Gateway calls run here so the booking thread can stop waiting after the timeout
_payment_executor = ThreadPoolExecutor(
    max_workers=settings.PAYMENT_MAX_WORKERS,
    thread_name_prefix="payment"
)

class BookingService:
    """Books a single seat: fare, seat hold, payment, booking record, confirmation email"""

    def __init__(
        self,
        db: Session,
        ledger: SeatLedger,
        payment_gateway: PaymentGateway,
        notifier: NotificationService,
        outbox: BookingOutbox,
        payment_timeout: Optional[float] = None,
        persist_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        today: Callable[[], date] = date.today,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.db = db
        self.ledger = ledger
        self.payment_gateway = payment_gateway
        self.notifier = notifier
        self.outbox = outbox
        self.schedule_service = ScheduleLookupService(db)
        self.fare_resolver = FareResolver(db)
        self.repository = BookingRepository(db)
        self.payment_timeout = payment_timeout if payment_timeout is not None else settings.PAYMENT_TIMEOUT_SECONDS
        self.persist_attempts = max(1, persist_attempts or settings.PERSISTENCE_MAX_RETRIES)
        self.retry_backoff = retry_backoff if retry_backoff is not None else settings.PERSISTENCE_RETRY_BACKOFF_SECONDS
        self._today = today
        self._sleep = sleep

    def book_seat(self, request: SeatBookingRequest) -> BookingConfirmation:
        """
        Book and pay for one seat.

        Order matters: the seat is held before any money moves, a failed or
        timed-out payment releases the hold before this returns, and once
        payment succeeds the booking is never rolled back, only retried.
        """

        self._validate_request(request)
        travel_date = request.travel_date

        schedule = self.schedule_service.get_schedule_for_bus(request.bus_number, travel_date)
        if request.seat_number > schedule.capacity:
            raise BookingValidationError(
                f"Seat number {request.seat_number} does not exist on bus {request.bus_number} "
                f"(capacity {schedule.capacity})"
            )

        fare = self.fare_resolver.resolve(
            schedule.route_id, request.boarding_place, request.destination_place
        )

        # Admission control: only one request gets past this point per seat slot
        handle = self.ledger.reserve(request.bus_number, travel_date, request.seat_number)

        saga = CompensationStack(str(handle.key))
        saga.push("release seat hold", lambda: self.ledger.release(handle))

        try:
            payment = self._capture_payment(fare.price, request, str(handle.key))

            transaction_id = self._generate_transaction_id()
            self._commit_seat(handle, transaction_id, payment)
        except Exception:
            saga.unwind()
            raise

        # Payment captured and seat booked: from here on only forward recovery
        saga.discard()

        record = BookingRecord(
            transaction_id=transaction_id,
            schedule_id=schedule.schedule_id,
            route_id=schedule.route_id,
            bus_number=request.bus_number,
            seat_number=request.seat_number,
            travel_date=travel_date,
            travel_time=request.travel_time,
            passenger_name=request.passenger_name,
            mobile_number=request.mobile_number,
            email=request.email,
            boarding_place=request.boarding_place,
            destination_place=request.destination_place,
            fare=fare.price,
            cancellation_token=self._generate_cancellation_token(),
            payment_reference=payment.reference,
            status=BookingStatus.CONFIRMED
        )

        stored = self._persist_with_retry(record)
        self._send_confirmation(record)

        if not stored:
            raise PersistenceRetryExhausted(record.transaction_id)

        logger.info(
            f"Booking {record.transaction_id} confirmed: seat {record.seat_number} on "
            f"{record.bus_number} for {travel_date.isoformat()}, fare {record.fare}"
        )

        return BookingConfirmation(
            message="Seat booked successfully, confirmation email sent",
            booking=BookingDetails.from_record(record)
        )

    def get_booking(self, transaction_id: str) -> BookingView:
        record = self.repository.get(transaction_id) or self.outbox.get(transaction_id)
        if record is None:
            raise BookingNotFound("Booking not found")
        return BookingView.from_record(record)

    def _validate_request(self, request: SeatBookingRequest):
        if request.travel_date < self._today():
            raise BookingValidationError("Travel date is in the past")

        if request.boarding_place.casefold() == request.destination_place.casefold():
            raise BookingValidationError("Boarding and destination places must be different")

    def _capture_payment(self, amount: Decimal, request: SeatBookingRequest, seat_label: str) -> PaymentResult:
        """Charge the fare, giving the gateway at most payment_timeout seconds"""

        payer = Payer(
            name=request.passenger_name,
            email=request.email,
            mobile_number=request.mobile_number
        )
        future = _payment_executor.submit(
            self.payment_gateway.charge, amount, payer, f"Bus seat {seat_label}"
        )

        try:
            result = future.result(timeout=self.payment_timeout)
        except FuturesTimeout:
            future.cancel()
            logger.warning(
                f"Payment gateway timed out after {self.payment_timeout}s for {seat_label}; "
                f"treating as failed (payer {payer.email}, amount {amount}) - reconcile if charged"
            )
            raise PaymentFailed("Payment failed: the payment gateway did not respond in time")
        except PaymentGatewayError as e:
            logger.warning(f"Payment gateway error for {seat_label}: {e}")
            raise PaymentFailed("Payment failed: the payment gateway is unavailable")

        if not result.success:
            logger.info(f"Payment declined for {seat_label}: {result.reason}")
            raise PaymentFailed(f"Payment failed: {result.reason or 'declined by the payment gateway'}")

        logger.info(f"Payment captured for {seat_label} ({result.reference})")
        return result

    def _commit_seat(self, handle, transaction_id: str, payment: PaymentResult):
        try:
            self.ledger.commit(handle, transaction_id)
        except InvalidHandle:
            # Only possible if the hold outlived SEAT_HOLD_TIMEOUT_SECONDS during payment
            logger.critical(
                f"ALERT hold on {handle.key} expired while payment {payment.reference} was captured; "
                f"the charge needs manual reconciliation"
            )
            raise SeatUnavailable(
                f"Seat {handle.key.seat_number} was released before payment completed; "
                f"payment {payment.reference} needs manual reconciliation"
            )

    def _persist_with_retry(self, record: BookingRecord) -> bool:
        """Write the booking; after the last failed attempt park it in the outbox for the maintenance thread"""

        for attempt in range(1, self.persist_attempts + 1):
            try:
                self.repository.save(record)
                return True
            except SQLAlchemyError as e:
                logger.warning(
                    f"Storing booking {record.transaction_id} failed "
                    f"(attempt {attempt}/{self.persist_attempts}): {e}"
                )
                if attempt < self.persist_attempts:
                    self._sleep(self.retry_backoff * attempt)

        logger.critical(
            f"ALERT booking {record.transaction_id} was charged (payment {record.payment_reference}) "
            f"but could not be stored; queued for retry: {record.model_dump_json()}"
        )
        try:
            self.outbox.add(record)
        except OSError:
            logger.exception(f"ALERT could not write booking {record.transaction_id} to the outbox")
        return False

    def _send_confirmation(self, record: BookingRecord):
        try:
            self.notifier.notify(booking_confirmation_email(record))
        except Exception:
            logger.exception(f"Could not queue confirmation email for {record.transaction_id}")

    @staticmethod
    def _generate_transaction_id() -> str:
        return f"TXN{uuid.uuid4().hex.upper()}"

    @staticmethod
    def _generate_cancellation_token() -> str:
        return secrets.token_urlsafe(32)
