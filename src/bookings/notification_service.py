import logging
import queue
import smtplib
import threading
import time
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from src.config import settings
from src.bookings.schemas import BookingRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    recipient: str
    subject: str
    body: str
    reference: str


class EmailClient:
    def send(self, notification: Notification) -> None:
        raise NotImplementedError


class LoggingEmailClient(EmailClient):
    """Writes emails to the log instead of sending them"""

    def send(self, notification: Notification) -> None:
        logger.info(
            f"Email to {notification.recipient} | {notification.subject}\n{notification.body}"
        )


class SmtpEmailClient(EmailClient):
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 10.0
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, notification: Notification) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = notification.recipient
        message["Subject"] = notification.subject
        message.set_content(notification.body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)


def booking_confirmation_email(record: BookingRecord) -> Notification:
    body = (
        f"Dear {record.passenger_name},\n\n"
        f"Your seat has been booked successfully.\n\n"
        f"Bus Number: {record.bus_number}\n"
        f"Seat Number: {record.seat_number}\n"
        f"From: {record.boarding_place}\n"
        f"To: {record.destination_place}\n"
        f"Date: {record.travel_time.isoformat()}\n"
        f"Price: {record.fare}\n"
        f"Transaction ID: {record.transaction_id}\n"
        f"Cancellation Token: {record.cancellation_token}\n\n"
        f"Keep the transaction ID and cancellation token to cancel this booking.\n\n"
        f"Thank you for travelling with us."
    )
    return Notification(
        recipient=record.email,
        subject="Booking Confirmation",
        body=body,
        reference=record.transaction_id
    )


def cancellation_email(record: BookingRecord) -> Notification:
    body = (
        f"Dear {record.passenger_name},\n\n"
        f"Your booking {record.transaction_id} for seat {record.seat_number} on bus "
        f"{record.bus_number} ({record.travel_time.date().isoformat()}) has been cancelled.\n"
    )
    return Notification(
        recipient=record.email,
        subject="Booking Cancelled",
        body=body,
        reference=record.transaction_id
    )


class NotificationService:
    """
    Fire-and-forget email delivery.

    notify() only enqueues; a daemon worker sends each message, retrying up to
    max_attempts times. Delivery failures are logged and never reach the
    booking that produced the message.
    """

    _STOP = object()

    def __init__(
        self,
        email_client: EmailClient,
        max_attempts: int = 3,
        retry_delay_seconds: float = 2.0
    ):
        self.email_client = email_client
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self._queue: "queue.Queue" = queue.Queue()
        self._worker: Optional[threading.Thread] = None

    def notify(self, notification: Notification) -> None:
        self._queue.put(notification)

    def start(self) -> None:
        if self._worker and self._worker.is_alive():
            return
        self._worker = threading.Thread(target=self._run, name="notification-worker", daemon=True)
        self._worker.start()
        logger.info("Notification worker started")

    def stop(self, timeout: float = 5.0) -> None:
        if not self._worker:
            return
        self._queue.put(self._STOP)
        self._worker.join(timeout)
        self._worker = None
        logger.info("Notification worker stopped")

    def wait_until_idle(self) -> None:
        """Block until every queued notification has been handled"""
        self._queue.join()

    def _run(self):
        while True:
            item = self._queue.get()
            try:
                if item is self._STOP:
                    return
                self.deliver(item)
            finally:
                self._queue.task_done()

    def deliver(self, notification: Notification) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            try:
                self.email_client.send(notification)
                logger.info(f"Sent '{notification.subject}' for {notification.reference} to {notification.recipient}")
                return True
            except Exception as e:
                logger.warning(
                    f"Email '{notification.subject}' for {notification.reference} failed "
                    f"(attempt {attempt}/{self.max_attempts}): {e}"
                )
                if attempt < self.max_attempts:
                    time.sleep(self.retry_delay_seconds)

        logger.error(f"Giving up on '{notification.subject}' for {notification.reference}")
        return False


def build_email_client() -> EmailClient:
    if settings.SMTP_HOST:
        return SmtpEmailClient(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.EMAIL_SENDER,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS
        )
    return LoggingEmailClient()


notification_service = NotificationService(
    build_email_client(),
    max_attempts=settings.NOTIFICATION_MAX_ATTEMPTS,
    retry_delay_seconds=settings.NOTIFICATION_RETRY_DELAY_SECONDS
)
