from functools import lru_cache
from fastapi import Depends
from sqlalchemy.orm import Session

from src.database import get_db
from src.seats.ledger import SeatLedger, get_seat_ledger
from src.bookings.booking_service import BookingService
from src.bookings.cancellation_service import CancellationService
from src.bookings.notification_service import NotificationService, notification_service
from src.bookings.outbox import BookingOutbox, booking_outbox
from src.bookings.payment_gateway import PaymentGateway, build_payment_gateway

@lru_cache
def get_payment_gateway() -> PaymentGateway:
    return build_payment_gateway()

def get_notification_service() -> NotificationService:
    return notification_service

def get_booking_outbox() -> BookingOutbox:
    return booking_outbox

def get_booking_service(
    db: Session = Depends(get_db),
    ledger: SeatLedger = Depends(get_seat_ledger),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationService = Depends(get_notification_service),
    outbox: BookingOutbox = Depends(get_booking_outbox)
) -> BookingService:
    return BookingService(db, ledger, payment_gateway, notifier, outbox)

def get_cancellation_service(
    db: Session = Depends(get_db),
    ledger: SeatLedger = Depends(get_seat_ledger),
    notifier: NotificationService = Depends(get_notification_service),
    outbox: BookingOutbox = Depends(get_booking_outbox)
) -> CancellationService:
    return CancellationService(db, ledger, notifier, outbox)
