from typing import List, Optional
from datetime import date, datetime
from sqlalchemy import update
from sqlalchemy.orm import Session

from src.models import Booking
from src.bookings.exceptions import AlreadyCancelled
from src.bookings.schemas import BookingRecord, BookingStatus

class BookingRepository:
    """Storage for Booking records; bookings are never deleted, only cancelled"""

    def __init__(self, db: Session):
        self.db = db

    def save(self, record: BookingRecord) -> None:
        """Insert the booking unless it is already stored (retries may repeat a write that landed)"""
        try:
            if self.db.get(Booking, record.transaction_id) is not None:
                return
            values = record.model_dump(mode="python")
            values["status"] = record.status.value
            self.db.add(Booking(**values))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def get(self, transaction_id: str) -> Optional[BookingRecord]:
        booking = self.db.get(Booking, transaction_id)
        if booking is None:
            return None
        return self._to_record(booking)

    def mark_cancelled(self, transaction_id: str, cancelled_at: Optional[datetime] = None) -> None:
        """Confirmed -> Cancelled; raises AlreadyCancelled if another request got there first"""
        try:
            result = self.db.execute(
                update(Booking)
                .where(
                    Booking.transaction_id == transaction_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                )
                .values(
                    status=BookingStatus.CANCELLED.value,
                    cancelled_at=cancelled_at or datetime.now(),
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if result.rowcount == 0:
            raise AlreadyCancelled(f"Booking {transaction_id} is already cancelled")

    def confirmed_on_or_after(self, first_date: date) -> List[BookingRecord]:
        bookings = (
            self.db.query(Booking)
            .filter(
                Booking.status == BookingStatus.CONFIRMED.value,
                Booking.travel_date >= first_date,
            )
            .all()
        )
        return [self._to_record(b) for b in bookings]

    @staticmethod
    def _to_record(booking: Booking) -> BookingRecord:
        return BookingRecord(
            transaction_id=booking.transaction_id,
            schedule_id=booking.schedule_id,
            route_id=booking.route_id,
            bus_number=booking.bus_number,
            seat_number=booking.seat_number,
            travel_date=booking.travel_date,
            travel_time=booking.travel_time,
            passenger_name=booking.passenger_name,
            mobile_number=booking.mobile_number,
            email=booking.email,
            boarding_place=booking.boarding_place,
            destination_place=booking.destination_place,
            fare=booking.fare,
            cancellation_token=booking.cancellation_token,
            payment_reference=booking.payment_reference,
            status=BookingStatus(booking.status),
            created_at=booking.created_at,
            cancelled_at=booking.cancelled_at
        )
