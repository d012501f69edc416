import threading

import pytest
from sqlalchemy.exc import OperationalError

from src.bookings.cancellation_service import CancellationService
from src.bookings.exceptions import (
    BookingNotFound, BookingPending, CancellationUnauthorized, PersistenceRetryExhausted
)
from src.bookings.schemas import BookingStatus
from src.models import Booking
from src.seats.schemas import SeatState


class TestCancellation:
    @pytest.fixture
    def booked(self, booking_service, make_request):
        return booking_service.book_seat(make_request()).booking

    def test_cancel_frees_seat_for_rebooking(
        self, booked, cancellation_service, booking_service, make_request, ledger, db, notifier, travel_date
    ):
        response = cancellation_service.cancel(booked.transaction_id, booked.cancellation_token)

        assert response.message == "Booking cancelled successfully"
        assert response.status == BookingStatus.CANCELLED
        assert ledger.status("XYZ-1234", travel_date, 12) == SeatState.FREE

        db.expire_all()
        stored = db.get(Booking, booked.transaction_id)
        assert stored.status == BookingStatus.CANCELLED.value
        assert stored.cancelled_at is not None
        assert notifier.sent[-1].subject == "Booking Cancelled"

        rebooked = booking_service.book_seat(make_request(passengerName="Kamal Silva")).booking
        assert rebooked.transaction_id != booked.transaction_id

    def test_second_cancel_does_not_release_seat_again(
        self, booked, cancellation_service, booking_service, make_request, ledger, travel_date
    ):
        cancellation_service.cancel(booked.transaction_id, booked.cancellation_token)
        rebooked = booking_service.book_seat(make_request(passengerName="Kamal Silva")).booking

        response = cancellation_service.cancel(booked.transaction_id, booked.cancellation_token)

        assert response.message == "Booking is already cancelled"
        assert response.status == BookingStatus.CANCELLED
        assert ledger.status("XYZ-1234", travel_date, 12) == SeatState.BOOKED
        assert booking_service.get_booking(rebooked.transaction_id).status == BookingStatus.CONFIRMED

    def test_wrong_token_is_refused(self, booked, cancellation_service, ledger, db, travel_date):
        with pytest.raises(CancellationUnauthorized) as exc:
            cancellation_service.cancel(booked.transaction_id, "not-the-token")

        assert exc.value.status_code == 403
        assert ledger.status("XYZ-1234", travel_date, 12) == SeatState.BOOKED
        assert db.get(Booking, booked.transaction_id).status == BookingStatus.CONFIRMED.value

    def test_unknown_transaction(self, cancellation_service):
        with pytest.raises(BookingNotFound):
            cancellation_service.cancel("TXN-MISSING", "whatever")

    def test_concurrent_cancels_release_once(self, booked, session_factory, ledger, notifier, travel_date):
        contenders = 4
        barrier = threading.Barrier(contenders)
        messages = []

        def attempt():
            db = session_factory()
            try:
                service = CancellationService(db, ledger, notifier)
                barrier.wait()
                messages.append(service.cancel(booked.transaction_id, booked.cancellation_token).message)
            finally:
                db.close()

        threads = [threading.Thread(target=attempt) for _ in range(contenders)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        assert sorted(messages).count("Booking cancelled successfully") == 1
        assert len(messages) == contenders
        assert ledger.status("XYZ-1234", travel_date, 12) == SeatState.FREE
        assert [n.subject for n in notifier.sent].count("Booking Cancelled") == 1


class TestCancellingUnrecordedBooking:
    @pytest.fixture
    def parked(self, booking_service, make_request, outbox, monkeypatch):
        def failing_save(record):
            raise OperationalError("INSERT INTO bookings", {}, Exception("database is locked"))

        monkeypatch.setattr(booking_service.repository, "save", failing_save)
        with pytest.raises(PersistenceRetryExhausted) as exc:
            booking_service.book_seat(make_request())
        return outbox.get(exc.value.transaction_id)

    def test_cancel_records_then_cancels(
        self, parked, cancellation_service, outbox, session_factory, ledger, db, travel_date
    ):
        response = cancellation_service.cancel(parked.transaction_id, parked.cancellation_token)

        assert response.message == "Booking cancelled successfully"
        assert ledger.status("XYZ-1234", travel_date, 12) == SeatState.FREE

        outbox.flush(session_factory)
        db.expire_all()
        assert db.get(Booking, parked.transaction_id).status == BookingStatus.CANCELLED.value
        assert len(outbox) == 0

    def test_database_still_down(self, parked, cancellation_service, ledger, travel_date, monkeypatch):
        def failing_save(record):
            raise OperationalError("INSERT INTO bookings", {}, Exception("database is locked"))

        monkeypatch.setattr(cancellation_service.repository, "save", failing_save)

        with pytest.raises(BookingPending) as exc:
            cancellation_service.cancel(parked.transaction_id, parked.cancellation_token)

        assert exc.value.status_code == 503
        assert parked.transaction_id in exc.value.message
        assert ledger.status("XYZ-1234", travel_date, 12) == SeatState.BOOKED

    def test_wrong_token_is_refused(self, parked, cancellation_service, db):
        with pytest.raises(CancellationUnauthorized):
            cancellation_service.cancel(parked.transaction_id, "not-the-token")

        assert db.get(Booking, parked.transaction_id) is None
