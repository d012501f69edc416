"""
Shared fixtures for the booking core tests.

Each test gets its own SQLite file seeded with the reference buses, routes and
schedules, a fresh seat ledger, and in-process fakes for the payment gateway
and the email notifier.
"""

import os
import tempfile
import threading
from datetime import date, timedelta

# Settings are read at import time; point them somewhere harmless first
_scratch = tempfile.mkdtemp(prefix="transit-tests-")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BOOKING_OUTBOX_PATH", os.path.join(_scratch, "booking_outbox.jsonl"))
os.environ.setdefault("NOTIFICATION_RETRY_DELAY_SECONDS", "0")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from seed_data import seed_transit_data
from src.database import Base, get_db
from src.seats.ledger import SeatLedger, get_seat_ledger
from src.bookings.booking_service import BookingService
from src.bookings.cancellation_service import CancellationService
from src.bookings.dependencies import (
    get_payment_gateway, get_notification_service, get_booking_outbox
)
from src.bookings.outbox import BookingOutbox
from src.bookings.payment_gateway import PaymentGateway, PaymentGatewayError, PaymentResult
from src.bookings.schemas import SeatBookingRequest
from src.main import app


class ApprovingGateway(PaymentGateway):
    def __init__(self):
        self.charges = []
        self._lock = threading.Lock()

    def charge(self, amount, payer, description):
        with self._lock:
            self.charges.append((amount, payer, description))
            return PaymentResult(success=True, reference=f"PAY-{len(self.charges)}")


class DecliningGateway(PaymentGateway):
    def __init__(self, reason="Insufficient funds"):
        self.reason = reason
        self.charges = []

    def charge(self, amount, payer, description):
        self.charges.append((amount, payer, description))
        return PaymentResult(success=False, reason=self.reason)


class UnreachableGateway(PaymentGateway):
    def charge(self, amount, payer, description):
        raise PaymentGatewayError("connection refused")


class BlockingGateway(PaymentGateway):
    """Never answers until released; used to drive the payment timeout"""

    def __init__(self):
        self.release = threading.Event()

    def charge(self, amount, payer, description):
        self.release.wait(5)
        return PaymentResult(success=True, reference="PAY-LATE")


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, notification):
        self.sent.append(notification)


class BrokenNotifier:
    def notify(self, notification):
        raise RuntimeError("mail queue unavailable")


@pytest.fixture
def travel_date():
    return date.today() + timedelta(days=7)


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'bookings.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = factory()
    try:
        seed_transit_data(db)
    finally:
        db.close()

    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def ledger():
    return SeatLedger()


@pytest.fixture
def gateway():
    return ApprovingGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def outbox(tmp_path):
    return BookingOutbox(str(tmp_path / "outbox.jsonl"))


@pytest.fixture
def make_booking_service(db, ledger, gateway, notifier, outbox):
    def factory(**overrides):
        options = {
            "db": db,
            "ledger": ledger,
            "payment_gateway": gateway,
            "notifier": notifier,
            "outbox": outbox,
            "payment_timeout": 2.0,
            "sleep": lambda seconds: None,
        }
        options.update(overrides)
        return BookingService(**options)
    return factory


@pytest.fixture
def booking_service(make_booking_service):
    return make_booking_service()


@pytest.fixture
def cancellation_service(db, ledger, notifier, outbox):
    return CancellationService(db, ledger, notifier, outbox)


@pytest.fixture
def booking_payload(travel_date):
    return {
        "busNumber": "XYZ-1234",
        "seatNumber": 12,
        "passengerName": "Nimal Perera",
        "mobileNumber": "0771234567",
        "email": "Nimal@Example.com",
        "boardingPlace": "Colombo",
        "destinationPlace": "Kandy",
        "date": travel_date.isoformat(),
    }


@pytest.fixture
def make_request(booking_payload):
    def factory(**changes):
        payload = dict(booking_payload)
        payload.update(changes)
        return SeatBookingRequest(**payload)
    return factory


@pytest.fixture
def client(session_factory, ledger, gateway, notifier, outbox):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_seat_ledger] = lambda: ledger
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notification_service] = lambda: notifier
    app.dependency_overrides[get_booking_outbox] = lambda: outbox

    # No context manager: the lifespan (maintenance thread, real notifier) stays off
    yield TestClient(app)

    app.dependency_overrides.clear()


