import logging
import threading
from datetime import date
from typing import Callable, Optional

from sqlalchemy.orm import Session

from src.seats.ledger import SeatLedger
from src.bookings.outbox import BookingOutbox
from src.bookings.repository import BookingRepository

logger = logging.getLogger(__name__)

def restore_booked_seats(
    ledger: SeatLedger,
    session_factory: Callable[[], Session],
    outbox: Optional[BookingOutbox] = None,
    today: Optional[date] = None
) -> int:
    """Rebuild Booked slots from stored Confirmed bookings and from outbox records"""
    first_date = today or date.today()
    db = session_factory()
    try:
        records = BookingRepository(db).confirmed_on_or_after(first_date)
    finally:
        db.close()

    if outbox is not None:
        records.extend(r for r in outbox.pending() if r.travel_date >= first_date)

    for record in records:
        ledger.restore_booked(
            record.bus_number, record.travel_date, record.seat_number, record.transaction_id
        )

    logger.info(f"Restored {len(records)} booked seats into the ledger")
    return len(records)

class LedgerMaintenance:
    """
    Periodic housekeeping for the booking core.

    Reclaims holds whose orchestration never finished, forgets slots for past
    travel dates, and retries bookings parked in the outbox.
    """

    def __init__(
        self,
        ledger: SeatLedger,
        outbox: BookingOutbox,
        session_factory: Callable[[], Session],
        hold_timeout_seconds: float,
        interval_seconds: float,
        today: Callable[[], date] = date.today
    ):
        self.ledger = ledger
        self.outbox = outbox
        self.session_factory = session_factory
        self.hold_timeout_seconds = hold_timeout_seconds
        self.interval_seconds = interval_seconds
        self._today = today
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> dict:
        reclaimed = self.ledger.sweep_expired_holds(self.hold_timeout_seconds)
        pruned = self.ledger.prune_before(self._today())
        recorded = self.outbox.flush(self.session_factory) if len(self.outbox) else 0

        if reclaimed or recorded:
            logger.info(
                f"Maintenance: reclaimed {len(reclaimed)} holds, "
                f"recorded {recorded} outbox bookings, {len(self.outbox)} still pending"
            )
        return {"reclaimed": len(reclaimed), "pruned": pruned, "recorded": recorded}

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="ledger-maintenance", daemon=True)
        self._thread.start()
        logger.info(f"Ledger maintenance started (every {self.interval_seconds}s)")

    def stop(self, timeout: float = 5.0):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    def _run(self):
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                logger.exception("Ledger maintenance pass failed")
