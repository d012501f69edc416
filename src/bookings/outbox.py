import logging
import os
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from src.config import settings
from src.bookings.repository import BookingRepository
from src.bookings.schemas import BookingRecord

logger = logging.getLogger(__name__)

class BookingOutbox:
    """
    Charged bookings that could not be written to the database yet.

    Records are kept in a JSON-lines file so they survive a restart, and are
    retried by the ledger maintenance thread until the write succeeds.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._pending: Dict[str, BookingRecord] = {}

    @property
    def corrupt_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".corrupt")

    def load(self) -> int:
        """
        Read records left over from a previous run.

        A line that does not parse (e.g. cut short by a crash while it was
        being appended) is moved to the .corrupt file next to the outbox and
        the remaining lines are still loaded.
        """
        with self._lock:
            if not self.path.exists():
                return 0
            unreadable = []
            for number, line in enumerate(self.path.read_text(encoding="utf-8").splitlines(), start=1):
                if not line.strip():
                    continue
                try:
                    record = BookingRecord.model_validate_json(line)
                except ValidationError as e:
                    logger.critical(
                        f"ALERT unreadable booking on line {number} of {self.path}, "
                        f"moved to {self.corrupt_path}: {e.errors()[0]['msg']}"
                    )
                    unreadable.append(line)
                    continue
                self._pending[record.transaction_id] = record
            count = len(self._pending)

        if unreadable:
            with self.corrupt_path.open("a", encoding="utf-8") as handle:
                handle.write("".join(line + "\n" for line in unreadable))
                handle.flush()
                os.fsync(handle.fileno())
            self._rewrite()
        if count:
            logger.warning(f"Loaded {count} unrecorded bookings from {self.path}")
        return count

    def add(self, record: BookingRecord) -> None:
        with self._lock:
            self._pending[record.transaction_id] = record
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(record.model_dump_json() + "\n")
                handle.flush()
                os.fsync(handle.fileno())

    def pending(self) -> List[BookingRecord]:
        with self._lock:
            return list(self._pending.values())

    def get(self, transaction_id: str) -> Optional[BookingRecord]:
        with self._lock:
            return self._pending.get(transaction_id)

    def __len__(self):
        with self._lock:
            return len(self._pending)

    def flush(self, session_factory: Callable[[], Session]) -> int:
        """Try to store every pending record; returns how many were stored"""
        stored = 0
        for record in self.pending():
            db = session_factory()
            try:
                BookingRepository(db).save(record)
            except Exception as e:
                logger.error(f"Booking {record.transaction_id} still not recorded: {e}")
                continue
            finally:
                db.close()

            with self._lock:
                self._pending.pop(record.transaction_id, None)
            stored += 1
            logger.info(f"Booking {record.transaction_id} recorded from outbox")

        if stored:
            self._rewrite()
        return stored

    def _rewrite(self):
        with self._lock:
            remaining = list(self._pending.values())
            if not remaining:
                self.path.unlink(missing_ok=True)
                return
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(
                "".join(record.model_dump_json() + "\n" for record in remaining),
                encoding="utf-8"
            )
            os.replace(tmp_path, self.path)

booking_outbox = BookingOutbox(settings.BOOKING_OUTBOX_PATH)
