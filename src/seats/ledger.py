"""
Seat ledger: the authoritative record of seat slot state per bus and travel date.

Each slot is keyed by (bus number, travel date, seat number) and carries its own
mutex, so reservations on different seats of the same bus never contend while
two requests for the same seat are strictly ordered. A request that finds the
slot taken is rejected at once; nobody waits for a hold to clear.

State machine:
    FREE --reserve--> HELD --commit--> BOOKED
    HELD --release/sweep--> FREE
    BOOKED --release_booked--> FREE   (cancellation only)
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional

from src.seats.exceptions import SeatUnavailable, InvalidHandle
from src.seats.schemas import SeatState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeatKey:
    """Composite identity of a seat slot."""
    bus_number: str
    travel_date: date
    seat_number: int

    def __str__(self) -> str:
        return f"{self.bus_number}/{self.travel_date.isoformat()}/seat-{self.seat_number}"


@dataclass(frozen=True)
class ReservationHandle:
    """Proof of ownership of a Held slot, returned by reserve()."""
    key: SeatKey
    hold_id: str
    held_at: float


@dataclass
class _SeatSlot:
    lock: threading.Lock = field(default_factory=threading.Lock)
    state: SeatState = SeatState.FREE
    hold_id: Optional[str] = None
    held_at: Optional[float] = None
    transaction_id: Optional[str] = None

    def clear(self):
        self.state = SeatState.FREE
        self.hold_id = None
        self.held_at = None
        self.transaction_id = None


class SeatLedger:
    """In-process seat ledger with per-slot atomic transitions."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._slots: Dict[SeatKey, _SeatSlot] = {}
        self._registry_lock = threading.Lock()

    def _slot(self, key: SeatKey) -> _SeatSlot:
        slot = self._slots.get(key)
        if slot is None:
            with self._registry_lock:
                slot = self._slots.setdefault(key, _SeatSlot())
        return slot

    def reserve(self, bus_number: str, travel_date: date, seat_number: int) -> ReservationHandle:
        """Move a Free slot to Held, or raise SeatUnavailable."""
        key = SeatKey(bus_number, travel_date, seat_number)
        slot = self._slot(key)

        with slot.lock:
            if slot.state != SeatState.FREE:
                logger.info(f"Seat {key} is {slot.state.value}, reservation rejected")
                raise SeatUnavailable(
                    f"Seat {seat_number} on bus {bus_number} for {travel_date.isoformat()} is already booked"
                )
            slot.state = SeatState.HELD
            slot.hold_id = uuid.uuid4().hex
            slot.held_at = self._clock()
            handle = ReservationHandle(key=key, hold_id=slot.hold_id, held_at=slot.held_at)

        logger.info(f"Seat {key} held ({handle.hold_id})")
        return handle

    def commit(self, handle: ReservationHandle, transaction_id: str) -> None:
        """Held -> Booked. Repeating the commit for the same handle is a no-op."""
        slot = self._slot(handle.key)

        with slot.lock:
            if slot.hold_id != handle.hold_id:
                raise InvalidHandle(f"Reservation {handle.hold_id} no longer owns seat {handle.key}")
            if slot.state == SeatState.BOOKED:
                return
            slot.state = SeatState.BOOKED
            slot.transaction_id = transaction_id

        logger.info(f"Seat {handle.key} booked by {transaction_id}")

    def release(self, handle: ReservationHandle) -> bool:
        """
        Held -> Free for the owning handle.

        Returns False if the hold was already reclaimed (by the sweeper, or
        because the slot has since been taken by someone else). A Booked slot
        cannot be released through its hold; see release_booked().
        """
        slot = self._slot(handle.key)

        with slot.lock:
            if slot.hold_id != handle.hold_id:
                logger.warning(f"Hold {handle.hold_id} on seat {handle.key} was already reclaimed")
                return False
            if slot.state == SeatState.BOOKED:
                raise InvalidHandle(f"Seat {handle.key} is booked; cancel the booking to free it")
            slot.clear()

        logger.info(f"Seat {handle.key} released ({handle.hold_id})")
        return True

    def release_booked(
        self,
        bus_number: str,
        travel_date: date,
        seat_number: int,
        transaction_id: str
    ) -> bool:
        """Booked -> Free, only for the booking that holds the slot."""
        key = SeatKey(bus_number, travel_date, seat_number)
        slot = self._slot(key)

        with slot.lock:
            if slot.state != SeatState.BOOKED or slot.transaction_id != transaction_id:
                logger.warning(f"Seat {key} is not booked by {transaction_id}; nothing to release")
                return False
            slot.clear()

        logger.info(f"Seat {key} freed after cancellation of {transaction_id}")
        return True

    def restore_booked(
        self,
        bus_number: str,
        travel_date: date,
        seat_number: int,
        transaction_id: str
    ) -> None:
        """Mark a slot Booked from a persisted Confirmed booking (startup recovery)."""
        key = SeatKey(bus_number, travel_date, seat_number)
        slot = self._slot(key)

        with slot.lock:
            if slot.state == SeatState.BOOKED and slot.transaction_id != transaction_id:
                logger.error(
                    f"Seat {key} restored for {transaction_id} but already booked by {slot.transaction_id}"
                )
                return
            slot.state = SeatState.BOOKED
            slot.hold_id = transaction_id
            slot.held_at = self._clock()
            slot.transaction_id = transaction_id

    def status(self, bus_number: str, travel_date: date, seat_number: int) -> SeatState:
        slot = self._slots.get(SeatKey(bus_number, travel_date, seat_number))
        if slot is None:
            return SeatState.FREE
        with slot.lock:
            return slot.state

    def seat_map(self, bus_number: str, travel_date: date, capacity: int) -> Dict[int, SeatState]:
        """Status of seats 1..capacity"""
        return {
            seat_number: self.status(bus_number, travel_date, seat_number)
            for seat_number in range(1, capacity + 1)
        }

    def free_seat_count(self, bus_number: str, travel_date: date, capacity: int) -> int:
        return sum(
            1 for state in self.seat_map(bus_number, travel_date, capacity).values()
            if state == SeatState.FREE
        )

    def sweep_expired_holds(self, hold_timeout_seconds: float) -> List[SeatKey]:
        """Reclaim Held slots older than the hold timeout (orphaned orchestrations)."""
        now = self._clock()
        reclaimed = []

        for key, slot in list(self._slots.items()):
            with slot.lock:
                if slot.state != SeatState.HELD:
                    continue
                if now - slot.held_at < hold_timeout_seconds:
                    continue
                logger.warning(f"Reclaiming orphaned hold {slot.hold_id} on seat {key}")
                slot.clear()
                reclaimed.append(key)

        return reclaimed

    def prune_before(self, cutoff: date) -> int:
        """
        Forget slots for travel dates before cutoff; bookings for those dates are no longer accepted.

        Held slots are kept so an in-flight booking can still commit or release
        its hold; the sweeper frees them and a later pass drops them.
        """
        stale = []
        with self._registry_lock:
            for key, slot in list(self._slots.items()):
                if key.travel_date >= cutoff:
                    continue
                with slot.lock:
                    if slot.state == SeatState.HELD:
                        continue
                    del self._slots[key]
                stale.append(key)
        if stale:
            logger.info(f"Pruned {len(stale)} seat slots before {cutoff.isoformat()}")
        return len(stale)

    def clear(self) -> None:
        with self._registry_lock:
            self._slots.clear()


# Process-wide ledger shared by every request handler
seat_ledger = SeatLedger()


def get_seat_ledger() -> SeatLedger:
    return seat_ledger
