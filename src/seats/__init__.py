"""
Seat Ledger Module

Authoritative Free/Held/Booked state of every seat per bus and travel date,
with atomic reserve/commit/release transitions and the seat availability API.
"""

from .router import router
from .ledger import SeatLedger, SeatKey, ReservationHandle, seat_ledger
from .schemas import SeatState, SeatAvailability, BusSeatMap

__all__ = [
    "router",
    "SeatLedger",
    "SeatKey",
    "ReservationHandle",
    "seat_ledger",
    "SeatState",
    "SeatAvailability",
    "BusSeatMap"
]
