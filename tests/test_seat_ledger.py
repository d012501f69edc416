"""
Unit tests for SeatLedger

Covers the Free -> Held -> Booked transitions, hold ownership, the orphaned
hold sweeper and concurrent admission to a single seat slot.
"""

import threading
from datetime import date, timedelta

import pytest

from src.seats.exceptions import SeatUnavailable, InvalidHandle
from src.seats.ledger import SeatLedger, SeatKey
from src.seats.schemas import SeatState


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestSeatLedger:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def ledger(self, clock):
        return SeatLedger(clock=clock)

    @pytest.fixture
    def day(self):
        return date(2030, 1, 15)

    def test_reserve_moves_free_seat_to_held(self, ledger, day):
        handle = ledger.reserve("XYZ-1234", day, 7)

        assert handle.key == SeatKey("XYZ-1234", day, 7)
        assert ledger.status("XYZ-1234", day, 7) == SeatState.HELD

    def test_reserve_rejects_held_seat(self, ledger, day):
        ledger.reserve("XYZ-1234", day, 7)

        with pytest.raises(SeatUnavailable) as exc:
            ledger.reserve("XYZ-1234", day, 7)

        assert "already booked" in exc.value.message

    def test_reserve_rejects_booked_seat(self, ledger, day):
        handle = ledger.reserve("XYZ-1234", day, 7)
        ledger.commit(handle, "TXN1")

        with pytest.raises(SeatUnavailable):
            ledger.reserve("XYZ-1234", day, 7)

    def test_same_seat_on_other_date_or_bus_is_independent(self, ledger, day):
        ledger.reserve("XYZ-1234", day, 7)

        ledger.reserve("XYZ-1234", day + timedelta(days=1), 7)
        ledger.reserve("ABC-1234", day, 7)

        assert ledger.status("XYZ-1234", day, 8) == SeatState.FREE

    def test_commit_books_seat_and_is_repeatable(self, ledger, day):
        handle = ledger.reserve("XYZ-1234", day, 7)

        ledger.commit(handle, "TXN1")
        ledger.commit(handle, "TXN1")

        assert ledger.status("XYZ-1234", day, 7) == SeatState.BOOKED

    def test_commit_with_stale_handle_fails(self, ledger, clock, day):
        handle = ledger.reserve("XYZ-1234", day, 7)
        clock.now += 600
        ledger.sweep_expired_holds(300)
        ledger.reserve("XYZ-1234", day, 7)

        with pytest.raises(InvalidHandle):
            ledger.commit(handle, "TXN1")

        assert ledger.status("XYZ-1234", day, 7) == SeatState.HELD

    def test_release_frees_held_seat(self, ledger, day):
        handle = ledger.reserve("XYZ-1234", day, 7)

        assert ledger.release(handle) is True
        assert ledger.status("XYZ-1234", day, 7) == SeatState.FREE
        ledger.reserve("XYZ-1234", day, 7)

    def test_release_after_sweep_leaves_new_holder_alone(self, ledger, clock, day):
        stale = ledger.reserve("XYZ-1234", day, 7)
        clock.now += 600
        ledger.sweep_expired_holds(300)
        ledger.reserve("XYZ-1234", day, 7)

        assert ledger.release(stale) is False
        assert ledger.status("XYZ-1234", day, 7) == SeatState.HELD

    def test_release_of_booked_seat_is_refused(self, ledger, day):
        handle = ledger.reserve("XYZ-1234", day, 7)
        ledger.commit(handle, "TXN1")

        with pytest.raises(InvalidHandle):
            ledger.release(handle)

        assert ledger.status("XYZ-1234", day, 7) == SeatState.BOOKED

    def test_release_booked_only_for_owning_booking(self, ledger, day):
        handle = ledger.reserve("XYZ-1234", day, 7)
        ledger.commit(handle, "TXN1")

        assert ledger.release_booked("XYZ-1234", day, 7, "TXN2") is False
        assert ledger.status("XYZ-1234", day, 7) == SeatState.BOOKED

        assert ledger.release_booked("XYZ-1234", day, 7, "TXN1") is True
        assert ledger.status("XYZ-1234", day, 7) == SeatState.FREE

        assert ledger.release_booked("XYZ-1234", day, 7, "TXN1") is False

    def test_sweep_reclaims_only_expired_holds(self, ledger, clock, day):
        old = ledger.reserve("XYZ-1234", day, 1)
        clock.now += 200
        ledger.reserve("XYZ-1234", day, 2)
        booked = ledger.reserve("XYZ-1234", day, 3)
        ledger.commit(booked, "TXN3")
        clock.now += 150

        reclaimed = ledger.sweep_expired_holds(300)

        assert reclaimed == [old.key]
        assert ledger.status("XYZ-1234", day, 1) == SeatState.FREE
        assert ledger.status("XYZ-1234", day, 2) == SeatState.HELD
        assert ledger.status("XYZ-1234", day, 3) == SeatState.BOOKED

    def test_restore_booked_marks_slot_booked(self, ledger, day):
        ledger.restore_booked("XYZ-1234", day, 5, "TXN5")

        assert ledger.status("XYZ-1234", day, 5) == SeatState.BOOKED
        with pytest.raises(SeatUnavailable):
            ledger.reserve("XYZ-1234", day, 5)
        assert ledger.release_booked("XYZ-1234", day, 5, "TXN5") is True

    def test_seat_map_and_free_count(self, ledger, day):
        ledger.reserve("XYZ-1234", day, 2)
        handle = ledger.reserve("XYZ-1234", day, 4)
        ledger.commit(handle, "TXN4")

        seat_map = ledger.seat_map("XYZ-1234", day, 5)

        assert seat_map == {
            1: SeatState.FREE,
            2: SeatState.HELD,
            3: SeatState.FREE,
            4: SeatState.BOOKED,
            5: SeatState.FREE,
        }
        assert ledger.free_seat_count("XYZ-1234", day, 5) == 3

    def test_prune_before_forgets_past_dates(self, ledger, day):
        yesterday = day - timedelta(days=1)
        ledger.commit(ledger.reserve("XYZ-1234", yesterday, 1), "TXN1")
        ledger.reserve("XYZ-1234", day, 1)

        assert ledger.prune_before(day) == 1
        assert ledger.status("XYZ-1234", yesterday, 1) == SeatState.FREE
        assert ledger.status("XYZ-1234", day, 1) == SeatState.HELD

    def test_prune_keeps_held_slots_until_they_finish(self, ledger, day):
        yesterday = day - timedelta(days=1)
        handle = ledger.reserve("XYZ-1234", yesterday, 1)

        assert ledger.prune_before(day) == 0

        ledger.commit(handle, "TXN1")
        assert ledger.status("XYZ-1234", yesterday, 1) == SeatState.BOOKED
        assert ledger.prune_before(day) == 1

    def test_concurrent_reserve_admits_exactly_one(self, ledger, day):
        contenders = 20
        barrier = threading.Barrier(contenders)
        winners = []
        losers = []

        def attempt():
            barrier.wait()
            try:
                winners.append(ledger.reserve("XYZ-1234", day, 9))
            except SeatUnavailable:
                losers.append(1)

        threads = [threading.Thread(target=attempt) for _ in range(contenders)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5)

        assert len(winners) == 1
        assert len(losers) == contenders - 1
        assert ledger.status("XYZ-1234", day, 9) == SeatState.HELD
