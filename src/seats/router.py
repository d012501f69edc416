from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date

from src.database import get_db
from src.schedules.service import ScheduleLookupService
from src.seats.ledger import SeatLedger, get_seat_ledger
from src.seats.schemas import BusSeatMap, SeatAvailability, SEAT_STATE_LABELS, SeatState

router = APIRouter()

@router.get("/available-seats", response_model=BusSeatMap)
def get_seats(
    bus_number: str = Query(..., alias="busNumber", description="Bus number"),
    travel_date: date = Query(..., alias="date", description="Travel date"),
    db: Session = Depends(get_db),
    ledger: SeatLedger = Depends(get_seat_ledger)
):
    """Get seat availability for a bus on a travel date"""

    schedule = ScheduleLookupService(db).get_schedule_for_bus(bus_number, travel_date)
    seat_map = ledger.seat_map(bus_number, travel_date, schedule.capacity)

    return BusSeatMap(
        bus_number=bus_number,
        travel_date=travel_date,
        capacity=schedule.capacity,
        available_count=sum(1 for state in seat_map.values() if state == SeatState.FREE),
        seats=[
            SeatAvailability(seat_number=number, status=SEAT_STATE_LABELS[state])
            for number, state in seat_map.items()
        ]
    )
