from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date

from src.database import get_db
from src.exceptions import NotFoundError
from src.schedules.schemas import BusSearchResponse
from src.schedules.service import ScheduleLookupService
from src.seats.ledger import SeatLedger, get_seat_ledger

router = APIRouter()

def _search(
    db: Session,
    ledger: SeatLedger,
    boarding_place: str,
    destination_place: str,
    travel_date: date
):
    results = ScheduleLookupService(db).search_buses(boarding_place, destination_place, travel_date)
    for result in results:
        result.available_seats = ledger.free_seat_count(result.bus_number, travel_date, result.capacity)
    return results

@router.get("/buses", response_model=BusSearchResponse)
def search_buses(
    boarding_place: str = Query(..., alias="boardingPlace", min_length=1),
    destination_place: str = Query(..., alias="destinationPlace", min_length=1),
    travel_date: date = Query(..., alias="date", description="Travel date"),
    db: Session = Depends(get_db),
    ledger: SeatLedger = Depends(get_seat_ledger)
):
    """Search for buses between two places on a date"""

    buses = _search(db, ledger, boarding_place, destination_place, travel_date)
    if not buses:
        raise NotFoundError("No buses found for the selected places and date")
    return BusSearchResponse(buses=buses)

@router.get("/available-buses", response_model=BusSearchResponse)
def search_available_buses(
    boarding_place: str = Query(..., alias="boardingPlace", min_length=1),
    destination_place: str = Query(..., alias="destinationPlace", min_length=1),
    travel_date: date = Query(..., alias="date", description="Travel date"),
    db: Session = Depends(get_db),
    ledger: SeatLedger = Depends(get_seat_ledger)
):
    """Search for buses that still have free seats"""

    buses = [
        bus for bus in _search(db, ledger, boarding_place, destination_place, travel_date)
        if bus.available_seats
    ]
    if not buses:
        raise NotFoundError("No buses with available seats for the selected places and date")
    return BusSearchResponse(buses=buses)
