import logging
from typing import List, Optional
from datetime import date
from sqlalchemy.orm import Session, joinedload

from src.exceptions import NotFoundError
from src.models import Bus, Schedule
from src.routes.fare_service import FareResolver, normalize_stop
from src.schedules.schemas import ScheduleContext, BusSearchResult, StopTime

logger = logging.getLogger(__name__)

class ScheduleNotFound(NotFoundError):
    """The bus does not exist or has no schedule on the travel date"""

def operates_on(schedule: Schedule, travel_date: date) -> bool:
    """Weekly schedules run on their listed days, one-off schedules on their start date"""
    if schedule.days:
        weekday = travel_date.strftime("%A").lower()
        return weekday in {day.lower() for day in schedule.days}
    return schedule.start_time.date() == travel_date

def stop_position(stop_sequence: List[str], place: str) -> Optional[int]:
    wanted = normalize_stop(place)
    for index, stop in enumerate(stop_sequence):
        if normalize_stop(stop) == wanted:
            return index
    return None

class ScheduleLookupService:
    """Read-only view over buses, routes and schedules for booking"""

    def __init__(self, db: Session):
        self.db = db

    def get_schedule_for_bus(self, bus_number: str, travel_date: date) -> ScheduleContext:
        """Find the schedule the bus runs on the travel date"""

        bus = (
            self.db.query(Bus)
            .filter(Bus.bus_number == bus_number, Bus.is_active.is_(True))
            .first()
        )
        if not bus:
            raise ScheduleNotFound(f"Bus {bus_number} not found")

        schedules = (
            self.db.query(Schedule)
            .options(joinedload(Schedule.route))
            .filter(Schedule.bus_number == bus_number)
            .all()
        )
        running = sorted(
            (s for s in schedules if operates_on(s, travel_date)),
            key=lambda s: s.start_time.time()
        )
        if not running:
            raise ScheduleNotFound(
                f"No schedule found for bus {bus_number} on {travel_date.isoformat()}"
            )

        schedule = running[0]
        return ScheduleContext(
            schedule_id=schedule.schedule_id,
            route_id=schedule.route.route_id,
            route_pk=schedule.route.id,
            bus_number=bus.bus_number,
            bus_type=bus.bus_type,
            capacity=bus.capacity,
            stop_sequence=schedule.route.stop_sequence,
            start_time=schedule.start_time,
            end_time=schedule.end_time
        )

    def search_buses(
        self,
        boarding_place: str,
        destination_place: str,
        travel_date: date
    ) -> List[BusSearchResult]:
        """Buses whose route passes boarding before destination, running on the date, with a priced fare"""

        schedules = (
            self.db.query(Schedule)
            .options(joinedload(Schedule.route), joinedload(Schedule.bus))
            .join(Bus, Bus.bus_number == Schedule.bus_number)
            .filter(Bus.is_active.is_(True))
            .all()
        )

        candidates = []
        for schedule in schedules:
            if not operates_on(schedule, travel_date):
                continue
            sequence = schedule.route.stop_sequence
            board_at = stop_position(sequence, boarding_place)
            alight_at = stop_position(sequence, destination_place)
            if board_at is None or alight_at is None or board_at >= alight_at:
                continue
            candidates.append(schedule)

        prices = FareResolver(self.db).price_table(list({s.route_id for s in candidates}))

        results = []
        for schedule in candidates:
            price = FareResolver.lookup(prices, schedule.route_id, boarding_place, destination_place)
            if price is None:
                logger.debug(f"Schedule {schedule.schedule_id} skipped: pair not priced")
                continue
            results.append(BusSearchResult(
                schedule_id=schedule.schedule_id,
                route_id=schedule.route.route_id,
                bus_number=schedule.bus_number,
                bus_type=schedule.bus.bus_type,
                capacity=schedule.bus.capacity,
                boarding_place=boarding_place,
                destination_place=destination_place,
                price=price,
                start_time=schedule.start_time,
                end_time=schedule.end_time,
                stops=[
                    StopTime(stop_name=stop.get("stopName"), arrival_time=stop.get("arrivalTime"))
                    for stop in (schedule.stops or [])
                ]
            ))

        return sorted(results, key=lambda r: r.start_time.time())
