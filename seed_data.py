#!/usr/bin/env python3

from datetime import datetime, timedelta
from decimal import Decimal
from itertools import combinations

from src.database import SessionLocal, init_db
from src.models import Bus, Route, RoutePrice, Schedule, Booking

ALL_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

BUSES = [
    {"bus_number": "XYZ-1234", "bus_type": "Luxury", "capacity": 45, "operator_id": "BO-1001"},
    {"bus_number": "ABC-1234", "bus_type": "Semi-Luxury", "capacity": 40, "operator_id": "BO-1023"},
    {"bus_number": "DEF-5678", "bus_type": "Normal", "capacity": 54, "operator_id": "BO-1023"},
    {"bus_number": "GHI-9012", "bus_type": "Normal", "capacity": 30, "operator_id": "BO-1050"},
]

# Stop-to-stop fares in travel order; every forward pair is priced
ROUTES = [
    {
        "route_id": "R-001",
        "start_point": "Colombo",
        "end_point": "Kandy",
        "distance_km": Decimal("115"),
        "stops": ["Kadawatha", "Kegalle", "Peradeniya"],
        "stop_fares": [0, 300, 1100, 1600, 1800],
    },
    {
        "route_id": "R-002",
        "start_point": "Colombo",
        "end_point": "Galle",
        "distance_km": Decimal("116"),
        "stops": ["Kalutara", "Bentota", "Hikkaduwa"],
        "stop_fares": [0, 250, 400, 500, 600],
    },
]

SCHEDULES = [
    {
        "schedule_id": "S-1001", "route_id": "R-001", "bus_number": "XYZ-1234",
        "departure": (6, 30), "minutes_between_stops": 45, "days": ALL_DAYS,
    },
    {
        "schedule_id": "S-1002", "route_id": "R-001", "bus_number": "ABC-1234",
        "departure": (9, 0), "minutes_between_stops": 50, "days": ["Monday", "Wednesday", "Friday"],
    },
    {
        "schedule_id": "S-1003", "route_id": "R-002", "bus_number": "DEF-5678",
        "departure": (7, 15), "minutes_between_stops": 40, "days": ALL_DAYS,
    },
]

def seed_transit_data(db, reference_date=None):
    """Replace buses, routes, prices and schedules with the reference data set"""

    reference_date = reference_date or datetime.now().date()

    db.query(Schedule).delete()
    db.query(RoutePrice).delete()
    db.query(Route).delete()
    db.query(Bus).delete()

    db.add_all([Bus(**bus) for bus in BUSES])

    routes = {}
    for entry in ROUTES:
        route = Route(
            route_id=entry["route_id"],
            start_point=entry["start_point"],
            end_point=entry["end_point"],
            distance_km=entry["distance_km"],
            stops=entry["stops"]
        )
        db.add(route)
        db.flush()
        routes[entry["route_id"]] = route

        sequence = route.stop_sequence
        for i, j in combinations(range(len(sequence)), 2):
            db.add(RoutePrice(
                route_id=route.id,
                from_stop=sequence[i],
                to_stop=sequence[j],
                price=Decimal(entry["stop_fares"][j] - entry["stop_fares"][i])
            ))

    for entry in SCHEDULES:
        route = routes[entry["route_id"]]
        hour, minute = entry["departure"]
        start = datetime.combine(reference_date, datetime.min.time()).replace(hour=hour, minute=minute)
        gap = timedelta(minutes=entry["minutes_between_stops"])
        stop_times = [
            {"stopName": name, "arrivalTime": (start + gap * (index + 1)).isoformat()}
            for index, name in enumerate(route.stops)
        ]
        db.add(Schedule(
            schedule_id=entry["schedule_id"],
            route_id=route.id,
            bus_number=entry["bus_number"],
            start_time=start,
            end_time=start + gap * (len(route.stops) + 1),
            stops=stop_times,
            days=entry["days"]
        ))

    db.commit()

def create_seed_data():
    init_db()
    db = SessionLocal()

    try:
        print("🚌 Creating seed data for the bus seat booking service...")
        seed_transit_data(db)
        print(f"✅ {db.query(Bus).count()} buses, {db.query(Route).count()} routes, "
              f"{db.query(RoutePrice).count()} fares, {db.query(Schedule).count()} schedules")
        print(f"ℹ️  {db.query(Booking).count()} existing bookings left untouched")
    except Exception as e:
        db.rollback()
        print(f"❌ Error creating seed data: {e}")
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_seed_data()
