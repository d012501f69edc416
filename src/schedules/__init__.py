"""
Schedules Module

Read-only access to buses, routes and schedules: which bus runs on a travel
date, its capacity and stops, and bus search between two places.
"""

from .router import router
from .service import ScheduleLookupService, ScheduleNotFound
from .schemas import ScheduleContext, BusSearchResult, BusSearchResponse, StopTime

__all__ = [
    "router",
    "ScheduleLookupService",
    "ScheduleNotFound",
    "ScheduleContext",
    "BusSearchResult",
    "BusSearchResponse",
    "StopTime"
]
