"""
Route Pricing Module

Fare lookup for boarding/destination pairs on a route's price list.
"""

from .fare_service import FareResolver, FareNotFound
from .schemas import FareQuote, Money

__all__ = [
    "FareResolver",
    "FareNotFound",
    "FareQuote",
    "Money"
]
