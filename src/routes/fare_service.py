import logging
from typing import Dict, List, Optional, Tuple
from decimal import Decimal
from sqlalchemy.orm import Session

from src.exceptions import DomainError
from src.models import Route, RoutePrice
from src.routes.schemas import FareQuote

logger = logging.getLogger(__name__)

class FareNotFound(DomainError):
    """The boarding/destination pair is not priced on the route"""

def normalize_stop(name: str) -> str:
    return " ".join(name.split()).casefold()

class FareResolver:
    """Read-only fare lookup against a route's priced stop pairs"""

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, route_id: str, from_stop: str, to_stop: str) -> FareQuote:
        """
        Return the fare for travelling from_stop -> to_stop on the route.

        Only an exact priced pair counts; there is no default price and no
        fallback to the reverse direction or a neighbouring stop.
        """
        route = self.db.query(Route).filter(Route.route_id == route_id).first()
        if not route:
            raise FareNotFound(f"Route {route_id} has no price list")

        wanted = (normalize_stop(from_stop), normalize_stop(to_stop))
        price_entry = next(
            (
                entry for entry in route.prices
                if (normalize_stop(entry.from_stop), normalize_stop(entry.to_stop)) == wanted
            ),
            None
        )

        if not price_entry:
            logger.info(f"No fare on route {route_id} for {from_stop} -> {to_stop}")
            raise FareNotFound(
                f"Price not found for the selected boarding and destination places ({from_stop} to {to_stop})"
            )

        return FareQuote(
            route_id=route.route_id,
            from_stop=price_entry.from_stop,
            to_stop=price_entry.to_stop,
            price=Decimal(price_entry.price)
        )

    def price_table(self, route_ids: List[int]) -> Dict[Tuple[int, str, str], Decimal]:
        """Load every priced pair for the given routes in one query (used by bus search)"""
        if not route_ids:
            return {}
        entries = self.db.query(RoutePrice).filter(RoutePrice.route_id.in_(route_ids)).all()
        return {
            (entry.route_id, normalize_stop(entry.from_stop), normalize_stop(entry.to_stop)): Decimal(entry.price)
            for entry in entries
        }

    @staticmethod
    def lookup(
        table: Dict[Tuple[int, str, str], Decimal],
        route_pk: int,
        from_stop: str,
        to_stop: str
    ) -> Optional[Decimal]:
        return table.get((route_pk, normalize_stop(from_stop), normalize_stop(to_stop)))
