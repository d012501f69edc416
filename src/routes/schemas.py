from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from typing import Annotated
from decimal import Decimal

# Prices go out as JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

class FareQuote(BaseModel):
    """Resolved fare for a stop pair on a route"""
    model_config = ConfigDict(populate_by_name=True)

    route_id: str = Field(..., alias="routeId")
    from_stop: str = Field(..., alias="from")
    to_stop: str = Field(..., alias="to")
    price: Money
