from pydantic import BaseModel

from ccem.usage.models import ModelPrice


class StreakResponse(BaseModel):
    days: int
    today: str


class PriceLookup(BaseModel):
    model: str
    normalized: str
    price: ModelPrice
    source: str | None = None
