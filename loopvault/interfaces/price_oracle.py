"""Price oracle protocol — collateral price feed abstraction."""
from typing import Protocol

from ..models import PriceReading


class PriceOracle(Protocol):
    """Fetches the collateral price; never raises, falls back instead."""

    async def fetch_price(self) -> PriceReading: ...
