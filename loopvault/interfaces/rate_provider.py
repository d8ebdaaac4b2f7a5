"""Rate provider protocol — lending APY feed abstraction."""
from typing import Protocol

from ..models import RateReading


class RateProvider(Protocol):
    """Fetches supply/borrow APYs; never raises, falls back instead."""

    async def fetch_rates(self) -> RateReading: ...
