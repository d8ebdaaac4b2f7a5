"""CoinGecko BTC price oracle with TTL cache and constant fallback."""
from __future__ import annotations

import logging
import math
import ssl
import time
from typing import Any, Callable

import aiohttp
import certifi

from ..config import PriceOracleConfig
from ..errors import ProviderError
from ..models import PriceReading
from .cache import TtlCache

logger = logging.getLogger(__name__)


def parse_price(data: Any) -> float:
    """Extract the BTC/USD price from a CoinGecko ``simple/price`` payload."""
    if not isinstance(data, dict):
        raise ProviderError("Unexpected price payload")
    try:
        price = float(data["bitcoin"]["usd"])
    except (KeyError, TypeError, ValueError) as e:
        raise ProviderError(f"Malformed price payload: {e}") from e
    if not math.isfinite(price) or price <= 0:
        raise ProviderError(f"Invalid price {price}")
    return price


class CoinGeckoOracle:
    """Fetch the sBTC price (pegged to BTC) from CoinGecko."""

    def __init__(
        self,
        config: PriceOracleConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = config.url
        self.fallback_price = config.fallback_price
        self._cache = TtlCache(config.cache_ttl_seconds, clock)

    async def _fetch(self) -> float:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.get(self.url) as response:
                if response.status != 200:
                    raise ProviderError(f"HTTP {response.status}")
                return parse_price(await response.json())

    async def fetch_price(self) -> PriceReading:
        """Return the cached price, a fresh one, or the fallback constant."""
        cached = self._cache.get()
        if cached is not None:
            return cached

        try:
            price = await self._fetch()
        except Exception as e:
            logger.warning(
                "Error fetching BTC price, using fallback $%.2f: %s",
                self.fallback_price, e,
            )
            return PriceReading(
                price=self.fallback_price,
                source="fallback",
                is_fallback=True,
                error=str(e),
            )

        reading = PriceReading(price=price, source="coingecko")
        self._cache.put(reading)
        logger.info("Fetched BTC price: $%.2f", price)
        return reading
