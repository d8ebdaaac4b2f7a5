"""Lending rate provider — supply/borrow APYs with TTL cache and static fallback.

The rates endpoint is expected to return::

    {"sbtc": {"supplyApyBase": 4.1, "supplyApyIncentives": 0.9},
     "usdh": {"borrowApy": 3.0}}

Anything else is treated as a provider failure and the configured fallback
table is served instead.
"""
from __future__ import annotations

import logging
import ssl
import time
from typing import Any, Callable

import aiohttp
import certifi

from ..config import RatesConfig
from ..errors import ProviderError
from ..models import RateReading, Rates
from .cache import TtlCache

logger = logging.getLogger(__name__)


def _as_apy(section: dict[str, Any], key: str, default: float | None = None) -> float:
    value = section.get(key, default)
    if value is None:
        raise ProviderError(f"Missing rate field '{key}'")
    try:
        apy = float(value)
    except (TypeError, ValueError) as e:
        raise ProviderError(f"Rate field '{key}' is not numeric: {value!r}") from e
    if apy < 0:
        raise ProviderError(f"Rate field '{key}' is negative: {apy}")
    return apy


def parse_rates(data: Any) -> Rates:
    """Parse a rates payload into ``Rates``; raises ``ProviderError`` on drift."""
    if not isinstance(data, dict):
        raise ProviderError("Unexpected rates payload")
    sbtc = data.get("sbtc")
    usdh = data.get("usdh")
    if not isinstance(sbtc, dict) or not isinstance(usdh, dict):
        raise ProviderError("Rates payload missing 'sbtc' or 'usdh' section")
    return Rates(
        supply_apy_base=_as_apy(sbtc, "supplyApyBase"),
        supply_apy_incentives=_as_apy(sbtc, "supplyApyIncentives", 0.0),
        borrow_apy=_as_apy(usdh, "borrowApy"),
    )


class HttpRateProvider:
    """Fetch lending APYs from a JSON endpoint."""

    def __init__(
        self,
        config: RatesConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = config.url
        self.fallback = config.fallback
        self._cache = TtlCache(config.cache_ttl_seconds, clock)

    def _fallback_reading(self, error: str | None) -> RateReading:
        return RateReading(
            rates=self.fallback, source="static", is_fallback=True, error=error
        )

    async def _fetch(self) -> Rates:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.get(self.url) as response:
                if response.status != 200:
                    raise ProviderError(f"HTTP {response.status}")
                return parse_rates(await response.json())

    async def fetch_rates(self) -> RateReading:
        """Return cached rates, fresh rates, or the static fallback table."""
        if not self.url:
            return self._fallback_reading(None)

        cached = self._cache.get()
        if cached is not None:
            return cached

        try:
            rates = await self._fetch()
        except Exception as e:
            logger.warning("Error fetching lending rates, using fallback: %s", e)
            return self._fallback_reading(str(e))

        reading = RateReading(rates=rates, source="live")
        self._cache.put(reading)
        logger.info(
            "Fetched rates: supply %.2f%% (incl. %.2f%% incentives), borrow %.2f%%",
            rates.supply_apy, rates.supply_apy_incentives, rates.borrow_apy,
        )
        return reading
