"""Unit tests for the TTL cache, price oracle and rate provider."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from loopvault.config import PriceOracleConfig, RatesConfig
from loopvault.errors import ProviderError
from loopvault.models import Rates
from loopvault.oracles import CoinGeckoOracle, HttpRateProvider, TtlCache
from loopvault.oracles.coingecko import parse_price
from loopvault.oracles.rates import parse_rates


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _mock_session(status: int = 200, payload: object = None, error: Exception | None = None):
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=payload)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    if error:
        mock_session.get = MagicMock(side_effect=error)
    else:
        mock_session.get = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session


# ---------------------------------------------------------------------------
# TtlCache
# ---------------------------------------------------------------------------


class TestTtlCache:
    def test_empty(self) -> None:
        assert TtlCache(60).get() is None

    def test_hit_then_expiry(self) -> None:
        clock = FakeClock()
        cache = TtlCache(60, clock)
        cache.put("value")
        clock.now += 59.9
        assert cache.get() == "value"
        clock.now += 0.1
        assert cache.get() is None

    def test_clear(self) -> None:
        cache = TtlCache(60)
        cache.put(1)
        cache.clear()
        assert cache.get() is None


# ---------------------------------------------------------------------------
# CoinGecko oracle
# ---------------------------------------------------------------------------


class TestParsePrice:
    def test_valid(self) -> None:
        assert parse_price({"bitcoin": {"usd": 98765.4}}) == 98765.4

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            {},
            {"bitcoin": {}},
            {"bitcoin": {"usd": "abc"}},
            {"bitcoin": {"usd": 0}},
            {"bitcoin": {"usd": "NaN"}},
            {"bitcoin": {"usd": "inf"}},
        ],
    )
    def test_invalid(self, payload: object) -> None:
        with pytest.raises(ProviderError):
            parse_price(payload)


class TestCoinGeckoOracle:
    @pytest.mark.asyncio
    async def test_fetch_and_cache(self) -> None:
        clock = FakeClock()
        oracle = CoinGeckoOracle(PriceOracleConfig(cache_ttl_seconds=60), clock)
        mock_session = _mock_session(payload={"bitcoin": {"usd": 101_000}})

        with patch("loopvault.oracles.coingecko.aiohttp.ClientSession", return_value=mock_session):
            with patch("loopvault.oracles.coingecko.aiohttp.TCPConnector"):
                first = await oracle.fetch_price()
                second = await oracle.fetch_price()

        assert first.price == 101_000.0
        assert first.source == "coingecko"
        assert first.is_fallback is False
        assert second is first
        assert mock_session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_fallback_on_http_error(self) -> None:
        oracle = CoinGeckoOracle(PriceOracleConfig(fallback_price=90_000))
        mock_session = _mock_session(status=429)

        with patch("loopvault.oracles.coingecko.aiohttp.ClientSession", return_value=mock_session):
            with patch("loopvault.oracles.coingecko.aiohttp.TCPConnector"):
                reading = await oracle.fetch_price()

        assert reading.price == 90_000.0
        assert reading.is_fallback is True
        assert reading.source == "fallback"
        assert "429" in reading.error

    @pytest.mark.asyncio
    async def test_fallback_is_not_cached(self) -> None:
        oracle = CoinGeckoOracle(PriceOracleConfig())
        failing = _mock_session(error=ConnectionError("down"))
        working = _mock_session(payload={"bitcoin": {"usd": 99_000}})

        with patch("loopvault.oracles.coingecko.aiohttp.TCPConnector"):
            with patch("loopvault.oracles.coingecko.aiohttp.ClientSession", return_value=failing):
                assert (await oracle.fetch_price()).is_fallback is True
            with patch("loopvault.oracles.coingecko.aiohttp.ClientSession", return_value=working):
                assert (await oracle.fetch_price()).price == 99_000.0


# ---------------------------------------------------------------------------
# Rate provider
# ---------------------------------------------------------------------------


class TestParseRates:
    def test_valid(self, sample_rates_payload: dict) -> None:
        rates = parse_rates(sample_rates_payload)
        assert rates.supply_apy_base == 4.1
        assert rates.supply_apy == pytest.approx(5.0)
        assert rates.borrow_apy == 3.0

    def test_incentives_optional(self) -> None:
        rates = parse_rates({"sbtc": {"supplyApyBase": 4}, "usdh": {"borrowApy": 3}})
        assert rates.supply_apy_incentives == 0.0

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            {"sbtc": {"supplyApyBase": 4}},
            {"sbtc": {}, "usdh": {"borrowApy": 3}},
            {"sbtc": {"supplyApyBase": "x"}, "usdh": {"borrowApy": 3}},
            {"sbtc": {"supplyApyBase": -1}, "usdh": {"borrowApy": 3}},
        ],
    )
    def test_invalid(self, payload: object) -> None:
        with pytest.raises(ProviderError):
            parse_rates(payload)


class TestHttpRateProvider:
    @pytest.mark.asyncio
    async def test_no_url_serves_static_table(self) -> None:
        provider = HttpRateProvider(RatesConfig(url=""))
        reading = await provider.fetch_rates()
        assert reading.source == "static"
        assert reading.is_fallback is True
        assert reading.error is None
        assert reading.rates == Rates(supply_apy_base=5.0, borrow_apy=8.0)

    @pytest.mark.asyncio
    async def test_live_rates_cached_until_ttl(self, sample_rates_payload: dict) -> None:
        clock = FakeClock()
        provider = HttpRateProvider(
            RatesConfig(url="https://rates.example.com", cache_ttl_seconds=300), clock
        )
        mock_session = _mock_session(payload=sample_rates_payload)

        with patch("loopvault.oracles.rates.aiohttp.ClientSession", return_value=mock_session):
            with patch("loopvault.oracles.rates.aiohttp.TCPConnector"):
                first = await provider.fetch_rates()
                clock.now += 100
                await provider.fetch_rates()
                clock.now += 200
                await provider.fetch_rates()

        assert first.source == "live"
        assert first.rates.borrow_apy == 3.0
        assert mock_session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_malformed_payload_falls_back(self) -> None:
        provider = HttpRateProvider(RatesConfig(url="https://rates.example.com"))
        mock_session = _mock_session(payload={"unexpected": True})

        with patch("loopvault.oracles.rates.aiohttp.ClientSession", return_value=mock_session):
            with patch("loopvault.oracles.rates.aiohttp.TCPConnector"):
                reading = await provider.fetch_rates()

        assert reading.is_fallback is True
        assert reading.source == "static"
        assert reading.error
