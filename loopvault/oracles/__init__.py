"""Price and lending-rate providers."""
from .cache import TtlCache
from .coingecko import CoinGeckoOracle
from .rates import HttpRateProvider

__all__ = ["CoinGeckoOracle", "HttpRateProvider", "TtlCache"]
