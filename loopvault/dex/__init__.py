"""DEX swap quoting."""
from .quoter import PriceQuoter

__all__ = ["PriceQuoter"]
