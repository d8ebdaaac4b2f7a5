"""Swap quoter protocol — USDh → sBTC quote abstraction."""
from typing import Protocol

from ..models import SwapQuote


class SwapQuoter(Protocol):
    """Quotes a swap of ``amount_in`` micro-USDh at ``price`` USD/BTC."""

    def quote(self, amount_in: int, price: float) -> SwapQuote: ...
