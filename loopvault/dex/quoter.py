"""Price-derived swap quotes for USDh → sBTC.

Quotes are computed from the oracle price rather than pool reserves; the
price-impact figure is a coarse size bucket, not a reserve-based estimate.
"""
from __future__ import annotations

import logging
import math

from ..errors import ProviderError
from ..models import SwapQuote
from ..units import BPS_DENOMINATOR, apply_bps_haircut, micro_to_sats

logger = logging.getLogger(__name__)

# Swaps above this many micro-USDh ($10k) land in the large-trade bucket.
LARGE_TRADE_MICRO = 10_000_000_000


class PriceQuoter:
    """Quote swaps at the oracle price with a slippage-protected minimum."""

    def __init__(
        self,
        slippage_bps: int = 100,
        dex: str = "bitflow",
        large_trade_micro: int = LARGE_TRADE_MICRO,
    ) -> None:
        self.slippage_bps = slippage_bps
        self.dex = dex
        self.large_trade_micro = large_trade_micro

    def quote(self, amount_in: int, price: float) -> SwapQuote:
        if amount_in < 0:
            raise ProviderError(f"Cannot quote negative amount {amount_in}")
        if not math.isfinite(price) or price <= 0:
            raise ProviderError(f"Cannot quote at price {price}")

        expected = micro_to_sats(amount_in, price)
        min_out = apply_bps_haircut(expected, self.slippage_bps)
        price_impact = 0.5 if amount_in > self.large_trade_micro else 0.1

        logger.debug(
            "Quote %s: %d micro-USDh -> %d sats (min %d)",
            self.dex, amount_in, expected, min_out,
        )
        return SwapQuote(
            amount_in=amount_in,
            expected_out=expected,
            min_out=min_out,
            price_impact=price_impact,
            slippage=self.slippage_bps / BPS_DENOMINATOR * 100,
            dex=self.dex,
        )
