"""Unit conversions between sats, micro-USDh and USD — pure, floor-rounded."""
from __future__ import annotations

import math
from fractions import Fraction

SATS_PER_BTC = 100_000_000
MICRO_PER_USD = 1_000_000
BPS_DENOMINATOR = 10_000

# Haircut applied to simulated swaps when no live quote is available.
SIMULATED_SWAP_HAIRCUT = 0.005


def sats_to_usd(sats: int, price: float) -> float:
    """USD value of ``sats`` collateral at ``price`` USD per BTC."""
    return (sats / SATS_PER_BTC) * price


def micro_to_usd(micro: int) -> float:
    return micro / MICRO_PER_USD


def usd_to_micro(usd: float) -> int:
    """Floor a USD amount to whole micro-USDh."""
    return math.floor(usd * MICRO_PER_USD)


def _exact(value: float) -> Fraction:
    """The decimal ``value`` prints as, so 97123.45 is exactly 9712345/100."""
    return Fraction(str(value))


def micro_to_sats(micro: int, price: float, haircut: float = 0.0) -> int:
    """Collateral bought with ``micro`` USDh at ``price``, after ``haircut``.

    Computed in exact rationals and floored, so a projection never promises
    more collateral than a swap can deliver.
    """
    sats = Fraction(micro * SATS_PER_BTC, MICRO_PER_USD) / _exact(price)
    return math.floor(sats * (1 - _exact(haircut)))


def calculate_max_borrow(collateral_sats: int, price: float, ltv_bps: int = 7000) -> int:
    """Largest borrow (micro-USDh) against ``collateral_sats`` at ``ltv_bps``.

    Exact rational arithmetic, floored to whole micro-USDh.
    """
    micro = (
        Fraction(collateral_sats * ltv_bps * MICRO_PER_USD, SATS_PER_BTC * BPS_DENOMINATOR)
        * _exact(price)
    )
    return math.floor(micro)


def apply_bps_haircut(amount: int, bps: int) -> int:
    """``amount`` reduced by ``bps`` basis points, floored."""
    return amount * (BPS_DENOMINATOR - bps) // BPS_DENOMINATOR


def sats_to_btc(sats: int | str) -> str:
    """Render sats as a fixed 8-decimal BTC string."""
    return f"{int(sats) / SATS_PER_BTC:.8f}"


def format_usd(micro: int) -> str:
    return f"${micro_to_usd(micro):.2f}"


def format_pct(value: float, digits: int = 2) -> str:
    return f"{value:.{digits}f}%"
