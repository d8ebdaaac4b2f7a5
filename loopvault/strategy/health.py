"""Health evaluator — health factor, LTV and vault risk classification."""
from __future__ import annotations

import math

from ..errors import LoopInputError
from ..models import (
    CRITICAL,
    HEALTH_FACTOR_SENTINEL,
    HEALTHY,
    SAFE,
    WARNING,
    HealthStatus,
    HealthThresholds,
)
from ..units import micro_to_usd, sats_to_usd


def calc_health_factor(deployed: int, debt: int, price: float) -> float:
    """Collateral USD over debt USD; the sentinel when there is no debt."""
    if debt == 0:
        return HEALTH_FACTOR_SENTINEL
    return sats_to_usd(deployed, price) / micro_to_usd(debt)


def calc_ltv(deployed: int, debt: int, price: float) -> float:
    """Debt over collateral as a percentage."""
    if debt == 0:
        return 0.0
    collateral_usd = sats_to_usd(deployed, price)
    if collateral_usd <= 0:
        return float("inf")
    return (micro_to_usd(debt) / collateral_usd) * 100


def evaluate(
    deployed_collateral: int,
    debt: int,
    price: float,
    thresholds: HealthThresholds | None = None,
) -> HealthStatus:
    """Classify vault safety from deployed collateral (sats) and debt (micro-USDh).

    Bands are checked worst first and the first match wins. There is no
    memory of the previous status, so a value sitting on a threshold can
    flip between adjacent bands from one evaluation to the next.
    """
    if deployed_collateral < 0 or debt < 0:
        raise LoopInputError("Collateral and debt must be non-negative")
    if not math.isfinite(price) or price <= 0:
        raise LoopInputError(f"Price must be positive and finite, got {price}")

    thresholds = thresholds or HealthThresholds()
    health = calc_health_factor(deployed_collateral, debt, price)
    ltv = calc_ltv(deployed_collateral, debt, price)

    if health < thresholds.emergency_threshold:
        status = CRITICAL
        recommendation = "EMERGENCY: Immediate deleveraging required"
    elif health < thresholds.deleverage_threshold:
        status = WARNING
        recommendation = "Deleverage recommended to improve health factor"
    elif health < thresholds.safe_ceiling:
        status = SAFE
        recommendation = "Monitor closely, consider reducing leverage"
    else:
        status = HEALTHY
        recommendation = "Vault health is optimal"

    return HealthStatus(
        health_factor=health,
        status=status,
        ltv=ltv,
        can_borrow=(
            health >= thresholds.min_borrow_health
            and ltv < thresholds.max_ltv_bps / 100
        ),
        should_deleverage=health < thresholds.deleverage_threshold,
        emergency_triggered=health < thresholds.emergency_threshold,
        recommendations=(recommendation,),
    )
