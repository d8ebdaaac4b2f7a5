"""Keeper planning — deleverage (repay) and compound step plans."""
from __future__ import annotations

from ..interfaces.swap_quoter import SwapQuoter
from ..models import CompoundStep, DeleveragePlan, HealthStatus, VaultState
from ..units import calculate_max_borrow, micro_to_usd, sats_to_usd, usd_to_micro

DEFAULT_TARGET_HEALTH = 1.8


def plan_deleverage(
    state: VaultState,
    health: HealthStatus,
    target_health: float = DEFAULT_TARGET_HEALTH,
) -> DeleveragePlan:
    """Debt to repay so that the vault returns to ``target_health``.

    The repay amount is never negative: a vault already above target gets
    a zero-repay plan.
    """
    collateral_usd = sats_to_usd(state.deployed_balance, state.price)
    target_debt_usd = collateral_usd / target_health
    repay_usd = max(0.0, micro_to_usd(state.debt) - target_debt_usd)

    return DeleveragePlan(
        current_health=health.health_factor,
        target_health=target_health,
        current_debt=state.debt,
        repay_amount=usd_to_micro(repay_usd),
        repay_amount_usd=repay_usd,
        urgency="CRITICAL" if health.emergency_triggered else "HIGH",
    )


def plan_compound(
    liquid_balance: int,
    price: float,
    quoter: SwapQuoter,
    loops: int = 3,
    max_ltv_bps: int = 7000,
) -> tuple[CompoundStep, ...]:
    """Steps to deploy ``liquid_balance`` sats through ``loops`` rounds.

    Each round is sized off the previous round's minimum receive, so the
    plan stays valid even if every swap fills at its slippage floor.
    """
    steps: list[CompoundStep] = []
    current = liquid_balance

    for i in range(loops):
        borrow = calculate_max_borrow(current, price, max_ltv_bps)
        quote = quoter.quote(borrow, price)
        steps.append(
            CompoundStep(
                step=i + 1,
                action="deploy-to-zest" if i == 0 else "supply-and-borrow",
                deposit=current,
                borrow=borrow,
                expected_swap=quote.expected_out,
                min_receive=quote.min_out,
            )
        )
        current = quote.min_out

    return tuple(steps)
