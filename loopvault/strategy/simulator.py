"""Loop simulator — projects a deposit → borrow → swap leverage loop.

Pure and synchronous: no I/O, no shared state. Amounts are integers in
smallest units (sats for collateral, micro-USDh for debt) and every
conversion floors, so a projection never overstates what a real loop
would deliver.
"""
from __future__ import annotations

import logging
import math

from ..errors import LoopInputError
from ..interfaces.swap_quoter import SwapQuoter
from ..models import (
    LoopConfig,
    LoopIteration,
    Rates,
    SimulationResult,
    YieldProjection,
)
from ..units import (
    BPS_DENOMINATOR,
    SIMULATED_SWAP_HAIRCUT,
    calculate_max_borrow,
    micro_to_sats,
)

logger = logging.getLogger(__name__)

DEFAULT_LIQUIDATION_THRESHOLD_BPS = 8000
DEFAULT_MANAGEMENT_FEE_BPS = 1000

# Used when the caller has no live rates.
DEFAULT_RATES = Rates(supply_apy_base=5.0, borrow_apy=8.0)


def validate_loop_config(
    config: LoopConfig,
    liquidation_threshold_bps: int = DEFAULT_LIQUIDATION_THRESHOLD_BPS,
) -> None:
    """Raise ``LoopInputError`` if ``config`` cannot describe a safe loop."""
    if config.max_iterations < 0:
        raise LoopInputError("max_iterations must be >= 0")
    if not 0 <= config.target_ltv_bps <= BPS_DENOMINATOR:
        raise LoopInputError("target_ltv_bps must be within [0, 10000]")
    if config.target_ltv_bps >= liquidation_threshold_bps:
        raise LoopInputError(
            f"target_ltv_bps {config.target_ltv_bps} must be below the "
            f"liquidation threshold {liquidation_threshold_bps}"
        )
    if config.min_loop_amount <= 0:
        raise LoopInputError("min_loop_amount must be positive")
    if not 0 <= config.slippage_bps <= BPS_DENOMINATOR:
        raise LoopInputError("slippage_bps must be within [0, 10000]")


def validate_loop_inputs(amount: int, price: float) -> None:
    if amount <= 0:
        raise LoopInputError(f"Deposit must be positive, got {amount}")
    if not math.isfinite(price) or price <= 0:
        raise LoopInputError(f"Price must be positive and finite, got {price}")


def project_yield(
    leverage: float,
    rates: Rates,
    management_fee_bps: int = DEFAULT_MANAGEMENT_FEE_BPS,
) -> YieldProjection:
    """APY of a position levered ``leverage`` times at ``rates``.

    Supply yield scales with total collateral, borrow cost with the levered
    part only. Net APY is floored at zero; the management fee is taken
    multiplicatively from net.
    """
    supply_apy = rates.supply_apy
    gross_apy = supply_apy * leverage
    borrow_cost = rates.borrow_apy * (leverage - 1)
    net_apy = max(0.0, gross_apy - borrow_cost)
    estimated_apy = net_apy * (1 - management_fee_bps / BPS_DENOMINATOR)
    return YieldProjection(
        supply_apy=supply_apy,
        borrow_apy=rates.borrow_apy,
        gross_apy=gross_apy,
        borrow_cost=borrow_cost,
        net_apy=net_apy,
        estimated_apy=estimated_apy,
    )


def simulate(
    initial_deposit: int,
    price: float,
    config: LoopConfig | None = None,
    rates: Rates | None = None,
    quoter: SwapQuoter | None = None,
    management_fee_bps: int = DEFAULT_MANAGEMENT_FEE_BPS,
    liquidation_threshold_bps: int = DEFAULT_LIQUIDATION_THRESHOLD_BPS,
) -> SimulationResult:
    """Project the leverage loop for ``initial_deposit`` sats at ``price``.

    Each round borrows ``target_ltv_bps`` of the round's deposit, swaps the
    borrowed USDh back to collateral and feeds the swap output into the next
    round. The loop stops early (normally, not as an error) once the rolling
    deposit drops below ``min_loop_amount``.

    ``total_deposited`` is the initial deposit plus every swap output, each
    of which goes back in as collateral, so with zero iterations the
    leverage is exactly 1.

    Args:
        initial_deposit: Collateral in sats; must be positive.
        price: USD per BTC; must be positive.
        config: Loop configuration (defaults to ``LoopConfig()``).
        rates: Supply/borrow APYs for the yield projection.
        quoter: Live swap quoter. Without one a fixed 0.5% haircut is used.
        management_fee_bps: Fee taken from net APY.
        liquidation_threshold_bps: Upper bound for ``target_ltv_bps``.

    Raises:
        LoopInputError: on a non-positive deposit or price, or bad config.
    """
    config = config or LoopConfig()
    validate_loop_inputs(initial_deposit, price)
    validate_loop_config(config, liquidation_threshold_bps)

    iterations: list[LoopIteration] = []
    current_deposit = initial_deposit
    total_swapped = 0
    total_borrowed = 0

    for i in range(config.max_iterations):
        if current_deposit < config.min_loop_amount:
            logger.debug(
                "Deposit %d below minimum %d, stopping after %d loops",
                current_deposit, config.min_loop_amount, i,
            )
            break

        borrow = calculate_max_borrow(current_deposit, price, config.target_ltv_bps)
        if quoter is not None:
            swap_receive = quoter.quote(borrow, price).expected_out
        else:
            swap_receive = micro_to_sats(borrow, price, SIMULATED_SWAP_HAIRCUT)

        iterations.append(
            LoopIteration(
                index=i + 1,
                deposit=current_deposit,
                borrow=borrow,
                swap_receive=swap_receive,
            )
        )
        total_swapped += swap_receive
        total_borrowed += borrow
        current_deposit = swap_receive

    total_deposited = initial_deposit + total_swapped
    leverage = total_deposited / initial_deposit

    return SimulationResult(
        initial_deposit=initial_deposit,
        iterations=tuple(iterations),
        total_deposited=total_deposited,
        total_borrowed=total_borrowed,
        leverage=leverage,
        projection=project_yield(leverage, rates or DEFAULT_RATES, management_fee_bps),
    )
