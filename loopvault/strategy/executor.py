"""Loop executor — drives supply → borrow → swap rounds on-chain.

Execution is best effort: the first hard failure ends the run and the
result carries everything submitted up to that point, including the
transaction ids of the failing round's completed steps. Nothing is
rolled back; positions opened by earlier rounds stay on-chain and must be
reconciled by the operator. Re-running from scratch without reading the
current on-chain position first will double-loop.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from ..errors import FinalityError
from ..interfaces.chain import ChainClient, FinalityWaiter, TransactionSigner
from ..interfaces.swap_quoter import SwapQuoter
from ..models import ExecutedIteration, LoopConfig, LoopExecutionResult
from ..units import calculate_max_borrow
from .health import calc_health_factor
from .simulator import (
    DEFAULT_LIQUIDATION_THRESHOLD_BPS,
    validate_loop_config,
    validate_loop_inputs,
)

logger = logging.getLogger(__name__)


class LoopExecutor:
    """Executes the leverage loop against a chain client, one step at a time."""

    def __init__(
        self,
        chain: ChainClient,
        quoter: SwapQuoter,
        await_finality: FinalityWaiter,
        liquidation_threshold_bps: int = DEFAULT_LIQUIDATION_THRESHOLD_BPS,
    ) -> None:
        self._chain = chain
        self._quoter = quoter
        self._await_finality = await_finality
        self._liquidation_threshold_bps = liquidation_threshold_bps

    async def _confirm(self, tx_id: str) -> None:
        outcome = await self._await_finality(tx_id)
        if not outcome.confirmed:
            raise FinalityError(f"Transaction {tx_id} not confirmed: {outcome.status}")

    async def execute_full_loop(
        self,
        initial_deposit: int,
        owner: str,
        signer: TransactionSigner,
        price: float,
        config: LoopConfig | None = None,
        stop: asyncio.Event | None = None,
    ) -> LoopExecutionResult:
        """Run up to ``config.max_iterations`` rounds for ``owner``.

        Invalid inputs raise ``LoopInputError`` before anything is
        submitted. Any later failure is reported in the returned result
        (``success=False``) rather than raised. Setting ``stop`` ends the
        run cleanly before the next round starts.
        """
        config = config or LoopConfig()
        validate_loop_inputs(initial_deposit, price)
        validate_loop_config(config, self._liquidation_threshold_bps)

        iterations: list[ExecutedIteration] = []
        current_deposit = initial_deposit
        total_deposited = 0
        total_borrowed = 0

        for i in range(config.max_iterations):
            if current_deposit < config.min_loop_amount:
                logger.info(
                    "Deposit amount %d below minimum, stopping loops", current_deposit
                )
                break
            if stop is not None and stop.is_set():
                logger.info("Stop requested, ending loop before iteration %d", i + 1)
                break

            logger.info("=== Loop iteration %d/%d ===", i + 1, config.max_iterations)
            record = ExecutedIteration(index=i + 1, deposit=current_deposit)
            step = "supply"

            try:
                logger.info("Supplying %d sats", current_deposit)
                supply_tx = await self._chain.submit_supply(current_deposit, owner, signer)
                record = replace(record, supply_tx=supply_tx)
                total_deposited += current_deposit
                logger.info("Supply tx: %s", supply_tx)
                await self._confirm(supply_tx)

                step = "borrow"
                borrow_amount = calculate_max_borrow(
                    current_deposit, price, config.target_ltv_bps
                )
                logger.info("Borrowing %d micro-USDh", borrow_amount)
                borrow_tx = await self._chain.submit_borrow(borrow_amount, owner, signer)
                total_borrowed += borrow_amount
                record = replace(
                    record,
                    borrow=borrow_amount,
                    borrow_tx=borrow_tx,
                    health_after=calc_health_factor(total_deposited, total_borrowed, price),
                )
                logger.info("Borrow tx: %s", borrow_tx)
                await self._confirm(borrow_tx)

                step = "swap"
                quote = self._quoter.quote(borrow_amount, price)
                logger.info(
                    "Swapping USDh for ~%d sats (min %d)", quote.expected_out, quote.min_out
                )
                swap_tx = await self._chain.submit_swap(
                    borrow_amount, quote.min_out, owner, signer
                )
                record = replace(record, swap_receive=quote.expected_out, swap_tx=swap_tx)
                logger.info("Swap tx: %s", swap_tx)
                await self._confirm(swap_tx)
            except Exception as e:
                logger.error(
                    "Loop iteration %d failed at %s step: %s", i + 1, step, e
                )
                iterations.append(replace(record, failed_step=step))
                return LoopExecutionResult(
                    success=False,
                    total_deposited=total_deposited,
                    total_borrowed=total_borrowed,
                    iterations=tuple(iterations),
                    error=str(e) or type(e).__name__,
                )

            iterations.append(record)
            current_deposit = quote.expected_out

        return LoopExecutionResult(
            success=True,
            total_deposited=total_deposited,
            total_borrowed=total_borrowed,
            iterations=tuple(iterations),
        )
