"""Vault service — aggregates core results into API-ready dictionaries.

Amounts are rendered as decimal strings and percentages as formatted
strings here; the core models stay numeric.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, replace
from typing import Any

from ..chains.stacks.client import StacksClient
from ..chains.stacks.contracts import resolve_contracts
from ..config import AppConfig
from ..errors import DepositRejected, LoopInProgressError, WithdrawalRejected
from ..interfaces.chain import TransactionSigner
from ..interfaces.price_oracle import PriceOracle
from ..interfaces.rate_provider import RateProvider
from ..interfaces.swap_quoter import SwapQuoter
from ..interfaces.vault_state import VaultStateSource
from ..models import HealthStatus, LoopExecutionResult, VaultState
from ..strategy import (
    LoopExecutor,
    calc_health_factor,
    calc_ltv,
    evaluate,
    plan_compound,
    plan_deleverage,
    simulate,
)
from ..units import (
    SATS_PER_BTC,
    apply_bps_haircut,
    format_pct,
    format_usd,
    micro_to_sats,
    micro_to_usd,
    sats_to_btc,
    sats_to_usd,
)

logger = logging.getLogger(__name__)

# Blocks between request-withdrawal and complete-withdrawal (~24 hours).
WITHDRAWAL_COOLDOWN_BLOCKS = 144
# Default min_receive keeps 99% of the expected assets.
WITHDRAWAL_SLIPPAGE_BPS = 100


def _health_dict(health: HealthStatus) -> dict[str, Any]:
    data = asdict(health)
    data["recommendations"] = list(health.recommendations)
    return data


def _shares_to_assets(shares: int, state: VaultState) -> int:
    """Sats redeemable for ``shares``, floored; nothing when no shares exist."""
    if state.total_shares <= 0:
        return 0
    return shares * state.total_assets // state.total_shares


class VaultService:
    """Consumer-facing façade over the simulator, evaluator, planner and executor."""

    def __init__(
        self,
        config: AppConfig,
        oracle: PriceOracle,
        rates: RateProvider,
        quoter: SwapQuoter,
        state_source: VaultStateSource,
        executor: LoopExecutor | None = None,
        client: StacksClient | None = None,
    ) -> None:
        self._config = config
        self._oracle = oracle
        self._rates = rates
        self._quoter = quoter
        self._state_source = state_source
        self._executor = executor
        self._client = client
        self._thresholds = config.health_thresholds()
        self._owner_locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def _snapshot(self) -> tuple[VaultState, HealthStatus]:
        reading = await self._oracle.fetch_price()
        state = await self._state_source.fetch_state(reading.price)
        health = evaluate(
            state.deployed_balance, state.debt, state.price, self._thresholds
        )
        return state, health

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    async def simulate_deposit(
        self, amount: int, loops: int | None = None
    ) -> dict[str, Any]:
        """Project the loop for a prospective deposit of ``amount`` sats."""
        vault = self._config.vault
        loop_config = replace(
            self._config.loop,
            max_iterations=vault.target_loops if loops is None else loops,
        )
        price = (await self._oracle.fetch_price()).price
        rate_reading = await self._rates.fetch_rates()
        rates = rate_reading.rates

        result = simulate(
            amount,
            price,
            loop_config,
            rates=rates,
            quoter=self._quoter,
            management_fee_bps=vault.management_fee_bps,
            liquidation_threshold_bps=vault.liquidation_threshold_bps,
        )

        iterations: list[dict[str, Any]] = []
        supplied = 0
        borrowed = 0
        for it in result.iterations:
            supplied += it.deposit
            borrowed += it.borrow
            iterations.append(
                {
                    "loop": it.index,
                    "deposit": str(it.deposit),
                    "depositBtc": sats_to_btc(it.deposit),
                    "borrow": str(it.borrow),
                    "borrowUsd": format_usd(it.borrow),
                    "swapReceive": str(it.swap_receive),
                    "swapReceiveBtc": sats_to_btc(it.swap_receive),
                    "healthAfter": f"{calc_health_factor(supplied, borrowed, price):.2f}",
                }
            )

        final_health = calc_health_factor(
            result.total_deposited, result.total_borrowed, price
        )
        projection = result.projection

        debt_usd = micro_to_usd(result.total_borrowed)
        liq_fraction = vault.liquidation_threshold_bps / 10_000
        collateral_btc = result.total_deposited / SATS_PER_BTC
        liquidation_price = (
            debt_usd / (collateral_btc * liq_fraction) if debt_usd > 0 else 0.0
        )
        max_drawdown = (1 - liquidation_price / price) * 100 if debt_usd > 0 else 100.0
        improvement = (
            (projection.estimated_apy / projection.supply_apy - 1) * 100
            if projection.supply_apy > 0
            else 0.0
        )
        yearly_sats = int(amount * projection.estimated_apy / 100)

        return {
            "input": {
                "amount": str(amount),
                "amountBtc": sats_to_btc(amount),
                "loops": loop_config.max_iterations,
                "btcPrice": price,
            },
            "rates": {
                "source": rate_reading.source,
                "sbtcSupplyApy": format_pct(rates.supply_apy, 1),
                "sbtcSupplyApyBase": format_pct(rates.supply_apy_base, 1),
                "sbtcSupplyApyIncentives": format_pct(rates.supply_apy_incentives, 1),
                "usdhBorrowApy": format_pct(rates.borrow_apy, 1),
                "spread": format_pct(rates.supply_apy - rates.borrow_apy, 1),
            },
            "simulation": {
                "iterations": iterations,
                "totalDeposited": str(result.total_deposited),
                "totalDepositedBtc": sats_to_btc(result.total_deposited),
                "totalBorrowed": str(result.total_borrowed),
                "totalBorrowedUsd": format_usd(result.total_borrowed),
                "finalLeverage": f"{result.leverage:.2f}x",
                "finalHealthFactor": f"{final_health:.2f}",
                "finalLtv": format_pct(
                    calc_ltv(result.total_deposited, result.total_borrowed, price), 1
                ),
            },
            "projectedYield": {
                "grossApy": format_pct(projection.gross_apy),
                "borrowCost": format_pct(projection.borrow_cost),
                "netApy": format_pct(projection.net_apy),
                "afterFees": format_pct(projection.estimated_apy),
                "yearlyYieldBtc": sats_to_btc(yearly_sats),
                "yearlyYieldUsd": f"${sats_to_usd(yearly_sats, price):.2f}",
            },
            "comparison": {
                "withoutLeverage": format_pct(projection.supply_apy),
                "withLeverage": format_pct(projection.estimated_apy),
                "improvement": f"{improvement:.0f}% more yield",
            },
            "risks": {
                "liquidationPrice": f"${liquidation_price:.0f}",
                "maxDrawdown": format_pct(max_drawdown, 1),
                "healthFactorBuffer": (
                    f"{final_health - self._thresholds.emergency_threshold:.2f}"
                ),
            },
        }

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    async def health_report(self) -> dict[str, Any]:
        state, health = await self._snapshot()
        vault = self._config.vault
        return {
            **_health_dict(health),
            "details": {
                "collateralValueUsd": sats_to_usd(state.deployed_balance, state.price),
                "debtValueUsd": micro_to_usd(state.debt),
                "btcPrice": state.price,
            },
            "thresholds": {
                "targetLtv": format_pct(vault.max_ltv_bps / 100, 0),
                "liquidationLtv": format_pct(vault.liquidation_threshold_bps / 100, 0),
                "minHealthFactor": self._thresholds.emergency_threshold,
                "deleverageThreshold": self._thresholds.deleverage_threshold,
            },
        }

    async def stats(self) -> dict[str, Any]:
        state, health = await self._snapshot()
        rates = (await self._rates.fetch_rates()).rates
        vault = self._config.vault

        utilization = (
            state.deployed_balance / state.total_assets * 100
            if state.total_assets
            else 0.0
        )
        equity = (
            state.liquid_balance
            + state.deployed_balance
            - micro_to_sats(state.debt, state.price)
        )
        leverage = state.deployed_balance / equity if equity > 0 else float("inf")

        return {
            "vault": {
                "totalAssets": str(state.total_assets),
                "totalAssetsBtc": sats_to_btc(state.total_assets),
                "liquidBalance": str(state.liquid_balance),
                "liquidBalanceBtc": sats_to_btc(state.liquid_balance),
                "deployedBalance": str(state.deployed_balance),
                "deployedBalanceBtc": sats_to_btc(state.deployed_balance),
                "totalShares": str(state.total_shares),
                "sharePrice": str(state.share_price),
                "tvlCap": str(vault.max_tvl),
                "tvlRemaining": str(max(0, vault.max_tvl - state.total_assets)),
                "utilizationRate": format_pct(utilization, 1),
            },
            "position": {
                "usdhDebt": str(state.debt),
                "usdhDebtUsd": format_usd(state.debt),
                "ltv": format_pct(health.ltv, 1),
                "leverage": f"{leverage:.2f}x",
            },
            "health": {
                "factor": f"{health.health_factor:.2f}",
                "status": health.status,
                "canBorrow": health.can_borrow,
                "shouldDeleverage": health.should_deleverage,
                "recommendations": list(health.recommendations),
            },
            "market": {
                "btcPrice": state.price,
                "zestSupplyApy": f"{rates.supply_apy:.1f}",
                "zestBorrowApy": f"{rates.borrow_apy:.1f}",
            },
            "status": {
                "isPaused": state.is_paused,
                "emergencyMode": state.emergency_mode,
                "lastHarvest": state.last_harvest,
            },
        }

    async def keeper_status(self) -> dict[str, Any]:
        state, health = await self._snapshot()
        return {
            "health": _health_dict(health),
            "state": {
                "liquidBalance": str(state.liquid_balance),
                "deployedBalance": str(state.deployed_balance),
                "usdhDebt": str(state.debt),
                "lastHarvest": state.last_harvest,
            },
            "actions": {
                "needsCompound": (
                    state.liquid_balance >= self._config.keeper.auto_compound_threshold
                ),
                "needsRebalance": health.should_deleverage,
                "emergencyRequired": health.emergency_triggered,
            },
        }

    # ------------------------------------------------------------------
    # Deposits and keeper plans
    # ------------------------------------------------------------------

    async def preview_deposit(self, amount: int) -> dict[str, Any]:
        """Check a deposit against the vault's admission rules.

        Raises:
            DepositRejected: below minimum, over the TVL cap, or vault
                paused / in emergency mode.
        """
        vault = self._config.vault
        if amount < vault.min_deposit:
            raise DepositRejected(
                f"Minimum deposit is {sats_to_btc(vault.min_deposit)} BTC "
                f"({vault.min_deposit:,} sats)"
            )

        reading = await self._oracle.fetch_price()
        state = await self._state_source.fetch_state(reading.price)

        if state.total_assets + amount > vault.max_tvl:
            raise DepositRejected(
                f"Deposit exceeds TVL cap; max deposit is "
                f"{max(0, vault.max_tvl - state.total_assets)} sats"
            )
        if state.is_paused:
            raise DepositRejected("Vault is paused")
        if state.emergency_mode:
            raise DepositRejected("Vault is in emergency mode - deposits disabled")

        if state.total_assets > 0:
            shares = amount * state.total_shares // state.total_assets
        else:
            shares = amount

        return {
            "amount": str(amount),
            "amountBtc": sats_to_btc(amount),
            "expectedShares": str(shares),
            "currentSharePrice": str(state.share_price),
        }

    # ------------------------------------------------------------------
    # Positions and withdrawals
    # ------------------------------------------------------------------

    def _vault_transaction(
        self, function_name: str, args: list[dict[str, str]]
    ) -> dict[str, Any]:
        address, _, name = self._config.vault.contract.partition(".")
        return {
            "contractAddress": address,
            "contractName": name,
            "functionName": function_name,
            "functionArgs": args,
            "network": "mainnet",
        }

    async def position(self, address: str) -> dict[str, Any]:
        """A depositor's shares valued at the current share price."""
        if not address.startswith("SP"):
            raise ValueError(f"Invalid Stacks address: {address!r}")

        reading = await self._oracle.fetch_price()
        state = await self._state_source.fetch_state(reading.price)
        position = await self._state_source.fetch_position(address)

        current = _shares_to_assets(position.shares, state)
        profit = current - position.deposited
        profit_pct = profit / position.deposited * 100 if position.deposited else 0.0
        share_of_vault = (
            position.shares / state.total_shares * 100 if state.total_shares else 0.0
        )
        return {
            "address": address,
            "shares": str(position.shares),
            "currentValue": str(current),
            "currentValueBtc": sats_to_btc(current),
            "initialDeposit": str(position.deposited),
            "initialDepositBtc": sats_to_btc(position.deposited),
            "profit": str(profit),
            "profitPercent": format_pct(profit_pct),
            "shareOfVault": format_pct(share_of_vault),
            "pendingWithdrawal": (
                str(position.pending_withdrawal) if position.pending_withdrawal else None
            ),
        }

    async def preview_withdrawal(
        self, shares: int, min_receive: int | None = None
    ) -> dict[str, Any]:
        """Build the ``request-withdrawal`` call for ``shares``.

        Without ``min_receive`` the request tolerates 1% less than the
        current value of the shares. The withdrawal completes only after
        the cooldown.

        Raises:
            WithdrawalRejected: non-positive shares, more shares than exist,
                or a ``min_receive`` above what the shares are worth.
        """
        if shares <= 0:
            raise WithdrawalRejected(f"Shares must be positive, got {shares}")

        reading = await self._oracle.fetch_price()
        state = await self._state_source.fetch_state(reading.price)
        if shares > state.total_shares:
            raise WithdrawalRejected(
                f"Vault has only {state.total_shares} shares outstanding"
            )

        expected = _shares_to_assets(shares, state)
        if min_receive is None:
            min_receive = apply_bps_haircut(expected, WITHDRAWAL_SLIPPAGE_BPS)
        elif min_receive < 0 or min_receive > expected:
            raise WithdrawalRejected(
                f"min_receive {min_receive} must be within [0, {expected}] sats"
            )
        protection = (expected - min_receive) / expected * 100 if expected else 0.0

        return {
            "message": "Withdrawal request transaction ready",
            "transaction": self._vault_transaction(
                "request-withdrawal",
                [
                    {"type": "uint", "value": str(shares)},
                    {"type": "uint", "value": str(min_receive)},
                ],
            ),
            "withdrawal": {
                "shares": str(shares),
                "expectedAssets": str(expected),
                "expectedAssetsBtc": sats_to_btc(expected),
                "minReceive": str(min_receive),
                "minReceiveBtc": sats_to_btc(min_receive),
                "slippageProtection": format_pct(protection),
                "cooldownBlocks": WITHDRAWAL_COOLDOWN_BLOCKS,
                "cooldownHours": "~24",
            },
        }

    async def emergency_withdraw(self) -> dict[str, Any]:
        """Build the ``emergency-withdraw`` call; only while health is critical.

        Raises:
            WithdrawalRejected: the health factor is at or above the
                emergency threshold.
        """
        _, health = await self._snapshot()
        if not health.emergency_triggered:
            raise WithdrawalRejected(
                f"Emergency withdrawal only available when health is critical "
                f"(health {health.health_factor:.2f}, threshold "
                f"{self._thresholds.emergency_threshold})"
            )

        logger.warning(
            "Emergency withdrawal allowed at health factor %.2f", health.health_factor
        )
        return {
            "message": "Emergency withdrawal transaction ready",
            "warning": (
                "Emergency withdrawal accepts the current share price; "
                "no slippage protection"
            ),
            "transaction": self._vault_transaction("emergency-withdraw", []),
            "healthStatus": _health_dict(health),
        }

    async def rebalance(self) -> dict[str, Any]:
        state, health = await self._snapshot()
        if not health.should_deleverage:
            return {
                "message": "No rebalancing needed",
                "health": health.health_factor,
                "status": health.status,
            }

        plan = plan_deleverage(
            state, health, self._config.keeper.target_health_factor
        )
        return {
            "message": "Rebalancing required",
            "currentHealth": plan.current_health,
            "targetHealth": plan.target_health,
            "currentDebt": str(plan.current_debt),
            "repayAmount": str(plan.repay_amount),
            "repayAmountUsd": f"${plan.repay_amount_usd:.2f}",
            "urgency": plan.urgency,
        }

    async def compound(self) -> dict[str, Any]:
        state, health = await self._snapshot()
        keeper = self._config.keeper

        if state.emergency_mode:
            return {"ready": False, "reason": "Cannot compound in emergency mode"}
        if not health.can_borrow:
            return {
                "ready": False,
                "reason": "Health too low to compound; rebalance first",
                "health": health.health_factor,
            }
        if state.liquid_balance < keeper.auto_compound_threshold:
            return {
                "ready": False,
                "reason": "Insufficient balance to compound",
                "liquidBalance": str(state.liquid_balance),
                "threshold": str(keeper.auto_compound_threshold),
            }

        steps = plan_compound(
            state.liquid_balance,
            state.price,
            self._quoter,
            loops=self._config.vault.target_loops,
            max_ltv_bps=self._config.loop.target_ltv_bps,
        )
        return {
            "ready": True,
            "currentHealth": health.health_factor,
            "steps": [
                {
                    "step": s.step,
                    "action": s.action,
                    "deposit": str(s.deposit),
                    "borrow": str(s.borrow),
                    "expectedSwap": str(s.expected_swap),
                    "minReceive": str(s.min_receive),
                }
                for s in steps
            ],
        }

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def executor_status(self, address: str) -> dict[str, Any]:
        """Operator wallet balances and whether it can pay transaction fees."""
        if self._client is None:
            raise RuntimeError("No chain client configured")

        sbtc_token = resolve_contracts(self._config.chain.contracts)["sbtc_token"]
        sbtc_asset = f"{sbtc_token}::sbtc-token"
        try:
            balances = await self._client.get_balances(address, sbtc_asset)
        except Exception as e:
            logger.error("Failed to fetch wallet balance for %s: %s", address, e)
            return {
                "wallet": {
                    "address": address,
                    "stxBalance": "Unknown",
                    "sbtcBalance": "Unknown",
                    "hasSufficientFees": False,
                },
                "ready": False,
                "message": "Failed to fetch wallet balance",
            }

        ready = balances["stx"] >= self._config.chain.min_fee_balance
        return {
            "wallet": {
                "address": address,
                "stxBalance": f"{balances['stx'] / 1_000_000:.6f} STX",
                "sbtcBalance": f"{sats_to_btc(balances['sbtc'])} sBTC",
                "hasSufficientFees": ready,
            },
            "ready": ready,
            "message": (
                "Executor ready - wallet has sufficient fees"
                if ready
                else "Need more STX for transaction fees"
            ),
        }

    async def execute_loop(
        self,
        amount: int,
        owner: str,
        signer: TransactionSigner,
        loops: int | None = None,
    ) -> LoopExecutionResult:
        """Run the loop for ``owner``; at most one run per owner at a time."""
        if self._executor is None:
            raise RuntimeError("No loop executor configured")

        lock = self._owner_locks.setdefault(owner, asyncio.Lock())
        if lock.locked():
            raise LoopInProgressError(f"A loop is already running for {owner}")

        try:
            async with lock:
                config = self._config.loop
                if loops is not None:
                    config = replace(config, max_iterations=loops)
                price = (await self._oracle.fetch_price()).price
                result = await self._executor.execute_full_loop(
                    amount, owner, signer, price, config
                )
        finally:
            if self._owner_locks.get(owner) is lock and not lock.locked():
                del self._owner_locks[owner]

        if result.success:
            logger.info(
                "Loop for %s done: %d iterations, deposited %d, borrowed %d",
                owner, len(result.iterations), result.total_deposited,
                result.total_borrowed,
            )
        else:
            logger.error(
                "Loop for %s failed after %d iterations: %s",
                owner, len(result.iterations), result.error,
            )
        return result
