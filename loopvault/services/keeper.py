"""Keeper — periodic vault health checks, alerts and daily reports."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from ..config import AppConfig
from ..interfaces.notifier import Notifier
from ..interfaces.price_oracle import PriceOracle
from ..interfaces.vault_state import VaultStateSource
from ..models import CRITICAL, HEALTHY, SAFE, WARNING, HealthStatus, VaultState
from ..notifications import EmailNotifier, TelegramNotifier
from ..oracles import CoinGeckoOracle
from ..strategy import evaluate, plan_deleverage
from ..units import format_usd, sats_to_btc, sats_to_usd
from .vault_state import HttpVaultStateSource

logger = logging.getLogger(__name__)

_STATUS_LABELS = {
    HEALTHY: "✅ Healthy",
    SAFE: "🟢 Safe",
    WARNING: "⚠️ WARNING",
    CRITICAL: "🚨 CRITICAL",
}


class Keeper:
    """Watches one vault and notifies operators when its health degrades."""

    def __init__(
        self,
        config: AppConfig,
        oracle: PriceOracle | None = None,
        state_source: VaultStateSource | None = None,
        notifiers: list[Notifier] | None = None,
    ) -> None:
        self._config = config
        self._thresholds = config.health_thresholds()
        self._oracle = oracle or CoinGeckoOracle(config.price_oracle)
        self._state_source = state_source or HttpVaultStateSource(
            config.vault.state_url, timeout=config.chain.api_timeout
        )

        if notifiers is None:
            notifiers = []
            if config.notifications.telegram.enabled:
                notifiers.append(TelegramNotifier(config.notifications.telegram))
            if config.notifications.email.enabled:
                notifiers.append(EmailNotifier(config.notifications.email))
        self._notifiers = notifiers

    # ------------------------------------------------------------------
    # Formatting helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _now_str() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

    def _summary(self, state: VaultState, health: HealthStatus) -> str:
        collateral_usd = sats_to_usd(state.deployed_balance, state.price)
        return (
            f"Collateral: {sats_to_btc(state.deployed_balance)} sBTC"
            f" (${collateral_usd:,.2f})\n"
            f"Debt: {format_usd(state.debt)} USDh\n"
            f"LTV: {health.ltv:.2f}% · HF: {health.health_factor:.2f}\n"
            f"BTC: ${state.price:,.2f}"
        )

    def _build_log_message(self, state: VaultState, health: HealthStatus) -> str:
        return (
            f"📊 sBTC loop vault\n"
            f"\n"
            f"{_STATUS_LABELS[health.status]}\n"
            f"\n"
            f"{self._summary(state, health)}\n"
            f"\n"
            f"{self._now_str()} UTC"
        )

    def _build_alert(self, state: VaultState, health: HealthStatus) -> str:
        plan = plan_deleverage(
            state, health, self._config.keeper.target_health_factor
        )
        advice = "\n".join(f"• {r}" for r in health.recommendations)
        return (
            f"{_STATUS_LABELS[health.status]} — HF {health.health_factor:.2f}\n"
            f"\n"
            f"{self._summary(state, health)}\n"
            f"\n"
            f"Repay ${plan.repay_amount_usd:,.2f} USDh to reach HF "
            f"{plan.target_health:.2f} (urgency {plan.urgency})\n"
            f"\n"
            f"{advice}\n"
            f"\n"
            f"{self._now_str()} UTC"
        )

    # ------------------------------------------------------------------
    # Notification dispatch
    # ------------------------------------------------------------------

    async def _send_log(self, message: str, silent: bool = True) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_log(message, silent=silent)
            except Exception as e:
                logger.error("Notifier send_log failed: %s", e)

    async def _send_alert(self, message: str, subject: str = "") -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_alert(message, subject=subject)
            except Exception as e:
                logger.error("Notifier send_alert failed: %s", e)

    # ------------------------------------------------------------------
    # Core workflows
    # ------------------------------------------------------------------

    async def _snapshot(self) -> tuple[VaultState, HealthStatus]:
        reading = await self._oracle.fetch_price()
        if reading.is_fallback:
            logger.warning("Using fallback BTC price $%.2f", reading.price)
        state = await self._state_source.fetch_state(reading.price)
        health = evaluate(
            state.deployed_balance, state.debt, state.price, self._thresholds
        )
        return state, health

    async def check_and_alert(self) -> HealthStatus:
        """Evaluate the vault once; alert on warning and critical health."""
        state, health = await self._snapshot()
        logger.info(
            "Vault health %s · HF %.2f · LTV %.2f%% · debt %s USDh",
            health.status, health.health_factor, health.ltv, format_usd(state.debt),
        )

        await self._send_log(self._build_log_message(state, health), silent=True)

        if health.status == CRITICAL:
            await self._send_alert(
                self._build_alert(state, health),
                subject="🚨 CRITICAL: Liquidation risk",
            )
        elif health.status == WARNING:
            await self._send_alert(
                self._build_alert(state, health),
                subject="⚠️ WARNING: Deleverage recommended",
            )
        return health

    async def generate_daily_report(self) -> str:
        """Build and send the daily vault report; returns the report text."""
        state, health = await self._snapshot()
        keeper = self._config.keeper

        report = (
            f"📋 Daily sBTC Loop Vault Report\n"
            f"\n"
            f"{_STATUS_LABELS[health.status]}\n"
            f"\n"
            f"Total assets: {sats_to_btc(state.total_assets)} sBTC\n"
            f"Liquid: {sats_to_btc(state.liquid_balance)} sBTC"
            f" · Deployed: {sats_to_btc(state.deployed_balance)} sBTC\n"
            f"{self._summary(state, health)}\n"
            f"\n"
            f"Compound ready: "
            f"{'yes' if state.liquid_balance >= keeper.auto_compound_threshold else 'no'}\n"
            f"Paused: {'yes' if state.is_paused else 'no'}"
            f" · Emergency: {'yes' if state.emergency_mode else 'no'}\n"
            f"\n"
            f"{self._now_str()} UTC"
        )

        await self._send_alert(report, subject="📋 Daily vault report")
        logger.info("Daily report sent")
        return report

    async def run_continuous(self, check_interval_minutes: int | None = None) -> None:
        """Run the health check forever."""
        interval = check_interval_minutes or self._config.keeper.check_interval_minutes
        logger.info("Starting keeper (checking every %d minutes)", interval)

        while True:
            try:
                await self.check_and_alert()
                await asyncio.sleep(interval * 60)
            except Exception as e:
                logger.error("Error in keeper loop: %s", e)
                await asyncio.sleep(60)
