"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .models import HealthThresholds, LoopConfig, Rates

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VaultConfig:
    contract: str = ""
    max_tvl: int = 100_000_000  # sats
    management_fee_bps: int = 1000
    max_ltv_bps: int = 7000
    liquidation_threshold_bps: int = 8000
    target_loops: int = 3
    min_deposit: int = 10_000  # sats
    state_url: str = ""


@dataclass(frozen=True)
class KeeperConfig:
    check_interval_minutes: int = 60
    deleverage_threshold: float = 1.5
    emergency_threshold: float = 1.2
    target_health_factor: float = 1.8
    auto_compound_threshold: int = 10_000  # sats


@dataclass(frozen=True)
class ChainConfig:
    api_endpoints: tuple[str, ...] = ()
    api_timeout: int = 30
    confirmation_poll_seconds: float = 10.0
    confirmation_timeout_seconds: float = 600.0
    min_fee_balance: int = 100_000  # micro-STX
    contracts: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PriceOracleConfig:
    url: str = "https://api.coingecko.com/api/v3/simple/price?ids=bitcoin&vs_currencies=usd"
    fallback_price: float = 100_000.0
    cache_ttl_seconds: float = 60.0


@dataclass(frozen=True)
class RatesConfig:
    url: str = ""
    cache_ttl_seconds: float = 300.0
    fallback: Rates = field(
        default_factory=lambda: Rates(supply_apy_base=5.0, borrow_apy=8.0)
    )


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class EmailConfig:
    enabled: bool = False
    alert_email: str = ""
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    sender_email: str = ""
    sender_password: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    email: EmailConfig = field(default_factory=EmailConfig)


@dataclass(frozen=True)
class AppConfig:
    vault: VaultConfig = field(default_factory=VaultConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    keeper: KeeperConfig = field(default_factory=KeeperConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    price_oracle: PriceOracleConfig = field(default_factory=PriceOracleConfig)
    rates: RatesConfig = field(default_factory=RatesConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)

    def health_thresholds(self) -> HealthThresholds:
        return HealthThresholds(
            deleverage_threshold=self.keeper.deleverage_threshold,
            emergency_threshold=self.keeper.emergency_threshold,
            min_borrow_health=self.keeper.deleverage_threshold,
            max_ltv_bps=self.vault.max_ltv_bps,
        )


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_vault(raw: dict[str, Any]) -> VaultConfig:
    return VaultConfig(
        contract=raw.get("contract", ""),
        max_tvl=int(raw.get("max_tvl", 100_000_000)),
        management_fee_bps=int(raw.get("management_fee_bps", 1000)),
        max_ltv_bps=int(raw.get("max_ltv_bps", 7000)),
        liquidation_threshold_bps=int(raw.get("liquidation_threshold_bps", 8000)),
        target_loops=int(raw.get("target_loops", 3)),
        min_deposit=int(raw.get("min_deposit", 10_000)),
        state_url=raw.get("state_url", ""),
    )


def _build_loop(raw: dict[str, Any]) -> LoopConfig:
    return LoopConfig(
        max_iterations=int(raw.get("max_iterations", 3)),
        target_ltv_bps=int(raw.get("target_ltv_bps", 7000)),
        min_loop_amount=int(raw.get("min_loop_amount", 10_000)),
        slippage_bps=int(raw.get("slippage_bps", 100)),
    )


def _build_keeper(raw: dict[str, Any]) -> KeeperConfig:
    return KeeperConfig(
        check_interval_minutes=int(raw.get("check_interval_minutes", 60)),
        deleverage_threshold=float(raw.get("deleverage_threshold", 1.5)),
        emergency_threshold=float(raw.get("emergency_threshold", 1.2)),
        target_health_factor=float(raw.get("target_health_factor", 1.8)),
        auto_compound_threshold=int(raw.get("auto_compound_threshold", 10_000)),
    )


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    return ChainConfig(
        api_endpoints=tuple(raw.get("api_endpoints", [])),
        api_timeout=int(raw.get("api_timeout", 30)),
        confirmation_poll_seconds=float(raw.get("confirmation_poll_seconds", 10.0)),
        confirmation_timeout_seconds=float(
            raw.get("confirmation_timeout_seconds", 600.0)
        ),
        min_fee_balance=int(raw.get("min_fee_balance", 100_000)),
        contracts=dict(raw.get("contracts", {})),
    )


def _build_price_oracle(raw: dict[str, Any]) -> PriceOracleConfig:
    return PriceOracleConfig(
        url=raw.get("url", PriceOracleConfig.url),
        fallback_price=float(raw.get("fallback_price", 100_000.0)),
        cache_ttl_seconds=float(raw.get("cache_ttl_seconds", 60.0)),
    )


def _build_rates(raw: dict[str, Any]) -> RatesConfig:
    fb = raw.get("fallback", {})
    return RatesConfig(
        url=raw.get("url", ""),
        cache_ttl_seconds=float(raw.get("cache_ttl_seconds", 300.0)),
        fallback=Rates(
            supply_apy_base=float(fb.get("supply_apy_base", 5.0)),
            supply_apy_incentives=float(fb.get("supply_apy_incentives", 0.0)),
            borrow_apy=float(fb.get("borrow_apy", 8.0)),
        ),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram", {})
    em = raw.get("email", {})
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
        email=EmailConfig(
            enabled=bool(em.get("enabled", False)),
            alert_email=em.get("alert_email", ""),
            smtp_server=em.get("smtp_server", "smtp.gmail.com"),
            smtp_port=int(em.get("smtp_port", 587)),
            sender_email=em.get("sender_email", ""),
            sender_password=em.get("sender_password", ""),
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        vault=_build_vault(raw.get("vault", {})),
        loop=_build_loop(raw.get("loop", {})),
        keeper=_build_keeper(raw.get("keeper", {})),
        chain=_build_chain(raw.get("chain", {})),
        price_oracle=_build_price_oracle(raw.get("price_oracle", {})),
        rates=_build_rates(raw.get("rates", {})),
        notifications=_build_notifications(raw.get("notifications", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.chain.api_endpoints:
        raise ValueError("At least one chain API endpoint must be configured")

    if cfg.loop.target_ltv_bps >= cfg.vault.liquidation_threshold_bps:
        raise ValueError(
            f"Loop target LTV {cfg.loop.target_ltv_bps} bps must be below the "
            f"liquidation threshold {cfg.vault.liquidation_threshold_bps} bps"
        )

    if cfg.vault.max_ltv_bps >= cfg.vault.liquidation_threshold_bps:
        raise ValueError("Vault max LTV must be below the liquidation threshold")

    if cfg.keeper.emergency_threshold > cfg.keeper.deleverage_threshold:
        raise ValueError(
            "Emergency threshold must not exceed the deleverage threshold"
        )

    if cfg.price_oracle.fallback_price <= 0:
        raise ValueError("Fallback price must be positive")
