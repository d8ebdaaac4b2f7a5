"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from loopvault.config import (
    AppConfig,
    ChainConfig,
    EmailConfig,
    KeeperConfig,
    NotificationsConfig,
    PriceOracleConfig,
    RatesConfig,
    TelegramConfig,
    VaultConfig,
)
from loopvault.models import LoopConfig, PriceReading, RateReading, Rates, VaultState

BTC_PRICE = 100_000.0
ONE_BTC = 100_000_000


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        api_endpoints=("https://api1.example.com", "https://api2.example.com"),
        api_timeout=10,
    )


@pytest.fixture()
def sample_app_config(sample_chain_config: ChainConfig) -> AppConfig:
    return AppConfig(
        vault=VaultConfig(
            contract="SPTEST.sbtc-loop-vault",
            state_url="https://state.example.com/vault",
        ),
        loop=LoopConfig(),
        keeper=KeeperConfig(check_interval_minutes=5),
        chain=sample_chain_config,
        price_oracle=PriceOracleConfig(url="https://prices.example.com"),
        rates=RatesConfig(url=""),
        notifications=NotificationsConfig(
            telegram=TelegramConfig(
                enabled=True,
                alert_bot_token="fake-alert-token",
                log_bot_token="fake-log-token",
                chat_id="12345",
            ),
            email=EmailConfig(enabled=False),
        ),
    )


# ---------------------------------------------------------------------------
# Collaborator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def price_reading() -> PriceReading:
    return PriceReading(price=BTC_PRICE, source="coingecko")


@pytest.fixture()
def rate_reading() -> RateReading:
    return RateReading(
        rates=Rates(supply_apy_base=4.0, supply_apy_incentives=1.0, borrow_apy=3.0),
        source="live",
    )


def make_state(
    deployed: int = ONE_BTC,
    debt: int = 40_000_000_000,
    liquid: int = 0,
    **overrides,
) -> VaultState:
    """Vault snapshot at $100k BTC; default debt $40k against 1 BTC (HF 2.5)."""
    fields = dict(
        total_assets=deployed + liquid,
        liquid_balance=liquid,
        deployed_balance=deployed,
        total_shares=deployed + liquid,
        share_price=1_000_000,
        debt=debt,
        price=BTC_PRICE,
    )
    fields.update(overrides)
    return VaultState(**fields)


@pytest.fixture()
def healthy_state() -> VaultState:
    return make_state()


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    vault:
      contract: "SPTEST.sbtc-loop-vault"
      state_url: "https://state.example.com/vault"
      max_tvl: 200000000
      target_loops: 4
    loop:
      max_iterations: 4
      target_ltv_bps: 6500
      min_loop_amount: 5000
      slippage_bps: 50
    keeper:
      check_interval_minutes: 15
      deleverage_threshold: 1.6
      emergency_threshold: 1.25
    chain:
      api_endpoints: ["https://api.example.com"]
      api_timeout: 10
      contracts:
        swap_helper: "SPSWAP.swap-helper-v2"
    price_oracle:
      fallback_price: 95000
      cache_ttl_seconds: 30
    rates:
      url: "https://rates.example.com"
      fallback:
        supply_apy_base: 4.5
        borrow_apy: 7.5
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: 999
      email:
        enabled: false
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Sample API payloads
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_state_payload() -> dict:
    return {
        "totalAssets": "120000000",
        "liquidBalance": "20000000",
        "deployedBalance": "100000000",
        "totalShares": "110000000",
        "sharePrice": "1090909",
        "usdhDebt": "40000000000",
        "isPaused": False,
        "emergencyMode": False,
        "lastHarvest": 812345,
    }


@pytest.fixture()
def sample_rates_payload() -> dict:
    return {
        "sbtc": {"supplyApyBase": 4.1, "supplyApyIncentives": 0.9},
        "usdh": {"borrowApy": 3.0},
    }
