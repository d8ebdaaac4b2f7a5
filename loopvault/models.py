"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass

HEALTH_FACTOR_SENTINEL = 999.0

HEALTHY = "healthy"
SAFE = "safe"
WARNING = "warning"
CRITICAL = "critical"

# Ordered best → worst.
STATUS_ORDER: tuple[str, ...] = (HEALTHY, SAFE, WARNING, CRITICAL)


@dataclass(frozen=True)
class LoopConfig:
    """Strategy knobs for one loop run."""

    max_iterations: int = 3
    target_ltv_bps: int = 7000
    min_loop_amount: int = 10_000  # sats
    slippage_bps: int = 100


@dataclass(frozen=True)
class Rates:
    """Lending APYs in percent."""

    supply_apy_base: float
    borrow_apy: float
    supply_apy_incentives: float = 0.0

    @property
    def supply_apy(self) -> float:
        return self.supply_apy_base + self.supply_apy_incentives


@dataclass(frozen=True)
class RateReading:
    """Rates plus where they came from."""

    rates: Rates
    source: str
    is_fallback: bool = False
    error: str | None = None


@dataclass(frozen=True)
class PriceReading:
    """Collateral price in USD plus where it came from."""

    price: float
    source: str
    is_fallback: bool = False
    error: str | None = None


@dataclass(frozen=True)
class SwapQuote:
    """Quote for swapping ``amount_in`` micro-USDh into sats."""

    amount_in: int
    expected_out: int
    min_out: int
    price_impact: float  # percent
    slippage: float  # percent
    dex: str = "bitflow"


@dataclass(frozen=True)
class LoopIteration:
    """One deposit → borrow → swap round of a simulation."""

    index: int
    deposit: int  # sats
    borrow: int  # micro-USDh
    swap_receive: int  # sats
    health_after: float | None = None


@dataclass(frozen=True)
class YieldProjection:
    """Projected APYs in percent for a levered position."""

    supply_apy: float
    borrow_apy: float
    gross_apy: float
    borrow_cost: float
    net_apy: float
    estimated_apy: float


@dataclass(frozen=True)
class SimulationResult:
    initial_deposit: int
    iterations: tuple[LoopIteration, ...]
    total_deposited: int
    total_borrowed: int
    leverage: float
    projection: YieldProjection


@dataclass(frozen=True)
class HealthThresholds:
    deleverage_threshold: float = 1.5
    emergency_threshold: float = 1.2
    safe_ceiling: float = 2.0
    min_borrow_health: float = 1.5
    max_ltv_bps: int = 7000


@dataclass(frozen=True)
class HealthStatus:
    """Read-model projection of vault safety; recomputed on every read."""

    health_factor: float
    status: str
    ltv: float
    can_borrow: bool
    should_deleverage: bool
    emergency_triggered: bool
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True)
class VaultState:
    """Snapshot of the on-chain vault, as read by the external read layer."""

    total_assets: int
    liquid_balance: int
    deployed_balance: int
    total_shares: int
    share_price: int
    debt: int  # micro-USDh
    price: float
    is_paused: bool = False
    emergency_mode: bool = False
    last_harvest: int = 0


@dataclass(frozen=True)
class UserPosition:
    """One depositor's vault shares and what they originally paid in (sats)."""

    address: str
    shares: int
    deposited: int
    pending_withdrawal: int = 0  # shares


@dataclass(frozen=True)
class ContractCall:
    """Unsigned contract-call description handed to a signer."""

    contract_address: str
    contract_name: str
    function_name: str
    function_args: tuple[str, ...]
    fee: int = 10_000  # micro-STX

    @property
    def contract_id(self) -> str:
        return f"{self.contract_address}.{self.contract_name}"


@dataclass(frozen=True)
class FinalityOutcome:
    tx_id: str
    confirmed: bool
    status: str = "success"


@dataclass(frozen=True)
class ExecutedIteration:
    """Trail of one executed loop round; ``failed_step`` marks where it stopped."""

    index: int
    deposit: int
    borrow: int = 0
    swap_receive: int | None = None
    supply_tx: str | None = None
    borrow_tx: str | None = None
    swap_tx: str | None = None
    health_after: float | None = None
    failed_step: str | None = None

    @property
    def tx_ids(self) -> tuple[str, ...]:
        return tuple(
            tx for tx in (self.supply_tx, self.borrow_tx, self.swap_tx) if tx
        )

    @property
    def completed(self) -> bool:
        return self.failed_step is None and self.swap_tx is not None


@dataclass(frozen=True)
class LoopExecutionResult:
    success: bool
    total_deposited: int
    total_borrowed: int
    iterations: tuple[ExecutedIteration, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class DeleveragePlan:
    current_health: float
    target_health: float
    current_debt: int
    repay_amount: int  # micro-USDh
    repay_amount_usd: float
    urgency: str


@dataclass(frozen=True)
class CompoundStep:
    step: int
    action: str
    deposit: int
    borrow: int
    expected_swap: int
    min_receive: int
