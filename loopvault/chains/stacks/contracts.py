"""Contract-call builders for the Zest lending pool and the Bitflow swap helper."""
from __future__ import annotations

from ...models import ContractCall

ZEST_DEPLOYER = "SP2VCQJGH7PHP2DJK7Z0V48AGBHQAW3R3ZW1QF4N"

DEFAULT_CONTRACTS: dict[str, str] = {
    "borrow_helper": f"{ZEST_DEPLOYER}.borrow-helper-v2-1-5",
    "pool_reserve": f"{ZEST_DEPLOYER}.pool-0-reserve",
    "zsbtc": f"{ZEST_DEPLOYER}.zsbtc-v2-0",
    "zusdh": f"{ZEST_DEPLOYER}.zusdh-v2-0",
    "sbtc_oracle": f"{ZEST_DEPLOYER}.oracle-sbtc",
    "incentives": f"{ZEST_DEPLOYER}.incentives",
    "sbtc_token": "SM3VDXK3WZZSA84XXFKAFAF15NNZX32CTSG82JFQ4.sbtc-token",
    "usdh_token": f"{ZEST_DEPLOYER}.usdh",
    "swap_helper": "SPQC38PW542EQJ5M11CR25P7BS1CA6QT4TBXGB3M.swap-helper-v1-03",
}

SUPPLY_FEE = 10_000
BORROW_FEE = 15_000
SWAP_FEE = 10_000

VARIABLE_RATE_MODE = "2"


def resolve_contracts(overrides: dict[str, str] | None = None) -> dict[str, str]:
    contracts = dict(DEFAULT_CONTRACTS)
    contracts.update(overrides or {})
    return contracts


def _split(contract_id: str) -> tuple[str, str]:
    address, _, name = contract_id.partition(".")
    if not name:
        raise ValueError(f"Not a contract id: {contract_id!r}")
    return address, name


def build_supply_call(amount: int, owner: str, contracts: dict[str, str]) -> ContractCall:
    address, name = _split(contracts["borrow_helper"])
    return ContractCall(
        contract_address=address,
        contract_name=name,
        function_name="supply",
        function_args=(
            contracts["zsbtc"],
            contracts["pool_reserve"],
            contracts["sbtc_token"],
            str(amount),
            owner,
            "none",  # referral
            contracts["incentives"],
        ),
        fee=SUPPLY_FEE,
    )


def build_borrow_call(amount: int, owner: str, contracts: dict[str, str]) -> ContractCall:
    address, name = _split(contracts["borrow_helper"])
    collateral = (
        f"[{{asset: {contracts['sbtc_token']}, lp-token: {contracts['zsbtc']}, "
        f"oracle: {contracts['sbtc_oracle']}}}]"
    )
    return ContractCall(
        contract_address=address,
        contract_name=name,
        function_name="borrow",
        function_args=(
            contracts["pool_reserve"],
            contracts["sbtc_oracle"],
            contracts["usdh_token"],
            contracts["zusdh"],
            collateral,
            str(amount),
            contracts["borrow_helper"],
            VARIABLE_RATE_MODE,
            owner,
            "none",  # price feed bytes
        ),
        fee=BORROW_FEE,
    )


def build_swap_call(amount_in: int, min_out: int, contracts: dict[str, str]) -> ContractCall:
    address, name = _split(contracts["swap_helper"])
    return ContractCall(
        contract_address=address,
        contract_name=name,
        function_name="swap-helper",
        function_args=(
            contracts["usdh_token"],
            contracts["sbtc_token"],
            str(amount_in),
            str(min_out),
        ),
        fee=SWAP_FEE,
    )
