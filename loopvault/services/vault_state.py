"""HTTP vault-state source — reads the vault snapshot published by the read layer."""
from __future__ import annotations

import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..errors import ProviderError
from ..models import UserPosition, VaultState

logger = logging.getLogger(__name__)


def _int_field(data: dict[str, Any], key: str) -> int:
    try:
        return int(data[key])
    except KeyError as e:
        raise ProviderError(f"Vault state missing '{key}'") from e
    except (TypeError, ValueError) as e:
        raise ProviderError(f"Vault state field '{key}' is not an integer") from e


def parse_vault_state(data: Any, price: float) -> VaultState:
    """Build a ``VaultState`` from the read layer's JSON (amounts as strings)."""
    if not isinstance(data, dict):
        raise ProviderError("Unexpected vault state payload")
    return VaultState(
        total_assets=_int_field(data, "totalAssets"),
        liquid_balance=_int_field(data, "liquidBalance"),
        deployed_balance=_int_field(data, "deployedBalance"),
        total_shares=_int_field(data, "totalShares"),
        share_price=_int_field(data, "sharePrice"),
        debt=_int_field(data, "usdhDebt"),
        price=price,
        is_paused=bool(data.get("isPaused", False)),
        emergency_mode=bool(data.get("emergencyMode", False)),
        last_harvest=int(data.get("lastHarvest", 0)),
    )


def parse_user_position(data: Any, address: str) -> UserPosition:
    """Build a ``UserPosition``; an unknown depositor reads as zero shares."""
    if not isinstance(data, dict):
        raise ProviderError("Unexpected position payload")
    pending = data.get("pendingWithdrawal") or 0
    try:
        pending = int(pending)
    except (TypeError, ValueError) as e:
        raise ProviderError("Position field 'pendingWithdrawal' is not an integer") from e
    return UserPosition(
        address=address,
        shares=_int_field(data, "shares"),
        deposited=_int_field(data, "deposited"),
        pending_withdrawal=pending,
    )


class HttpVaultStateSource:
    """Fetch the vault snapshot (and per-depositor positions) from JSON endpoints."""

    def __init__(self, url: str, timeout: int = 30) -> None:
        self.url = url
        self.timeout = timeout

    async def _get_json(self, url: str, what: str) -> tuple[int, Any]:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.get(
                url, timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status == 404:
                    return 404, None
                if response.status != 200:
                    raise ProviderError(
                        f"Error fetching {what}: HTTP {response.status}"
                    )
                return 200, await response.json()

    async def fetch_state(self, price: float) -> VaultState:
        if not self.url:
            raise ProviderError("No vault state URL configured")

        status, data = await self._get_json(self.url, "vault state")
        if status == 404:
            raise ProviderError("Error fetching vault state: HTTP 404")
        state = parse_vault_state(data, price)

        logger.debug(
            "Vault state: deployed=%d debt=%d liquid=%d",
            state.deployed_balance, state.debt, state.liquid_balance,
        )
        return state

    async def fetch_position(self, address: str) -> UserPosition:
        """Read ``{url}/positions/{address}``; 404 means no deposit yet."""
        if not self.url:
            raise ProviderError("No vault state URL configured")

        status, data = await self._get_json(
            f"{self.url.rstrip('/')}/positions/{address}", "position"
        )
        if status == 404:
            return UserPosition(address=address, shares=0, deposited=0)
        return parse_user_position(data, address)
