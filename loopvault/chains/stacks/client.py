"""Stacks API client with endpoint fallback."""
from __future__ import annotations

import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...config import ChainConfig
from ...errors import BroadcastError, ProviderError

logger = logging.getLogger(__name__)


class StacksClient:
    """Stacks node/API client with automatic endpoint fallback.

    Transport failures and 5xx responses move on to the next endpoint;
    any other response is handed back to the caller to interpret.
    """

    def __init__(self, config: ChainConfig) -> None:
        self.endpoints = list(config.api_endpoints)
        self.timeout = config.api_timeout
        self.current_index = 0

    async def api_call(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Make an API call, falling back across endpoints on failure."""
        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            index = (self.current_index + attempt) % len(self.endpoints)
            base_url = self.endpoints[index].rstrip("/")

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.request(
                        method,
                        f"{base_url}{path}",
                        json=json,
                        data=data,
                        headers=headers,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        if response.status >= 500:
                            raise ProviderError(f"HTTP {response.status}")
                        result = await response.json(content_type=None)

                        if index != self.current_index:
                            logger.info("Switched to API endpoint: %s", base_url)
                            self.current_index = index

                        return result
            except Exception as e:
                last_error = e
                logger.warning("API endpoint %s failed: %s", base_url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        raise ProviderError(f"All API endpoints failed. Last error: {last_error}")

    async def broadcast(self, signed_tx: bytes) -> str:
        """Broadcast serialized transaction bytes; returns the tx id."""
        result = await self.api_call(
            "POST",
            "/v2/transactions",
            data=signed_tx,
            headers={"Content-Type": "application/octet-stream"},
        )
        if isinstance(result, dict) and "error" in result:
            reason = result.get("reason", "")
            raise BroadcastError(
                f"Broadcast failed: {result['error']}" + (f" ({reason})" if reason else "")
            )
        if not isinstance(result, str) or not result:
            raise BroadcastError(f"Unexpected broadcast response: {result!r}")
        return result if result.startswith("0x") else f"0x{result}"

    async def get_tx_status(self, tx_id: str) -> str:
        """Return the API's ``tx_status``; unindexed transactions read as pending."""
        result = await self.api_call("GET", f"/extended/v1/tx/{tx_id}")
        if not isinstance(result, dict) or "error" in result:
            return "pending"
        return str(result.get("tx_status", "pending"))

    async def get_balances(self, address: str, sbtc_asset: str) -> dict[str, int]:
        """Return ``{"stx": micro-STX, "sbtc": sats}`` for ``address``."""
        result = await self.api_call(
            "GET", f"/extended/v1/address/{address}/balances"
        )
        if not isinstance(result, dict):
            raise ProviderError(f"Unexpected balances response: {result!r}")
        stx = result.get("stx") or {}
        tokens = result.get("fungible_tokens") or {}
        return {
            "stx": int(stx.get("balance", "0")),
            "sbtc": int((tokens.get(sbtc_asset) or {}).get("balance", "0")),
        }
