"""Finality waiters — what the executor awaits between loop steps."""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Awaitable, Callable

from ...models import FinalityOutcome
from .client import StacksClient

logger = logging.getLogger(__name__)


class FixedDelayFinality:
    """Sleep a fixed delay and presume the transaction landed.

    Placeholder for environments without a status API; prefer
    ``PollingFinality``.
    """

    def __init__(
        self,
        delay_seconds: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    async def __call__(self, tx_id: str) -> FinalityOutcome:
        await self._sleep(self.delay_seconds)
        return FinalityOutcome(tx_id=tx_id, confirmed=True, status="presumed")


class PollingFinality:
    """Poll the transaction status until it succeeds, aborts or times out."""

    def __init__(
        self,
        client: StacksClient,
        poll_seconds: float = 10.0,
        timeout_seconds: float = 600.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self.poll_seconds = poll_seconds
        self.max_polls = max(1, math.ceil(timeout_seconds / poll_seconds))
        self._sleep = sleep

    async def __call__(self, tx_id: str) -> FinalityOutcome:
        for poll in range(self.max_polls):
            try:
                status = await self._client.get_tx_status(tx_id)
            except Exception as e:
                logger.warning("Status poll for %s failed: %s", tx_id, e)
                status = "pending"

            if status == "success":
                return FinalityOutcome(tx_id=tx_id, confirmed=True, status=status)
            if status.startswith("abort") or status.startswith("dropped"):
                logger.error("Transaction %s failed on-chain: %s", tx_id, status)
                return FinalityOutcome(tx_id=tx_id, confirmed=False, status=status)

            logger.debug("Transaction %s still %s (poll %d)", tx_id, status, poll + 1)
            await self._sleep(self.poll_seconds)

        return FinalityOutcome(tx_id=tx_id, confirmed=False, status="timeout")
