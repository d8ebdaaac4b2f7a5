"""ChainClient implementation: build the call, hand it to the signer, broadcast."""
from __future__ import annotations

import logging

from ...interfaces.chain import TransactionSigner
from ...models import ContractCall
from .client import StacksClient
from .contracts import (
    build_borrow_call,
    build_supply_call,
    build_swap_call,
    resolve_contracts,
)

logger = logging.getLogger(__name__)


class StacksLoopChain:
    """Submits loop steps as signed contract calls through a ``StacksClient``."""

    def __init__(
        self, client: StacksClient, contracts: dict[str, str] | None = None
    ) -> None:
        self._client = client
        self.contracts = resolve_contracts(contracts)

    async def _submit(self, call: ContractCall, signer: TransactionSigner) -> str:
        logger.debug("Submitting %s::%s", call.contract_id, call.function_name)
        signed = signer.sign(call)
        return await self._client.broadcast(signed)

    async def submit_supply(
        self, amount: int, owner: str, signer: TransactionSigner
    ) -> str:
        return await self._submit(build_supply_call(amount, owner, self.contracts), signer)

    async def submit_borrow(
        self, amount: int, owner: str, signer: TransactionSigner
    ) -> str:
        return await self._submit(build_borrow_call(amount, owner, self.contracts), signer)

    async def submit_swap(
        self, amount_in: int, min_out: int, recipient: str, signer: TransactionSigner
    ) -> str:
        # The swap helper pays out to tx-sender; recipient must be the signer.
        return await self._submit(
            build_swap_call(amount_in, min_out, self.contracts), signer
        )
