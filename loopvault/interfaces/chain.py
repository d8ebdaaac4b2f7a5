"""Chain client protocols — submission, signing and confirmation seams."""
from typing import Protocol

from ..models import ContractCall, FinalityOutcome


class TransactionSigner(Protocol):
    """Turns an unsigned contract call into signed, serialized transaction bytes."""

    def sign(self, call: ContractCall) -> bytes: ...


class ChainClient(Protocol):
    """Submits the three loop steps and returns their transaction ids."""

    async def submit_supply(
        self, amount: int, owner: str, signer: TransactionSigner
    ) -> str: ...

    async def submit_borrow(
        self, amount: int, owner: str, signer: TransactionSigner
    ) -> str: ...

    async def submit_swap(
        self, amount_in: int, min_out: int, recipient: str, signer: TransactionSigner
    ) -> str: ...


class FinalityWaiter(Protocol):
    """Suspends until a submitted transaction is (presumed) final."""

    async def __call__(self, tx_id: str) -> FinalityOutcome: ...
