"""Vault state protocol — read-layer abstraction for vault snapshots."""
from typing import Protocol

from ..models import UserPosition, VaultState


class VaultStateSource(Protocol):
    """Reads an immutable vault snapshot valued at ``price``."""

    async def fetch_state(self, price: float) -> VaultState: ...

    async def fetch_position(self, address: str) -> UserPosition: ...
