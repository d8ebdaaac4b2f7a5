"""Vault-facing services: the keeper loop and the API façade."""
from .keeper import Keeper
from .vault import VaultService
from .vault_state import HttpVaultStateSource

__all__ = ["HttpVaultStateSource", "Keeper", "VaultService"]
