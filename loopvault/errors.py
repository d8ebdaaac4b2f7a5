"""Exception types raised by the vault core and its collaborators."""
from __future__ import annotations


class LoopInputError(ValueError):
    """Invalid amount, price or loop configuration (rejected before any work)."""


class ProviderError(RuntimeError):
    """A price, rate, quote or chain collaborator failed."""


class BroadcastError(ProviderError):
    """The chain rejected a submitted transaction."""


class FinalityError(ProviderError):
    """A transaction aborted or did not confirm within the polling budget."""


class DepositRejected(ValueError):
    """A deposit preview failed one of the vault's admission checks."""


class WithdrawalRejected(ValueError):
    """A withdrawal request or emergency withdrawal is not allowed."""


class LoopInProgressError(RuntimeError):
    """Another loop execution is already running for the same owner."""
