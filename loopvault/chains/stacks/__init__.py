"""Stacks chain integration: API client, contract calls, finality waiters."""
from .chain import StacksLoopChain
from .client import StacksClient
from .finality import FixedDelayFinality, PollingFinality

__all__ = ["FixedDelayFinality", "PollingFinality", "StacksClient", "StacksLoopChain"]
