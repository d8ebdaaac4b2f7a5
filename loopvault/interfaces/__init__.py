"""Protocol interfaces for the loop vault's external collaborators."""
from .chain import ChainClient, FinalityWaiter, TransactionSigner
from .notifier import Notifier
from .price_oracle import PriceOracle
from .rate_provider import RateProvider
from .swap_quoter import SwapQuoter
from .vault_state import VaultStateSource

__all__ = [
    "ChainClient",
    "FinalityWaiter",
    "Notifier",
    "PriceOracle",
    "RateProvider",
    "SwapQuoter",
    "TransactionSigner",
    "VaultStateSource",
]
