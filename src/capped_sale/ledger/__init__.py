"""In-memory collaborators: asset ledger and payment channel."""

from .memory import InMemoryAssetLedger, InMemoryPaymentChannel

__all__ = ["InMemoryAssetLedger", "InMemoryPaymentChannel"]
