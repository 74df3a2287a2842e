"""Sale components: registry, caps, window gate, purchase engine."""

from .contract import CappedSale
from .engine import PurchaseEngine

__all__ = ["CappedSale", "PurchaseEngine"]
