"""Mutable sale state containers.

Only the sale components write these, and only through a
:class:`~capped_sale.sale.transaction.SaleTransaction` so that every write
can be discarded if the operation fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class InvestorRecord:
    """Internal mutable state for one participant."""

    address: str
    contributed: int = 0
    credited: int = 0
    whitelisted: bool = False
    purchasing: bool = False  # Re-entry lock, true only mid-purchase


@dataclass
class SaleState:
    """Sale-wide configuration and running totals."""

    start_time: datetime
    end_time: datetime
    global_cap: int
    exchange_rate: int
    owner: str
    registrar: str
    beneficiary: str
    raised_total: int = 0
    participant_cap: int = 0  # 0 until frozen
    participant_count: int = 0
    records: dict[str, InvestorRecord] = field(default_factory=dict)
