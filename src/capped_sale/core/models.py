"""Read-only snapshot models returned by the sale's views.

Internal state lives in mutable dataclasses owned by the sale components;
callers only ever see these immutable copies.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from .enums import SalePhase


class InvestorInfo(BaseModel):
    """Snapshot of one participant's record."""

    model_config = {"frozen": True}

    address: str
    contributed: int = 0
    credited: int = 0
    whitelisted: bool = False


class SaleInfo(BaseModel):
    """General sale information."""

    model_config = {"frozen": True}

    address: str
    owner: str
    registrar: str
    beneficiary: str
    start_time: datetime
    end_time: datetime
    global_cap: int
    exchange_rate: int
    raised_total: int
    participant_cap: int
    participant_count: int
    phase: SalePhase


class PurchaseReceipt(BaseModel):
    """Outcome of one committed purchase."""

    model_config = {"frozen": True}

    participant: str
    submitted: int
    refunded: int
    net_amount: int
    credited_amount: int
    contributed_total: int
    raised_total: int
