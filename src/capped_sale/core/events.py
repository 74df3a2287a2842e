"""Event schemas for sale notifications.

All events inherit from BaseEvent and are Pydantic models.
They are published on the ``sale`` topic after the operation that
produced them commits; a discarded operation emits nothing.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from .ids import new_id

SALE_TOPIC = "sale"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BaseEvent(BaseModel):
    """Base for all events. Provides identity, time, and tracing."""

    event_id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=_now)
    trace_id: str = Field(default_factory=new_id)
    source_module: str = ""


class BeneficiaryChanged(BaseEvent):
    source_module: str = "sale.contract"
    old_beneficiary: str
    new_beneficiary: str


class PurchaseCompleted(BaseEvent):
    source_module: str = "sale.engine"
    participant: str
    net_amount: int
    credited_amount: int


class ExcessRefunded(BaseEvent):
    source_module: str = "sale.engine"
    participant: str
    amount: int


class InvestorWhitelisted(BaseEvent):
    source_module: str = "sale.registry"
    participant: str
    participant_count: int


class ParticipantCapFrozen(BaseEvent):
    source_module: str = "sale.caps"
    participant_cap: int
    participant_count: int
