"""Window gate: which cap regime applies at a given instant."""

from __future__ import annotations

from datetime import datetime, timedelta

from capped_sale.core.enums import SalePhase

from .state import SaleState


class WindowGate:
    """Classifies instants against the sale's start/end timestamps.

    The restricted window opens at ``start_time`` and lasts
    ``restricted_window_seconds``.  Inside it per-participant caps are
    enforced and whitelisting is closed; outside it only the global cap
    applies.
    """

    def __init__(self, state: SaleState, restricted_window_seconds: int) -> None:
        self._state = state
        self._window = timedelta(seconds=restricted_window_seconds)

    @property
    def restricted_window_end(self) -> datetime:
        return self._state.start_time + self._window

    def restricted_window_active(self, now: datetime) -> bool:
        return self._state.start_time <= now < self.restricted_window_end

    def has_started(self, now: datetime) -> bool:
        return now >= self._state.start_time

    def has_ended(self, now: datetime) -> bool:
        return now > self._state.end_time

    def is_open(self, now: datetime) -> bool:
        """Purchases are accepted from start to end, both inclusive."""
        return self._state.start_time <= now <= self._state.end_time

    def phase(self, now: datetime) -> SalePhase:
        if not self.has_started(now):
            return SalePhase.PENDING
        if self.has_ended(now):
            return SalePhase.ENDED
        if self.restricted_window_active(now):
            return SalePhase.RESTRICTED
        return SalePhase.OPEN
