"""Cap manager: derives and freezes the per-participant cap.

The participant cap is ``global_cap // participant_count`` taken at the
first qualifying access after ``start_time``, then frozen for the life of
the sale.  Which purchase freezes it, and therefore which population it
is derived from, depends on ordering; this is deliberate.

A freeze is a journaled write like any other, so a purchase that fails
after freezing the cap also un-freezes it.
"""

from __future__ import annotations

import logging
from datetime import datetime

from capped_sale.core.errors import ParticipantCapUnavailable, PhaseError
from capped_sale.core.events import ParticipantCapFrozen

from .state import SaleState
from .transaction import SaleTransaction
from .window import WindowGate

logger = logging.getLogger(__name__)


class CapManager:
    """Owns the participant cap and the cap arithmetic.

    Args:
        state: Shared sale state.
        window: Window gate deciding when participant caps are enforced.
    """

    def __init__(self, state: SaleState, window: WindowGate) -> None:
        self._state = state
        self._window = window

    @property
    def participant_cap(self) -> int:
        return self._state.participant_cap

    @property
    def is_frozen(self) -> bool:
        return self._state.participant_cap != 0

    def ensure_participant_cap(self, now: datetime, tx: SaleTransaction) -> int:
        """Freeze the participant cap if it is still unset. Returns it.

        Raises:
            PhaseError: Before ``start_time``.
            ParticipantCapUnavailable: No whitelisted participant exists
                at freeze time (the cap would be a division by zero).
        """
        if not self._window.has_started(now):
            raise PhaseError(
                f"Sale starts at {self._state.start_time.isoformat()}"
            )
        if self.is_frozen:
            return self._state.participant_cap

        count = self._state.participant_count
        if count == 0:
            raise ParticipantCapUnavailable(
                "Cannot derive participant cap: no whitelisted participants"
            )
        cap = self._state.global_cap // count
        if cap == 0:
            raise ParticipantCapUnavailable(
                f"Global cap {self._state.global_cap} too small for "
                f"{count} participants"
            )
        tx.set(self._state, "participant_cap", cap)
        tx.emit(ParticipantCapFrozen(participant_cap=cap, participant_count=count))
        logger.info(
            "Participant cap frozen at %d (global_cap=%d participants=%d)",
            cap,
            self._state.global_cap,
            count,
        )
        return cap

    # ------------------------------------------------------------------
    # Cap arithmetic
    # ------------------------------------------------------------------

    def within_caps(self, contributed: int, extra: int, now: datetime) -> bool:
        """Would admitting *extra* on top of *contributed* respect both caps?"""
        if self._state.raised_total + extra > self._state.global_cap:
            return False
        if self._window.restricted_window_active(now):
            return contributed + extra <= self._state.participant_cap
        return True

    def compute_excess(self, contributed: int, value: int, now: datetime) -> int:
        """Portion of *value* that would breach a cap.

        The participant tier applies only inside the restricted window;
        the global tier is measured on what is left after it.
        """
        excess = 0
        working = value
        if self._window.restricted_window_active(now):
            over = contributed + value - self._state.participant_cap
            if over > 0:
                excess = over
                working -= over
        global_over = self._state.raised_total + working - self._state.global_cap
        if global_over > 0:
            excess += global_over
        return excess

    def remaining_global_capacity(self) -> int:
        return max(self._state.global_cap - self._state.raised_total, 0)

    def remaining_participant_allowance(self, contributed: int, now: datetime) -> int:
        """How much more one participant could contribute right now."""
        remaining = self.remaining_global_capacity()
        if self._window.restricted_window_active(now) and self.is_frozen:
            remaining = min(remaining, max(self._state.participant_cap - contributed, 0))
        return remaining
