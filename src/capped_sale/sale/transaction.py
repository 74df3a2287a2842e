"""Single-writer transactional boundary for sale operations.

Every public sale operation runs inside :meth:`SaleTransactionManager.transaction`.
The boundary:

* serializes operations with one ``asyncio.Lock`` per sale;
* journals the previous value of every write so a failure can replay the
  journal in reverse and leave no trace;
* takes savepoints on enlisted collaborators (ledger, payment channel)
  and rolls them back together with the sale's own state;
* holds notifications until commit, then publishes them.

A collaborator that calls back into the same sale from inside an
operation, on the same task, joins the running transaction as a nested
savepoint rather than waiting on the lock it already holds.

Usage::

    async with manager.transaction("purchase") as tx:
        tx.set(record, "purchasing", True)
        tx.emit(PurchaseCompleted(...))
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Any

from capped_sale.core.clock import IClock
from capped_sale.core.events import SALE_TOPIC, BaseEvent
from capped_sale.core.interfaces import IEventBus, ITransactional

logger = logging.getLogger(__name__)

# id(manager) -> transaction running in the current task
_active: ContextVar[dict[int, "SaleTransaction"]] = ContextVar(
    "capped_sale_active_transactions", default={}
)


def _running_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:  # No running loop
        return None


class SaleTransaction:
    """Undo journal and notification outbox for one operation.

    ``now`` is read once when the outermost operation begins and shared
    by every nested call, so all time checks in an operation agree.
    ``task`` is the asyncio task that opened it; only that task may join.
    """

    def __init__(self, name: str, now: datetime) -> None:
        self.name = name
        self.now = now
        self.task = _running_task()
        self._undo: list[Callable[[], None]] = []
        self._events: list[BaseEvent] = []

    # ------------------------------------------------------------------
    # Journaled writes
    # ------------------------------------------------------------------

    def set(self, obj: Any, attr: str, value: Any) -> None:
        """Assign ``obj.attr = value``, remembering the previous value."""
        previous = getattr(obj, attr)
        self._undo.append(lambda: setattr(obj, attr, previous))
        setattr(obj, attr, value)

    def add(self, obj: Any, attr: str, delta: int) -> int:
        """Increment an integer attribute. Returns the new value."""
        new_value = getattr(obj, attr) + delta
        self.set(obj, attr, new_value)
        return new_value

    def insert(self, mapping: dict[Any, Any], key: Any, value: Any) -> None:
        """Insert a new key that did not exist before."""
        if key in mapping:
            raise KeyError(f"{key!r} already present")
        self._undo.append(lambda: mapping.pop(key, None))
        mapping[key] = value

    def on_rollback(self, undo: Callable[[], None]) -> None:
        """Register an arbitrary undo action."""
        self._undo.append(undo)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def emit(self, event: BaseEvent) -> None:
        """Queue *event* for publication after commit."""
        self._events.append(event)

    @property
    def pending_events(self) -> list[BaseEvent]:
        return list(self._events)

    # ------------------------------------------------------------------
    # Savepoints
    # ------------------------------------------------------------------

    def mark(self) -> tuple[int, int]:
        return len(self._undo), len(self._events)

    def undo_to(self, mark: tuple[int, int]) -> None:
        """Replay the journal in reverse down to *mark*."""
        undo_len, events_len = mark
        while len(self._undo) > undo_len:
            self._undo.pop()()
        del self._events[events_len:]


class SaleTransactionManager:
    """Serializes sale operations and makes each one all-or-nothing.

    Args:
        clock: Source of "now" for each operation.
        participants: Collaborators whose state is rolled back along
            with the sale's.  Objects not implementing
            :class:`ITransactional` are skipped.
        event_bus: Optional bus receiving committed notifications.
    """

    def __init__(
        self,
        clock: IClock,
        participants: Sequence[object] = (),
        event_bus: IEventBus | None = None,
    ) -> None:
        self._clock = clock
        self._participants: list[ITransactional] = [
            p for p in participants if isinstance(p, ITransactional)
        ]
        self._event_bus = event_bus
        self._lock = asyncio.Lock()
        self._committed = 0
        self._discarded = 0

    @property
    def stats(self) -> dict[str, int]:
        return {"committed": self._committed, "discarded": self._discarded}

    def current(self) -> SaleTransaction | None:
        """Return the transaction running in this task, if any.

        Tasks spawned mid-operation inherit the context but not the
        transaction; they queue on the lock like any other caller.
        """
        tx = _active.get().get(id(self))
        if tx is None or tx.task is not _running_task():
            return None
        return tx

    @asynccontextmanager
    async def transaction(self, name: str) -> AsyncIterator[SaleTransaction]:
        """Run an operation on the single-writer boundary.

        The block's writes are committed on normal exit and discarded on
        any exception, which is re-raised unchanged.
        """
        outer = self.current()
        if outer is not None:
            async with self._nested(outer, name) as tx:
                yield tx
            return

        async with self._lock:
            tx = SaleTransaction(name, self._clock.now())
            tokens = [p.savepoint() for p in self._participants]
            reset = _active.set({**_active.get(), id(self): tx})
            try:
                yield tx
            except BaseException as exc:
                # Cancellation discards too.
                tx.undo_to((0, 0))
                self._rollback_participants(tokens)
                self._discarded += 1
                logger.warning(
                    "Sale operation discarded: op=%s error=%s: %s",
                    name,
                    type(exc).__name__,
                    exc,
                )
                raise
            finally:
                _active.reset(reset)
            self._committed += 1
            events = tx.pending_events
            logger.debug("Sale operation committed: op=%s events=%d", name, len(events))

        # Published outside the lock so subscribers may call back in.
        await self._publish(events)

    @asynccontextmanager
    async def _nested(
        self, outer: SaleTransaction, name: str
    ) -> AsyncIterator[SaleTransaction]:
        mark = outer.mark()
        tokens = [p.savepoint() for p in self._participants]
        try:
            yield outer
        except BaseException:
            outer.undo_to(mark)
            self._rollback_participants(tokens)
            logger.debug("Nested sale operation discarded: op=%s", name)
            raise

    def _rollback_participants(self, tokens: list[Any]) -> None:
        for participant, token in reversed(list(zip(self._participants, tokens))):
            participant.rollback(token)

    async def _publish(self, events: list[BaseEvent]) -> None:
        if self._event_bus is None:
            return
        for event in events:
            await self._event_bus.publish(SALE_TOPIC, event)
