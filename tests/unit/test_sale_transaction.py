"""Test the single-writer transactional boundary."""

import asyncio
from dataclasses import dataclass

import pytest

from capped_sale.core.events import ExcessRefunded
from capped_sale.ledger.memory import InMemoryPaymentChannel
from capped_sale.sale.transaction import SaleTransaction, SaleTransactionManager


@dataclass
class _Box:
    value: int = 0


class TestSaleTransactionJournal:
    def test_set_and_undo(self, sim_clock):
        box = _Box()
        tx = SaleTransaction("t", sim_clock.now())
        tx.set(box, "value", 5)
        assert box.value == 5
        tx.undo_to((0, 0))
        assert box.value == 0

    def test_add_returns_new_value(self, sim_clock):
        box = _Box(value=3)
        tx = SaleTransaction("t", sim_clock.now())
        assert tx.add(box, "value", 4) == 7
        tx.undo_to((0, 0))
        assert box.value == 3

    def test_insert_and_undo(self, sim_clock):
        mapping: dict[str, int] = {}
        tx = SaleTransaction("t", sim_clock.now())
        tx.insert(mapping, "a", 1)
        assert mapping == {"a": 1}
        tx.undo_to((0, 0))
        assert mapping == {}

    def test_insert_existing_key_raises(self, sim_clock):
        tx = SaleTransaction("t", sim_clock.now())
        with pytest.raises(KeyError):
            tx.insert({"a": 1}, "a", 2)

    def test_undo_runs_in_reverse(self, sim_clock):
        box = _Box()
        tx = SaleTransaction("t", sim_clock.now())
        tx.set(box, "value", 1)
        tx.set(box, "value", 2)
        tx.set(box, "value", 3)
        tx.undo_to((0, 0))
        assert box.value == 0

    def test_undo_to_mark_keeps_earlier_writes(self, sim_clock):
        box = _Box()
        tx = SaleTransaction("t", sim_clock.now())
        tx.set(box, "value", 1)
        tx.emit(ExcessRefunded(participant="0x1", amount=1))
        mark = tx.mark()
        tx.set(box, "value", 2)
        tx.emit(ExcessRefunded(participant="0x1", amount=2))
        tx.undo_to(mark)
        assert box.value == 1
        assert [e.amount for e in tx.pending_events] == [1]

    def test_on_rollback_callback(self, sim_clock):
        calls = []
        tx = SaleTransaction("t", sim_clock.now())
        tx.on_rollback(lambda: calls.append("undone"))
        tx.undo_to((0, 0))
        assert calls == ["undone"]


class TestSaleTransactionManager:
    async def test_commit_keeps_writes_and_publishes(self, sim_clock, memory_bus):
        box = _Box()
        manager = SaleTransactionManager(sim_clock, event_bus=memory_bus)
        async with manager.transaction("op") as tx:
            tx.set(box, "value", 9)
            tx.emit(ExcessRefunded(participant="0x1", amount=9))
            # Nothing is published while the operation runs.
            assert memory_bus.get_history() == []
        assert box.value == 9
        assert len(memory_bus.get_history("sale")) == 1
        assert manager.stats == {"committed": 1, "discarded": 0}

    async def test_failure_discards_writes_and_events(self, sim_clock, memory_bus):
        box = _Box()
        manager = SaleTransactionManager(sim_clock, event_bus=memory_bus)
        with pytest.raises(RuntimeError, match="boom"):
            async with manager.transaction("op") as tx:
                tx.set(box, "value", 9)
                tx.emit(ExcessRefunded(participant="0x1", amount=9))
                raise RuntimeError("boom")
        assert box.value == 0
        assert memory_bus.get_history() == []
        assert manager.stats == {"committed": 0, "discarded": 1}

    async def test_failure_rolls_back_participants(self, sim_clock):
        channel = InMemoryPaymentChannel({"0xa": 10})
        manager = SaleTransactionManager(sim_clock, participants=[channel, object()])
        with pytest.raises(RuntimeError):
            async with manager.transaction("op"):
                assert await channel.receive("0xa", 4)
                raise RuntimeError("boom")
        assert channel.balance_of("0xa") == 10
        assert channel.escrow == 0

    async def test_now_is_read_once(self, sim_clock):
        manager = SaleTransactionManager(sim_clock)
        async with manager.transaction("op") as tx:
            start = tx.now
            sim_clock.advance(60)
            assert tx.now == start

    async def test_current_outside_operation_is_none(self, sim_clock):
        manager = SaleTransactionManager(sim_clock)
        assert manager.current() is None
        async with manager.transaction("op") as tx:
            assert manager.current() is tx
        assert manager.current() is None

    async def test_nested_joins_outer(self, sim_clock):
        manager = SaleTransactionManager(sim_clock)
        async with manager.transaction("outer") as outer:
            async with manager.transaction("inner") as inner:
                assert inner is outer
        assert manager.stats["committed"] == 1

    async def test_nested_failure_rolls_back_to_savepoint(self, sim_clock):
        box = _Box()
        other = _Box()
        manager = SaleTransactionManager(sim_clock)
        async with manager.transaction("outer") as tx:
            tx.set(box, "value", 1)
            with pytest.raises(ValueError):
                async with manager.transaction("inner") as inner:
                    inner.set(other, "value", 2)
                    raise ValueError("inner")
            assert other.value == 0
        assert box.value == 1

    async def test_operations_are_serialized(self, sim_clock):
        manager = SaleTransactionManager(sim_clock)
        order = []

        async def op(name: str) -> None:
            async with manager.transaction(name):
                order.append(f"{name}:start")
                await asyncio.sleep(0)
                order.append(f"{name}:end")

        await asyncio.gather(op("a"), op("b"))
        assert order == ["a:start", "a:end", "b:start", "b:end"]

    async def test_spawned_task_does_not_join(self, sim_clock):
        manager = SaleTransactionManager(sim_clock)

        async def peek():
            return manager.current()

        async with manager.transaction("outer") as tx:
            assert manager.current() is tx
            assert await asyncio.create_task(peek()) is None

    async def test_separate_managers_do_not_nest(self, sim_clock):
        first = SaleTransactionManager(sim_clock)
        second = SaleTransactionManager(sim_clock)
        async with first.transaction("a"):
            assert second.current() is None
            async with second.transaction("b") as tx:
                assert second.current() is tx
