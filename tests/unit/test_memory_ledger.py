"""Test the in-memory asset ledger and payment channel."""

import pytest

from capped_sale.core.interfaces import IAssetLedger, IPaymentChannel, ITransactional
from capped_sale.ledger.memory import InMemoryAssetLedger, InMemoryPaymentChannel

OWNER = "0xowner"
SALE = "0xsale"
ALICE = "0xalice"


@pytest.fixture
def asset_ledger() -> InMemoryAssetLedger:
    ledger = InMemoryAssetLedger({OWNER: 100}, sale_address=SALE)
    ledger.approve(OWNER, SALE, 60)
    return ledger


@pytest.fixture
def channel() -> InMemoryPaymentChannel:
    return InMemoryPaymentChannel({ALICE: 50})


class TestInMemoryAssetLedger:
    def test_satisfies_protocols(self, asset_ledger):
        assert isinstance(asset_ledger, IAssetLedger)
        assert isinstance(asset_ledger, ITransactional)

    async def test_transfer_from_consumes_allowance(self, asset_ledger):
        assert await asset_ledger.transfer_from(OWNER, ALICE, 40, spender=SALE)
        assert await asset_ledger.balance_of(OWNER) == 60
        assert await asset_ledger.balance_of(ALICE) == 40
        assert await asset_ledger.allowance(OWNER, SALE) == 20
        assert asset_ledger.total_supply == 100

    async def test_transfer_over_allowance_fails(self, asset_ledger):
        assert not await asset_ledger.transfer_from(OWNER, ALICE, 61, spender=SALE)
        assert await asset_ledger.balance_of(ALICE) == 0

    async def test_transfer_over_balance_fails(self, asset_ledger):
        asset_ledger.approve(OWNER, SALE, 500)
        assert not await asset_ledger.transfer_from(OWNER, ALICE, 101, spender=SALE)

    async def test_other_spender_has_no_allowance(self, asset_ledger):
        assert not await asset_ledger.transfer_from(OWNER, ALICE, 1, spender=ALICE)

    async def test_refusing(self, asset_ledger):
        asset_ledger.refuse_transfers()
        assert not await asset_ledger.transfer_from(OWNER, ALICE, 1, spender=SALE)
        asset_ledger.refuse_transfers(False)
        assert await asset_ledger.transfer_from(OWNER, ALICE, 1, spender=SALE)

    async def test_registered_sale(self, asset_ledger):
        assert await asset_ledger.registered_sale_address() == SALE
        asset_ledger.register_sale("0xother")
        assert await asset_ledger.registered_sale_address() == "0xother"

    async def test_hook_runs_after_transfer(self, asset_ledger):
        seen = []

        async def hook(to: str, amount: int) -> None:
            seen.append((to, amount, await asset_ledger.balance_of(to)))

        asset_ledger.add_transfer_hook(hook)
        await asset_ledger.transfer_from(OWNER, ALICE, 5, spender=SALE)
        assert seen == [(ALICE, 5, 5)]

    async def test_savepoint_rollback(self, asset_ledger):
        token = asset_ledger.savepoint()
        await asset_ledger.transfer_from(OWNER, ALICE, 10, spender=SALE)
        asset_ledger.mint(ALICE, 3)
        asset_ledger.rollback(token)
        assert await asset_ledger.balance_of(ALICE) == 0
        assert await asset_ledger.allowance(OWNER, SALE) == 60


class TestInMemoryPaymentChannel:
    def test_satisfies_protocols(self, channel):
        assert isinstance(channel, IPaymentChannel)
        assert isinstance(channel, ITransactional)

    async def test_receive_moves_to_escrow(self, channel):
        assert await channel.receive(ALICE, 20)
        assert channel.balance_of(ALICE) == 30
        assert channel.escrow == 20

    async def test_receive_insufficient(self, channel):
        assert not await channel.receive(ALICE, 51)
        assert channel.escrow == 0

    async def test_send_from_escrow(self, channel):
        await channel.receive(ALICE, 20)
        assert await channel.send(OWNER, 15)
        assert channel.balance_of(OWNER) == 15
        assert channel.escrow == 5

    async def test_send_more_than_escrow_fails(self, channel):
        await channel.receive(ALICE, 5)
        assert not await channel.send(OWNER, 6)

    async def test_rejecting_recipient(self, channel):
        await channel.receive(ALICE, 5)
        channel.reject_payments_to(OWNER)
        assert not await channel.send(OWNER, 5)
        channel.accept_payments_to(OWNER)
        assert await channel.send(OWNER, 5)

    async def test_payment_hook(self, channel):
        seen = []

        async def hook(to: str, amount: int) -> None:
            seen.append((to, amount))

        channel.add_payment_hook(hook)
        await channel.receive(ALICE, 5)
        await channel.send(OWNER, 5)
        assert seen == [(OWNER, 5)]

    async def test_savepoint_rollback(self, channel):
        token = channel.savepoint()
        await channel.receive(ALICE, 20)
        await channel.send(OWNER, 20)
        channel.rollback(token)
        assert channel.balance_of(ALICE) == 50
        assert channel.balance_of(OWNER) == 0
        assert channel.escrow == 0
