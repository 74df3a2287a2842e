"""In-memory collaborators for tests and simulation.

:class:`InMemoryAssetLedger` holds credited-unit balances and allowances;
:class:`InMemoryPaymentChannel` holds payment-currency balances plus the
sale's escrow.  Both implement ``savepoint()``/``rollback()`` so the sale's
transaction boundary can discard their writes together with its own.

Recipient hooks let tests simulate a recipient that calls back into the
sale while a transfer is in flight.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from capped_sale.core.ids import NULL_ADDRESS

logger = logging.getLogger(__name__)

TransferHook = Callable[[str, int], Awaitable[None]]


class InMemoryAssetLedger:
    """Simulated asset ledger with allowance mechanics.

    Parameters
    ----------
    initial_balances:
        Starting balances, e.g. ``{owner: 10**24}``.
    sale_address:
        Address of the sale registered with this ledger.
    """

    def __init__(
        self,
        initial_balances: dict[str, int] | None = None,
        sale_address: str = NULL_ADDRESS,
    ) -> None:
        self._balances: dict[str, int] = dict(initial_balances or {})
        # (owner, spender) -> remaining allowance
        self._allowances: dict[tuple[str, str], int] = {}
        self._sale_address = sale_address
        self._refusing = False
        self._hooks: list[TransferHook] = []

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def mint(self, to: str, amount: int) -> None:
        self._balances[to] = self._balances.get(to, 0) + amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        self._allowances[(owner, spender)] = amount

    def register_sale(self, sale_address: str) -> None:
        self._sale_address = sale_address

    def refuse_transfers(self, refusing: bool = True) -> None:
        """Make ``transfer_from`` report failure (returns ``False``)."""
        self._refusing = refusing

    def add_transfer_hook(self, hook: TransferHook) -> None:
        """Await *hook(to, amount)* after each successful transfer."""
        self._hooks.append(hook)

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    # ------------------------------------------------------------------
    # Ledger surface consumed by the sale
    # ------------------------------------------------------------------

    async def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    async def balance_of(self, owner: str) -> int:
        return self._balances.get(owner, 0)

    async def registered_sale_address(self) -> str:
        return self._sale_address

    async def transfer_from(
        self, owner: str, to: str, amount: int, *, spender: str
    ) -> bool:
        if self._refusing:
            logger.warning("Ledger refusing transfer of %d to %s", amount, to)
            return False
        allowed = self._allowances.get((owner, spender), 0)
        balance = self._balances.get(owner, 0)
        if amount < 0 or allowed < amount or balance < amount:
            return False
        self._allowances[(owner, spender)] = allowed - amount
        self._balances[owner] = balance - amount
        self._balances[to] = self._balances.get(to, 0) + amount
        for hook in self._hooks:
            await hook(to, amount)
        return True

    # ------------------------------------------------------------------
    # Transaction participation
    # ------------------------------------------------------------------

    def savepoint(self) -> Any:
        return dict(self._balances), dict(self._allowances)

    def rollback(self, token: Any) -> None:
        balances, allowances = token
        self._balances = dict(balances)
        self._allowances = dict(allowances)


class InMemoryPaymentChannel:
    """Simulated payment currency with a sale escrow account.

    Parameters
    ----------
    initial_balances:
        Starting balances per address.
    """

    def __init__(self, initial_balances: dict[str, int] | None = None) -> None:
        self._balances: dict[str, int] = dict(initial_balances or {})
        self._escrow = 0
        self._rejecting: set[str] = set()
        self._hooks: list[TransferHook] = []

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def fund(self, address: str, amount: int) -> None:
        self._balances[address] = self._balances.get(address, 0) + amount

    def reject_payments_to(self, address: str) -> None:
        """Make every ``send`` to *address* fail."""
        self._rejecting.add(address)

    def accept_payments_to(self, address: str) -> None:
        self._rejecting.discard(address)

    def add_payment_hook(self, hook: TransferHook) -> None:
        """Await *hook(to, amount)* after each successful payout."""
        self._hooks.append(hook)

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    @property
    def escrow(self) -> int:
        return self._escrow

    # ------------------------------------------------------------------
    # Payment surface consumed by the sale
    # ------------------------------------------------------------------

    async def receive(self, sender: str, amount: int) -> bool:
        balance = self._balances.get(sender, 0)
        if amount < 0 or balance < amount:
            logger.warning(
                "Insufficient funds: %s has %d, needs %d", sender, balance, amount
            )
            return False
        self._balances[sender] = balance - amount
        self._escrow += amount
        return True

    async def send(self, to: str, amount: int) -> bool:
        if to in self._rejecting:
            logger.warning("Recipient %s rejected payment of %d", to, amount)
            return False
        if amount < 0 or self._escrow < amount:
            return False
        self._escrow -= amount
        self._balances[to] = self._balances.get(to, 0) + amount
        for hook in self._hooks:
            await hook(to, amount)
        return True

    # ------------------------------------------------------------------
    # Transaction participation
    # ------------------------------------------------------------------

    def savepoint(self) -> Any:
        return dict(self._balances), self._escrow

    def rollback(self, token: Any) -> None:
        balances, escrow = token
        self._balances = dict(balances)
        self._escrow = escrow
