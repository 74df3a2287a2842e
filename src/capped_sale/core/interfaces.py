"""Protocol interfaces for the sale's collaborators.

All module boundaries are defined here as Protocol classes.
Implementations can be swapped (in-memory / on-chain bridge) without
changing callers.
"""

from __future__ import annotations

from typing import Any, Callable, Coroutine, Protocol, runtime_checkable

from .events import BaseEvent


# ---------------------------------------------------------------------------
# Event Bus
# ---------------------------------------------------------------------------

@runtime_checkable
class IEventBus(Protocol):
    """Publish/subscribe event bus."""

    async def publish(self, topic: str, event: BaseEvent) -> None: ...

    async def subscribe(
        self,
        topic: str,
        group: str,
        handler: Callable[[BaseEvent], Coroutine[Any, Any, None]],
    ) -> None: ...


# ---------------------------------------------------------------------------
# Asset Ledger
# ---------------------------------------------------------------------------

@runtime_checkable
class IAssetLedger(Protocol):
    """Ledger holding the credited asset.

    The sale only consumes allowance/transfer primitives; balance storage
    and allowance mechanics belong to the ledger.
    """

    async def allowance(self, owner: str, spender: str) -> int: ...

    async def balance_of(self, owner: str) -> int: ...

    async def registered_sale_address(self) -> str: ...

    async def transfer_from(
        self, owner: str, to: str, amount: int, *, spender: str
    ) -> bool:
        """Move *amount* from *owner* to *to* using *spender*'s allowance.

        Returns ``False`` instead of raising when the transfer is refused.
        """
        ...


# ---------------------------------------------------------------------------
# Payment channel
# ---------------------------------------------------------------------------

@runtime_checkable
class IPaymentChannel(Protocol):
    """Moves submitted value in and out of the sale's escrow."""

    async def receive(self, sender: str, amount: int) -> bool:
        """Pull *amount* from *sender* into escrow."""
        ...

    async def send(self, to: str, amount: int) -> bool:
        """Pay *amount* out of escrow to *to*."""
        ...


# ---------------------------------------------------------------------------
# Transaction participation
# ---------------------------------------------------------------------------

@runtime_checkable
class ITransactional(Protocol):
    """Collaborator whose writes can be discarded with the sale's.

    ``savepoint()`` returns an opaque token; ``rollback(token)`` restores
    the collaborator to the state it had when the token was taken.
    """

    def savepoint(self) -> Any: ...

    def rollback(self, token: Any) -> None: ...
