"""Public sale facade.

:class:`CappedSale` wires the registry, cap manager, window gate and
purchase engine around one shared :class:`SaleState` and exposes the
sale's public operations.  Every operation runs on the sale's
single-writer transactional boundary, so it either commits completely
or leaves no trace.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from capped_sale.core.clock import IClock, WallClock
from capped_sale.core.config import SaleConfig
from capped_sale.core.enums import Role, SalePhase
from capped_sale.core.errors import ConstructionError, InvalidArgumentError, PhaseError
from capped_sale.core.events import BeneficiaryChanged
from capped_sale.core.ids import is_null_address, new_address
from capped_sale.core.interfaces import IAssetLedger, IEventBus, IPaymentChannel
from capped_sale.core.models import InvestorInfo, PurchaseReceipt, SaleInfo

from .access import require_role
from .caps import CapManager
from .engine import PurchaseEngine
from .registry import InvestorRegistry
from .state import SaleState
from .transaction import SaleTransactionManager
from .window import WindowGate

logger = logging.getLogger(__name__)


class CappedSale:
    """A time-bounded sale with a global cap and a first-day participant cap.

    Usage::

        sale = CappedSale(
            start_time, end_time, global_cap, exchange_rate,
            registrar, beneficiary, ledger,
            owner=owner, payments=payments, clock=clock,
        )
        await sale.whitelist_many(registrar, [alice, bob])
        receipt = await sale.deposit(alice, 10**18)

    Args:
        start_time: When purchases open. Must be in the future.
        end_time: Last instant purchases are accepted. After start_time.
        global_cap: Maximum total contribution. Positive.
        exchange_rate: Payment units per credited unit. Positive.
        registrar: Address allowed to whitelist besides the owner.
        beneficiary: Address receiving the net contributions.
        ledger: Asset ledger crediting purchased units.
        owner: Sale owner; also the ledger account units are drawn from.
        payments: Payment channel moving submitted value.
        clock: Time source (defaults to :class:`WallClock`).
        config: Sale constants (defaults to :class:`SaleConfig`).
        event_bus: Optional bus receiving committed notifications.
        address: The sale's own identity (minted when omitted).
    """

    def __init__(
        self,
        start_time: datetime,
        end_time: datetime,
        global_cap: int,
        exchange_rate: int,
        registrar: str,
        beneficiary: str,
        ledger: IAssetLedger | None,
        *,
        owner: str,
        payments: IPaymentChannel | None,
        clock: IClock | None = None,
        config: SaleConfig | None = None,
        event_bus: IEventBus | None = None,
        address: str | None = None,
    ) -> None:
        self._clock = clock or WallClock()
        self._config = config or SaleConfig()
        self.address = address or new_address()

        _validate_construction(
            now=self._clock.now(),
            start_time=start_time,
            end_time=end_time,
            global_cap=global_cap,
            exchange_rate=exchange_rate,
            owner=owner,
            registrar=registrar,
            beneficiary=beneficiary,
            ledger=ledger,
            payments=payments,
            address=self.address,
        )

        self._state = SaleState(
            start_time=start_time,
            end_time=end_time,
            global_cap=global_cap,
            exchange_rate=exchange_rate,
            owner=owner,
            registrar=registrar,
            beneficiary=beneficiary,
        )
        self.window = WindowGate(self._state, self._config.restricted_window_seconds)
        self.registry = InvestorRegistry(self._state, self._config.max_whitelist_batch)
        self.caps = CapManager(self._state, self.window)
        self.engine = PurchaseEngine(
            self._state,
            self.registry,
            self.caps,
            self.window,
            ledger,
            payments,
            self._config,
            self.address,
        )
        self.transactions = SaleTransactionManager(
            self._clock,
            participants=[ledger, payments],
            event_bus=event_bus,
        )
        logger.info(
            "Sale %s created: start=%s end=%s global_cap=%d rate=%d",
            self.address,
            start_time.isoformat(),
            end_time.isoformat(),
            global_cap,
            exchange_rate,
        )

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------

    async def deposit(
        self, sender: str, value: int, fee_price: int = 0
    ) -> PurchaseReceipt:
        """Default payment entry point; same as :meth:`purchase`."""
        return await self.purchase(sender, value, fee_price=fee_price)

    async def purchase(
        self, sender: str, value: int, fee_price: int = 0
    ) -> PurchaseReceipt:
        """Buy credited units with *value*, refunding anything over the caps."""
        async with self.transactions.transaction("purchase") as tx:
            return await self.engine.purchase(sender, value, tx, fee_price=fee_price)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def change_beneficiary(self, caller: str, new_beneficiary: str) -> None:
        """Replace the beneficiary (owner only, before start)."""
        async with self.transactions.transaction("change_beneficiary") as tx:
            require_role(self._state, caller, Role.OWNER, action="change_beneficiary")
            if self.window.has_started(tx.now):
                raise PhaseError("Beneficiary can only change before the sale starts")
            if is_null_address(new_beneficiary):
                raise InvalidArgumentError("Beneficiary cannot be the null address")
            old = self._state.beneficiary
            if new_beneficiary == old:
                raise InvalidArgumentError("New beneficiary equals the current one")
            tx.set(self._state, "beneficiary", new_beneficiary)
            tx.emit(BeneficiaryChanged(old_beneficiary=old, new_beneficiary=new_beneficiary))
            logger.info("Beneficiary changed: %s -> %s", old, new_beneficiary)

    async def whitelist(self, caller: str, address: str) -> bool:
        """Whitelist one address. Returns ``True`` if it was newly added."""
        async with self.transactions.transaction("whitelist") as tx:
            self._check_whitelist_allowed(caller, tx.now)
            return self.registry.whitelist(address, tx)

    async def whitelist_many(self, caller: str, addresses: Sequence[str]) -> list[str]:
        """Whitelist 1..max_whitelist_batch addresses in one operation."""
        async with self.transactions.transaction("whitelist_many") as tx:
            self._check_whitelist_allowed(caller, tx.now)
            added = self.registry.whitelist_many(list(addresses), tx)
            logger.info(
                "Whitelist batch: %d submitted, %d added", len(addresses), len(added)
            )
            return added

    def _check_whitelist_allowed(self, caller: str, now: datetime) -> None:
        require_role(self._state, caller, Role.REGISTRAR, Role.OWNER, action="whitelist")
        if self.window.has_ended(now):
            raise PhaseError("Sale has ended")
        if self.window.restricted_window_active(now):
            raise PhaseError(
                "Whitelisting is closed until "
                f"{self.window.restricted_window_end.isoformat()}"
            )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self._state.owner

    @property
    def registrar(self) -> str:
        return self._state.registrar

    @property
    def beneficiary(self) -> str:
        return self._state.beneficiary

    @property
    def raised_total(self) -> int:
        return self._state.raised_total

    @property
    def participant_cap(self) -> int:
        return self._state.participant_cap

    @property
    def participant_count(self) -> int:
        return self._state.participant_count

    def phase(self) -> SalePhase:
        return self.window.phase(self._clock.now())

    def restricted_window_active(self) -> bool:
        return self.window.restricted_window_active(self._clock.now())

    def investor(self, address: str) -> InvestorInfo:
        return self.registry.info(address)

    def is_whitelisted(self, address: str) -> bool:
        return self.registry.is_whitelisted(address)

    def is_purchasing(self, address: str) -> bool:
        record = self.registry.get(address)
        return record is not None and record.purchasing

    def remaining_global_capacity(self) -> int:
        return self.caps.remaining_global_capacity()

    def remaining_participant_allowance(self, address: str) -> int:
        return self.caps.remaining_participant_allowance(
            self.registry.info(address).contributed, self._clock.now()
        )

    def investors(self) -> list[InvestorInfo]:
        return [self.registry.info(a) for a in self._state.records]

    def sale_info(self) -> SaleInfo:
        """Get general sale information."""
        s = self._state
        return SaleInfo(
            address=self.address,
            owner=s.owner,
            registrar=s.registrar,
            beneficiary=s.beneficiary,
            start_time=s.start_time,
            end_time=s.end_time,
            global_cap=s.global_cap,
            exchange_rate=s.exchange_rate,
            raised_total=s.raised_total,
            participant_cap=s.participant_cap,
            participant_count=s.participant_count,
            phase=self.phase(),
        )


def _validate_construction(
    *,
    now: datetime,
    start_time: datetime,
    end_time: datetime,
    global_cap: int,
    exchange_rate: int,
    owner: str,
    registrar: str,
    beneficiary: str,
    ledger: object | None,
    payments: object | None,
    address: str,
) -> None:
    if start_time.tzinfo is None or end_time.tzinfo is None:
        raise ConstructionError("Start and end times must be timezone-aware")
    if start_time <= now:
        raise ConstructionError(
            f"Start time {start_time.isoformat()} is not in the future"
        )
    if end_time <= start_time:
        raise ConstructionError("End time must be after start time")
    if global_cap <= 0:
        raise ConstructionError("Global cap must be positive")
    if exchange_rate <= 0:
        raise ConstructionError("Exchange rate must be positive")
    for role, value in (
        ("owner", owner),
        ("registrar", registrar),
        ("beneficiary", beneficiary),
        ("sale address", address),
    ):
        if is_null_address(value):
            raise ConstructionError(f"{role.capitalize()} cannot be the null address")
    if ledger is None:
        raise ConstructionError("Asset ledger is required")
    if payments is None:
        raise ConstructionError("Payment channel is required")
