"""Purchase engine: the validate / cap / refund / credit / forward pipeline.

One purchase moves its participant's record through
``Idle -> Purchasing -> Idle``.  The ``purchasing`` flag is a journaled
write, so every exit path (commit or discard) leaves it false.

Pipeline for a submission of ``value`` from ``sender``:

1. Freeze the participant cap if this is the first access after start.
2. Validate every precondition; the first failure aborts.
3. Lock the record and pull ``value`` into escrow.
4. Compute and refund the excess; the remainder is the net amount.
5. Convert the net amount to credited units.
6. Update totals and the record.
7. Move the credited units on the asset ledger.
8. Forward the net amount to the beneficiary.
9. Unlock the record.

The engine never commits anything itself: it runs inside the caller's
:class:`~capped_sale.sale.transaction.SaleTransaction`, which discards
every write (including collaborator state) if any step raises.
"""

from __future__ import annotations

import logging

from capped_sale.core.config import SaleConfig
from capped_sale.core.errors import (
    BelowMinimumContribution,
    CapReached,
    DelegateFailure,
    FeePriceTooHigh,
    IneligibleParticipant,
    NotWhitelisted,
    ParticipantCapUnavailable,
    PhaseError,
    ReentryError,
    ZeroNetAmount,
)
from capped_sale.core.events import ExcessRefunded, PurchaseCompleted
from capped_sale.core.ids import is_null_address
from capped_sale.core.interfaces import IAssetLedger, IPaymentChannel
from capped_sale.core.models import PurchaseReceipt

from .caps import CapManager
from .registry import InvestorRegistry
from .state import InvestorRecord, SaleState
from .transaction import SaleTransaction
from .window import WindowGate

logger = logging.getLogger(__name__)


class PurchaseEngine:
    """Executes purchases against the shared sale state.

    Args:
        state: Shared sale state.
        registry: Investor registry owning the records.
        caps: Cap manager (participant cap + cap arithmetic).
        window: Window gate.
        ledger: Asset ledger crediting purchased units.
        payments: Payment channel for escrow, refunds and forwarding.
        config: Sale constants.
        sale_address: Identity the ledger must recognise as the sale.
    """

    def __init__(
        self,
        state: SaleState,
        registry: InvestorRegistry,
        caps: CapManager,
        window: WindowGate,
        ledger: IAssetLedger,
        payments: IPaymentChannel,
        config: SaleConfig,
        sale_address: str,
    ) -> None:
        self._state = state
        self._registry = registry
        self._caps = caps
        self._window = window
        self._ledger = ledger
        self._payments = payments
        self._config = config
        self._sale_address = sale_address

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def purchase(
        self,
        sender: str,
        value: int,
        tx: SaleTransaction,
        *,
        fee_price: int = 0,
    ) -> PurchaseReceipt:
        """Run one purchase inside *tx*.

        Raises:
            PhaseError: Outside ``[start_time, end_time]``.
            ReentryError: The sender's record is already mid-purchase.
            CapOrEligibilityError: An eligibility rule or cap rejects it.
            DelegateFailure: Escrow, refund, ledger or forwarding failed.
        """
        now = tx.now

        # 1. Participant cap
        self._caps.ensure_participant_cap(now, tx)

        # 2. Preconditions
        record = self._validate(sender, value, fee_price, tx)

        # 3. Lock and escrow
        tx.set(record, "purchasing", True)
        if not await self._payments.receive(sender, value):
            raise DelegateFailure("payments", f"could not collect {value} from {sender}")

        # 4. Refund
        excess = self._caps.compute_excess(record.contributed, value, now)
        net_amount = value - excess
        if net_amount <= 0:
            raise ZeroNetAmount(
                f"Nothing left to credit for {sender}: value={value} excess={excess}"
            )
        if excess > 0:
            if not await self._payments.send(sender, excess):
                raise DelegateFailure("payments", f"refund of {excess} to {sender} refused")
            tx.emit(ExcessRefunded(participant=sender, amount=excess))
            logger.info("Refunded excess %d to %s", excess, sender)

        # 5. Conversion
        credited = self.credited_units(net_amount)

        # 6. State
        tx.add(self._state, "raised_total", net_amount)
        tx.add(record, "contributed", net_amount)
        tx.add(record, "credited", credited)

        # 7. Asset ledger
        await self._credit_on_ledger(sender, credited)

        # 8. Beneficiary
        beneficiary = self._state.beneficiary
        if not await self._payments.send(beneficiary, net_amount):
            raise DelegateFailure(
                "payments", f"forwarding {net_amount} to beneficiary {beneficiary} refused"
            )

        # 9. Unlock
        tx.set(record, "purchasing", False)

        tx.emit(
            PurchaseCompleted(
                participant=sender,
                net_amount=net_amount,
                credited_amount=credited,
            )
        )
        logger.info(
            "Purchase completed: participant=%s value=%d net=%d credited=%d raised=%d",
            sender,
            value,
            net_amount,
            credited,
            self._state.raised_total,
        )
        return PurchaseReceipt(
            participant=sender,
            submitted=value,
            refunded=excess,
            net_amount=net_amount,
            credited_amount=credited,
            contributed_total=record.contributed,
            raised_total=self._state.raised_total,
        )

    def credited_units(self, net_amount: int) -> int:
        """Credited units for *net_amount*, truncated toward zero."""
        return net_amount * self._config.credit_scale // self._state.exchange_rate

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _validate(
        self,
        sender: str,
        value: int,
        fee_price: int,
        tx: SaleTransaction,
    ) -> InvestorRecord:
        """Check every precondition; return the sender's record."""
        now = tx.now
        if is_null_address(sender):
            raise IneligibleParticipant("Null address cannot purchase")
        if fee_price > self._config.max_fee_price:
            raise FeePriceTooHigh(
                f"Fee price {fee_price} above ceiling {self._config.max_fee_price}"
            )

        record = self._registry.register(sender, tx)
        if record.purchasing:
            raise ReentryError(f"Purchase already in flight for {sender}")
        if not self._window.is_open(now):
            raise PhaseError(
                f"Sale accepts purchases from {self._state.start_time.isoformat()} "
                f"to {self._state.end_time.isoformat()}"
            )
        if not self._caps.is_frozen:
            raise ParticipantCapUnavailable("Participant cap is not set")
        if value < self._config.min_contribution:
            raise BelowMinimumContribution(
                f"Value {value} below minimum {self._config.min_contribution}"
            )
        if not record.whitelisted:
            raise NotWhitelisted(f"{sender} is not whitelisted")
        if not self._caps.within_caps(record.contributed, 0, now):
            raise CapReached(
                f"No capacity left for {sender}: contributed={record.contributed} "
                f"raised={self._state.raised_total}"
            )
        return record

    async def _credit_on_ledger(self, participant: str, credited: int) -> None:
        owner = self._state.owner
        registered = await self._ledger.registered_sale_address()
        if registered != self._sale_address:
            raise DelegateFailure(
                "ledger", f"ledger is bound to sale {registered}, not {self._sale_address}"
            )
        allowance = await self._ledger.allowance(owner, self._sale_address)
        if allowance < credited:
            raise DelegateFailure(
                "ledger", f"allowance {allowance} below credited amount {credited}"
            )
        balance = await self._ledger.balance_of(owner)
        if balance < credited:
            raise DelegateFailure(
                "ledger", f"owner balance {balance} below credited amount {credited}"
            )
        if not await self._ledger.transfer_from(
            owner, participant, credited, spender=self._sale_address
        ):
            raise DelegateFailure("ledger", f"transfer of {credited} to {participant} refused")
