"""Investor registry: one append-only record per participant address."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from capped_sale.core.errors import InvalidBatchSize
from capped_sale.core.events import InvestorWhitelisted
from capped_sale.core.ids import is_null_address
from capped_sale.core.models import InvestorInfo

from .state import InvestorRecord, SaleState
from .transaction import SaleTransaction

logger = logging.getLogger(__name__)


class InvestorRegistry:
    """Holds investor records and the whitelisted population count.

    Records are created lazily and never removed.  Writes go through the
    caller's :class:`SaleTransaction`; reads do not need one.

    Args:
        state: Shared sale state holding the records.
        max_batch: Largest accepted whitelist batch.
    """

    def __init__(self, state: SaleState, max_batch: int = 30) -> None:
        self._state = state
        self._max_batch = max_batch

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, address: str) -> InvestorRecord | None:
        return self._state.records.get(address)

    def info(self, address: str) -> InvestorInfo:
        """Snapshot of *address*'s record (zero-valued if unknown)."""
        record = self.get(address)
        if record is None:
            return InvestorInfo(address=address)
        return InvestorInfo(
            address=address,
            contributed=record.contributed,
            credited=record.credited,
            whitelisted=record.whitelisted,
        )

    def is_whitelisted(self, address: str) -> bool:
        record = self.get(address)
        return record is not None and record.whitelisted

    @property
    def participant_count(self) -> int:
        return self._state.participant_count

    def __len__(self) -> int:
        return len(self._state.records)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def register(self, address: str, tx: SaleTransaction) -> InvestorRecord:
        """Return *address*'s record, creating a zero-valued one if needed."""
        record = self._state.records.get(address)
        if record is None:
            record = InvestorRecord(address=address)
            tx.insert(self._state.records, address, record)
        return record

    def whitelist(self, address: str, tx: SaleTransaction) -> bool:
        """Whitelist *address*.

        Returns ``True`` only when the address transitions to
        whitelisted.  Already-whitelisted and null addresses are skipped
        silently.
        """
        if is_null_address(address):
            logger.debug("Skipping null address in whitelist")
            return False
        record = self.register(address, tx)
        if record.whitelisted:
            return False
        tx.set(record, "whitelisted", True)
        count = tx.add(self._state, "participant_count", 1)
        tx.emit(InvestorWhitelisted(participant=address, participant_count=count))
        logger.info("Whitelisted %s (participants=%d)", address, count)
        return True

    def whitelist_many(
        self, addresses: Sequence[str], tx: SaleTransaction
    ) -> list[str]:
        """Whitelist a batch of 1..max_batch addresses.

        The size is checked before any element is processed.  Returns
        the addresses that were newly whitelisted.
        """
        if not 1 <= len(addresses) <= self._max_batch:
            raise InvalidBatchSize(len(addresses), self._max_batch)
        return [a for a in addresses if self.whitelist(a, tx)]
