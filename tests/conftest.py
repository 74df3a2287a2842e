"""Shared fixtures for the capped-sale test suite."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable

import pytest

from capped_sale.core.clock import SimClock
from capped_sale.core.config import SaleConfig
from capped_sale.event_bus.memory_bus import MemoryEventBus
from capped_sale.ledger.memory import InMemoryAssetLedger, InMemoryPaymentChannel
from capped_sale.sale.contract import CappedSale

from sale_helpers import (
    BENEFICIARY,
    FUNDED,
    INITIAL_FUNDS,
    LEAD_TIME,
    OWNER,
    OWNER_UNITS,
    REGISTRAR,
    SIM_START,
)


# ---------------------------------------------------------------------------
# Clock / bus
# ---------------------------------------------------------------------------

@pytest.fixture
def sim_clock() -> SimClock:
    """Return a SimClock starting at 2024-06-01 00:00 UTC."""
    return SimClock(start=SIM_START)


@pytest.fixture
def memory_bus() -> MemoryEventBus:
    return MemoryEventBus()


@pytest.fixture
def restore_logging() -> Iterator[None]:
    """Undo root-logger changes made by ``setup_logging``."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def example_config_path() -> Path:
    return Path(__file__).resolve().parent.parent / "configs" / "example_sale.toml"


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

@pytest.fixture
def small_config() -> SaleConfig:
    """Sale constants scaled down so amounts read as whole numbers."""
    return SaleConfig(min_contribution=1, credit_scale=1, max_fee_price=100)


@pytest.fixture
def ledger() -> InMemoryAssetLedger:
    return InMemoryAssetLedger({OWNER: OWNER_UNITS})


@pytest.fixture
def payments() -> InMemoryPaymentChannel:
    return InMemoryPaymentChannel({a: INITIAL_FUNDS for a in FUNDED})


# ---------------------------------------------------------------------------
# Sale factory
# ---------------------------------------------------------------------------

@pytest.fixture
def make_sale(
    sim_clock: SimClock,
    small_config: SaleConfig,
    ledger: InMemoryAssetLedger,
    payments: InMemoryPaymentChannel,
    memory_bus: MemoryEventBus,
) -> Callable[..., CappedSale]:
    """Factory building a sale that starts one hour after ``sim_clock``.

    The ledger is bound to the sale and the owner approves every unit
    it holds; keyword arguments override the constructor defaults.
    """

    def _make(**overrides: Any) -> CappedSale:
        start = sim_clock.now() + LEAD_TIME
        params: dict[str, Any] = {
            "start_time": start,
            "end_time": start + timedelta(days=7),
            "global_cap": 100,
            "exchange_rate": 1,
            "registrar": REGISTRAR,
            "beneficiary": BENEFICIARY,
            "ledger": ledger,
            "owner": OWNER,
            "payments": payments,
            "clock": sim_clock,
            "config": small_config,
            "event_bus": memory_bus,
        }
        params.update(overrides)
        sale = CappedSale(**params)
        bound = params["ledger"]
        if bound is not None:
            bound.register_sale(sale.address)
            bound.approve(OWNER, sale.address, OWNER_UNITS)
        return sale

    return _make


@pytest.fixture
def sale(make_sale) -> CappedSale:
    return make_sale()
