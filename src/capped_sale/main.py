"""Application bootstrap: replay a scripted sale.

Wires the in-memory collaborators, a simulated clock and the event bus
around a :class:`CappedSale`, replays the purchases described in the
settings' ``simulation`` section and returns a JSON-ready summary.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from .core.clock import SimClock
from .core.config import Settings, load_settings
from .core.errors import SaleError
from .core.events import SALE_TOPIC
from .core.ids import address_from_label
from .event_bus.memory_bus import MemoryEventBus
from .ledger.memory import InMemoryAssetLedger, InMemoryPaymentChannel
from .observability.logger import bind_sale, new_trace_id, setup_logging
from .sale.contract import CappedSale

logger = logging.getLogger(__name__)

# Sale opens this long after the simulation starts, leaving room to whitelist.
_LEAD_TIME = timedelta(hours=1)


async def run_simulation(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Main entry point. Load config, wire modules, replay the sale."""

    # 1. Load settings
    if settings is None:
        settings = load_settings(config_path=config_path, overrides=overrides)

    # 2. Set up logging
    setup_logging(settings.observability.log_level, settings.observability.log_format)
    trace_id = new_trace_id()

    sim = settings.simulation
    sale_cfg = settings.sale
    owner = address_from_label("owner")
    registrar = address_from_label("registrar")
    beneficiary = address_from_label("beneficiary")

    # 3. Collaborators
    clock = SimClock()
    start_time = clock.now() + _LEAD_TIME
    end_time = start_time + timedelta(seconds=sim.duration_seconds)

    full_raise_units = sim.global_cap * sale_cfg.credit_scale // sim.exchange_rate
    allowance = sim.owner_allowance if sim.owner_allowance is not None else full_raise_units
    ledger = InMemoryAssetLedger({owner: allowance})
    labels = set(sim.whitelist) | {p.participant for p in sim.purchases}
    payments = InMemoryPaymentChannel(
        {address_from_label(label): sim.initial_balance for label in labels}
    )
    event_bus = MemoryEventBus()

    # 4. Sale
    sale = CappedSale(
        start_time,
        end_time,
        sim.global_cap,
        sim.exchange_rate,
        registrar,
        beneficiary,
        ledger,
        owner=owner,
        payments=payments,
        clock=clock,
        config=sale_cfg,
        event_bus=event_bus,
    )
    ledger.register_sale(sale.address)
    ledger.approve(owner, sale.address, allowance)
    bind_sale(sale.address)

    logger.info(
        "Simulation starting: trace_id=%s participants=%d purchases=%d",
        trace_id,
        len(labels),
        len(sim.purchases),
    )

    # 5. Whitelist before the sale opens
    batch = sale_cfg.max_whitelist_batch
    whitelist = [address_from_label(label) for label in sim.whitelist]
    for i in range(0, len(whitelist), batch):
        await sale.whitelist_many(registrar, whitelist[i : i + batch])

    # 6. Replay purchases in time order
    outcomes: list[dict[str, Any]] = []
    for purchase in sorted(sim.purchases, key=lambda p: p.offset_seconds):
        at = start_time + timedelta(seconds=purchase.offset_seconds)
        if at > clock.now():
            clock.set_time(at)
        address = address_from_label(purchase.participant)
        outcome: dict[str, Any] = {
            "participant": purchase.participant,
            "value": purchase.value,
            "offset_seconds": purchase.offset_seconds,
        }
        try:
            receipt = await sale.deposit(address, purchase.value, purchase.fee_price)
        except SaleError as exc:
            outcome.update(status="rejected", error=type(exc).__name__, reason=str(exc))
        else:
            outcome.update(
                status="completed",
                net_amount=receipt.net_amount,
                refunded=receipt.refunded,
                credited_amount=receipt.credited_amount,
            )
        outcomes.append(outcome)

    info = sale.sale_info()
    summary = {
        "trace_id": trace_id,
        "sale": info.model_dump(mode="json"),
        "purchases": outcomes,
        "investors": {
            label: sale.investor(address_from_label(label)).model_dump(exclude={"address"})
            for label in sorted(labels)
        },
        "beneficiary_balance": payments.balance_of(beneficiary),
        "events": len(event_bus.get_history(SALE_TOPIC)),
        "transactions": sale.transactions.stats,
    }
    logger.info(
        "Simulation finished: raised=%d participant_cap=%d",
        info.raised_total,
        info.participant_cap,
    )
    return summary
