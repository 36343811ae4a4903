from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any, Optional

from core.config import CARRIER_PLACEHOLDER_ID
from core.models import (
    CUSTOMER,
    EXTRUDED,
    EXTRUDING,
    FINISHED,
    PROCESSING,
    RAW,
    SERVICE_PROVIDER,
    SOLD,
    TX_EXTRUDED,
    TX_EXTRUDING,
    TX_PRODUCTION,
    TX_SALE,
    Batch,
    FinancialEntry,
    Order,
    OrderItem,
    ShippingInfo,
    Transaction,
)
from core.services.batches import SPLIT_EXTRUSION, SPLIT_SALE, normalize_shipping, split_batch
from core.services.financials import freight_entry, sale_entry
from core.services.orders import apply_delivery, check_delivery_target
from core.services.transactions import build_transaction, weight_delta_transaction
from core.utils import iso_date, iso_now, kg, to_price, to_weight

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    RAW: (PROCESSING,),
    PROCESSING: (FINISHED,),
    FINISHED: (EXTRUDING, SOLD),
    EXTRUDING: (EXTRUDED,),
    EXTRUDED: (SOLD, EXTRUDING),
    SOLD: (),
}


@dataclass
class TransitionContext:
    weight_kg: Optional[float] = None
    partner_id: Optional[str] = None
    price_per_kg: Optional[float] = None
    material_code: Optional[str] = None
    date: Any = None
    due_date: Any = None
    shipping: Optional[ShippingInfo] = None
    order_id: Optional[str] = None
    order_item_id: Optional[str] = None
    finalize_order: bool = False
    notes: Optional[str] = None


@dataclass
class _Plan:
    """Everything one transition writes, assembled before anything is written."""

    target: Batch
    changes: dict[str, Any] = field(default_factory=dict)
    new_batch: Optional[Batch] = None
    transactions: list[Transaction] = field(default_factory=list)
    entries: list[FinancialEntry] = field(default_factory=list)
    delivery: Optional[tuple[Order, OrderItem, float, bool]] = None


def allowed_targets(batch: Batch) -> tuple[str, ...]:
    return ALLOWED_TRANSITIONS.get(batch.status, ())


def _as_context(context) -> TransitionContext:
    if context is None:
        return TransitionContext()
    if isinstance(context, dict):
        unknown = set(context) - {f.name for f in fields(TransitionContext)}
        if unknown:
            raise ValueError(f"Unknown transition field(s): {', '.join(sorted(unknown))}.")
        return TransitionContext(**context)
    return context


def _note(ctx: TransitionContext) -> str:
    return f" - {ctx.notes.strip()}" if ctx.notes and ctx.notes.strip() else ""


def _partner_with_role(store, partner_id: Optional[str], role: str, label: str):
    if not partner_id:
        raise ValueError(f"{label} is required.")
    partner = store.partner(partner_id)
    if not partner:
        raise ValueError(f"{label} not found.")
    if not partner.has_role(role):
        raise ValueError(f"{partner.name} is not registered as a {label.lower()}.")
    return partner


def _outbound_weight(batch: Batch, value) -> float:
    # Outbound moves default to the whole batch and can never exceed it.
    w = float(batch.weight_kg) if value is None or value == "" else to_weight(value)
    if kg(w) > kg(batch.weight_kg):
        raise ValueError(
            f"Requested weight {w:.3f} kg exceeds the {float(batch.weight_kg):.3f} kg available in batch {batch.code}."
        )
    return kg(w)


# -------------------------
# Per-transition planners (validate, never write)
# -------------------------

def _plan_processing(store, batch: Batch, ctx: TransitionContext, now: str, when: str) -> _Plan:
    tx = build_transaction(
        batch_id=batch.id,
        type=TX_PRODUCTION,
        weight=batch.weight_kg,
        date=when,
        description=f"Status changed to {PROCESSING}{_note(ctx)}",
    )
    return _Plan(target=batch, changes={"status": PROCESSING, "updated_at": now}, transactions=[tx])


def _plan_weighing(store, batch: Batch, target: str, ctx: TransitionContext, now: str, when: str) -> _Plan:
    """processing -> finished and extruding -> extruded: reweigh, record the delta, maybe reclassify."""
    if ctx.weight_kg is None or ctx.weight_kg == "":
        raise ValueError("Final weight is required.")
    final = kg(to_weight(ctx.weight_kg, label="Final weight"))
    original = kg(batch.weight_kg)

    material_code = batch.material_code
    if ctx.material_code and ctx.material_code != batch.material_code:
        material = store.material_by_code(ctx.material_code)
        if not material:
            raise ValueError("Material not found.")
        material_code = material.code

    if target == FINISHED:
        tx_type, stage, text = TX_PRODUCTION, "processing", f"Processing finished. Final weight: {final:.3f} kg"
    else:
        tx_type, stage, text = TX_EXTRUDED, "extrusion", f"Back from extrusion. Returned weight: {final:.3f} kg"
    if material_code != batch.material_code:
        text += f". Reclassified {batch.material_code} -> {material_code}"

    txs = [
        build_transaction(
            batch_id=batch.id,
            type=tx_type,
            weight=final,
            date=when,
            description=text + _note(ctx),
            original_weight=original,
        )
    ]
    delta = weight_delta_transaction(batch_id=batch.id, original=original, final=final, date=when, stage=stage)
    if delta is not None:
        txs.append(delta)

    return _Plan(
        target=batch,
        changes={"status": target, "weight_kg": final, "material_code": material_code, "updated_at": now},
        transactions=txs,
    )


def _plan_outbound(store, batch: Batch, target: str, ctx: TransitionContext, now: str, when: str,
                   carrier_placeholder_id: str) -> _Plan:
    """Send to extrusion or sell: whole batch in place, or a split sub-batch for part of it."""
    if target == EXTRUDING:
        partner = _partner_with_role(store, ctx.partner_id, SERVICE_PROVIDER, "Service provider")
        price = None
    else:
        partner = _partner_with_role(store, ctx.partner_id, CUSTOMER, "Customer")
        price = to_price(ctx.price_per_kg)

    weight = _outbound_weight(batch, ctx.weight_kg)
    ship = normalize_shipping(store, ctx.shipping)

    delivery = None
    if target == SOLD and (ctx.order_id or ctx.order_item_id):
        if not ctx.order_id:
            raise ValueError("Order is required when an order item is given.")
        order, item = check_delivery_target(store, ctx.order_id, ctx.order_item_id)
        delivery = (order, item, weight, bool(ctx.finalize_order))

    party = (
        {"service_provider_id": partner.id}
        if target == EXTRUDING
        else {"customer_id": partner.id, "sale_price_per_kg": price}
    )
    if ship is not None:
        party["shipping"] = ship

    if weight < kg(batch.weight_kg):
        kind = SPLIT_EXTRUSION if target == EXTRUDING else SPLIT_SALE
        child = split_batch(store, batch, weight, kind=kind, status=target, now=now)
        for key, value in party.items():
            setattr(child, key, value)
        plan = _Plan(
            target=child,
            changes={"weight_kg": kg(float(batch.weight_kg) - weight), "updated_at": now},
            new_batch=child,
        )
    else:
        plan = _Plan(target=batch, changes={"status": target, "updated_at": now, **party})

    code = plan.target.code
    if target == EXTRUDING:
        plan.transactions.append(
            build_transaction(
                batch_id=plan.target.id,
                type=TX_EXTRUDING,
                weight=weight,
                date=when,
                description=f"Sent to extrusion at {partner.name}{_note(ctx)}",
            )
        )
    else:
        price_note = f" ({price:.2f}/kg)" if price else ""
        plan.transactions.append(
            build_transaction(
                batch_id=plan.target.id,
                type=TX_SALE,
                weight=weight,
                date=when,
                description=f"Sale to {partner.name}{price_note}{_note(ctx)}",
            )
        )
        due = iso_date(ctx.due_date, default=when)
        receivable = sale_entry(
            partner_id=partner.id,
            batch_id=plan.target.id,
            batch_code=code,
            partner_name=partner.name,
            weight_kg=weight,
            price_per_kg=price,
            date=when,
            due_date=due,
        )
        freight = freight_entry(
            shipping=ship,
            batch_id=plan.target.id,
            batch_code=code,
            date=when,
            due_date=due,
            carrier_placeholder_id=carrier_placeholder_id,
        )
        plan.entries.extend(e for e in (receivable, freight) if e is not None)
        plan.delivery = delivery
    return plan


def _commit(store, source: Batch, plan: _Plan) -> None:
    for key, value in plan.changes.items():
        setattr(source, key, value)
    if plan.new_batch is not None:
        store.batches.append(plan.new_batch)
    store.transactions.extend(plan.transactions)
    store.financial_entries.extend(plan.entries)
    if plan.delivery is not None:
        order, item, quantity, finalize = plan.delivery
        apply_delivery(order, item, quantity, finalize=finalize)


# -------------------------
# Public command
# -------------------------

def transition_batch(
    store,
    batch_id: str,
    target_status: str,
    context=None,
    *,
    carrier_placeholder_id: str = CARRIER_PLACEHOLDER_ID,
) -> Batch:
    """
    Move a batch to `target_status` and write every derived record.

    The whole transition is planned and validated first; a ValueError leaves
    batches, transactions, financial entries and orders untouched. Returns the
    batch now holding `target_status` (the new sub-batch on a partial split).
    """
    batch = store.batch(batch_id)
    if not batch:
        raise ValueError("Batch not found.")
    if target_status not in allowed_targets(batch):
        raise ValueError(f"Batch {batch.code} cannot move from '{batch.status}' to '{target_status}'.")

    ctx = _as_context(context)
    now = iso_now()
    when = iso_date(ctx.date, default=now)

    if target_status == PROCESSING:
        plan = _plan_processing(store, batch, ctx, now, when)
    elif target_status in (FINISHED, EXTRUDED):
        plan = _plan_weighing(store, batch, target_status, ctx, now, when)
    else:
        plan = _plan_outbound(store, batch, target_status, ctx, now, when, carrier_placeholder_id)

    previous = batch.status
    _commit(store, batch, plan)
    logger.info(
        "Batch %s: %s -> %s (%d transaction(s), %d financial entr(y/ies)%s)",
        plan.target.code,
        previous,
        target_status,
        len(plan.transactions),
        len(plan.entries),
        ", split" if plan.new_batch is not None else "",
    )
    return plan.target


# -------------------------
# Convenience wrappers used by the pages
# -------------------------

def begin_processing(store, batch_id: str, **kwargs) -> Batch:
    return transition_batch(store, batch_id, PROCESSING, TransitionContext(**kwargs))


def finalize_batch(store, batch_id: str, weight_kg, **kwargs) -> Batch:
    return transition_batch(store, batch_id, FINISHED, TransitionContext(weight_kg=weight_kg, **kwargs))


def send_to_extrusion(store, batch_id: str, partner_id: str, **kwargs) -> Batch:
    return transition_batch(store, batch_id, EXTRUDING, TransitionContext(partner_id=partner_id, **kwargs))


def return_from_extrusion(store, batch_id: str, weight_kg, **kwargs) -> Batch:
    return transition_batch(store, batch_id, EXTRUDED, TransitionContext(weight_kg=weight_kg, **kwargs))


def sell_batch(store, batch_id: str, partner_id: str, **kwargs) -> Batch:
    return transition_batch(store, batch_id, SOLD, TransitionContext(partner_id=partner_id, **kwargs))
