from __future__ import annotations

from typing import Any

from core.models import BATCH_STATUSES, SOLD, TX_GAIN, TX_LOSS, TX_PURCHASE, TX_SALE
from core.utils import kg, money, safe_div

STATUS_LABELS = {
    "raw": "Raw / Intake",
    "processing": "In process",
    "finished": "Finished (bale)",
    "sold": "Sold",
    "extruding": "At extrusion",
    "extruded": "Extruded",
}


def stock_by_status(store) -> dict[str, float]:
    """Total kg held in each lifecycle status (dashboard cards)."""
    totals = {s: 0.0 for s in BATCH_STATUSES}
    for b in store.batches:
        totals[b.status] = totals.get(b.status, 0.0) + float(b.weight_kg)
    return {k: kg(v) for k, v in totals.items()}


def stock_by_material(store) -> list[dict[str, Any]]:
    """Kg on hand per material; sold batches are no longer stock."""
    out = []
    for m in sorted(store.materials, key=lambda m: m.code):
        weight = sum(float(b.weight_kg) for b in store.batches if b.material_code == m.code and b.status != SOLD)
        out.append({"code": m.code, "material": m.name, "weight_kg": kg(weight)})
    return out


def inventory_rows(store, include_sold: bool = False) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for b in sorted(store.batches, key=lambda b: b.updated_at, reverse=True):
        if b.status == SOLD and not include_sold:
            continue
        parent = store.batch(b.parent_id)
        out.append(
            {
                "id": b.id,
                "batch": b.code,
                "partner": store.partner_name(b.partner_id),
                "material": store.material_name(b.material_code, default=b.material_code),
                "weight_kg": b.weight_kg,
                "status": STATUS_LABELS.get(b.status, b.status),
                "buy_price_per_kg": b.purchase_price_per_kg,
                "sale_price_per_kg": b.sale_price_per_kg,
                "service_provider": store.partner_name(b.service_provider_id),
                "customer": store.partner_name(b.customer_id),
                "parent": parent.code if parent else "",
                "created_at": b.created_at,
                "updated_at": b.updated_at,
            }
        )
    return out


def _root(store, batch):
    seen = set()
    while batch.parent_id and batch.parent_id not in seen:
        seen.add(batch.id)
        parent = store.batch(batch.parent_id)
        if parent is None:
            break
        batch = parent
    return batch


def loss_rows(store) -> list[dict[str, Any]]:
    """
    Per purchased batch: loss and gain recorded over its whole family
    (the batch and every sub-batch split from it), as a share of intake.
    """
    family: dict[str, str] = {}
    for b in store.batches:
        family[b.id] = _root(store, b).id

    intake: dict[str, float] = {}
    loss: dict[str, float] = {}
    gain: dict[str, float] = {}
    for t in store.transactions:
        root_id = family.get(t.batch_id)
        if root_id is None:
            continue
        if t.type == TX_PURCHASE:
            intake[root_id] = intake.get(root_id, 0.0) + float(t.weight)
        elif t.type == TX_LOSS:
            loss[root_id] = loss.get(root_id, 0.0) + float(t.weight)
        elif t.type == TX_GAIN:
            gain[root_id] = gain.get(root_id, 0.0) + float(t.weight)

    out = []
    for root_id, purchased in intake.items():
        b = store.batch(root_id)
        net = loss.get(root_id, 0.0) - gain.get(root_id, 0.0)
        out.append(
            {
                "batch": b.code if b else root_id,
                "partner": store.partner_name(b.partner_id) if b else "",
                "purchased_kg": kg(purchased),
                "loss_kg": kg(loss.get(root_id, 0.0)),
                "gain_kg": kg(gain.get(root_id, 0.0)),
                "net_loss_kg": kg(net),
                "loss_pct": round(safe_div(net, purchased) * 100.0, 2),
            }
        )
    return out


def margin_rows(store) -> list[dict[str, Any]]:
    """Sold batches: revenue at sale price vs cost at the family's purchase price."""
    out = []
    sold_weight = {t.batch_id: float(t.weight) for t in store.transactions if t.type == TX_SALE}
    for b in store.batches:
        if b.status != SOLD:
            continue
        weight = sold_weight.get(b.id, float(b.weight_kg))
        buy = _root(store, b).purchase_price_per_kg
        revenue = weight * float(b.sale_price_per_kg) if b.sale_price_per_kg else None
        cost = weight * float(buy) if buy else None
        out.append(
            {
                "batch": b.code,
                "customer": store.partner_name(b.customer_id),
                "sold_kg": kg(weight),
                "revenue": money(revenue) if revenue is not None else None,
                "cost": money(cost) if cost is not None else None,
                "gross_margin": money(revenue - cost) if revenue is not None and cost is not None else None,
            }
        )
    return out
