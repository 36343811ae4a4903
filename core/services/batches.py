from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from core.config import CARRIER_PLACEHOLDER_ID
from core.models import RAW, SUPPLIER, TX_PURCHASE, Batch, ShippingInfo
from core.services.financials import freight_entry, purchase_entry
from core.services.transactions import build_transaction
from core.utils import iso_date, iso_now, kg, new_id, to_price, to_weight

logger = logging.getLogger(__name__)

SPLIT_EXTRUSION = "E"
SPLIT_SALE = "V"


def compose_batch_code(partner_code: str, sequence: int, material_code: str, split_path: str = "") -> str:
    """
    Display key for a batch:
      {PARTNER}/{SEQ}/{MATERIAL}[/{K}-{NN}...]

    Example:
      012/002/010/V-01
    """
    return f"{partner_code}/{int(sequence):03d}/{material_code}{split_path}"


def next_sequence(store, partner_code: str) -> int:
    seqs = [int(b.sequence) for b in store.batches if b.partner_code == partner_code]
    return (max(seqs) if seqs else 0) + 1


def normalize_shipping(store, shipping) -> Optional[ShippingInfo]:
    if shipping is None:
        return None
    if isinstance(shipping, dict):
        shipping = ShippingInfo(**shipping)
    try:
        cost = float(shipping.freight_cost or 0)
    except (TypeError, ValueError):
        raise ValueError("Freight cost must be a number.")
    if cost < 0:
        raise ValueError("Freight cost must be >= 0.")
    carrier_id = shipping.carrier_id or None
    if carrier_id and not store.partner(carrier_id):
        raise ValueError("Carrier not found.")
    return replace(shipping, freight_cost=cost, is_fob=bool(shipping.is_fob), carrier_id=carrier_id)


def list_batches(store, statuses: Optional[tuple[str, ...]] = None) -> list[Batch]:
    rows = [b for b in store.batches if statuses is None or b.status in statuses]
    return sorted(rows, key=lambda b: (b.partner_code, b.sequence, b.split_path))


def get_batch(store, batch_id: str) -> Batch:
    batch = store.batch(batch_id)
    if not batch:
        raise ValueError("Batch not found.")
    return batch


def record_purchase(
    store,
    *,
    partner_id: str,
    material_code: str,
    weight_kg,
    price_per_kg=None,
    date=None,
    shipping=None,
    due_date=None,
    carrier_placeholder_id: str = CARRIER_PLACEHOLDER_ID,
) -> Batch:
    """
    Intake of raw material from a supplier.

    Creates the batch in `raw`, its purchase transaction and, when priced,
    the payable for the goods; a non-FOB freight cost adds a freight payable.
    """
    partner = store.partner(partner_id)
    if not partner:
        raise ValueError("Supplier not found.")
    if not partner.has_role(SUPPLIER):
        raise ValueError(f"{partner.name} is not registered as a supplier.")
    material = store.material_by_code(material_code)
    if not material:
        raise ValueError("Material not found.")

    weight = to_weight(weight_kg)
    price = to_price(price_per_kg)
    ship = normalize_shipping(store, shipping)
    now = iso_now()
    created_at = iso_date(date, default=now)
    due = iso_date(due_date, default=created_at)

    batch = Batch(
        id=new_id(),
        partner_id=partner.id,
        partner_code=partner.code,
        sequence=next_sequence(store, partner.code),
        material_code=material.code,
        weight_kg=kg(weight),
        status=RAW,
        created_at=created_at,
        updated_at=now,
        purchase_price_per_kg=price,
        shipping=ship,
    )

    price_note = f" ({price:.2f}/kg)" if price else ""
    tx = build_transaction(
        batch_id=batch.id,
        type=TX_PURCHASE,
        weight=weight,
        date=created_at,
        description=f"Purchase from {partner.name}{price_note}",
    )
    entries = [
        e
        for e in (
            purchase_entry(
                partner_id=partner.id,
                batch_id=batch.id,
                batch_code=batch.code,
                partner_name=partner.name,
                weight_kg=weight,
                price_per_kg=price,
                date=created_at,
                due_date=due,
            ),
            freight_entry(
                shipping=ship,
                batch_id=batch.id,
                batch_code=batch.code,
                date=created_at,
                due_date=due,
                carrier_placeholder_id=carrier_placeholder_id,
            ),
        )
        if e is not None
    ]

    store.batches.append(batch)
    store.transactions.append(tx)
    store.financial_entries.extend(entries)
    logger.info("Purchase recorded: batch %s, %.3f kg, %d financial entr(y/ies)", batch.code, weight, len(entries))
    return batch


def split_batch(store, parent: Batch, weight_kg: float, *, kind: str, status: str, now: str) -> Batch:
    """
    Build (but do not store) the sub-batch carrying `weight_kg` out of `parent`.

    The caller commits it together with `parent.weight_kg -= weight_kg`, so
    parent + child always equals the parent's weight before the split.
    """
    n = _last_split_number(store, parent, kind)
    return replace(
        parent,
        id=new_id(),
        weight_kg=kg(weight_kg),
        status=status,
        updated_at=now,
        shipping=None,
        parent_id=parent.id,
        split_path=f"{parent.split_path}/{kind}-{n + 1:02d}",
    )


def _last_split_number(store, parent: Batch, kind: str) -> int:
    # Highest suffix in use, so a new number never collides with a live sub-batch.
    prefix = f"{parent.split_path}/{kind}-"
    nums = [
        int(b.split_path[len(prefix):])
        for b in store.batches
        if b.parent_id == parent.id and b.split_path.startswith(prefix)
    ]
    return max(nums) if nums else 0


def delete_batch(store, batch_id: str) -> None:
    """Removes only the batch; its transactions and financial entries stay as history."""
    batch = get_batch(store, batch_id)
    if any(b.parent_id == batch.id for b in store.batches):
        logger.warning("Refused to delete batch %s: it has split sub-batches", batch.code)
        raise ValueError(f"Batch {batch.code} has sub-batches and cannot be deleted.")
    store.batches.remove(batch)
    logger.info("Batch %s deleted", batch.code)
