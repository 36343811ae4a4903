from __future__ import annotations

from typing import Any, Optional

from core.models import (
    TRANSACTION_TYPES,
    TX_EXTRUDED,
    TX_EXTRUDING,
    TX_GAIN,
    TX_LOSS,
    TX_PRODUCTION,
    TX_PURCHASE,
    TX_SALE,
    Transaction,
)
from core.utils import kg, new_id

TYPE_LABELS = {
    TX_PURCHASE: "Intake / Purchase",
    TX_PRODUCTION: "Processing",
    TX_SALE: "Outbound / Sale",
    TX_EXTRUDING: "Sent to extrusion",
    TX_EXTRUDED: "Back from extrusion",
    TX_LOSS: "Process loss",
    TX_GAIN: "Process gain",
}


def build_transaction(
    *,
    batch_id: str,
    type: str,
    weight: float,
    date: str,
    description: str,
    original_weight: Optional[float] = None,
) -> Transaction:
    if type not in TRANSACTION_TYPES:
        raise ValueError(f"Unknown transaction type: {type}.")
    return Transaction(
        id=new_id(),
        batch_id=batch_id,
        type=type,
        weight=kg(weight),
        date=date,
        description=description,
        original_weight=kg(original_weight) if original_weight is not None else None,
    )


def weight_delta_transaction(*, batch_id: str, original: float, final: float, date: str, stage: str) -> Optional[Transaction]:
    """
    Signed policy: O > F is a loss, F > O is a gain, both recorded with the
    magnitude. Equal weights produce no record.
    """
    delta = kg(float(original) - float(final))
    if delta == 0:
        return None
    if delta > 0:
        return build_transaction(
            batch_id=batch_id,
            type=TX_LOSS,
            weight=delta,
            date=date,
            description=f"Loss recorded at {stage}",
            original_weight=original,
        )
    return build_transaction(
        batch_id=batch_id,
        type=TX_GAIN,
        weight=-delta,
        date=date,
        description=f"Gain recorded at {stage}",
        original_weight=original,
    )


def transactions_for_batch(store, batch_id: str) -> list[Transaction]:
    return [t for t in store.transactions if t.batch_id == batch_id]


def history_rows(store, search: str = "") -> list[dict[str, Any]]:
    """Newest-first log rows with batch/partner/material names resolved at read time."""
    needle = str(search or "").strip().lower()
    out: list[dict[str, Any]] = []

    for t in sorted(store.transactions, key=lambda t: t.date, reverse=True):
        b = store.batch(t.batch_id)
        batch_code = b.code if b else t.batch_id
        partner = store.partner_name(b.partner_id) if b else ""
        material = store.material_name(b.material_code) if b else ""

        haystack = f"{batch_code} {t.description} {partner} {material}".lower()
        if needle and needle not in haystack:
            continue

        out.append(
            {
                "date": t.date,
                "batch": batch_code,
                "type": TYPE_LABELS.get(t.type, t.type),
                "weight_kg": t.weight,
                "original_weight_kg": t.original_weight,
                "partner": partner,
                "material": material,
                "description": t.description,
            }
        )
    return out
