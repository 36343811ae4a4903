from __future__ import annotations

import logging
from typing import Any, Optional

from core.config import CARRIER_PLACEHOLDER_ID
from core.models import (
    OP_COMMISSION,
    OP_FREIGHT,
    OP_PURCHASE,
    OP_SALE,
    PAID,
    PAYABLE,
    PENDING,
    RECEIVABLE,
    FinancialEntry,
    ShippingInfo,
)
from core.utils import iso_date, iso_now, money, new_id

logger = logging.getLogger(__name__)


# -------------------------
# Derivation (engine side effects)
# -------------------------

def _entry(
    *,
    type: str,
    operation_type: str,
    partner_id: str,
    amount: float,
    date: str,
    due_date: Optional[str],
    description: str,
    batch_id: Optional[str] = None,
    order_number: Optional[str] = None,
) -> FinancialEntry:
    return FinancialEntry(
        id=new_id(),
        type=type,
        operation_type=operation_type,
        partner_id=partner_id,
        amount=money(amount),
        date=date,
        due_date=due_date or date,
        description=description,
        status=PENDING,
        batch_id=batch_id,
        order_number=order_number,
    )


def purchase_entry(*, partner_id: str, batch_id: str, batch_code: str, partner_name: str,
                   weight_kg: float, price_per_kg: Optional[float], date: str,
                   due_date: Optional[str] = None) -> Optional[FinancialEntry]:
    if not price_per_kg or float(price_per_kg) <= 0:
        return None
    return _entry(
        type=PAYABLE,
        operation_type=OP_PURCHASE,
        partner_id=partner_id,
        amount=float(weight_kg) * float(price_per_kg),
        date=date,
        due_date=due_date,
        description=f"Payment for batch {batch_code} - {partner_name}",
        batch_id=batch_id,
    )


def sale_entry(*, partner_id: str, batch_id: str, batch_code: str, partner_name: str,
               weight_kg: float, price_per_kg: Optional[float], date: str,
               due_date: Optional[str] = None) -> Optional[FinancialEntry]:
    if not price_per_kg or float(price_per_kg) <= 0:
        return None
    return _entry(
        type=RECEIVABLE,
        operation_type=OP_SALE,
        partner_id=partner_id,
        amount=float(weight_kg) * float(price_per_kg),
        date=date,
        due_date=due_date,
        description=f"Sale of batch {batch_code} - {partner_name}",
        batch_id=batch_id,
    )


def freight_entry(*, shipping: Optional[ShippingInfo], batch_id: str, batch_code: str, date: str,
                  due_date: Optional[str] = None,
                  carrier_placeholder_id: str = CARRIER_PLACEHOLDER_ID) -> Optional[FinancialEntry]:
    if shipping is None or not shipping.charges_freight:
        return None
    return _entry(
        type=PAYABLE,
        operation_type=OP_FREIGHT,
        partner_id=shipping.carrier_id or carrier_placeholder_id,
        amount=float(shipping.freight_cost),
        date=date,
        due_date=due_date,
        description=f"Freight for batch {batch_code}",
        batch_id=batch_id,
    )


def commission_entry(*, seller_id: Optional[str], seller_name: str, order_number: str,
                     commission_amount: float, date: str) -> Optional[FinancialEntry]:
    if not seller_id or float(commission_amount or 0) <= 0:
        return None
    return _entry(
        type=PAYABLE,
        operation_type=OP_COMMISSION,
        partner_id=seller_id,
        amount=float(commission_amount),
        date=date,
        due_date=date,
        description=f"Commission on order {order_number} - {seller_name}",
        order_number=order_number,
    )


# -------------------------
# User-facing commands
# -------------------------

def _get_entry(store, entry_id: str) -> FinancialEntry:
    entry = store.financial_entry(entry_id)
    if not entry:
        raise ValueError("Financial entry not found.")
    return entry


def set_financial_entry_status(store, entry_id: str, status: str, payment_date=None) -> FinancialEntry:
    """
    pending -> paid records the payment date (now unless given).
    Repeating a status is a no-op; a paid entry never goes back to pending.
    """
    entry = _get_entry(store, entry_id)
    status = str(status).strip().lower()
    if status not in (PENDING, PAID):
        raise ValueError("Status must be 'pending' or 'paid'.")

    if status == entry.status:
        return entry
    if status == PENDING:
        raise ValueError("A paid entry cannot be reopened.")

    entry.payment_date = iso_date(payment_date, default=iso_now())
    entry.status = PAID
    logger.info("Financial entry %s (%s %.2f) marked paid on %s", entry.id, entry.type, entry.amount, entry.payment_date)
    return entry


def update_financial_entry(store, entry_id: str, *, due_date=None, description: Optional[str] = None) -> FinancialEntry:
    entry = _get_entry(store, entry_id)
    new_due = iso_date(due_date, default=entry.due_date)
    new_desc = entry.description if description is None else str(description).strip()

    entry.due_date = new_due
    entry.description = new_desc
    logger.info("Financial entry %s updated", entry.id)
    return entry


def delete_financial_entry(store, entry_id: str) -> None:
    entry = _get_entry(store, entry_id)
    store.financial_entries.remove(entry)
    logger.info("Financial entry %s deleted (%s %.2f)", entry.id, entry.type, entry.amount)


# -------------------------
# Read side
# -------------------------

def open_totals(store) -> dict[str, float]:
    totals = {PAYABLE: 0.0, RECEIVABLE: 0.0}
    for e in store.financial_entries:
        if e.status == PENDING:
            totals[e.type] = totals.get(e.type, 0.0) + float(e.amount)
    return {k: money(v) for k, v in totals.items()}


def entry_rows(store, entry_type: Optional[str] = None) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for e in sorted(store.financial_entries, key=lambda e: (e.due_date, e.date)):
        if entry_type and e.type != entry_type:
            continue
        b = store.batch(e.batch_id)
        out.append(
            {
                "id": e.id,
                "type": e.type,
                "operation": e.operation_type,
                "partner": store.partner_name(e.partner_id, default=e.partner_id),
                "reference": b.code if b else (e.order_number or e.batch_id or ""),
                "amount": e.amount if e.type == RECEIVABLE else -e.amount,
                "date": e.date,
                "due_date": e.due_date,
                "status": e.status,
                "payment_date": e.payment_date,
                "description": e.description,
            }
        )
    return out
