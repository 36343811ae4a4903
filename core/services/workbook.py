from __future__ import annotations

import io
import json
import logging
import math
from dataclasses import asdict, fields
from typing import Any, Optional

import pandas as pd

from core.models import Batch, FinancialEntry, Material, Order, OrderItem, Partner, ShippingInfo, Transaction
from core.store import Store

logger = logging.getLogger(__name__)

SHEET_PARTNERS = "Partners"
SHEET_MATERIALS = "Materials"
SHEET_BATCHES = "Batches"
SHEET_TRANSACTIONS = "Transactions"
SHEET_FINANCIAL = "Financial"
SHEET_ORDERS = "Orders"

# Columns that must be present for a sheet to be usable.
REQUIRED_COLUMNS = {
    SHEET_PARTNERS: ("id", "code", "name", "roles"),
    SHEET_MATERIALS: ("id", "code", "name"),
    SHEET_BATCHES: ("id", "partner_id", "partner_code", "sequence", "material_code", "weight_kg", "status"),
    SHEET_TRANSACTIONS: ("id", "batch_id", "type", "weight", "date"),
    SHEET_FINANCIAL: ("id", "type", "partner_id", "amount", "date", "status"),
    SHEET_ORDERS: ("id", "order_number", "customer_id", "items"),
}


# -------------------------
# Export
# -------------------------

def _partner_row(p: Partner) -> dict:
    row = asdict(p)
    row["roles"] = ",".join(sorted(p.roles))
    return row


def _batch_row(b: Batch) -> dict:
    row = asdict(b)
    row["code"] = b.code
    row["shipping"] = json.dumps(asdict(b.shipping)) if b.shipping else None
    return row


def _order_row(o: Order) -> dict:
    row = asdict(o)
    row["items"] = json.dumps([asdict(i) for i in o.items])
    return row


def store_frames(store: Store) -> dict[str, pd.DataFrame]:
    def frame(rows: list[dict], cls) -> pd.DataFrame:
        cols = [f.name for f in fields(cls)]
        if rows:
            return pd.DataFrame(rows)
        return pd.DataFrame(columns=cols)

    return {
        SHEET_PARTNERS: frame([_partner_row(p) for p in store.partners], Partner),
        SHEET_MATERIALS: frame([asdict(m) for m in store.materials], Material),
        SHEET_BATCHES: frame([_batch_row(b) for b in store.batches], Batch),
        SHEET_TRANSACTIONS: frame([asdict(t) for t in store.transactions], Transaction),
        SHEET_FINANCIAL: frame([asdict(e) for e in store.financial_entries], FinancialEntry),
        SHEET_ORDERS: frame([_order_row(o) for o in store.orders], Order),
    }


def export_workbook(store: Store, target) -> None:
    """Write every collection to its own sheet of an xlsx file (path or binary buffer)."""
    with pd.ExcelWriter(target, engine="openpyxl") as writer:
        for sheet, df in store_frames(store).items():
            df.to_excel(writer, sheet_name=sheet, index=False)
    logger.info("Workbook exported: %s", store.counts())


def export_workbook_bytes(store: Store) -> bytes:
    buf = io.BytesIO()
    export_workbook(store, buf)
    return buf.getvalue()


# -------------------------
# Import
# -------------------------

def _blank(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, float) and math.isnan(v):
        return True
    return isinstance(v, str) and not v.strip()


def _s(v: Any) -> Optional[str]:
    if _blank(v):
        return None
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return str(v).strip()


def _code(v: Any) -> str:
    # Spreadsheet apps like to turn '012' into 12.
    s = _s(v) or ""
    return s.zfill(3) if s.isdigit() else s


def _f(v: Any, default: Optional[float] = None) -> Optional[float]:
    if _blank(v):
        return default
    return float(v)


def _b(v: Any) -> bool:
    if _blank(v):
        return False
    if isinstance(v, str):
        return v.strip().lower() in {"true", "1", "yes", "y"}
    return bool(v)


def _records(sheets: dict[str, pd.DataFrame], name: str) -> list[dict]:
    df = sheets.get(name)
    if df is None:
        return []
    missing = [c for c in REQUIRED_COLUMNS[name] if c not in df.columns]
    if missing:
        raise ValueError(f"Sheet '{name}' is missing column(s): {', '.join(missing)}.")
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def _shipping(v: Any) -> Optional[ShippingInfo]:
    s = _s(v)
    if not s:
        return None
    data = json.loads(s)
    return ShippingInfo(
        freight_cost=float(data.get("freight_cost") or 0),
        is_fob=bool(data.get("is_fob")),
        carrier_id=data.get("carrier_id"),
        vehicle_plate=data.get("vehicle_plate"),
        notes=data.get("notes"),
    )


def _items(v: Any) -> list[OrderItem]:
    s = _s(v)
    if not s:
        return []
    return [
        OrderItem(
            id=str(i["id"]),
            description=str(i.get("description") or ""),
            quantity=float(i.get("quantity") or 0),
            unit_price=float(i.get("unit_price") or 0),
            total=float(i.get("total") or 0),
            delivered_quantity=float(i.get("delivered_quantity") or 0),
        )
        for i in json.loads(s)
    ]


def frames_to_store(sheets: dict[str, pd.DataFrame]) -> Store:
    store = Store()

    for r in _records(sheets, SHEET_PARTNERS):
        store.partners.append(
            Partner(
                id=_s(r["id"]),
                code=_code(r["code"]),
                name=_s(r["name"]) or "",
                roles={x.strip() for x in (_s(r["roles"]) or "").split(",") if x.strip()},
                document=_s(r.get("document")),
                email=_s(r.get("email")),
                phone=_s(r.get("phone")),
                address=_s(r.get("address")),
                contact_person=_s(r.get("contact_person")),
            )
        )

    for r in _records(sheets, SHEET_MATERIALS):
        store.materials.append(
            Material(id=_s(r["id"]), code=_code(r["code"]), name=_s(r["name"]) or "", ncm=_s(r.get("ncm")))
        )

    for r in _records(sheets, SHEET_BATCHES):
        store.batches.append(
            Batch(
                id=_s(r["id"]),
                partner_id=_s(r["partner_id"]),
                partner_code=_code(r["partner_code"]),
                sequence=int(_f(r["sequence"], 0)),
                material_code=_code(r["material_code"]),
                weight_kg=_f(r["weight_kg"], 0.0),
                status=_s(r["status"]),
                created_at=_s(r.get("created_at")) or "",
                updated_at=_s(r.get("updated_at")) or "",
                purchase_price_per_kg=_f(r.get("purchase_price_per_kg")),
                sale_price_per_kg=_f(r.get("sale_price_per_kg")),
                service_provider_id=_s(r.get("service_provider_id")),
                customer_id=_s(r.get("customer_id")),
                shipping=_shipping(r.get("shipping")),
                parent_id=_s(r.get("parent_id")),
                split_path=_s(r.get("split_path")) or "",
            )
        )

    for r in _records(sheets, SHEET_TRANSACTIONS):
        store.transactions.append(
            Transaction(
                id=_s(r["id"]),
                batch_id=_s(r["batch_id"]),
                type=_s(r["type"]),
                weight=_f(r["weight"], 0.0),
                date=_s(r["date"]) or "",
                description=_s(r.get("description")) or "",
                original_weight=_f(r.get("original_weight")),
            )
        )

    for r in _records(sheets, SHEET_FINANCIAL):
        store.financial_entries.append(
            FinancialEntry(
                id=_s(r["id"]),
                type=_s(r["type"]),
                operation_type=_s(r.get("operation_type")) or "",
                partner_id=_s(r["partner_id"]),
                amount=_f(r["amount"], 0.0),
                date=_s(r["date"]) or "",
                due_date=_s(r.get("due_date")) or _s(r["date"]) or "",
                description=_s(r.get("description")) or "",
                status=_s(r["status"]),
                batch_id=_s(r.get("batch_id")),
                order_number=_s(r.get("order_number")),
                payment_date=_s(r.get("payment_date")),
            )
        )

    for r in _records(sheets, SHEET_ORDERS):
        store.orders.append(
            Order(
                id=_s(r["id"]),
                order_number=_s(r["order_number"]),
                date=_s(r.get("date")) or "",
                customer_id=_s(r["customer_id"]),
                items=_items(r["items"]),
                total_amount=_f(r.get("total_amount"), 0.0),
                status=_s(r.get("status")) or "pending",
                seller_id=_s(r.get("seller_id")),
                commission_amount=_f(r.get("commission_amount"), 0.0),
                is_fob=_b(r.get("is_fob")),
                notes=_s(r.get("notes")),
            )
        )

    return store


def load_workbook(source) -> Store:
    """
    Read a workbook written by `export_workbook` into a fresh Store.

    The caller swaps it in with `store.replace_with(...)`; missing sheets load
    as empty collections.
    """
    sheets = pd.read_excel(source, sheet_name=None, engine="openpyxl", dtype=object)
    store = frames_to_store(sheets)
    logger.info("Workbook loaded: %s", store.counts())
    return store
