from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from core.models import (
    CUSTOMER,
    ORDER_CANCELLED,
    ORDER_CONFIRMED,
    ORDER_DELIVERED,
    ORDER_PENDING,
    ORDER_STATUSES,
    SELLER,
    Order,
    OrderItem,
)
from core.services.financials import commission_entry
from core.utils import iso_date, iso_today, money, new_id

logger = logging.getLogger(__name__)


@dataclass
class OrderItemInput:
    description: str
    quantity: float
    unit_price: float
    id: Optional[str] = None  # set when editing an existing line


def build_order_item(description: str, quantity, unit_price, *, item_id: Optional[str] = None,
                     delivered_quantity: float = 0.0) -> OrderItem:
    desc = str(description or "").strip()
    if not desc:
        raise ValueError("Item description is required.")
    try:
        qty = float(quantity)
        up = float(unit_price)
    except (TypeError, ValueError):
        raise ValueError("Item quantity and unit price must be numbers.")
    if qty <= 0:
        raise ValueError("Item quantity must be > 0.")
    if up < 0:
        raise ValueError("Item unit price must be >= 0.")
    return OrderItem(
        id=item_id or new_id(),
        description=desc,
        quantity=qty,
        unit_price=up,
        total=money(qty * up),
        delivered_quantity=float(delivered_quantity),
    )


def order_total(items: list[OrderItem]) -> float:
    return money(sum(float(i.total) for i in items))


def default_order_number() -> str:
    return f"PED-{str(int(time.time() * 1000))[-6:]}"


def _check_parties(store, customer_id: str, seller_id: Optional[str]) -> None:
    customer = store.partner(customer_id)
    if not customer:
        raise ValueError("Customer not found.")
    if not customer.has_role(CUSTOMER):
        raise ValueError(f"{customer.name} is not registered as a customer.")
    if seller_id:
        seller = store.partner(seller_id)
        if not seller:
            raise ValueError("Seller not found.")
        if not seller.has_role(SELLER):
            raise ValueError(f"{seller.name} is not registered as a seller.")


def _commission(value) -> float:
    try:
        c = float(value or 0)
    except (TypeError, ValueError):
        raise ValueError("Commission must be a number.")
    if c < 0:
        raise ValueError("Commission must be >= 0.")
    return c


def _items_from_inputs(inputs: list, existing: Optional[Order] = None) -> list[OrderItem]:
    items: list[OrderItem] = []
    for it in inputs:
        if isinstance(it, OrderItem):
            items.append(build_order_item(it.description, it.quantity, it.unit_price,
                                          item_id=it.id, delivered_quantity=it.delivered_quantity))
            continue
        if isinstance(it, dict):
            it = OrderItemInput(**it)
        kept = existing.find_item(it.id) if (existing and it.id) else None
        items.append(
            build_order_item(
                it.description,
                it.quantity,
                it.unit_price,
                item_id=it.id,
                delivered_quantity=kept.delivered_quantity if kept else 0.0,
            )
        )
    return items


def create_order(
    store,
    *,
    customer_id: str,
    items: list,
    order_number: Optional[str] = None,
    date=None,
    seller_id: Optional[str] = None,
    commission_amount: float = 0.0,
    is_fob: bool = False,
    status: str = ORDER_PENDING,
    notes: Optional[str] = None,
) -> Order:
    _check_parties(store, customer_id, seller_id)
    if not items:
        raise ValueError("Add at least one item to the order.")
    if status not in ORDER_STATUSES:
        raise ValueError(f"Invalid order status: {status}.")

    built = _items_from_inputs(items)
    number = str(order_number or default_order_number()).strip()
    if any(o.order_number == number for o in store.orders):
        raise ValueError(f"Order number {number} already exists.")
    commission = _commission(commission_amount)
    order_date = iso_date(date, default=iso_today())

    order = Order(
        id=new_id(),
        order_number=number,
        date=order_date,
        customer_id=customer_id,
        items=built,
        total_amount=order_total(built),
        status=status,
        seller_id=seller_id or None,
        commission_amount=commission,
        is_fob=bool(is_fob),
        notes=(str(notes).strip() or None) if notes else None,
    )
    entry = commission_entry(
        seller_id=order.seller_id,
        seller_name=store.partner_name(order.seller_id),
        order_number=order.order_number,
        commission_amount=commission,
        date=order_date,
    )

    store.orders.append(order)
    if entry:
        store.financial_entries.append(entry)
    logger.info("Order %s created: %d item(s), total %.2f", order.order_number, len(built), order.total_amount)
    return order


def update_order(store, order_id: str, *, items: Optional[list] = None, **fields) -> Order:
    """Edit header fields and/or replace the item list (total is recomputed)."""
    order = store.order(order_id)
    if not order:
        raise ValueError("Order not found.")
    allowed = {"order_number", "date", "customer_id", "seller_id", "commission_amount", "is_fob", "status", "notes"}
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown order field(s): {', '.join(sorted(unknown))}.")

    changes = dict(fields)
    _check_parties(store, changes.get("customer_id", order.customer_id), changes.get("seller_id", order.seller_id))
    if "order_number" in changes:
        number = str(changes["order_number"]).strip()
        if any(o.order_number == number and o.id != order.id for o in store.orders):
            raise ValueError(f"Order number {number} already exists.")
        changes["order_number"] = number
    if "seller_id" in changes:
        changes["seller_id"] = changes["seller_id"] or None
    if "date" in changes:
        changes["date"] = iso_date(changes["date"], default=order.date)
    if "commission_amount" in changes:
        changes["commission_amount"] = _commission(changes["commission_amount"])
    if "status" in changes and changes["status"] not in ORDER_STATUSES:
        raise ValueError(f"Invalid order status: {changes['status']}.")

    new_items = None
    if items is not None:
        if not items:
            raise ValueError("Add at least one item to the order.")
        new_items = _items_from_inputs(items, existing=order)

    for key, value in changes.items():
        setattr(order, key, value)
    if new_items is not None:
        order.items = new_items
        order.total_amount = order_total(new_items)
    logger.info("Order %s updated", order.order_number)
    return order


def set_order_status(store, order_id: str, status: str) -> Order:
    order = store.order(order_id)
    if not order:
        raise ValueError("Order not found.")
    if status not in ORDER_STATUSES:
        raise ValueError(f"Invalid order status: {status}.")
    order.status = status
    logger.info("Order %s set to %s", order.order_number, status)
    return order


def delete_order(store, order_id: str) -> None:
    # Batches, transactions and financial entries stay as historical fact.
    order = store.order(order_id)
    if not order:
        raise ValueError("Order not found.")
    store.orders.remove(order)
    logger.info("Order %s deleted", order.order_number)


# -------------------------
# Delivery linkage (called by the transition engine)
# -------------------------

def check_delivery_target(store, order_id: str, item_id: Optional[str]) -> tuple[Order, OrderItem]:
    order = store.order(order_id)
    if not order:
        raise ValueError("Order not found.")
    if order.status == ORDER_CANCELLED:
        raise ValueError(f"Order {order.order_number} is cancelled.")
    item = order.find_item(item_id) if item_id else None
    if item is None:
        raise ValueError("Order item not found.")
    return order, item


def recompute_order_status(order: Order, *, finalize: bool = False) -> str:
    if order.status == ORDER_CANCELLED:
        return order.status
    if finalize or (order.items and all(i.is_fully_delivered for i in order.items)):
        order.status = ORDER_DELIVERED
    elif any(float(i.delivered_quantity) > 0 for i in order.items):
        order.status = ORDER_CONFIRMED
    return order.status


def apply_delivery(order: Order, item: OrderItem, quantity: float, *, finalize: bool = False) -> None:
    item.delivered_quantity = float(item.delivered_quantity) + float(quantity)
    recompute_order_status(order, finalize=finalize)


def order_rows(store, status: Optional[str] = None, search: str = "") -> list[dict[str, Any]]:
    needle = str(search or "").strip().lower()
    out: list[dict[str, Any]] = []
    for o in sorted(store.orders, key=lambda o: o.date, reverse=True):
        if status and o.status != status:
            continue
        customer = store.partner_name(o.customer_id, default="N/A")
        if needle and needle not in f"{o.order_number} {customer}".lower():
            continue
        delivered = sum(float(i.delivered_quantity) for i in o.items)
        ordered = sum(float(i.quantity) for i in o.items)
        out.append(
            {
                "id": o.id,
                "order_number": o.order_number,
                "date": o.date,
                "customer": customer,
                "seller": store.partner_name(o.seller_id, default="-"),
                "freight": "FOB" if o.is_fob else "CIF",
                "total_amount": o.total_amount,
                "delivered_qty": delivered,
                "ordered_qty": ordered,
                "status": o.status,
            }
        )
    return out
