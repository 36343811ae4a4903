from __future__ import annotations

import logging
import random
from datetime import date, timedelta

from core.models import CUSTOMER, SELLER, SERVICE_PROVIDER, SUPPLIER, ShippingInfo
from core.services.batches import record_purchase
from core.services.orders import OrderItemInput, create_order
from core.services.registry import add_material, add_partner
from core.services.transitions import (
    begin_processing,
    finalize_batch,
    return_from_extrusion,
    sell_batch,
    send_to_extrusion,
)

logger = logging.getLogger(__name__)

DEFAULT_PARTNERS = [
    ("012", "Example Supplier Silva", {SUPPLIER}),
    ("045", "Northeast Plastics", {CUSTOMER}),
    ("070", "Extrusion Partner Ltd", {SERVICE_PROVIDER}),
    ("081", "Regional Sales Agent", {SELLER}),
]
DEFAULT_MATERIALS = [
    ("010", "LDPE (bag scraps)", "3915.10.00"),
    ("020", "PP (raffia / big bags)", "3915.90.00"),
    ("030", "LDPE pellets", "3901.10.10"),
]


def upsert_reference_data(store) -> None:
    for code, name, roles in DEFAULT_PARTNERS:
        if not store.partner_by_code(code):
            add_partner(store, code=code, name=name, roles=roles)

    for code, name, ncm in DEFAULT_MATERIALS:
        if not store.material_by_code(code):
            add_material(store, code=code, name=name, ncm=ncm)


def wipe_all(store) -> None:
    store.clear()
    logger.info("All data wiped")


def load_demo_data(store, *, seed: int = 7) -> None:
    rng = random.Random(seed)
    upsert_reference_data(store)

    supplier = store.partner_by_code("012")
    customer = store.partner_by_code("045")
    extruder = store.partner_by_code("070")
    seller = store.partner_by_code("081")

    order = create_order(
        store,
        customer_id=customer.id,
        seller_id=seller.id,
        commission_amount=150.0,
        items=[OrderItemInput(description="PP raffia pressed", quantity=600, unit_price=4.8)],
        notes="Demo order",
    )

    # Six purchases over the last few days, then push some of them along.
    base_date = date.today() - timedelta(days=6)
    created = []
    for i in range(6):
        material = "010" if i % 2 == 0 else "020"
        weight = round(rng.uniform(800, 1500), 1)
        price = round(rng.uniform(1.8, 2.8), 2)
        shipping = ShippingInfo(freight_cost=round(rng.uniform(80, 200), 2)) if i % 3 == 0 else None
        created.append(
            record_purchase(
                store,
                partner_id=supplier.id,
                material_code=material,
                weight_kg=weight,
                price_per_kg=price,
                date=(base_date + timedelta(days=i)).isoformat(),
                shipping=shipping,
            )
        )

    for b in created[:4]:
        begin_processing(store, b.id)
    for b in created[:3]:
        finalize_batch(store, b.id, round(b.weight_kg * rng.uniform(0.88, 0.97), 1))

    # PP batch: partial sale against the demo order.
    pp = created[1]
    sell_batch(
        store,
        pp.id,
        customer.id,
        weight_kg=round(pp.weight_kg / 2, 1),
        price_per_kg=4.8,
        order_id=order.id,
        order_item_id=order.items[0].id,
    )

    # LDPE batch: part goes to external extrusion and comes back as pellets.
    ldpe = created[0]
    sent = send_to_extrusion(store, ldpe.id, extruder.id, weight_kg=round(ldpe.weight_kg * 0.6, 1))
    return_from_extrusion(store, sent.id, round(sent.weight_kg * 0.95, 1), material_code="030")
    logger.info("Demo data loaded: %s", store.counts())
