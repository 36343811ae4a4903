import pytest

from core.models import CUSTOMER, FINISHED, PROCESSING, SELLER, SERVICE_PROVIDER, SUPPLIER
from core.services.batches import record_purchase
from core.services.registry import add_material, add_partner
from core.services.transitions import TransitionContext, transition_batch
from core.store import Store


@pytest.fixture
def store():
    s = Store()
    add_material(s, code="010", name="LDPE scraps", ncm="3915.10.00")
    add_material(s, code="020", name="PP raffia")
    add_material(s, code="030", name="LDPE pellets")
    return s


@pytest.fixture
def supplier(store):
    return add_partner(store, code="012", name="Supplier Silva", roles={SUPPLIER})


@pytest.fixture
def customer(store):
    return add_partner(store, code="045", name="Northeast Plastics", roles={CUSTOMER})


@pytest.fixture
def extruder(store):
    return add_partner(store, code="070", name="Extrusion Partner", roles={SERVICE_PROVIDER})


@pytest.fixture
def seller(store):
    return add_partner(store, code="081", name="Sales Agent", roles={SELLER})


@pytest.fixture
def carrier(store):
    return add_partner(store, code="090", name="Fast Freight", roles={SERVICE_PROVIDER})


@pytest.fixture
def raw_batch(store, supplier):
    return record_purchase(store, partner_id=supplier.id, material_code="010", weight_kg=1000, price_per_kg=2.5)


@pytest.fixture
def processing_batch(store, raw_batch):
    return transition_batch(store, raw_batch.id, PROCESSING)


@pytest.fixture
def finished_batch(store, supplier):
    """A finished batch of 500 kg (no loss) with no prior financial side effects beyond the purchase."""
    b = record_purchase(store, partner_id=supplier.id, material_code="020", weight_kg=500)
    transition_batch(store, b.id, PROCESSING)
    return transition_batch(store, b.id, FINISHED, TransitionContext(weight_kg=500))
