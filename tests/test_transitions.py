import pytest

from core.config import CARRIER_PLACEHOLDER_ID
from core.models import (
    EXTRUDED,
    EXTRUDING,
    FINISHED,
    OP_FREIGHT,
    OP_SALE,
    PROCESSING,
    RAW,
    RECEIVABLE,
    SOLD,
    TX_EXTRUDED,
    TX_EXTRUDING,
    TX_GAIN,
    TX_LOSS,
    TX_PRODUCTION,
    TX_SALE,
    ShippingInfo,
)
from core.services.batches import delete_batch, record_purchase
from core.services.transactions import transactions_for_batch
from core.services.transitions import (
    TransitionContext,
    allowed_targets,
    begin_processing,
    finalize_batch,
    return_from_extrusion,
    sell_batch,
    send_to_extrusion,
    transition_batch,
)


def _types(store, batch):
    return [t.type for t in transactions_for_batch(store, batch.id)]


class TestProcessing:
    def test_raw_to_processing_keeps_weight(self, store, raw_batch):
        batch = begin_processing(store, raw_batch.id)
        assert batch is raw_batch
        assert batch.status == PROCESSING
        assert batch.weight_kg == 1000
        assert _types(store, batch)[-1] == TX_PRODUCTION

    def test_finalize_records_loss(self, store, processing_batch):
        """1000 kg processed down to 950 kg: production record plus a 50 kg loss"""
        batch = finalize_batch(store, processing_batch.id, 950)

        assert batch.status == FINISHED
        assert batch.weight_kg == 950
        last_two = transactions_for_batch(store, batch.id)[-2:]
        assert [t.type for t in last_two] == [TX_PRODUCTION, TX_LOSS]
        assert last_two[0].weight == 950
        assert last_two[0].original_weight == 1000
        assert last_two[1].weight == pytest.approx(50)
        assert last_two[1].original_weight == 1000

    def test_finalize_records_gain(self, store, processing_batch):
        finalize_batch(store, processing_batch.id, 1010)
        last = transactions_for_batch(store, processing_batch.id)[-1]
        assert last.type == TX_GAIN
        assert last.weight == pytest.approx(10)

    def test_finalize_same_weight_has_no_delta(self, store, processing_batch):
        finalize_batch(store, processing_batch.id, 1000)
        assert TX_LOSS not in _types(store, processing_batch)
        assert TX_GAIN not in _types(store, processing_batch)

    def test_finalize_requires_weight(self, store, processing_batch):
        with pytest.raises(ValueError, match="Final weight is required"):
            transition_batch(store, processing_batch.id, FINISHED)
        assert processing_batch.status == PROCESSING

    def test_finalize_weight_rounding_to_zero_is_rejected(self, store, processing_batch):
        with pytest.raises(ValueError, match="Final weight must be > 0"):
            finalize_batch(store, processing_batch.id, 0.0004)
        assert processing_batch.weight_kg == 1000
        assert processing_batch.status == PROCESSING

    def test_finalize_reclassifies_material(self, store, processing_batch):
        batch = finalize_batch(store, processing_batch.id, 990, material_code="030")
        assert batch.material_code == "030"
        assert batch.code == "012/001/030"

    def test_finalize_unknown_material(self, store, processing_batch):
        with pytest.raises(ValueError, match="Material not found"):
            finalize_batch(store, processing_batch.id, 990, material_code="999")
        assert processing_batch.material_code == "010"
        assert processing_batch.status == PROCESSING


class TestSale:
    def test_partial_sale_splits_batch(self, store, customer, finished_batch):
        """500 kg finished, sell 200 kg at 4.00/kg: parent keeps 300, child V-01 is sold"""
        child = sell_batch(store, finished_batch.id, customer.id, weight_kg=200, price_per_kg=4)

        assert finished_batch.weight_kg == 300
        assert finished_batch.status == FINISHED
        assert child.id != finished_batch.id
        assert child.parent_id == finished_batch.id
        assert child.code == "012/001/020/V-01"
        assert child.weight_kg == 200
        assert child.status == SOLD
        assert child.customer_id == customer.id
        assert child.sale_price_per_kg == 4
        assert child in store.batches

        sale_tx = transactions_for_batch(store, child.id)
        assert [t.type for t in sale_tx] == [TX_SALE]
        assert sale_tx[0].weight == 200

        receivables = [e for e in store.financial_entries if e.type == RECEIVABLE]
        assert len(receivables) == 1
        assert receivables[0].operation_type == OP_SALE
        assert receivables[0].amount == 800.00
        assert receivables[0].batch_id == child.id

    def test_second_split_gets_next_suffix(self, store, customer, finished_batch):
        sell_batch(store, finished_batch.id, customer.id, weight_kg=100)
        second = sell_batch(store, finished_batch.id, customer.id, weight_kg=100)
        assert second.code == "012/001/020/V-02"
        assert finished_batch.weight_kg == 300

    def test_split_suffix_not_reused_after_delete(self, store, customer, finished_batch):
        first = sell_batch(store, finished_batch.id, customer.id, weight_kg=100)
        second = sell_batch(store, finished_batch.id, customer.id, weight_kg=100)
        delete_batch(store, first.id)
        third = sell_batch(store, finished_batch.id, customer.id, weight_kg=100)
        assert second.code.endswith("/V-02")
        assert third.code.endswith("/V-03")

    def test_full_sale_changes_status_in_place(self, store, customer, finished_batch):
        batch = sell_batch(store, finished_batch.id, customer.id)
        assert batch is finished_batch
        assert batch.status == SOLD
        assert batch.weight_kg == 500
        assert len(store.batches) == 1

    def test_sale_without_price_has_no_receivable(self, store, customer, finished_batch):
        sell_batch(store, finished_batch.id, customer.id, weight_kg=100)
        assert [e for e in store.financial_entries if e.type == RECEIVABLE] == []

    def test_sale_freight(self, store, customer, finished_batch):
        child = sell_batch(
            store, finished_batch.id, customer.id, weight_kg=100, shipping=ShippingInfo(freight_cost=75)
        )
        freight = [e for e in store.financial_entries if e.operation_type == OP_FREIGHT]
        assert len(freight) == 1
        assert freight[0].partner_id == CARRIER_PLACEHOLDER_ID
        assert freight[0].batch_id == child.id

    def test_sale_over_weight_is_rejected_without_changes(self, store, customer, finished_batch):
        tx_before = list(store.transactions)
        with pytest.raises(ValueError, match="exceeds"):
            sell_batch(store, finished_batch.id, customer.id, weight_kg=600, price_per_kg=4)
        assert finished_batch.weight_kg == 500
        assert finished_batch.status == FINISHED
        assert len(store.batches) == 1
        assert store.transactions == tx_before
        assert store.financial_entries == []

    def test_sale_weight_rounding_to_zero_is_rejected(self, store, customer, finished_batch):
        with pytest.raises(ValueError, match="must be > 0"):
            sell_batch(store, finished_batch.id, customer.id, weight_kg=0.0004, price_per_kg=5)
        assert finished_batch.weight_kg == 500
        assert len(store.batches) == 1
        assert store.financial_entries == []

    def test_split_child_does_not_inherit_intake_freight(self, store, supplier, customer):
        batch = record_purchase(
            store, partner_id=supplier.id, material_code="020", weight_kg=500, shipping=ShippingInfo(freight_cost=100)
        )
        begin_processing(store, batch.id)
        finalize_batch(store, batch.id, 500)

        child = sell_batch(store, batch.id, customer.id, weight_kg=100)
        assert child.shipping is None
        assert batch.shipping.freight_cost == 100

        shipped = sell_batch(store, batch.id, customer.id, weight_kg=100, shipping=ShippingInfo(freight_cost=20))
        assert shipped.shipping.freight_cost == 20
        assert shipped.shipping is not batch.shipping

    def test_sale_requires_customer_role(self, store, supplier, finished_batch):
        with pytest.raises(ValueError, match="not registered as a customer"):
            sell_batch(store, finished_batch.id, supplier.id, weight_kg=100)

    def test_sale_requires_customer(self, store, finished_batch):
        with pytest.raises(ValueError, match="Customer is required"):
            transition_batch(store, finished_batch.id, SOLD, {"weight_kg": 100})


class TestExtrusion:
    def test_partial_extrusion_and_return(self, store, extruder, finished_batch):
        child = send_to_extrusion(store, finished_batch.id, extruder.id, weight_kg=200)

        assert child.code == "012/001/020/E-01"
        assert child.status == EXTRUDING
        assert child.service_provider_id == extruder.id
        assert finished_batch.weight_kg == 300
        assert _types(store, child) == [TX_EXTRUDING]

        back = return_from_extrusion(store, child.id, 190, material_code="030")
        assert back is child
        assert back.status == EXTRUDED
        assert back.weight_kg == 190
        assert back.code == "012/001/030/E-01"
        assert _types(store, child) == [TX_EXTRUDING, TX_EXTRUDED, TX_LOSS]

    def test_extruded_can_be_extruded_again(self, store, extruder, finished_batch):
        send_to_extrusion(store, finished_batch.id, extruder.id)
        return_from_extrusion(store, finished_batch.id, 480)
        assert EXTRUDING in allowed_targets(finished_batch)
        assert SOLD in allowed_targets(finished_batch)
        send_to_extrusion(store, finished_batch.id, extruder.id)
        assert finished_batch.status == EXTRUDING

    def test_extrusion_requires_service_provider(self, store, customer, finished_batch):
        with pytest.raises(ValueError, match="not registered as a service provider"):
            send_to_extrusion(store, finished_batch.id, customer.id)
        assert finished_batch.status == FINISHED


class TestTransitionRules:
    @pytest.mark.parametrize("target", [FINISHED, SOLD, EXTRUDING, EXTRUDED, RAW])
    def test_raw_only_moves_to_processing(self, store, raw_batch, target):
        with pytest.raises(ValueError, match="cannot move"):
            transition_batch(store, raw_batch.id, target, {"weight_kg": 10})
        assert raw_batch.status == RAW

    def test_sold_is_terminal(self, store, customer, finished_batch):
        sell_batch(store, finished_batch.id, customer.id)
        assert allowed_targets(finished_batch) == ()
        with pytest.raises(ValueError, match="cannot move"):
            transition_batch(store, finished_batch.id, EXTRUDING)

    def test_unknown_batch(self, store):
        with pytest.raises(ValueError, match="Batch not found"):
            transition_batch(store, "nope", PROCESSING)

    def test_context_accepts_dict(self, store, processing_batch):
        batch = transition_batch(store, processing_batch.id, FINISHED, {"weight_kg": 900, "notes": "dry"})
        assert batch.weight_kg == 900
        assert transactions_for_batch(store, batch.id)[-2].description.endswith("- dry")

    def test_context_dict_with_unknown_field(self, store, processing_batch):
        with pytest.raises(ValueError, match=r"Unknown transition field\(s\): weight"):
            transition_batch(store, processing_batch.id, FINISHED, {"weight": 900})
        assert processing_batch.status == PROCESSING

    def test_backdated_transition(self, store, raw_batch):
        transition_batch(store, raw_batch.id, PROCESSING, TransitionContext(date="2026-02-01"))
        assert transactions_for_batch(store, raw_batch.id)[-1].date == "2026-02-01"


def test_mass_is_conserved_across_splits(store, customer, extruder, finished_batch):
    sell_batch(store, finished_batch.id, customer.id, weight_kg=120.5)
    send_to_extrusion(store, finished_batch.id, extruder.id, weight_kg=79.5)
    total = sum(b.weight_kg for b in store.batches)
    assert total == pytest.approx(500)
    assert finished_batch.weight_kg == pytest.approx(300)
