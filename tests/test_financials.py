import pytest

from core.models import PAID, PAYABLE, PENDING, RECEIVABLE, ShippingInfo
from core.services.batches import record_purchase
from core.services.financials import (
    delete_financial_entry,
    entry_rows,
    open_totals,
    set_financial_entry_status,
    update_financial_entry,
)
from core.services.transitions import sell_batch


@pytest.fixture
def payable(store, raw_batch):
    return store.financial_entries[0]


class TestEntryStatus:
    def test_mark_paid_records_payment_date(self, store, payable):
        entry = set_financial_entry_status(store, payable.id, PAID, payment_date="2026-04-02")
        assert entry.status == PAID
        assert entry.payment_date == "2026-04-02"

    def test_payment_date_defaults_to_now(self, store, payable):
        entry = set_financial_entry_status(store, payable.id, PAID)
        assert entry.payment_date

    def test_paid_is_terminal(self, store, payable):
        """Marking paid twice keeps the first payment; reopening is rejected"""
        set_financial_entry_status(store, payable.id, PAID, payment_date="2026-04-02")
        again = set_financial_entry_status(store, payable.id, PAID, payment_date="2026-05-01")
        assert again.payment_date == "2026-04-02"

        with pytest.raises(ValueError, match="cannot be reopened"):
            set_financial_entry_status(store, payable.id, PENDING)
        assert payable.status == PAID

    def test_unknown_status(self, store, payable):
        with pytest.raises(ValueError, match="Status must be"):
            set_financial_entry_status(store, payable.id, "cancelled")

    def test_unknown_entry(self, store):
        with pytest.raises(ValueError, match="Financial entry not found"):
            set_financial_entry_status(store, "missing", PAID)


class TestEntryEditing:
    def test_update_due_date_and_description(self, store, payable):
        entry = update_financial_entry(store, payable.id, due_date="2026-06-30", description="  net 60 ")
        assert entry.due_date == "2026-06-30"
        assert entry.description == "net 60"
        assert entry.amount == 2500.00

    def test_update_rejects_bad_date(self, store, payable):
        before = payable.due_date
        with pytest.raises(ValueError, match="Invalid date"):
            update_financial_entry(store, payable.id, due_date="30/06/2026")
        assert payable.due_date == before

    def test_delete_leaves_batch(self, store, raw_batch, payable):
        delete_financial_entry(store, payable.id)
        assert store.financial_entries == []
        assert store.batch(raw_batch.id) is raw_batch


class TestTotals:
    def test_open_totals_only_count_pending(self, store, supplier, customer, finished_batch, raw_batch):
        sell_batch(store, finished_batch.id, customer.id, weight_kg=100, price_per_kg=3)
        record_purchase(
            store,
            partner_id=supplier.id,
            material_code="010",
            weight_kg=10,
            price_per_kg=1,
            shipping=ShippingInfo(freight_cost=40),
        )
        assert open_totals(store) == {PAYABLE: 2550.00, RECEIVABLE: 300.00}

        set_financial_entry_status(store, store.financial_entries[0].id, PAID)
        assert open_totals(store)[PAYABLE] == 50.00

    def test_entry_rows_sign_and_reference(self, store, customer, raw_batch, finished_batch):
        sell_batch(store, finished_batch.id, customer.id, weight_kg=100, price_per_kg=3)
        rows = {r["type"]: r for r in entry_rows(store)}
        assert rows[PAYABLE]["amount"] == -2500.00
        assert rows[PAYABLE]["reference"] == raw_batch.code
        assert rows[RECEIVABLE]["amount"] == 300.00
        assert rows[RECEIVABLE]["reference"] == "012/002/020/V-01"
        assert [r["type"] for r in entry_rows(store, entry_type=RECEIVABLE)] == [RECEIVABLE]
