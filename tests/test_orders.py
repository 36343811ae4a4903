import pytest

from core.models import (
    OP_COMMISSION,
    ORDER_CANCELLED,
    ORDER_CONFIRMED,
    ORDER_DELIVERED,
    ORDER_PENDING,
    PAYABLE,
    SOLD,
)
from core.services.orders import (
    OrderItemInput,
    build_order_item,
    create_order,
    delete_order,
    order_rows,
    set_order_status,
    update_order,
)
from core.services.transitions import TransitionContext, sell_batch, transition_batch


@pytest.fixture
def order(store, customer):
    return create_order(
        store,
        customer_id=customer.id,
        order_number="PED-000100",
        items=[OrderItemInput("PP bales", 100, 4.0)],
    )


class TestCreateOrder:
    def test_totals_and_defaults(self, store, customer):
        o = create_order(
            store,
            customer_id=customer.id,
            items=[OrderItemInput("PP bales", 100, 4.0), {"description": "Pellets", "quantity": 20, "unit_price": 6.5}],
        )
        assert o.total_amount == 530.00
        assert [i.total for i in o.items] == [400.00, 130.00]
        assert o.status == ORDER_PENDING
        assert o.order_number.startswith("PED-")
        assert len(o.order_number) == len("PED-") + 6
        assert store.financial_entries == []

    def test_commission_creates_payable_for_seller(self, store, customer, seller):
        o = create_order(
            store,
            customer_id=customer.id,
            seller_id=seller.id,
            commission_amount=25,
            items=[OrderItemInput("PP bales", 100, 4.0)],
        )
        assert len(store.financial_entries) == 1
        entry = store.financial_entries[0]
        assert entry.type == PAYABLE
        assert entry.operation_type == OP_COMMISSION
        assert entry.partner_id == seller.id
        assert entry.amount == 25.00
        assert entry.order_number == o.order_number

    def test_requires_items(self, store, customer):
        with pytest.raises(ValueError, match="at least one item"):
            create_order(store, customer_id=customer.id, items=[])

    def test_duplicate_number(self, store, customer, order):
        with pytest.raises(ValueError, match="already exists"):
            create_order(store, customer_id=customer.id, order_number="PED-000100", items=[OrderItemInput("x", 1, 1)])

    def test_customer_role_enforced(self, store, supplier):
        with pytest.raises(ValueError, match="not registered as a customer"):
            create_order(store, customer_id=supplier.id, items=[OrderItemInput("x", 1, 1)])

    @pytest.mark.parametrize("qty,price", [(0, 1), (-1, 1), (1, -1), ("a", 1)])
    def test_item_validation(self, qty, price):
        with pytest.raises(ValueError):
            build_order_item("PP bales", qty, price)


class TestEditOrder:
    def test_update_items_recomputes_total_and_keeps_delivery(self, store, customer, order, finished_batch):
        item = order.items[0]
        sell_batch(store, finished_batch.id, customer.id, weight_kg=40, order_id=order.id, order_item_id=item.id)

        update_order(store, order.id, items=[OrderItemInput("PP bales", 150, 4.0, id=item.id)], notes="bigger")
        assert order.total_amount == 600.00
        assert order.items[0].delivered_quantity == 40
        assert order.notes == "bigger"

    def test_unknown_field(self, store, order):
        with pytest.raises(ValueError, match="Unknown order field"):
            update_order(store, order.id, colour="red")

    def test_status_and_delete(self, store, order):
        set_order_status(store, order.id, ORDER_CANCELLED)
        assert order.status == ORDER_CANCELLED
        with pytest.raises(ValueError, match="Invalid order status"):
            set_order_status(store, order.id, "shipped")
        delete_order(store, order.id)
        assert store.orders == []
        with pytest.raises(ValueError, match="Order not found"):
            delete_order(store, order.id)


class TestDeliveryLinkage:
    def test_two_partial_sales_deliver_the_order(self, store, customer, order, finished_batch):
        """Sales of 60 and 40 kg against a 100-unit item complete the order"""
        item = order.items[0]

        sell_batch(store, finished_batch.id, customer.id, weight_kg=60, order_id=order.id, order_item_id=item.id)
        assert item.delivered_quantity == 60
        assert order.status == ORDER_CONFIRMED

        sell_batch(store, finished_batch.id, customer.id, weight_kg=40, order_id=order.id, order_item_id=item.id)
        assert item.delivered_quantity == 100
        assert order.status == ORDER_DELIVERED

    def test_finalize_flag_delivers_early(self, store, customer, order, finished_batch):
        transition_batch(
            store,
            finished_batch.id,
            SOLD,
            TransitionContext(
                partner_id=customer.id,
                weight_kg=30,
                order_id=order.id,
                order_item_id=order.items[0].id,
                finalize_order=True,
            ),
        )
        assert order.items[0].delivered_quantity == 30
        assert order.status == ORDER_DELIVERED

    def test_cancelled_order_rejects_delivery(self, store, customer, order, finished_batch):
        set_order_status(store, order.id, ORDER_CANCELLED)
        with pytest.raises(ValueError, match="cancelled"):
            sell_batch(store, finished_batch.id, customer.id, weight_kg=10, order_id=order.id, order_item_id=order.items[0].id)
        assert finished_batch.weight_kg == 500
        assert len(store.batches) == 1

    def test_unknown_item_rejects_sale(self, store, customer, order, finished_batch):
        with pytest.raises(ValueError, match="Order item not found"):
            sell_batch(store, finished_batch.id, customer.id, weight_kg=10, order_id=order.id, order_item_id="nope")
        assert order.items[0].delivered_quantity == 0
        assert finished_batch.weight_kg == 500

    def test_order_rows(self, store, customer, order, finished_batch):
        sell_batch(store, finished_batch.id, customer.id, weight_kg=25, order_id=order.id, order_item_id=order.items[0].id)
        rows = order_rows(store, search="northeast")
        assert len(rows) == 1
        assert rows[0]["delivered_qty"] == 25
        assert rows[0]["ordered_qty"] == 100
        assert order_rows(store, status=ORDER_DELIVERED) == []
