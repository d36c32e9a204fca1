"""Domain tests for Order creation, item management and total recalculation."""

import pytest
from protean.exceptions import ValidationError
from sales.order.events import OrderCreated, OrderItemAdded, OrderItemRemoved, OrderItemUpdated
from sales.order.order import Order, OrderStatus, PaymentStatus, ProductSnapshot
from shared.errors import DomainValidationError, InvalidTransitionError, NotFoundError


def _snapshot(name="Classic Tee"):
    return ProductSnapshot(name=name, sku="TEE", slug="classic-tee", variant_sku="TEE-RED-M")


def _make_order(**overrides):
    defaults = {
        "user_id": "user-001",
        "shipping_address_id": "addr-001",
        "tax": 1.60,
        "shipping_cost": 5.0,
    }
    defaults.update(overrides)
    return Order.create(**defaults)


def _assert_totals_consistent(order):
    item_sum = round(sum(item.total_price for item in order.items), 2)
    assert order.subtotal == item_sum
    assert order.total == round(order.subtotal + order.tax + order.shipping_cost, 2)


class TestOrderCreation:
    def test_new_order_is_pending_on_both_axes(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value

    def test_new_order_total_is_tax_plus_shipping(self):
        order = _make_order()
        assert order.subtotal == 0.0
        assert order.total == 6.60

    def test_billing_address_defaults_to_shipping(self):
        order = _make_order()
        assert order.billing_address_id == "addr-001"

    def test_shipping_address_is_required(self):
        with pytest.raises(DomainValidationError) as exc:
            _make_order(shipping_address_id=None)
        assert exc.value.code == "Order.ShippingAddressRequired"

    def test_metadata_is_kept(self):
        order = _make_order(extra_metadata={"channel": "web"})
        assert order.metadata == {"channel": "web"}

    def test_raises_order_created(self):
        order = _make_order()
        created = [e for e in order._events if isinstance(e, OrderCreated)]
        assert len(created) == 1
        assert created[0].total == 6.60

    def test_currency_is_normalized(self):
        order = _make_order(currency="eur")
        assert order.currency == "EUR"


class TestOrderItems:
    def test_add_item_recalculates_totals(self):
        order = _make_order()
        order.add_item(product_id="prod-001", quantity=2, unit_price=10.0, snapshot=_snapshot())

        assert order.subtotal == 20.0
        assert order.total == 26.60
        _assert_totals_consistent(order)

    def test_add_item_computes_line_total(self):
        order = _make_order()
        item = order.add_item(product_id="prod-001", quantity=3, unit_price=4.99, snapshot=_snapshot())
        assert item.total_price == 14.97

    def test_add_item_raises_event(self):
        order = _make_order()
        order.add_item(product_id="prod-001", quantity=1, unit_price=10.0, snapshot=_snapshot())
        added = [e for e in order._events if isinstance(e, OrderItemAdded)]
        assert len(added) == 1
        assert added[0].new_total == 16.60

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_rejected(self, quantity):
        order = _make_order()
        with pytest.raises(DomainValidationError) as exc:
            order.add_item(product_id="prod-001", quantity=quantity, unit_price=10.0, snapshot=_snapshot())
        assert exc.value.code == "Order.InvalidQuantity"

    def test_snapshot_is_required(self):
        order = _make_order()
        with pytest.raises(DomainValidationError) as exc:
            order.add_item(product_id="prod-001", quantity=1, unit_price=10.0, snapshot=None)
        assert exc.value.code == "Order.ProductSnapshotRequired"

    def test_snapshot_is_captured(self):
        order = _make_order()
        item = order.add_item(product_id="prod-001", quantity=1, unit_price=10.0, snapshot=_snapshot("Red Tee"))
        assert item.snapshot.name == "Red Tee"
        assert item.snapshot.variant_sku == "TEE-RED-M"

    def test_update_quantity_recalculates(self):
        order = _make_order()
        item = order.add_item(product_id="prod-001", quantity=1, unit_price=10.0, snapshot=_snapshot())
        order.update_item_quantity(item.id, 3)

        assert order.items[0].quantity == 3
        assert order.items[0].total_price == 30.0
        assert order.subtotal == 30.0
        _assert_totals_consistent(order)
        assert any(isinstance(e, OrderItemUpdated) for e in order._events)

    def test_update_to_zero_is_rejected_not_removed(self):
        order = _make_order()
        item = order.add_item(product_id="prod-001", quantity=1, unit_price=10.0, snapshot=_snapshot())
        with pytest.raises(DomainValidationError) as exc:
            order.update_item_quantity(item.id, 0)
        assert exc.value.code == "Order.InvalidQuantity"
        assert len(order.items) == 1

    def test_remove_item_recalculates(self):
        order = _make_order()
        first = order.add_item(product_id="prod-001", quantity=1, unit_price=10.0, snapshot=_snapshot())
        order.add_item(product_id="prod-002", quantity=1, unit_price=5.0, snapshot=_snapshot("Socks"))
        order.remove_item(first.id)

        assert len(order.items) == 1
        assert order.subtotal == 5.0
        _assert_totals_consistent(order)
        assert any(isinstance(e, OrderItemRemoved) for e in order._events)

    def test_unknown_item_is_not_found(self):
        order = _make_order()
        with pytest.raises(NotFoundError) as exc:
            order.remove_item("missing")
        assert exc.value.code == "Order.ItemNotFound"

    def test_items_frozen_after_pending(self):
        order = _make_order()
        order.add_item(product_id="prod-001", quantity=1, unit_price=10.0, snapshot=_snapshot())
        order.mark_as_paid()

        with pytest.raises(InvalidTransitionError) as exc:
            order.add_item(product_id="prod-002", quantity=1, unit_price=5.0, snapshot=_snapshot())
        assert exc.value.code == "Order.InvalidStatus"

    def test_totals_hold_across_mixed_mutations(self):
        order = _make_order()
        a = order.add_item(product_id="prod-001", quantity=2, unit_price=3.33, snapshot=_snapshot())
        order.add_item(product_id="prod-002", quantity=1, unit_price=0.10, snapshot=_snapshot())
        order.update_item_quantity(a.id, 5)
        order.add_item(product_id="prod-003", quantity=7, unit_price=1.01, snapshot=_snapshot())
        order.remove_item(a.id)
        _assert_totals_consistent(order)


class TestOrderInvariants:
    def test_total_must_equal_components(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.total = 999.0

    def test_refunded_amount_cannot_exceed_total(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.refunded_amount = order.total + 1
