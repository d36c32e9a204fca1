"""Domain tests for full and partial order refunds."""

import pytest
from sales.order.events import OrderPartiallyRefunded, OrderRefunded
from sales.order.order import Order, OrderStatus, PaymentStatus, ProductSnapshot, RefundKind
from shared.errors import ConflictError, DomainValidationError, InvalidTransitionError


def _make_paid_order(unit_price=100.0):
    """A Processing order whose total is exactly ``unit_price`` (no tax, no shipping)."""
    order = Order.create(user_id="user-001", shipping_address_id="addr-001")
    order.add_item(product_id="prod-001", quantity=1, unit_price=unit_price, snapshot=ProductSnapshot(name="Lamp"))
    order.mark_as_paid()
    order._events.clear()
    return order


def _make_returned_order():
    order = _make_paid_order()
    order.mark_as_shipped()
    order.mark_as_delivered()
    order.mark_as_returned(reason="Broken")
    order._events.clear()
    return order


class TestFullRefund:
    def test_refunds_remaining_total(self):
        order = _make_paid_order()
        record = order.process_refund(reason="Customer request")

        assert order.refunded_amount == 100.0
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert order.refund_reason == "Customer request"
        assert order.refunded_at is not None
        assert record.kind == RefundKind.FULL.value
        assert record.amount == 100.0

    def test_non_returned_order_becomes_cancelled(self):
        order = _make_paid_order()
        order.process_refund()
        assert order.status == OrderStatus.CANCELLED.value

    def test_returned_order_becomes_returned_and_refunded(self):
        order = _make_returned_order()
        order.process_refund()
        assert order.status == OrderStatus.RETURNED_AND_REFUNDED.value

    def test_raises_order_refunded(self):
        order = _make_paid_order()
        order.process_refund()
        refunded = [e for e in order._events if isinstance(e, OrderRefunded)]
        assert len(refunded) == 1
        assert refunded[0].total_refunded == 100.0

    def test_second_refund_is_already_refunded_conflict(self):
        order = _make_paid_order()
        order.process_refund()
        with pytest.raises(ConflictError) as exc:
            order.process_refund()
        assert exc.value.code == "Order.AlreadyRefunded"
        assert order.refunded_amount == 100.0
        assert len(order.refunds) == 1

    def test_unpaid_order_cannot_be_refunded(self):
        order = Order.create(user_id="user-001", shipping_address_id="addr-001", shipping_cost=5.0)
        with pytest.raises(InvalidTransitionError) as exc:
            order.process_refund()
        assert exc.value.code == "Order.InvalidStatus"

    def test_cancelled_order_cannot_be_refunded(self):
        order = _make_paid_order()
        order.cancel(reason="Changed my mind")
        with pytest.raises(InvalidTransitionError):
            order.process_refund()

    def test_idempotency_key_returns_original_record(self):
        order = _make_paid_order()
        first = order.process_refund(idempotency_key="refund-001")
        order._events.clear()

        again = order.process_refund(idempotency_key="refund-001")
        assert again.id == first.id
        assert order._events == []
        assert len(order.refunds) == 1


class TestPartialRefund:
    def test_accumulates_without_status_change(self):
        order = _make_paid_order()
        order.process_partial_refund(30.0, reason="Scratched")

        assert order.refunded_amount == 30.0
        assert order.status == OrderStatus.PROCESSING.value
        assert order.payment_status == PaymentStatus.SUCCEEDED.value
        assert order.remaining_refundable.amount_float == 70.0

    def test_appends_refund_history(self):
        order = _make_paid_order()
        order.process_partial_refund(30.0, reason="Scratched")
        order.process_partial_refund(10.0)

        assert [r.amount for r in order.refunds] == [30.0, 10.0]
        assert [r.reason for r in order.refunds] == ["Scratched", "Partial refund"]
        assert all(r.kind == RefundKind.PARTIAL.value for r in order.refunds)
        assert all(r.currency == "USD" for r in order.refunds)

    def test_raises_partial_refund_event(self):
        order = _make_paid_order()
        order.process_partial_refund(30.0)
        partials = [e for e in order._events if isinstance(e, OrderPartiallyRefunded)]
        assert len(partials) == 1
        assert partials[0].remaining == 70.0

    def test_thirty_then_seventy_completes_on_second_call(self):
        order = _make_paid_order()

        order.process_partial_refund(30.0)
        assert order.status == OrderStatus.PROCESSING.value
        assert not order.is_fully_refunded

        order.process_partial_refund(70.0)
        assert order.is_fully_refunded
        assert order.status == OrderStatus.CANCELLED.value
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert order.refunded_amount == 100.0
        assert any(isinstance(e, OrderRefunded) for e in order._events)

    def test_exceeding_total_is_rejected(self):
        order = _make_paid_order()
        order.process_partial_refund(60.0)
        with pytest.raises(DomainValidationError) as exc:
            order.process_partial_refund(50.0)
        assert exc.value.code == "Order.RefundExceedsTotal"
        assert order.refunded_amount == 60.0

    @pytest.mark.parametrize("amount", [0, -5.0])
    def test_non_positive_amount_rejected(self, amount):
        order = _make_paid_order()
        with pytest.raises(DomainValidationError) as exc:
            order.process_partial_refund(amount)
        assert exc.value.code == "Order.InvalidAmount"

    def test_currency_mismatch_rejected(self):
        order = _make_paid_order()
        with pytest.raises(DomainValidationError) as exc:
            order.process_partial_refund(10.0, currency="EUR")
        assert exc.value.code == "Order.CurrencyMismatch"
        assert order.refunded_amount == 0.0

    def test_after_full_refund_partial_is_already_refunded(self):
        order = _make_paid_order()
        order.process_refund()
        with pytest.raises(ConflictError) as exc:
            order.process_partial_refund(1.0)
        assert exc.value.code == "Order.AlreadyRefunded"

    def test_full_refund_after_partial_refunds_the_remainder(self):
        order = _make_paid_order()
        order.process_partial_refund(25.0)
        record = order.process_refund()
        assert record.amount == 75.0
        assert order.refunded_amount == 100.0

    def test_refunded_amount_never_exceeds_total(self):
        order = _make_paid_order(unit_price=10.0)
        for amount in (3.33, 3.33, 3.33, 5.0, 0.01, 1.0):
            try:
                order.process_partial_refund(amount)
            except (ConflictError, DomainValidationError):
                pass
            assert order.refunded_amount <= order.total
        assert order.refunded_amount == 10.0
