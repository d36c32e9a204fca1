"""Domain events for the Order aggregate.

All events are versioned, immutable facts. They are buffered on the aggregate
by ``raise_()`` and written to the outbox in the same unit of work as the
order row itself, so an event exists if and only if its state change committed.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from sales.domain import sales


@sales.event(part_of="Order")
class OrderCreated:
    """A new order was created (normally from a cart at checkout)."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier()
    shipping_address_id = Identifier(required=True)
    billing_address_id = Identifier(required=True)
    shipping_method = String(required=True)
    subtotal = Float(required=True)
    tax = Float(required=True)
    shipping_cost = Float(required=True)
    total = Float(required=True)
    currency = String(required=True)
    created_at = DateTime(required=True)


@sales.event(part_of="Order")
class OrderItemAdded:
    """A line item was added while the order was Pending."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    product_name = String(required=True)
    quantity = Integer(required=True)
    unit_price = Float(required=True)
    new_subtotal = Float(required=True)
    new_total = Float(required=True)


@sales.event(part_of="Order")
class OrderItemUpdated:
    """A line item's quantity changed while the order was Pending."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    new_subtotal = Float(required=True)
    new_total = Float(required=True)


@sales.event(part_of="Order")
class OrderItemRemoved:
    """A line item was removed while the order was Pending."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    new_subtotal = Float(required=True)
    new_total = Float(required=True)


@sales.event(part_of="Order")
class OrderStatusChanged:
    """The fulfillment status moved from one state to another."""

    __version__ = 1

    order_id = Identifier(required=True)
    old_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@sales.event(part_of="Order")
class OrderPaymentStatusChanged:
    """The payment status moved from one state to another."""

    __version__ = 1

    order_id = Identifier(required=True)
    old_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@sales.event(part_of="Order")
class OrderPaid:
    """Payment for the order was captured."""

    __version__ = 1

    order_id = Identifier(required=True)
    total = Float(required=True)
    currency = String(required=True)
    paid_at = DateTime(required=True)


@sales.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String()
    shipped_at = DateTime(required=True)


@sales.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@sales.event(part_of="Order")
class OrderReturned:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    returned_at = DateTime(required=True)


@sales.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String()
    cancelled_by_role = String(required=True)
    cancelled_at = DateTime(required=True)


@sales.event(part_of="Order")
class OrderRefunded:
    """The order was refunded in full (directly, or by accumulated partial refunds)."""

    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = Identifier(required=True)
    amount = Float(required=True)
    total_refunded = Float(required=True)
    currency = String(required=True)
    reason = String()
    refunded_at = DateTime(required=True)


@sales.event(part_of="Order")
class OrderPartiallyRefunded:
    """Part of the order total was refunded; order status is unchanged."""

    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = Identifier(required=True)
    amount = Float(required=True)
    total_refunded = Float(required=True)
    remaining = Float(required=True)
    currency = String(required=True)
    reason = String()
    refunded_at = DateTime(required=True)
