"""Order aggregate (CQRS) — the core of the sales domain.

The order is a standard CQRS aggregate guarded by two invariants that hold
after every mutation:

    total == subtotal + tax + shipping_cost     (subtotal == sum of item totals)
    refunded_amount <= total

Fulfillment state machine:

    Pending → Processing → Shipped → Delivered → Returned → ReturnedAndRefunded
    Cancelled ← Pending/Processing (any role), Shipped (elevated roles only)
    Cancelled ← full refund of a non-returned order (kept for API compatibility)

Payment status:

    Pending → Succeeded → Refunded, with Failed / Canceled / Disputed side branches

All money arithmetic goes through ``shared.money.Money``; fields store the
cent-rounded float form.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from sales.domain import sales
from sales.order.events import (
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderItemAdded,
    OrderItemRemoved,
    OrderItemUpdated,
    OrderPaid,
    OrderPartiallyRefunded,
    OrderPaymentStatusChanged,
    OrderRefunded,
    OrderReturned,
    OrderShipped,
    OrderStatusChanged,
)
from shared.errors import (
    ConflictError,
    DomainValidationError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
)
from shared.money import DEFAULT_CURRENCY, Money, to_decimal


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    RETURNED = "Returned"
    RETURNED_AND_REFUNDED = "ReturnedAndRefunded"
    CANCELLED = "Cancelled"


class PaymentStatus(Enum):
    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    REFUNDED = "Refunded"
    CANCELED = "Canceled"
    DISPUTED = "Disputed"


class ActingRole(Enum):
    CUSTOMER = "Customer"
    MANAGER = "Manager"
    ADMIN = "Admin"


class RefundKind(Enum):
    FULL = "Full"
    PARTIAL = "Partial"


_ELEVATED_ROLES = {ActingRole.ADMIN, ActingRole.MANAGER}

# Statuses each role may cancel from
_CUSTOMER_CANCELLABLE = {OrderStatus.PENDING, OrderStatus.PROCESSING}
_ELEVATED_CANCELLABLE = _CUSTOMER_CANCELLABLE | {OrderStatus.SHIPPED, OrderStatus.RETURNED}

_SHIPPABLE = {OrderStatus.PENDING, OrderStatus.PROCESSING}

DEFAULT_PARTIAL_REFUND_REASON = "Partial refund"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@sales.value_object(part_of="Order")
class ProductSnapshot:
    """Catalogue data frozen at the moment the item was added.

    Later catalogue edits never change what a historical order says was bought.
    """

    name = String(required=True, max_length=255)
    sku = String(max_length=100)
    slug = String(max_length=255)
    variant_sku = String(max_length=100)
    variant_attributes = Text()  # JSON object, catalogue-defined keys


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@sales.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)
    snapshot = ValueObject(ProductSnapshot, required=True)


@sales.entity(part_of="Order")
class RefundRecord:
    """One entry in the order's refund history."""

    kind = String(choices=RefundKind, required=True)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, required=True)
    reason = String(max_length=500)
    idempotency_key = String(max_length=255)
    refunded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@sales.aggregate
class Order:
    user_id = Identifier()
    shipping_address_id = Identifier(required=True)
    billing_address_id = Identifier(required=True)
    shipping_method = String(max_length=50, default="Standard")
    payment_method_id = Identifier()
    currency = String(max_length=3, default=DEFAULT_CURRENCY)
    subtotal = Float(default=0.0)
    tax = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    total = Float(default=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    items = HasMany(OrderItem)

    # Refund audit
    refunded_amount = Float(default=0.0)
    refunded_at = DateTime()
    refund_reason = String(max_length=500)
    refunds = HasMany(RefundRecord)

    # Lifecycle audit
    tracking_number = String(max_length=255)
    cancellation_reason = String(max_length=500)
    cancelled_by_role = String(choices=ActingRole)
    return_reason = String(max_length=500)
    returned_at = DateTime()

    extra_metadata = Text()  # JSON object of caller-supplied keys
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_equal_components(self):
        expected = to_decimal(self.subtotal) + to_decimal(self.tax) + to_decimal(self.shipping_cost)
        if to_decimal(self.total) != expected:
            raise ValidationError({"total": [f"Total {self.total} must equal subtotal + tax + shipping ({expected})"]})

    @invariant.post
    def subtotal_must_equal_item_totals(self):
        expected = sum((to_decimal(item.total_price) for item in self.items), to_decimal(0))
        if to_decimal(self.subtotal) != expected:
            raise ValidationError({"subtotal": [f"Subtotal {self.subtotal} must equal the sum of item totals"]})

    @invariant.post
    def refunded_amount_cannot_exceed_total(self):
        if to_decimal(self.refunded_amount) > to_decimal(self.total):
            raise ValidationError({"refunded_amount": ["Refunded amount cannot exceed the order total"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        shipping_address_id,
        user_id=None,
        billing_address_id=None,
        shipping_method="Standard",
        tax=0.0,
        shipping_cost=0.0,
        currency=DEFAULT_CURRENCY,
        extra_metadata=None,
    ):
        """Create an empty Pending/Pending order.

        Items are added afterwards with ``add_item``; subtotal and total follow
        the items. ``tax`` and ``shipping_cost`` are fixed at creation.
        """
        if not shipping_address_id:
            raise DomainValidationError(
                "Order.ShippingAddressRequired", "shipping_address_id", "Shipping address is required"
            )

        tax_money = Money.of(tax, currency)
        shipping_money = Money.of(shipping_cost, currency)
        total = tax_money.add(shipping_money)
        now = datetime.now(UTC)

        order = cls(
            user_id=user_id,
            shipping_address_id=shipping_address_id,
            billing_address_id=billing_address_id or shipping_address_id,
            shipping_method=shipping_method or "Standard",
            currency=tax_money.currency,
            subtotal=0.0,
            tax=tax_money.amount_float,
            shipping_cost=shipping_money.amount_float,
            total=total.amount_float,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            refunded_amount=0.0,
            extra_metadata=json.dumps(extra_metadata or {}),
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                user_id=str(user_id) if user_id else None,
                shipping_address_id=str(order.shipping_address_id),
                billing_address_id=str(order.billing_address_id),
                shipping_method=order.shipping_method,
                subtotal=order.subtotal,
                tax=order.tax,
                shipping_cost=order.shipping_cost,
                total=order.total,
                currency=order.currency,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _money(self, amount) -> Money:
        return Money.of(amount, self.currency)

    @property
    def metadata(self) -> dict:
        return json.loads(self.extra_metadata) if self.extra_metadata else {}

    @property
    def remaining_refundable(self) -> Money:
        return self._money(self.total).subtract(self._money(self.refunded_amount))

    @property
    def is_fully_refunded(self) -> bool:
        return to_decimal(self.total) > 0 and to_decimal(self.refunded_amount) >= to_decimal(self.total)

    def _find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise NotFoundError("Order.ItemNotFound", f"Item {item_id} not found in order {self.id}")
        return item

    def _assert_pending_for_item_change(self):
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise InvalidTransitionError(
                "Order.InvalidStatus",
                self.status,
                "item change",
                "Items can only be changed while the order is Pending",
            )

    def _recalculate_totals(self):
        """Recompute subtotal and total from items. Caller holds atomic_change."""
        subtotal = Money.zero(self.currency)
        for item in self.items:
            subtotal = subtotal.add(self._money(item.total_price))
        self.subtotal = subtotal.amount_float
        self.total = subtotal.add(self._money(self.tax)).add(self._money(self.shipping_cost)).amount_float

    def _set_status(self, new_status: OrderStatus, now):
        old = self.status
        if old == new_status.value:
            return
        self.status = new_status.value
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                old_status=old,
                new_status=new_status.value,
                changed_at=now,
            )
        )

    def _set_payment_status(self, new_status: PaymentStatus, now):
        old = self.payment_status
        if old == new_status.value:
            return
        self.payment_status = new_status.value
        self.raise_(
            OrderPaymentStatusChanged(
                order_id=str(self.id),
                old_status=old,
                new_status=new_status.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Item management (only while Pending)
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, unit_price, snapshot, variant_id=None):
        """Add a line item, capturing an immutable product snapshot."""
        self._assert_pending_for_item_change()

        if quantity is None or quantity <= 0:
            raise DomainValidationError("Order.InvalidQuantity", "quantity", "Quantity must be greater than zero")
        if snapshot is None or not getattr(snapshot, "name", None):
            raise DomainValidationError(
                "Order.ProductSnapshotRequired", "snapshot", "A product snapshot with a name is required"
            )

        price = self._money(unit_price)
        line_total = price.multiply(quantity)

        item = OrderItem(
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            unit_price=price.amount_float,
            total_price=line_total.amount_float,
            snapshot=snapshot,
        )
        now = datetime.now(UTC)
        with atomic_change(self):
            self.add_items(item)
            self._recalculate_totals()
            self.updated_at = now

        self.raise_(
            OrderItemAdded(
                order_id=str(self.id),
                item_id=str(item.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                product_name=snapshot.name,
                quantity=quantity,
                unit_price=item.unit_price,
                new_subtotal=self.subtotal,
                new_total=self.total,
            )
        )
        return item

    def update_item_quantity(self, item_id, quantity):
        self._assert_pending_for_item_change()
        if quantity is None or quantity <= 0:
            raise DomainValidationError("Order.InvalidQuantity", "quantity", "Quantity must be greater than zero")

        item = self._find_item(item_id)
        previous_quantity = item.quantity
        now = datetime.now(UTC)
        with atomic_change(self):
            item.quantity = quantity
            item.total_price = self._money(item.unit_price).multiply(quantity).amount_float
            self._recalculate_totals()
            self.updated_at = now

        self.raise_(
            OrderItemUpdated(
                order_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
                new_subtotal=self.subtotal,
                new_total=self.total,
            )
        )

    def remove_item(self, item_id):
        self._assert_pending_for_item_change()

        item = self._find_item(item_id)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.remove_items(item)
            self._recalculate_totals()
            self.updated_at = now

        self.raise_(
            OrderItemRemoved(
                order_id=str(self.id),
                item_id=str(item_id),
                new_subtotal=self.subtotal,
                new_total=self.total,
            )
        )

    # -------------------------------------------------------------------
    # Payment status
    # -------------------------------------------------------------------
    def mark_as_paid(self):
        """Record a captured payment. A Pending order advances to Processing."""
        if PaymentStatus(self.payment_status) == PaymentStatus.SUCCEEDED:
            return

        now = datetime.now(UTC)
        with atomic_change(self):
            self._set_payment_status(PaymentStatus.SUCCEEDED, now)
            if OrderStatus(self.status) == OrderStatus.PENDING:
                self._set_status(OrderStatus.PROCESSING, now)
            self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                total=self.total,
                currency=self.currency,
                paid_at=now,
            )
        )

    def update_payment_status(self, new_status):
        """Raw payment-status setter used by downstream payment reactions."""
        target = PaymentStatus(new_status)
        if PaymentStatus(self.payment_status) == target:
            return
        now = datetime.now(UTC)
        with atomic_change(self):
            self._set_payment_status(target, now)
            self.updated_at = now

    def update_status(self, new_status):
        """Raw status setter for administrative corrections."""
        target = OrderStatus(new_status)
        if OrderStatus(self.status) == target:
            return
        now = datetime.now(UTC)
        with atomic_change(self):
            self._set_status(target, now)
            self.updated_at = now

    def set_payment_method(self, payment_method_id):
        self.payment_method_id = payment_method_id
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Fulfillment transitions
    # -------------------------------------------------------------------
    def mark_as_shipped(self, tracking_number=None):
        current = OrderStatus(self.status)
        if current == OrderStatus.SHIPPED:
            return
        if current == OrderStatus.CANCELLED:
            raise InvalidTransitionError(
                "Order.InvalidStatus", current.value, OrderStatus.SHIPPED.value, "Cancelled orders cannot be shipped"
            )
        if current not in _SHIPPABLE:
            raise InvalidTransitionError("Order.InvalidStatus", current.value, OrderStatus.SHIPPED.value)
        if PaymentStatus(self.payment_status) != PaymentStatus.SUCCEEDED:
            raise ConflictError("Order.PaymentRequired", "Order must be paid before it can be shipped")

        now = datetime.now(UTC)
        with atomic_change(self):
            self._set_status(OrderStatus.SHIPPED, now)
            self.tracking_number = tracking_number
            self.updated_at = now

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                tracking_number=tracking_number,
                shipped_at=now,
            )
        )

    def mark_as_delivered(self):
        current = OrderStatus(self.status)
        if current == OrderStatus.DELIVERED:
            return
        if current != OrderStatus.SHIPPED:
            raise InvalidTransitionError("Order.InvalidStatus", current.value, OrderStatus.DELIVERED.value)

        now = datetime.now(UTC)
        with atomic_change(self):
            self._set_status(OrderStatus.DELIVERED, now)
            self.updated_at = now

        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=now))

    def mark_as_returned(self, reason=None):
        current = OrderStatus(self.status)
        if current == OrderStatus.RETURNED:
            return
        if current != OrderStatus.DELIVERED:
            raise InvalidTransitionError("Order.InvalidStatus", current.value, OrderStatus.RETURNED.value)

        now = datetime.now(UTC)
        with atomic_change(self):
            self._set_status(OrderStatus.RETURNED, now)
            self.return_reason = reason
            self.returned_at = now
            self.updated_at = now

        self.raise_(OrderReturned(order_id=str(self.id), reason=reason, returned_at=now))

    def cancel(self, reason=None, role=ActingRole.CUSTOMER.value):
        """Cancel the order. Customers: Pending/Processing. Admins/managers: also Shipped and Returned."""
        acting_role = ActingRole(role)
        current = OrderStatus(self.status)
        if current == OrderStatus.CANCELLED:
            return

        if acting_role in _ELEVATED_ROLES:
            allowed = _ELEVATED_CANCELLABLE
        else:
            allowed = _CUSTOMER_CANCELLABLE

        if current not in allowed:
            if current in _ELEVATED_CANCELLABLE:
                raise ForbiddenError(
                    "Order.CancellationForbidden",
                    f"A {acting_role.value.lower()} cannot cancel an order that is {current.value}",
                    {"status": current.value, "role": acting_role.value},
                )
            raise InvalidTransitionError("Order.CannotCancel", current.value, OrderStatus.CANCELLED.value)

        now = datetime.now(UTC)
        with atomic_change(self):
            self._set_status(OrderStatus.CANCELLED, now)
            self.cancellation_reason = reason
            self.cancelled_by_role = acting_role.value
            self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=current.value,
                reason=reason,
                cancelled_by_role=acting_role.value,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def _find_refund_by_key(self, idempotency_key):
        if not idempotency_key:
            return None
        return next((r for r in self.refunds if r.idempotency_key == idempotency_key), None)

    def _assert_refundable(self):
        if self.is_fully_refunded:
            raise ConflictError(
                "Order.AlreadyRefunded",
                f"Order {self.id} has already been fully refunded",
                {"refunded_amount": self.refunded_amount, "total": self.total},
            )
        current = OrderStatus(self.status)
        if PaymentStatus(self.payment_status) != PaymentStatus.SUCCEEDED:
            raise InvalidTransitionError(
                "Order.InvalidStatus",
                self.payment_status,
                PaymentStatus.REFUNDED.value,
                "Only orders with a succeeded payment can be refunded",
            )
        if current in (OrderStatus.PENDING, OrderStatus.CANCELLED):
            raise InvalidTransitionError(
                "Order.InvalidStatus",
                current.value,
                PaymentStatus.REFUNDED.value,
                f"Orders in {current.value} status cannot be refunded",
            )

    def _append_refund(self, kind, amount: Money, reason, idempotency_key, now):
        record = RefundRecord(
            kind=kind.value,
            amount=amount.amount_float,
            currency=amount.currency,
            reason=reason,
            idempotency_key=idempotency_key,
            refunded_at=now,
        )
        self.add_refunds(record)
        return record

    def _complete_refund(self, record, reason, now):
        """Full-refund side effects. Caller holds atomic_change."""
        self.refunded_amount = self.total
        self.refunded_at = now
        self.refund_reason = reason
        self._set_payment_status(PaymentStatus.REFUNDED, now)
        if OrderStatus(self.status) == OrderStatus.RETURNED:
            self._set_status(OrderStatus.RETURNED_AND_REFUNDED, now)
        else:
            self._set_status(OrderStatus.CANCELLED, now)
        self.updated_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                refund_id=str(record.id),
                amount=record.amount,
                total_refunded=self.refunded_amount,
                currency=self.currency,
                reason=reason,
                refunded_at=now,
            )
        )

    def process_refund(self, reason=None, idempotency_key=None):
        """Refund whatever remains of the order total.

        Returns the RefundRecord. A retry carrying an idempotency key already in
        the refund history returns the original record without side effects.
        """
        existing = self._find_refund_by_key(idempotency_key)
        if existing is not None:
            return existing

        self._assert_refundable()

        now = datetime.now(UTC)
        with atomic_change(self):
            record = self._append_refund(RefundKind.FULL, self.remaining_refundable, reason, idempotency_key, now)
            self._complete_refund(record, reason, now)
        return record

    def process_partial_refund(self, amount, currency=None, reason=None, idempotency_key=None):
        """Refund part of the total. Reaching the total behaves as a full refund."""
        existing = self._find_refund_by_key(idempotency_key)
        if existing is not None:
            return existing

        self._assert_refundable()

        if amount is None or to_decimal(amount) <= 0:
            raise DomainValidationError("Order.InvalidAmount", "amount", "Refund amount must be greater than zero")

        refund = Money.of(amount, currency or self.currency)
        already_refunded = self._money(self.refunded_amount)
        # Raises Order.CurrencyMismatch
        accumulated = already_refunded.add(refund)
        total = self._money(self.total)
        if accumulated.amount > total.amount:
            raise DomainValidationError(
                "Order.RefundExceedsTotal",
                "amount",
                f"Refund of {refund} would bring total refunds to {accumulated}, above the order total {total}",
            )

        reason = reason or DEFAULT_PARTIAL_REFUND_REASON
        now = datetime.now(UTC)
        with atomic_change(self):
            record = self._append_refund(RefundKind.PARTIAL, refund, reason, idempotency_key, now)
            if accumulated.amount == total.amount:
                self._complete_refund(record, reason, now)
                return record

            self.refunded_amount = accumulated.amount_float
            self.updated_at = now

        self.raise_(
            OrderPartiallyRefunded(
                order_id=str(self.id),
                refund_id=str(record.id),
                amount=record.amount,
                total_refunded=self.refunded_amount,
                remaining=total.subtract(accumulated).amount_float,
                currency=self.currency,
                reason=reason,
                refunded_at=now,
            )
        )
        return record
