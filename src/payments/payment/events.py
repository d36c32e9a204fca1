"""Domain events for the Payment aggregate.

PaymentSucceeded, PaymentFailed, PaymentRefunded, PaymentCancelled and
PaymentDisputed are published on the ``payments::payment`` stream. Their
shape is mirrored in ``shared.events.payments`` for consumers in other
contexts; keep the two in step.
"""

from protean.fields import DateTime, Float, Identifier, String

from payments.domain import payments


@payments.event(part_of="Payment")
class PaymentCreated:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier()
    amount = Float(required=True)
    currency = String(required=True)
    method_type = String(required=True)
    provider = String(required=True)
    payment_method_id = Identifier()
    created_at = DateTime(required=True)


@payments.event(part_of="Payment")
class PaymentStatusChanged:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    old_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@payments.event(part_of="Payment")
class PaymentSucceeded:
    """Payment was captured by the gateway."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier()
    amount = Float(required=True)
    currency = String(required=True)
    transaction_id = String(required=True)
    succeeded_at = DateTime(required=True)


@payments.event(part_of="Payment")
class PaymentFailed:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier()
    reason = String()
    failed_at = DateTime(required=True)


@payments.event(part_of="Payment")
class PaymentRefunded:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    transaction_id = String()
    refunded_at = DateTime(required=True)


@payments.event(part_of="Payment")
class PaymentCancelled:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


@payments.event(part_of="Payment")
class PaymentDisputed:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    disputed_at = DateTime(required=True)
