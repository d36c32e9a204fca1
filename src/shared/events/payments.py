"""Cross-domain event contracts for Payments domain events.

These classes define the event shape for consumption by other domains
(the Sales context keeps order payment status in step with them). They are
registered as external events via domain.register_external_event() with
matching __type__ strings so Protean's stream deserialization works correctly.

The source-of-truth events are in src/payments/payment/events.py.
"""

from protean.core.event import BaseEvent
from protean.fields import DateTime, Float, Identifier, String


class PaymentSucceeded(BaseEvent):
    """Payment was successfully captured by the gateway."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier()
    amount = Float(required=True)
    currency = String(required=True)
    transaction_id = String(required=True)
    succeeded_at = DateTime(required=True)


class PaymentFailed(BaseEvent):
    """Payment processing failed at the gateway."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier()
    reason = String()
    failed_at = DateTime(required=True)


class PaymentRefunded(BaseEvent):
    """A previously captured payment was refunded."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    transaction_id = String()
    refunded_at = DateTime(required=True)


class PaymentCancelled(BaseEvent):
    """A pending payment was cancelled before capture."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


class PaymentDisputed(BaseEvent):
    """The customer's bank opened a dispute (chargeback) on the payment."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    disputed_at = DateTime(required=True)
