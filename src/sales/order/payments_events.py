"""Inbound cross-domain event handler — Sales reacts to Payments events.

Payment aggregates never touch orders. Instead each payment outcome is
published on the ``payments::payment`` stream and this handler moves the
owning order's payment status along:

    PaymentSucceeded → mark_as_paid (Pending order advances to Processing)
    PaymentFailed    → payment status Failed
    PaymentRefunded  → payment status Refunded
    PaymentCancelled → payment status Canceled
    PaymentDisputed  → payment status Disputed

Cross-domain events are imported from shared.events.payments and registered
as external events via sales.register_external_event().
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from sales.domain import sales
from sales.order.order import Order, PaymentStatus
from shared.events.payments import (
    PaymentCancelled,
    PaymentDisputed,
    PaymentFailed,
    PaymentRefunded,
    PaymentSucceeded,
)

logger = structlog.get_logger(__name__)

# Register external events so Protean can deserialize them
sales.register_external_event(PaymentSucceeded, "Payments.PaymentSucceeded.v1")
sales.register_external_event(PaymentFailed, "Payments.PaymentFailed.v1")
sales.register_external_event(PaymentRefunded, "Payments.PaymentRefunded.v1")
sales.register_external_event(PaymentCancelled, "Payments.PaymentCancelled.v1")
sales.register_external_event(PaymentDisputed, "Payments.PaymentDisputed.v1")


def _load_order(order_id, event_name):
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        logger.warning("Payment event for unknown order ignored", order_id=str(order_id), payment_event=event_name)
        return None


@sales.event_handler(part_of=Order, stream_category="payments::payment")
class OrderPaymentEventHandler:
    """Keeps Order.payment_status in step with the Payment aggregate."""

    def _apply_status(self, order_id, status: PaymentStatus, event_name):
        order = _load_order(order_id, event_name)
        if order is None:
            return
        order.update_payment_status(status.value)
        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order payment status updated",
            order_id=str(order_id),
            payment_status=status.value,
            payment_event=event_name,
        )

    @handle(PaymentSucceeded)
    def on_payment_succeeded(self, event: PaymentSucceeded) -> None:
        order = _load_order(event.order_id, "PaymentSucceeded")
        if order is None:
            return
        order.mark_as_paid()
        current_domain.repository_for(Order).add(order)
        logger.info("Order marked as paid", order_id=str(event.order_id), payment_id=str(event.payment_id))

    @handle(PaymentFailed)
    def on_payment_failed(self, event: PaymentFailed) -> None:
        self._apply_status(event.order_id, PaymentStatus.FAILED, "PaymentFailed")

    @handle(PaymentRefunded)
    def on_payment_refunded(self, event: PaymentRefunded) -> None:
        self._apply_status(event.order_id, PaymentStatus.REFUNDED, "PaymentRefunded")

    @handle(PaymentCancelled)
    def on_payment_cancelled(self, event: PaymentCancelled) -> None:
        self._apply_status(event.order_id, PaymentStatus.CANCELED, "PaymentCancelled")

    @handle(PaymentDisputed)
    def on_payment_disputed(self, event: PaymentDisputed) -> None:
        self._apply_status(event.order_id, PaymentStatus.DISPUTED, "PaymentDisputed")
