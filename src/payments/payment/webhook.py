"""Provider webhook processing — command and handler.

The gateway verifies the signature and normalizes the payload; this handler
maps the provider event type onto a Payment transition:

    payment_intent.succeeded / charge.succeeded      → Succeeded
    payment_intent.payment_failed / charge.failed    → Failed
    payment_intent.canceled                          → Canceled
    charge.refunded (fully)                          → Refunded
    charge.dispute.created                           → Disputed

Deliveries are at-least-once and may arrive out of order. Repeats are
no-ops because transitions to the current status are ignored; a stale event
that would move the payment backwards is logged and acknowledged.
``setup_intent.*`` events are acknowledged only: stored methods are created
by the client-driven confirmation, which tolerates the webhook having won.
"""

import json
from dataclasses import dataclass

import structlog
from protean import handle
from protean.fields import String, Text
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.gateway import get_gateway
from payments.gateway.port import GatewayErrorCode
from payments.payment.lookup import find_payment_by_transaction
from payments.payment.payment import Payment, PaymentStatus
from shared.errors import FailureError, InvalidTransitionError, UnauthorizedError
from shared.money import to_decimal

logger = structlog.get_logger(__name__)

_EVENT_STATUS = {
    "payment_intent.succeeded": PaymentStatus.SUCCEEDED,
    "charge.succeeded": PaymentStatus.SUCCEEDED,
    "payment_intent.payment_failed": PaymentStatus.FAILED,
    "charge.failed": PaymentStatus.FAILED,
    "payment_intent.canceled": PaymentStatus.CANCELED,
    "charge.refunded": PaymentStatus.REFUNDED,
    "charge.dispute.created": PaymentStatus.DISPUTED,
}


@dataclass(frozen=True)
class WebhookOutcome:
    event_id: str | None
    event_type: str | None
    handled: bool
    payment_id: str | None = None
    payment_status: str | None = None


@payments.command(part_of="Payment")
class ProcessWebhook:
    """A raw provider webhook delivery."""

    provider = String(max_length=20, default="Stripe")
    body = Text(required=True)  # raw provider JSON
    signature = String(max_length=500)
    headers = Text()  # JSON object


@payments.command_handler(part_of=Payment)
class ProcessWebhookHandler:
    @handle(ProcessWebhook)
    def process_webhook(self, command):
        headers = json.loads(command.headers) if command.headers else {}
        result = get_gateway().process_webhook(command.body, command.signature, headers)

        if not result.success:
            if result.error_code == GatewayErrorCode.INVALID_SIGNATURE:
                raise UnauthorizedError("Webhook.InvalidSignature", "Webhook signature verification failed")
            raise FailureError("Webhook.ProcessingFailed", result.failure_reason or "Webhook could not be processed")

        unhandled = WebhookOutcome(event_id=result.event_id, event_type=result.event_type, handled=False)

        if not result.is_processed or not result.event_type:
            return unhandled

        if result.event_type.startswith("setup_intent."):
            logger.info(
                "Setup intent webhook acknowledged",
                event_type=result.event_type,
                setup_intent_id=result.transaction_id,
            )
            return unhandled

        target = _EVENT_STATUS.get(result.event_type)
        if target is None:
            logger.info("Unhandled webhook event type", event_type=result.event_type, event_id=result.event_id)
            return unhandled

        payment = find_payment_by_transaction(result.transaction_id) if result.transaction_id else None
        if payment is None:
            logger.warning(
                "Webhook for unknown payment",
                event_type=result.event_type,
                transaction_id=result.transaction_id,
            )
            return unhandled

        try:
            self._apply(payment, target, result)
        except InvalidTransitionError as exc:
            logger.warning(
                "Stale webhook ignored",
                payment_id=str(payment.id),
                event_type=result.event_type,
                current=exc.details.get("current"),
                target=exc.details.get("target"),
            )
            return WebhookOutcome(
                event_id=result.event_id,
                event_type=result.event_type,
                handled=False,
                payment_id=str(payment.id),
                payment_status=payment.status,
            )

        current_domain.repository_for(Payment).add(payment)
        logger.info(
            "Webhook applied",
            payment_id=str(payment.id),
            event_type=result.event_type,
            status=payment.status,
        )
        return WebhookOutcome(
            event_id=result.event_id,
            event_type=result.event_type,
            handled=True,
            payment_id=str(payment.id),
            payment_status=payment.status,
        )

    def _apply(self, payment, target, result):
        if target == PaymentStatus.SUCCEEDED:
            payment.mark_as_succeeded(result.transaction_id)
        elif target == PaymentStatus.FAILED:
            payment.mark_as_failed(result.failure_reason or result.event_type)
        elif target == PaymentStatus.CANCELED:
            payment.cancel(result.failure_reason)
        elif target == PaymentStatus.DISPUTED:
            payment.mark_as_disputed()
        elif target == PaymentStatus.REFUNDED:
            refunded = result.amount_refunded if result.amount_refunded is not None else payment.amount
            if to_decimal(refunded) >= to_decimal(payment.amount):
                payment.mark_as_refunded(result.transaction_id)
            else:
                logger.info("Partial refund webhook", payment_id=str(payment.id), amount_refunded=refunded)
