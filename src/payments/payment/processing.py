"""Charging an order — command and handler.

The charge goes through the gateway port inside the unit of work. A declined
card is a normal outcome (the payment is stored as Failed and the result says
so); only problems with the request itself are errors. A charge that needs
customer authentication stays Pending and returns the client secret; the
provider's webhook settles it later.
"""

from dataclasses import dataclass

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.gateway import get_gateway
from payments.gateway.port import PaymentRequest
from payments.payment.payment import Payment
from payments.payment_method.lookup import get_user_payment_method
from payments.payment_method.payment_method import PaymentMethodType, PaymentProvider
from shared.errors import DomainValidationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentProcessed:
    payment_id: str
    order_id: str
    status: str
    amount: float
    currency: str
    transaction_id: str | None
    requires_action: bool
    client_secret: str | None
    failure_reason: str | None


@payments.command(part_of="Payment")
class ProcessOrderPayment:
    """Charge ``amount`` for an order, with a stored method or a one-off token."""

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(max_length=3, default="USD")
    payment_method_id = Identifier()
    token = String(max_length=255)
    method_type = String(max_length=20, default=PaymentMethodType.CREDIT_CARD.value)
    provider = String(max_length=20, default=PaymentProvider.STRIPE.value)
    idempotency_key = String(max_length=255)
    description = String(max_length=500)
    metadata = Text()


@payments.command_handler(part_of=Payment)
class PaymentProcessingHandler:
    @handle(ProcessOrderPayment)
    def process_order_payment(self, command):
        customer_id = None
        if command.payment_method_id:
            method = get_user_payment_method(command.payment_method_id, command.user_id)
            payment = Payment.create_with_payment_method(
                order_id=command.order_id,
                amount=command.amount,
                payment_method=method,
                currency=command.currency,
            )
            token = method.token
            customer_id = method.provider_customer_id
        else:
            if not command.token:
                raise DomainValidationError(
                    "Payment.TokenRequired", "token", "A payment method or a payment token is required"
                )
            payment = Payment.create(
                order_id=command.order_id,
                amount=command.amount,
                method_type=command.method_type,
                provider=command.provider,
                currency=command.currency,
                user_id=command.user_id,
            )
            token = command.token

        result = get_gateway().process_payment(
            PaymentRequest(
                amount=payment.amount,
                currency=payment.currency,
                payment_method_token=token,
                customer_id=customer_id,
                description=command.description,
                idempotency_key=command.idempotency_key or str(payment.id),
                metadata={"order_id": str(command.order_id), "payment_id": str(payment.id)},
            )
        )

        if result.transaction_id:
            payment.update_external_reference(result.transaction_id)

        if result.success and result.requires_action:
            logger.info(
                "Payment awaiting customer authentication",
                payment_id=str(payment.id),
                order_id=str(payment.order_id),
            )
        elif result.success:
            payment.mark_as_succeeded(result.transaction_id)
            logger.info(
                "Payment succeeded",
                payment_id=str(payment.id),
                order_id=str(payment.order_id),
                amount=payment.amount,
            )
        else:
            payment.mark_as_failed(result.failure_reason)
            logger.warning(
                "Payment failed",
                payment_id=str(payment.id),
                order_id=str(payment.order_id),
                error_code=result.error_code.value if result.error_code else None,
                reason=result.failure_reason,
            )

        current_domain.repository_for(Payment).add(payment)

        return PaymentProcessed(
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            status=payment.status,
            amount=payment.amount,
            currency=payment.currency,
            transaction_id=payment.transaction_id or payment.external_reference,
            requires_action=result.requires_action,
            client_secret=result.client_secret,
            failure_reason=payment.error_message,
        )
