"""Payment refunds at the provider — command and handler.

The gateway is only called for a refundable payment. A full refund moves the
payment to Refunded and publishes PaymentRefunded, which Sales applies to
the order's payment status. A partial provider refund leaves the payment
Succeeded; order-level bookkeeping of partial amounts lives in Sales.
"""

from dataclasses import dataclass

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.gateway import get_gateway
from payments.payment.lookup import get_payment
from payments.payment.payment import Payment, PaymentStatus
from shared.errors import DomainValidationError, FailureError, InvalidTransitionError
from shared.money import to_decimal

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentRefundResult:
    payment_id: str
    refund_id: str | None
    amount: float
    status: str
    already_refunded: bool = False


@payments.command(part_of="Payment")
class RefundPayment:
    payment_id = Identifier(required=True)
    amount = Float()  # None → refund the full payment
    reason = String(max_length=500)


@payments.command_handler(part_of=Payment)
class PaymentRefundHandler:
    @handle(RefundPayment)
    def refund_payment(self, command):
        payment = get_payment(command.payment_id)

        if PaymentStatus(payment.status) == PaymentStatus.REFUNDED:
            return PaymentRefundResult(
                payment_id=str(payment.id),
                refund_id=None,
                amount=payment.amount,
                status=payment.status,
                already_refunded=True,
            )
        if not payment.is_refundable:
            raise InvalidTransitionError(
                "Payment.NotRefundable",
                payment.status,
                PaymentStatus.REFUNDED.value,
                f"A {payment.status} payment cannot be refunded",
            )

        amount = command.amount
        if amount is not None:
            if to_decimal(amount) <= 0:
                raise DomainValidationError("Payment.InvalidAmount", "amount", "Refund amount must be greater than zero")
            if to_decimal(amount) > to_decimal(payment.amount):
                raise DomainValidationError(
                    "Payment.RefundExceedsAmount",
                    "amount",
                    f"Refund {amount} exceeds payment amount {payment.amount}",
                )

        result = get_gateway().refund_payment(payment.transaction_id, amount=amount, reason=command.reason)
        if not result.success:
            raise FailureError(
                "Payment.RefundFailed",
                result.failure_reason or "The provider rejected the refund",
                {"error_code": result.error_code.value if result.error_code else None},
            )

        refunded = to_decimal(result.amount if result.amount is not None else payment.amount)
        if refunded >= to_decimal(payment.amount):
            payment.mark_as_refunded()
            current_domain.repository_for(Payment).add(payment)
        else:
            logger.info(
                "Partial refund issued at provider",
                payment_id=str(payment.id),
                amount=float(refunded),
            )

        logger.info(
            "Payment refund processed",
            payment_id=str(payment.id),
            refund_id=result.refund_id,
            amount=float(refunded),
        )
        return PaymentRefundResult(
            payment_id=str(payment.id),
            refund_id=result.refund_id,
            amount=float(refunded),
            status=payment.status,
        )
