"""Payment aggregate (CQRS) — one charge attempt against an order.

State Machine:
    Pending → Succeeded → Refunded
    Pending → Failed → Succeeded (the provider can still capture after a retry)
    Pending/Failed → Canceled
    Succeeded ⇄ Disputed, Disputed → Refunded (chargeback lost)

Re-applying the current status is a no-op, so duplicate webhook deliveries
and client retries do not raise. Status changes publish the events that the
Sales context listens to on the ``payments::payment`` stream.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change
from protean.fields import DateTime, Float, Identifier, String, Text

from payments.domain import payments
from payments.payment.events import (
    PaymentCancelled,
    PaymentCreated,
    PaymentDisputed,
    PaymentFailed,
    PaymentRefunded,
    PaymentStatusChanged,
    PaymentSucceeded,
)
from payments.payment_method.payment_method import PaymentMethodType, PaymentProvider
from shared.errors import ConflictError, DomainValidationError, InvalidTransitionError
from shared.money import DEFAULT_CURRENCY, to_decimal


class PaymentStatus(Enum):
    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    REFUNDED = "Refunded"
    CANCELED = "Canceled"
    DISPUTED = "Disputed"


_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.SUCCEEDED, PaymentStatus.FAILED, PaymentStatus.CANCELED},
    PaymentStatus.FAILED: {PaymentStatus.SUCCEEDED, PaymentStatus.CANCELED},
    PaymentStatus.SUCCEEDED: {PaymentStatus.REFUNDED, PaymentStatus.DISPUTED},
    PaymentStatus.DISPUTED: {PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal
    PaymentStatus.CANCELED: set(),  # Terminal
}


@payments.aggregate
class Payment:
    order_id = Identifier(required=True)
    user_id = Identifier()
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)
    method_type = String(choices=PaymentMethodType, required=True)
    provider = String(choices=PaymentProvider, required=True)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method_id = Identifier()
    external_reference = String(max_length=255)
    transaction_id = String(max_length=255)
    error_message = String(max_length=500)
    cancellation_reason = String(max_length=500)
    processed_at = DateTime()
    refunded_at = DateTime()
    extra_metadata = Text()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory methods
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_id,
        amount,
        method_type,
        provider,
        currency=DEFAULT_CURRENCY,
        user_id=None,
        payment_method_id=None,
        metadata=None,
    ):
        amount = to_decimal(amount)
        if amount < 0:
            raise DomainValidationError("Payment.NegativeAmount", "amount", "Payment amount cannot be negative")

        now = datetime.now(UTC)
        payment = cls(
            order_id=order_id,
            user_id=user_id,
            amount=float(amount),
            currency=(currency or DEFAULT_CURRENCY).upper(),
            method_type=method_type,
            provider=provider,
            payment_method_id=payment_method_id,
            extra_metadata=json.dumps(metadata) if metadata else None,
            created_at=now,
            updated_at=now,
        )
        payment.raise_(
            PaymentCreated(
                payment_id=str(payment.id),
                order_id=str(order_id),
                user_id=str(user_id) if user_id else None,
                amount=payment.amount,
                currency=payment.currency,
                method_type=method_type,
                provider=provider,
                payment_method_id=str(payment_method_id) if payment_method_id else None,
                created_at=now,
            )
        )
        return payment

    @classmethod
    def create_with_payment_method(cls, order_id, amount, payment_method, currency=DEFAULT_CURRENCY, metadata=None):
        """Create a payment charged to a stored method.

        The method must be usable (active, and not expired for cards).
        """
        if not payment_method.is_usable:
            raise ConflictError(
                "Payment.PaymentMethodUnusable",
                "The payment method is inactive or expired",
                {"payment_method_id": str(payment_method.id)},
            )
        if to_decimal(amount) <= 0:
            raise DomainValidationError("Payment.InvalidAmount", "amount", "Payment amount must be greater than zero")

        return cls.create(
            order_id=order_id,
            amount=amount,
            method_type=payment_method.method_type,
            provider=payment_method.provider,
            currency=currency,
            user_id=payment_method.user_id,
            payment_method_id=payment_method.id,
            metadata=metadata,
        )

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _transition(self, target: PaymentStatus, now) -> bool:
        """Move to ``target``. Returns False when already there."""
        current = PaymentStatus(self.status)
        if current == target:
            return False
        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransitionError("Payment.InvalidStatus", current.value, target.value)

        self.status = target.value
        self.updated_at = now
        self.raise_(
            PaymentStatusChanged(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                old_status=current.value,
                new_status=target.value,
                changed_at=now,
            )
        )
        return True

    @property
    def metadata(self) -> dict:
        return json.loads(self.extra_metadata) if self.extra_metadata else {}

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def update_external_reference(self, reference):
        self.external_reference = reference
        self.updated_at = datetime.now(UTC)

    def set_payment_method(self, payment_method):
        if not payment_method.is_usable:
            raise ConflictError("Payment.PaymentMethodUnusable", "The payment method is inactive or expired")
        with atomic_change(self):
            self.payment_method_id = payment_method.id
            self.method_type = payment_method.method_type
            self.provider = payment_method.provider
            self.updated_at = datetime.now(UTC)

    def mark_as_succeeded(self, transaction_id):
        if not transaction_id:
            raise DomainValidationError(
                "Payment.TransactionIdRequired", "transaction_id", "A transaction id is required"
            )
        now = datetime.now(UTC)
        with atomic_change(self):
            if not self._transition(PaymentStatus.SUCCEEDED, now):
                return
            self.transaction_id = transaction_id
            self.processed_at = now
            self.error_message = None

        self.raise_(
            PaymentSucceeded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                user_id=str(self.user_id) if self.user_id else None,
                amount=self.amount,
                currency=self.currency,
                transaction_id=transaction_id,
                succeeded_at=now,
            )
        )

    def mark_as_failed(self, error_message=None):
        now = datetime.now(UTC)
        with atomic_change(self):
            if not self._transition(PaymentStatus.FAILED, now):
                return
            self.error_message = (error_message or "Payment failed")[:500]
            self.processed_at = now

        self.raise_(
            PaymentFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                user_id=str(self.user_id) if self.user_id else None,
                reason=self.error_message,
                failed_at=now,
            )
        )

    def mark_as_refunded(self, transaction_id=None):
        now = datetime.now(UTC)
        with atomic_change(self):
            if not self._transition(PaymentStatus.REFUNDED, now):
                return
            self.refunded_at = now

        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                amount=self.amount,
                currency=self.currency,
                transaction_id=transaction_id or self.transaction_id,
                refunded_at=now,
            )
        )

    def mark_as_disputed(self):
        now = datetime.now(UTC)
        with atomic_change(self):
            if not self._transition(PaymentStatus.DISPUTED, now):
                return

        self.raise_(PaymentDisputed(payment_id=str(self.id), order_id=str(self.order_id), disputed_at=now))

    def cancel(self, reason=None):
        now = datetime.now(UTC)
        with atomic_change(self):
            if not self._transition(PaymentStatus.CANCELED, now):
                return
            self.cancellation_reason = reason

        self.raise_(
            PaymentCancelled(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                reason=reason,
                cancelled_at=now,
            )
        )

    def update_status(self, new_status, transaction_id=None, error_message=None):
        """Generic status setter used by reconciliation; routes to the specific transition."""
        target = PaymentStatus(new_status)
        if target == PaymentStatus.SUCCEEDED:
            self.mark_as_succeeded(transaction_id or self.transaction_id)
        elif target == PaymentStatus.FAILED:
            self.mark_as_failed(error_message)
        elif target == PaymentStatus.REFUNDED:
            self.mark_as_refunded(transaction_id)
        elif target == PaymentStatus.CANCELED:
            self.cancel(error_message)
        elif target == PaymentStatus.DISPUTED:
            self.mark_as_disputed()
        else:
            self._transition(target, datetime.now(UTC))

    @property
    def is_refundable(self) -> bool:
        return PaymentStatus(self.status) in (PaymentStatus.SUCCEEDED, PaymentStatus.DISPUTED)
