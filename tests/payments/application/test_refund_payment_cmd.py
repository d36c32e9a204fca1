"""Application tests for RefundPayment."""

import pytest
from payments.payment.events import PaymentRefunded
from payments.payment.payment import Payment, PaymentStatus
from payments.payment.processing import ProcessOrderPayment
from payments.payment.refund import PaymentRefundResult, RefundPayment
from protean import current_domain
from shared.dispatch import dispatch
from shared.outcomes import ErrorType


def _create_paid_payment(amount=50.0):
    result = current_domain.process(
        ProcessOrderPayment(order_id="ord-001", user_id="user-001", amount=amount, token="pm_card_visa"),
        asynchronous=False,
    )
    return result.payment_id


def _load(payment_id):
    return current_domain.repository_for(Payment).get(payment_id)


class TestRefundPayment:
    def test_full_refund(self, gateway):
        payment_id = _create_paid_payment()

        result = current_domain.process(RefundPayment(payment_id=payment_id, reason="Damaged"), asynchronous=False)

        assert isinstance(result, PaymentRefundResult)
        assert result.amount == 50.0
        assert result.status == PaymentStatus.REFUNDED.value
        assert result.refund_id.startswith("re_")
        assert _load(payment_id).status == PaymentStatus.REFUNDED.value
        assert gateway.calls_to("refund_payment")[0]["reason"] == "Damaged"

    def test_full_refund_publishes_payment_refunded(self):
        payment_id = _create_paid_payment()
        payment = _load(payment_id)
        payment.mark_as_refunded()
        assert type(payment._events[-1]) is PaymentRefunded

    def test_partial_refund_keeps_payment_succeeded(self):
        payment_id = _create_paid_payment()

        result = current_domain.process(RefundPayment(payment_id=payment_id, amount=20.0), asynchronous=False)

        assert result.amount == 20.0
        assert result.status == PaymentStatus.SUCCEEDED.value
        assert _load(payment_id).status == PaymentStatus.SUCCEEDED.value

    def test_partial_refunds_reaching_the_amount(self):
        payment_id = _create_paid_payment()
        dispatch(RefundPayment(payment_id=payment_id, amount=20.0))

        result = current_domain.process(RefundPayment(payment_id=payment_id, amount=50.0), asynchronous=False)
        assert result.status == PaymentStatus.REFUNDED.value

    def test_already_refunded_is_reported_not_repeated(self, gateway):
        payment_id = _create_paid_payment()
        dispatch(RefundPayment(payment_id=payment_id))

        outcome = dispatch(RefundPayment(payment_id=payment_id))

        assert outcome.is_success
        assert outcome.value.already_refunded
        assert len(gateway.calls_to("refund_payment")) == 1

    def test_pending_payment_not_refundable(self, gateway):
        gateway.configure(require_action=True)
        payment_id = _create_paid_payment()

        outcome = dispatch(RefundPayment(payment_id=payment_id))

        assert outcome.error.type == ErrorType.CONFLICT
        assert outcome.error.code == "Payment.NotRefundable"
        assert gateway.calls_to("refund_payment") == []

    @pytest.mark.parametrize("amount, code", [(-5.0, "Payment.InvalidAmount"), (60.0, "Payment.RefundExceedsAmount")])
    def test_invalid_amounts(self, amount, code):
        payment_id = _create_paid_payment()
        outcome = dispatch(RefundPayment(payment_id=payment_id, amount=amount))
        assert outcome.error.type == ErrorType.VALIDATION
        assert outcome.error.code == code

    def test_provider_rejection(self, gateway):
        payment_id = _create_paid_payment()
        gateway.configure(should_succeed=False, failure_reason="Charge already disputed")

        outcome = dispatch(RefundPayment(payment_id=payment_id))

        assert outcome.error.type == ErrorType.FAILURE
        assert outcome.error.code == "Payment.RefundFailed"
        assert outcome.error.message == "Charge already disputed"
        assert _load(payment_id).status == PaymentStatus.SUCCEEDED.value

    def test_unknown_payment(self):
        outcome = dispatch(RefundPayment(payment_id="pay-missing"))
        assert outcome.error.type == ErrorType.NOT_FOUND
        assert outcome.error.code == "Payment.NotFound"
