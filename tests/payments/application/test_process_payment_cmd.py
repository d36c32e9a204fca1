"""Application tests for ProcessOrderPayment."""

from datetime import date

from payments.payment.payment import Payment, PaymentStatus
from payments.payment.processing import PaymentProcessed, ProcessOrderPayment
from payments.payment_method.payment_method import CardDetails, PaymentMethod
from protean import current_domain
from shared.dispatch import dispatch
from shared.outcomes import ErrorType


def _pay(**overrides):
    defaults = {"order_id": "ord-001", "user_id": "user-001", "amount": 26.60, "token": "pm_card_visa"}
    defaults.update(overrides)
    return ProcessOrderPayment(**defaults)


def _create_method(expiry=date(2030, 12, 31)):
    method = PaymentMethod.create_card_method(
        user_id="user-001",
        provider="Stripe",
        token="pm_stored",
        card=CardDetails(brand="Visa", last_four_digits="4242", expiry_date=expiry),
    )
    method.link_provider_customer("cus_001")
    current_domain.repository_for(PaymentMethod).add(method)
    return method


class TestProcessOrderPayment:
    def test_successful_charge(self, gateway):
        result = current_domain.process(_pay(), asynchronous=False)

        assert isinstance(result, PaymentProcessed)
        assert result.status == PaymentStatus.SUCCEEDED.value
        assert result.transaction_id.startswith("pi_")
        assert not result.requires_action

        payment = current_domain.repository_for(Payment).get(result.payment_id)
        assert payment.transaction_id == result.transaction_id
        assert payment.external_reference == result.transaction_id

    def test_idempotency_key_defaults_to_payment_id(self, gateway):
        result = current_domain.process(_pay(), asynchronous=False)
        assert gateway.calls_to("process_payment")[0]["idempotency_key"] == result.payment_id

    def test_decline_is_stored_as_failed(self, gateway):
        gateway.configure(should_succeed=False, failure_reason="Insufficient funds")

        outcome = dispatch(_pay())

        assert outcome.is_success
        assert outcome.value.status == PaymentStatus.FAILED.value
        assert outcome.value.failure_reason == "Insufficient funds"
        payment = current_domain.repository_for(Payment).get(outcome.value.payment_id)
        assert payment.status == PaymentStatus.FAILED.value

    def test_authentication_required_stays_pending(self, gateway):
        gateway.configure(require_action=True)

        result = current_domain.process(_pay(), asynchronous=False)

        assert result.requires_action
        assert result.client_secret
        assert result.status == PaymentStatus.PENDING.value
        payment = current_domain.repository_for(Payment).get(result.payment_id)
        assert payment.external_reference == result.transaction_id

    def test_stored_method_is_charged_with_its_customer(self, gateway):
        method = _create_method()

        result = current_domain.process(_pay(token=None, payment_method_id=str(method.id)), asynchronous=False)

        call = gateway.calls_to("process_payment")[0]
        assert call["payment_method_token"] == "pm_stored"
        assert call["customer_id"] == "cus_001"
        payment = current_domain.repository_for(Payment).get(result.payment_id)
        assert str(payment.payment_method_id) == str(method.id)

    def test_inactive_stored_method_rejected(self, gateway):
        method = _create_method()
        method.deactivate()
        current_domain.repository_for(PaymentMethod).add(method)

        outcome = dispatch(_pay(token=None, payment_method_id=str(method.id)))

        assert outcome.error.type == ErrorType.CONFLICT
        assert outcome.error.code == "Payment.PaymentMethodUnusable"
        assert gateway.calls_to("process_payment") == []

    def test_token_or_method_required(self, gateway):
        outcome = dispatch(_pay(token=None))
        assert outcome.error.type == ErrorType.VALIDATION
        assert outcome.error.code == "Payment.TokenRequired"

    def test_someone_elses_method_is_not_found(self):
        method = _create_method()
        outcome = dispatch(_pay(user_id="user-002", token=None, payment_method_id=str(method.id)))
        assert outcome.error.code == "PaymentMethod.NotFound"
