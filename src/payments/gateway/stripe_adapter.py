"""Stripe payment gateway adapter (production stub).

This is a placeholder for the real Stripe SDK integration. A complete
adapter maps Stripe's error codes onto GatewayErrorCode, in particular
``payment_method_already_attached`` -> ALREADY_ATTACHED and
``setup_intent_unexpected_state`` on a succeeded intent ->
INTENT_ALREADY_SUCCEEDED.
"""

from payments.gateway.port import (
    AttachResult,
    CustomerResult,
    PaymentGateway,
    PaymentRequest,
    PaymentResult,
    PaymentStatusResult,
    RefundResult,
    SetupIntentResult,
    WebhookResult,
)


def _not_implemented(operation: str) -> NotImplementedError:
    return NotImplementedError(
        f"StripeGateway.{operation}() is not yet implemented. Integrate stripe-python SDK here."
    )


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter. Not yet implemented."""

    provider = "Stripe"

    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def process_payment(self, request: PaymentRequest) -> PaymentResult:
        raise _not_implemented("process_payment")

    def refund_payment(
        self,
        transaction_id: str,
        amount: float | None = None,
        reason: str | None = None,
    ) -> RefundResult:
        raise _not_implemented("refund_payment")

    def get_payment_status(self, transaction_id: str) -> PaymentStatusResult:
        raise _not_implemented("get_payment_status")

    def get_or_create_customer(self, user_id: str, email: str | None, metadata: dict | None = None) -> CustomerResult:
        raise _not_implemented("get_or_create_customer")

    def attach_payment_method(self, payment_method_token: str, customer_id: str) -> AttachResult:
        raise _not_implemented("attach_payment_method")

    def process_webhook(self, payload: str, signature: str | None, headers: dict | None = None) -> WebhookResult:
        # Use stripe.Webhook.construct_event() with self.webhook_secret here
        raise _not_implemented("process_webhook")

    def create_setup_intent(
        self,
        customer_id: str,
        payment_method_token: str,
        metadata: dict | None = None,
    ) -> SetupIntentResult:
        raise _not_implemented("create_setup_intent")

    def confirm_setup_intent(self, setup_intent_id: str, payment_method_token: str | None = None) -> SetupIntentResult:
        raise _not_implemented("confirm_setup_intent")
