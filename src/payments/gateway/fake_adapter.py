"""Configurable fake payment gateway for development and testing.

This adapter simulates a real payment gateway without any external calls.
It can be configured at runtime to succeed, fail, or demand customer
authentication, making it useful for:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real gateway credentials

It keeps just enough state to behave like a provider: customers are created
once per user, a payment method can only be attached once, and a setup intent
can only be confirmed once (the second confirmation reports
INTENT_ALREADY_SUCCEEDED, as happens when the provider's webhook wins the race).
"""

import json
from uuid import uuid4

from payments.gateway.port import (
    AttachResult,
    CustomerResult,
    GatewayErrorCode,
    PaymentGateway,
    PaymentRequest,
    PaymentResult,
    PaymentStatusResult,
    RefundResult,
    SetupIntentResult,
    WebhookResult,
)

TEST_SIGNATURE = "test-signature"


def _id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    provider = "Stripe"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.require_action: bool = False
        self.confirm_requires_action: bool = False
        self.frictionless_setup: bool = False
        self.calls: list[dict] = []

        self.customers: dict[str, str] = {}  # user_id -> customer_id
        self.attachments: dict[str, str] = {}  # payment method token -> customer_id
        self.setup_intents: dict[str, dict] = {}
        self.charges: dict[str, dict] = {}

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Card declined",
        require_action: bool = False,
        confirm_requires_action: bool = False,
        frictionless_setup: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.require_action = require_action
        self.confirm_requires_action = confirm_requires_action
        self.frictionless_setup = frictionless_setup

    def calls_to(self, method: str) -> list[dict]:
        return [c for c in self.calls if c["method"] == method]

    # -------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------
    def process_payment(self, request: PaymentRequest) -> PaymentResult:
        self.calls.append(
            {
                "method": "process_payment",
                "amount": request.amount,
                "currency": request.currency,
                "payment_method_token": request.payment_method_token,
                "customer_id": request.customer_id,
                "idempotency_key": request.idempotency_key,
            }
        )

        if not self.should_succeed:
            return PaymentResult(
                success=False,
                status="failed",
                error_code=GatewayErrorCode.CARD_DECLINED,
                failure_reason=self.failure_reason,
            )

        transaction_id = _id("pi")
        if self.require_action:
            self.charges[transaction_id] = {"amount": request.amount, "status": "requires_action", "refunded": 0.0}
            return PaymentResult(
                success=True,
                transaction_id=transaction_id,
                status="requires_action",
                requires_action=True,
                client_secret=f"{transaction_id}_secret_{uuid4().hex[:8]}",
            )

        self.charges[transaction_id] = {"amount": request.amount, "status": "succeeded", "refunded": 0.0}
        return PaymentResult(success=True, transaction_id=transaction_id, status="succeeded")

    def refund_payment(
        self,
        transaction_id: str,
        amount: float | None = None,
        reason: str | None = None,
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "refund_payment",
                "transaction_id": transaction_id,
                "amount": amount,
                "reason": reason,
            }
        )

        if not self.should_succeed:
            return RefundResult(
                success=False,
                error_code=GatewayErrorCode.PROVIDER_ERROR,
                failure_reason=self.failure_reason,
            )

        charge = self.charges.get(transaction_id)
        refund_amount = amount if amount is not None else (charge["amount"] if charge else None)
        if charge is not None and refund_amount is not None:
            charge["refunded"] += refund_amount
            if charge["refunded"] >= charge["amount"]:
                charge["status"] = "refunded"
        return RefundResult(success=True, refund_id=_id("re"), status="succeeded", amount=refund_amount)

    def get_payment_status(self, transaction_id: str) -> PaymentStatusResult:
        self.calls.append({"method": "get_payment_status", "transaction_id": transaction_id})
        charge = self.charges.get(transaction_id)
        if charge is None:
            return PaymentStatusResult(
                success=False,
                transaction_id=transaction_id,
                error_code=GatewayErrorCode.INVALID_REQUEST,
                failure_reason=f"No such payment: {transaction_id}",
            )
        return PaymentStatusResult(success=True, transaction_id=transaction_id, status=charge["status"])

    # -------------------------------------------------------------------
    # Customers and payment methods
    # -------------------------------------------------------------------
    def get_or_create_customer(self, user_id: str, email: str | None, metadata: dict | None = None) -> CustomerResult:
        self.calls.append({"method": "get_or_create_customer", "user_id": user_id, "email": email})

        if user_id in self.customers:
            return CustomerResult(success=True, customer_id=self.customers[user_id], created=False)

        customer_id = _id("cus")
        self.customers[user_id] = customer_id
        return CustomerResult(success=True, customer_id=customer_id, created=True)

    def attach_payment_method(self, payment_method_token: str, customer_id: str) -> AttachResult:
        self.calls.append(
            {
                "method": "attach_payment_method",
                "payment_method_token": payment_method_token,
                "customer_id": customer_id,
            }
        )

        if payment_method_token in self.attachments:
            return AttachResult(
                success=False,
                error_code=GatewayErrorCode.ALREADY_ATTACHED,
                failure_reason="The payment method is already attached to a customer",
            )
        if not self.should_succeed:
            return AttachResult(
                success=False,
                error_code=GatewayErrorCode.CARD_DECLINED,
                failure_reason=self.failure_reason,
            )

        self.attachments[payment_method_token] = customer_id
        return AttachResult(success=True)

    # -------------------------------------------------------------------
    # Setup intents
    # -------------------------------------------------------------------
    def create_setup_intent(
        self,
        customer_id: str,
        payment_method_token: str,
        metadata: dict | None = None,
    ) -> SetupIntentResult:
        self.calls.append(
            {
                "method": "create_setup_intent",
                "customer_id": customer_id,
                "payment_method_token": payment_method_token,
                "metadata": dict(metadata or {}),
            }
        )

        if not self.should_succeed:
            return SetupIntentResult(
                success=False,
                error_code=GatewayErrorCode.PROVIDER_ERROR,
                failure_reason=self.failure_reason,
            )

        setup_intent_id = _id("seti")
        client_secret = f"{setup_intent_id}_secret_{uuid4().hex[:8]}"
        status = "succeeded" if self.frictionless_setup else "requires_action"
        self.setup_intents[setup_intent_id] = {
            "customer_id": customer_id,
            "payment_method_token": payment_method_token,
            "metadata": dict(metadata or {}),
            "status": status,
            "client_secret": client_secret,
        }
        if self.frictionless_setup:
            self.attachments[payment_method_token] = customer_id
        return SetupIntentResult(
            success=True,
            setup_intent_id=setup_intent_id,
            status=status,
            client_secret=client_secret,
            requires_action=not self.frictionless_setup,
            next_action_type=None if self.frictionless_setup else "use_stripe_sdk",
            payment_method_id=payment_method_token,
            metadata=dict(metadata or {}),
        )

    def confirm_setup_intent(self, setup_intent_id: str, payment_method_token: str | None = None) -> SetupIntentResult:
        self.calls.append(
            {
                "method": "confirm_setup_intent",
                "setup_intent_id": setup_intent_id,
                "payment_method_token": payment_method_token,
            }
        )

        intent = self.setup_intents.get(setup_intent_id)
        if intent is None:
            return SetupIntentResult(
                success=False,
                setup_intent_id=setup_intent_id,
                error_code=GatewayErrorCode.INVALID_REQUEST,
                failure_reason=f"No such setup intent: {setup_intent_id}",
            )
        if intent["status"] == "succeeded":
            return SetupIntentResult(
                success=False,
                setup_intent_id=setup_intent_id,
                status="succeeded",
                error_code=GatewayErrorCode.INTENT_ALREADY_SUCCEEDED,
                failure_reason="This SetupIntent has already succeeded",
            )
        if self.confirm_requires_action:
            return SetupIntentResult(
                success=True,
                setup_intent_id=setup_intent_id,
                status="requires_action",
                client_secret=intent["client_secret"],
                requires_action=True,
                next_action_type="redirect_to_url",
                payment_method_id=intent["payment_method_token"],
                metadata=dict(intent["metadata"]),
            )
        if not self.should_succeed:
            intent["status"] = "requires_payment_method"
            return SetupIntentResult(
                success=True,
                setup_intent_id=setup_intent_id,
                status="requires_payment_method",
                payment_method_id=intent["payment_method_token"],
                metadata=dict(intent["metadata"]),
            )

        self._succeed_intent(intent)
        return SetupIntentResult(
            success=True,
            setup_intent_id=setup_intent_id,
            status="succeeded",
            payment_method_id=intent["payment_method_token"],
            metadata=dict(intent["metadata"]),
        )

    def complete_setup_intent(self, setup_intent_id: str) -> None:
        """Simulate the provider finishing the intent on its own (webhook-driven path)."""
        self._succeed_intent(self.setup_intents[setup_intent_id])

    def _succeed_intent(self, intent: dict) -> None:
        # Confirming a setup intent attaches the payment method as a side effect
        intent["status"] = "succeeded"
        self.attachments.setdefault(intent["payment_method_token"], intent["customer_id"])

    # -------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------
    def process_webhook(self, payload: str, signature: str | None, headers: dict | None = None) -> WebhookResult:
        self.calls.append({"method": "process_webhook", "signature": signature})

        if signature != TEST_SIGNATURE:
            return WebhookResult(
                success=False,
                error_code=GatewayErrorCode.INVALID_SIGNATURE,
                failure_reason="Invalid webhook signature",
            )

        try:
            event = json.loads(payload)
        except (TypeError, ValueError):
            return WebhookResult(
                success=False,
                error_code=GatewayErrorCode.INVALID_REQUEST,
                failure_reason="Webhook payload is not valid JSON",
            )

        event_type = event.get("type")
        data = (event.get("data") or {}).get("object") or {}
        if event_type and event_type.startswith("charge."):
            transaction_id = data.get("payment_intent") or data.get("id")
        else:
            transaction_id = data.get("id")

        amount = data.get("amount")
        amount_refunded = data.get("amount_refunded")
        last_error = data.get("last_payment_error") or {}

        return WebhookResult(
            success=True,
            event_id=event.get("id"),
            event_type=event_type,
            transaction_id=transaction_id,
            customer_id=data.get("customer"),
            is_processed=bool(event_type),
            # Provider amounts are in minor units (cents)
            amount=amount / 100 if amount is not None else None,
            amount_refunded=amount_refunded / 100 if amount_refunded is not None else None,
            failure_reason=last_error.get("message") or data.get("cancellation_reason"),
            event_data=data,
        )
