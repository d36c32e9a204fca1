"""Pydantic request/response schemas for the Payments API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from datetime import date

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Payment Schemas
# ---------------------------------------------------------------------------
class ProcessPaymentRequest(BaseModel):
    order_id: str
    user_id: str
    amount: float = Field(gt=0)
    currency: str = "USD"
    payment_method_id: str | None = None
    token: str | None = None
    method_type: str = "CreditCard"
    provider: str = "Stripe"
    idempotency_key: str | None = None
    description: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order_id": "ord-001",
                    "user_id": "user-001",
                    "amount": 20.0,
                    "currency": "USD",
                    "payment_method_id": "pm-001",
                    "idempotency_key": "idem-001",
                }
            ]
        }
    }


class PaymentResponse(BaseModel):
    payment_id: str
    order_id: str
    status: str
    amount: float
    currency: str
    transaction_id: str | None = None
    requires_action: bool = False
    client_secret: str | None = None
    failure_reason: str | None = None


class RefundPaymentRequest(BaseModel):
    amount: float | None = Field(default=None, gt=0)
    reason: str | None = None


class PaymentRefundResponse(BaseModel):
    payment_id: str
    refund_id: str | None = None
    amount: float
    status: str
    already_refunded: bool = False


class WebhookResponse(BaseModel):
    event_id: str | None = None
    event_type: str | None = None
    handled: bool
    payment_id: str | None = None
    payment_status: str | None = None


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Card declined"
    require_action: bool = False
    confirm_requires_action: bool = False
    frictionless_setup: bool = False


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
    require_action: bool
    confirm_requires_action: bool
    frictionless_setup: bool


# ---------------------------------------------------------------------------
# Payment Method Schemas
# ---------------------------------------------------------------------------
class AddPaymentMethodRequest(BaseModel):
    user_id: str
    email: str | None = None
    method_type: str
    provider: str
    token: str | None = None
    display_name: str | None = Field(default=None, max_length=100)
    card_brand: str | None = None
    last_four_digits: str | None = Field(default=None, min_length=4, max_length=4)
    expiry_date: date | None = None
    paypal_email: str | None = None
    is_default: bool = False
    requires_setup_intent: bool = False
    setup_intent_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-001",
                    "email": "jane@example.com",
                    "method_type": "CreditCard",
                    "provider": "Stripe",
                    "token": "pm_card_visa",
                    "card_brand": "Visa",
                    "last_four_digits": "4242",
                    "expiry_date": "2030-12-31",
                    "is_default": True,
                }
            ]
        }
    }


class PaymentMethodAddedResponse(BaseModel):
    payment_method_id: str
    user_id: str
    method_type: str
    provider: str
    display_name: str
    is_default: bool
    provider_customer_id: str | None = None
    setup_intent_id: str | None = None


class PaymentMethodChallengeResponse(BaseModel):
    setup_intent_id: str
    client_secret: str | None = None
    next_action_type: str | None = None
    payment_method_token: str | None = None
    requires_authentication: bool = True


class PaymentMethodOwnerRequest(BaseModel):
    user_id: str


class PaymentMethodIdResponse(BaseModel):
    payment_method_id: str
