"""FastAPI routes for the Payments domain — payments and stored payment methods."""

import json
import os

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from payments.api.schemas import (
    AddPaymentMethodRequest,
    ConfigureGatewayRequest,
    GatewayConfigResponse,
    PaymentMethodAddedResponse,
    PaymentMethodChallengeResponse,
    PaymentMethodIdResponse,
    PaymentMethodOwnerRequest,
    PaymentRefundResponse,
    PaymentResponse,
    ProcessPaymentRequest,
    RefundPaymentRequest,
    WebhookResponse,
)
from payments.gateway import get_gateway
from payments.gateway.fake_adapter import FakeGateway
from payments.payment.processing import ProcessOrderPayment
from payments.payment.refund import RefundPayment
from payments.payment.webhook import ProcessWebhook
from payments.payment_method.management import DeletePaymentMethod, SetDefaultPaymentMethod
from payments.payment_method.registration import AddPaymentMethod, PaymentMethodChallenge
from shared.dispatch import dispatch
from shared.http import build, unwrap

# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("", status_code=201, response_model=PaymentResponse)
async def process_payment(body: ProcessPaymentRequest) -> PaymentResponse:
    """Charge an order. A declined card still returns 201 with status Failed."""
    result = unwrap(dispatch(build(ProcessOrderPayment, **body.model_dump())))
    return PaymentResponse(**result.__dict__)


@payment_router.post("/webhook", response_model=WebhookResponse)
async def process_webhook(
    request: Request,
    x_gateway_signature: str = Header(default=""),
) -> WebhookResponse:
    """Process a provider webhook. The raw body is passed through for signature checks."""
    payload = (await request.body()).decode("utf-8")
    command = build(
        ProcessWebhook,
        body=payload,
        signature=x_gateway_signature,
        headers=json.dumps({"content-type": request.headers.get("content-type", "")}),
    )
    result = unwrap(dispatch(command))
    return WebhookResponse(**result.__dict__)


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only).

    This endpoint is only available when PROTEAN_ENV is not 'production'.
    It allows toggling decline and authentication behavior for manual API testing.
    """
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(**body.model_dump())
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
        require_action=gateway.require_action,
        confirm_requires_action=gateway.confirm_requires_action,
        frictionless_setup=gateway.frictionless_setup,
    )


@payment_router.post("/{payment_id}/refund", response_model=PaymentRefundResponse)
async def refund_payment(payment_id: str, body: RefundPaymentRequest) -> PaymentRefundResponse:
    """Refund a captured payment at the provider, in full when no amount is given."""
    command = build(RefundPayment, payment_id=payment_id, amount=body.amount, reason=body.reason)
    result = unwrap(dispatch(command, serialize_on=f"payment:{payment_id}"))
    return PaymentRefundResponse(**result.__dict__)


# ---------------------------------------------------------------------------
# Payment Method Router
# ---------------------------------------------------------------------------
payment_method_router = APIRouter(prefix="/payment-methods", tags=["payment-methods"])


@payment_method_router.post(
    "",
    status_code=201,
    response_model=PaymentMethodAddedResponse,
    responses={202: {"model": PaymentMethodChallengeResponse}},
)
async def add_payment_method(body: AddPaymentMethodRequest):
    """Store a payment method.

    Returns 202 with a challenge when the card needs authentication; the
    client completes it and resubmits with ``setup_intent_id``.
    """
    command = build(AddPaymentMethod, **body.model_dump())
    result = unwrap(dispatch(command, serialize_on=f"payment-methods:{body.user_id}"))

    if isinstance(result, PaymentMethodChallenge):
        challenge = PaymentMethodChallengeResponse(**result.__dict__)
        return JSONResponse(status_code=202, content=challenge.model_dump())
    return PaymentMethodAddedResponse(**result.__dict__)


@payment_method_router.put("/{payment_method_id}/default", response_model=PaymentMethodIdResponse)
async def set_default_payment_method(payment_method_id: str, body: PaymentMethodOwnerRequest) -> PaymentMethodIdResponse:
    command = SetDefaultPaymentMethod(user_id=body.user_id, payment_method_id=payment_method_id)
    result = unwrap(dispatch(command, serialize_on=f"payment-methods:{body.user_id}"))
    return PaymentMethodIdResponse(payment_method_id=result)


@payment_method_router.delete("/{payment_method_id}", response_model=PaymentMethodIdResponse)
async def delete_payment_method(payment_method_id: str, user_id: str) -> PaymentMethodIdResponse:
    command = DeletePaymentMethod(user_id=user_id, payment_method_id=payment_method_id)
    result = unwrap(dispatch(command, serialize_on=f"payment-methods:{user_id}"))
    return PaymentMethodIdResponse(payment_method_id=result)
