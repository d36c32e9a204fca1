"""Adding a stored payment method — command and coordinator.

One command drives three paths:

1. Direct: validate, resolve the provider customer (Stripe only), attach the
   token to it, then store the method.
2. Setup intent requested (``requires_setup_intent`` without an intent id):
   create an intent at the provider and hand back a challenge for the client
   to complete. Nothing is stored yet.
3. Confirmation (``setup_intent_id`` given): confirm the intent. Values the
   intent carries in its metadata win over the request's. The method is then
   stored without a second attachment, since confirming already attached it.

Two provider races resolve as successes, keyed on typed gateway codes:
``ALREADY_ATTACHED`` on attachment and ``INTENT_ALREADY_SUCCEEDED`` on
confirmation (the provider's webhook got there first).
"""

import json
from dataclasses import dataclass, replace
from datetime import date

import structlog
from protean import handle
from protean.fields import Boolean, Date, Identifier, String, Text
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.gateway import get_gateway
from payments.gateway.port import GatewayErrorCode
from payments.payment_method.lookup import active_methods_for_user, methods_for_user_with_token
from payments.payment_method.payment_method import (
    CARD_TYPES,
    CardDetails,
    PaymentMethod,
    PaymentMethodType,
    PaymentProvider,
)
from shared.errors import ConflictError, DomainValidationError, FailureError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentMethodChallenge:
    """The client must complete authentication, then resubmit with the intent id."""

    setup_intent_id: str
    client_secret: str | None
    next_action_type: str | None
    payment_method_token: str | None = None
    requires_authentication: bool = True


@dataclass(frozen=True)
class PaymentMethodAdded:
    payment_method_id: str
    user_id: str
    method_type: str
    provider: str
    display_name: str
    is_default: bool
    provider_customer_id: str | None
    setup_intent_id: str | None = None


@dataclass(frozen=True)
class _MethodDraft:
    """Everything needed to build the aggregate, after metadata merging."""

    user_id: str
    email: str | None
    method_type: str
    provider: str
    token: str | None
    display_name: str | None
    card_brand: str | None
    last_four_digits: str | None
    expiry_date: date | None
    paypal_email: str | None
    is_default: bool
    metadata: dict


@payments.command(part_of="PaymentMethod")
class AddPaymentMethod:
    user_id = Identifier(required=True)
    email = String(max_length=254)
    method_type = String(required=True, max_length=20)
    provider = String(required=True, max_length=20)
    token = String(max_length=255)
    display_name = String(max_length=100)
    card_brand = String(max_length=30)
    last_four_digits = String(max_length=4)
    expiry_date = Date()
    paypal_email = String(max_length=254)
    is_default = Boolean(default=False)
    requires_setup_intent = Boolean(default=False)
    setup_intent_id = String(max_length=255)
    metadata = Text()  # JSON object


def _validated_draft(command) -> _MethodDraft:
    try:
        method_type = PaymentMethodType(command.method_type).value
    except ValueError:
        raise DomainValidationError(
            "PaymentMethod.InvalidType", "method_type", f"Unknown payment method type {command.method_type}"
        ) from None
    try:
        provider = PaymentProvider(command.provider).value
    except ValueError:
        raise DomainValidationError(
            "PaymentMethod.InvalidProvider", "provider", f"Unknown payment provider {command.provider}"
        ) from None

    return _MethodDraft(
        user_id=str(command.user_id),
        email=command.email,
        method_type=method_type,
        provider=provider,
        token=command.token,
        display_name=command.display_name,
        card_brand=command.card_brand,
        last_four_digits=command.last_four_digits,
        expiry_date=command.expiry_date,
        paypal_email=command.paypal_email,
        is_default=bool(command.is_default),
        metadata=json.loads(command.metadata) if command.metadata else {},
    )


def _intent_metadata(draft: _MethodDraft) -> dict:
    """Provider metadata is a flat string map."""
    values = {
        "user_id": draft.user_id,
        "display_name": draft.display_name,
        "card_brand": draft.card_brand,
        "last_four_digits": draft.last_four_digits,
        "expiry_date": draft.expiry_date.isoformat() if draft.expiry_date else None,
        "is_default": "true" if draft.is_default else "false",
    }
    return {key: value for key, value in values.items() if value is not None}


def _merge_intent_metadata(draft: _MethodDraft, metadata: dict, token: str | None) -> _MethodDraft:
    merged = {}
    for key in ("display_name", "card_brand", "last_four_digits"):
        if metadata.get(key):
            merged[key] = metadata[key]
    if metadata.get("expiry_date"):
        merged["expiry_date"] = date.fromisoformat(metadata["expiry_date"])
    if "is_default" in metadata:
        merged["is_default"] = metadata["is_default"] == "true"
    if token:
        merged["token"] = token
    return replace(draft, **merged)


def _build_method(draft: _MethodDraft) -> PaymentMethod:
    if draft.method_type in CARD_TYPES:
        if not (draft.card_brand and draft.last_four_digits and draft.expiry_date):
            raise DomainValidationError(
                "PaymentMethod.CardDetailsRequired",
                "card",
                "Card brand, last four digits and expiry date are required",
            )
        return PaymentMethod.create_card_method(
            user_id=draft.user_id,
            provider=draft.provider,
            token=draft.token,
            card=CardDetails(
                brand=draft.card_brand,
                last_four_digits=draft.last_four_digits,
                expiry_date=draft.expiry_date,
            ),
            display_name=draft.display_name,
            is_default=draft.is_default,
            method_type=draft.method_type,
            metadata=draft.metadata,
        )
    if draft.method_type == PaymentMethodType.PAYPAL.value:
        return PaymentMethod.create_paypal_method(
            user_id=draft.user_id,
            token=draft.token,
            email=draft.paypal_email or draft.email,
            display_name=draft.display_name,
            is_default=draft.is_default,
            metadata=draft.metadata,
        )
    return PaymentMethod.create(
        user_id=draft.user_id,
        method_type=draft.method_type,
        provider=draft.provider,
        token=draft.token,
        display_name=draft.display_name,
        is_default=draft.is_default,
        metadata=draft.metadata,
    )


@payments.command_handler(part_of=PaymentMethod)
class AddPaymentMethodHandler:
    @handle(AddPaymentMethod)
    def add_payment_method(self, command):
        draft = _validated_draft(command)

        if command.setup_intent_id:
            return self._confirm_setup_intent(command.setup_intent_id, draft)
        if command.requires_setup_intent:
            return self._start_setup_intent(draft)
        return self._store(draft, skip_attachment=False)

    # -------------------------------------------------------------------
    # Provider customer
    # -------------------------------------------------------------------
    def _provider_customer(self, draft: _MethodDraft) -> str | None:
        if draft.provider != PaymentProvider.STRIPE.value:
            return None

        result = get_gateway().get_or_create_customer(draft.user_id, draft.email, metadata={"user_id": draft.user_id})
        if not result.success:
            raise FailureError(
                "PaymentMethod.CustomerCreationFailed",
                result.failure_reason or "Could not create the provider customer",
            )
        return result.customer_id

    # -------------------------------------------------------------------
    # Setup intent
    # -------------------------------------------------------------------
    def _start_setup_intent(self, draft: _MethodDraft) -> PaymentMethodChallenge | PaymentMethodAdded:
        if not draft.token:
            raise DomainValidationError("PaymentMethod.TokenRequired", "token", "A payment method token is required")

        customer_id = self._provider_customer(draft)
        result = get_gateway().create_setup_intent(customer_id, draft.token, metadata=_intent_metadata(draft))
        if not result.success:
            raise FailureError(
                "PaymentMethod.SetupIntentFailed",
                result.failure_reason or "Could not start card authentication",
            )

        logger.info(
            "Setup intent created",
            user_id=draft.user_id,
            setup_intent_id=result.setup_intent_id,
        )
        if result.succeeded:
            # No authentication needed; the provider already attached the method
            draft = _merge_intent_metadata(draft, result.metadata, result.payment_method_id)
            return self._store(draft, skip_attachment=True, setup_intent_id=result.setup_intent_id)

        return PaymentMethodChallenge(
            setup_intent_id=result.setup_intent_id,
            client_secret=result.client_secret,
            next_action_type=result.next_action_type,
            payment_method_token=result.payment_method_id or draft.token,
        )

    def _confirm_setup_intent(self, setup_intent_id, draft: _MethodDraft):
        result = get_gateway().confirm_setup_intent(setup_intent_id, draft.token)

        if not result.success:
            if result.error_code != GatewayErrorCode.INTENT_ALREADY_SUCCEEDED:
                raise FailureError(
                    "PaymentMethod.SetupIntentConfirmationFailed",
                    result.failure_reason or "Card authentication could not be confirmed",
                    {"setup_intent_id": setup_intent_id},
                )
            logger.info("Setup intent already succeeded at provider", setup_intent_id=setup_intent_id)
        elif result.requires_action:
            return PaymentMethodChallenge(
                setup_intent_id=setup_intent_id,
                client_secret=result.client_secret,
                next_action_type=result.next_action_type,
                payment_method_token=result.payment_method_id or draft.token,
            )
        elif not result.succeeded:
            raise ConflictError(
                "PaymentMethod.SetupIntentNotSucceeded",
                f"Setup intent is {result.status}",
                {"setup_intent_id": setup_intent_id, "status": result.status},
            )

        draft = _merge_intent_metadata(draft, result.metadata, result.payment_method_id)
        if not draft.token:
            raise DomainValidationError(
                "PaymentMethod.TokenRequired", "token", "The setup intent did not yield a payment method"
            )

        return self._store(draft, skip_attachment=True, setup_intent_id=setup_intent_id)

    # -------------------------------------------------------------------
    # Storing
    # -------------------------------------------------------------------
    def _store(self, draft: _MethodDraft, skip_attachment, setup_intent_id=None) -> PaymentMethodAdded:
        if not draft.token:
            raise DomainValidationError("PaymentMethod.TokenRequired", "token", "A payment method token is required")
        if methods_for_user_with_token(draft.user_id, draft.token):
            raise ConflictError(
                "PaymentMethod.DuplicateToken",
                "This payment method is already stored for the user",
            )

        method = _build_method(draft)

        customer_id = self._provider_customer(draft)
        if customer_id:
            method.link_provider_customer(customer_id)
            if not skip_attachment:
                self._attach(draft.token, customer_id)
        if setup_intent_id:
            method.record_setup_intent(setup_intent_id)

        repo = current_domain.repository_for(PaymentMethod)
        if method.is_default:
            for other in active_methods_for_user(draft.user_id):
                if other.is_default:
                    other.clear_default()
                    repo.add(other)
        repo.add(method)

        logger.info(
            "Payment method added",
            payment_method_id=str(method.id),
            user_id=draft.user_id,
            method_type=method.method_type,
            provider=method.provider,
            via_setup_intent=bool(setup_intent_id),
        )
        return PaymentMethodAdded(
            payment_method_id=str(method.id),
            user_id=str(method.user_id),
            method_type=method.method_type,
            provider=method.provider,
            display_name=method.display_name,
            is_default=method.is_default,
            provider_customer_id=method.provider_customer_id,
            setup_intent_id=method.setup_intent_id,
        )

    def _attach(self, token, customer_id):
        result = get_gateway().attach_payment_method(token, customer_id)
        if result.success:
            return
        if result.error_code == GatewayErrorCode.ALREADY_ATTACHED:
            logger.info("Payment method already attached at provider", customer_id=customer_id)
            return
        raise FailureError(
            "PaymentMethod.AttachmentFailed",
            result.failure_reason or "Could not attach the payment method",
            {"error_code": result.error_code.value if result.error_code else None},
        )
