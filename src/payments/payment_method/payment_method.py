"""PaymentMethod aggregate — a user's stored, tokenized way to pay.

Only provider tokens are stored; card numbers never reach this system.
Cards carry brand, last four digits and expiry for display and validation.

A method is usable while it is active. Deleting is a soft delete: the row
stays for the payments that reference it, but it can no longer be
reactivated or made the default. At most one active method per user should
be the default; the registration and management handlers clear the previous
default in the same unit of work.
"""

import json
from datetime import UTC, date, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, Date, DateTime, Identifier, String, Text, ValueObject

from payments.domain import payments
from payments.payment_method.events import (
    DefaultPaymentMethodChanged,
    PaymentMethodActivated,
    PaymentMethodAdded,
    PaymentMethodDeactivated,
    PaymentMethodDeleted,
    PaymentMethodUpdated,
)
from shared.errors import ConflictError, DomainValidationError


class PaymentMethodType(Enum):
    CREDIT_CARD = "CreditCard"
    DEBIT_CARD = "DebitCard"
    PAYPAL = "PayPal"
    BANK_TRANSFER = "BankTransfer"


class PaymentProvider(Enum):
    STRIPE = "Stripe"
    PAYPAL = "PayPal"
    BRAINTREE = "Braintree"


CARD_TYPES = {PaymentMethodType.CREDIT_CARD.value, PaymentMethodType.DEBIT_CARD.value}


@payments.value_object(part_of="PaymentMethod")
class CardDetails:
    """Displayable card facts. Replaced wholesale on update."""

    brand = String(required=True, max_length=30)
    last_four_digits = String(required=True, min_length=4, max_length=4)
    expiry_date = Date(required=True)

    @invariant.post
    def last_four_must_be_digits(self):
        if not self.last_four_digits.isdigit():
            raise ValidationError({"last_four_digits": ["Last four digits must be numeric"]})

    @property
    def is_expired(self) -> bool:
        return self.expiry_date <= date.today()


@payments.aggregate
class PaymentMethod:
    user_id = Identifier(required=True)
    method_type = String(choices=PaymentMethodType, required=True)
    provider = String(choices=PaymentProvider, required=True)
    token = String(required=True, max_length=255)
    display_name = String(required=True, max_length=100)
    card = ValueObject(CardDetails)
    paypal_email = String(max_length=254)
    is_default = Boolean(default=False)
    is_active = Boolean(default=True)
    provider_customer_id = String(max_length=255)
    setup_intent_id = String(max_length=255)
    extra_metadata = Text()
    created_at = DateTime()
    updated_at = DateTime()
    deleted_at = DateTime()

    @invariant.post
    def default_method_must_be_active(self):
        if self.is_default and not self.is_active:
            raise ValidationError({"is_default": ["An inactive payment method cannot be the default"]})

    @invariant.post
    def card_methods_carry_card_details(self):
        if self.method_type in CARD_TYPES and self.card is None:
            raise ValidationError({"card": ["Card payment methods require card details"]})

    # -------------------------------------------------------------------
    # Factory methods
    # -------------------------------------------------------------------
    @classmethod
    def _new(cls, user_id, method_type, provider, token, display_name, is_default, metadata, **extra):
        now = datetime.now(UTC)
        method = cls(
            user_id=user_id,
            method_type=method_type,
            provider=provider,
            token=token,
            display_name=display_name,
            is_default=is_default,
            is_active=True,
            extra_metadata=json.dumps(metadata) if metadata else None,
            created_at=now,
            updated_at=now,
            **extra,
        )
        method.raise_(
            PaymentMethodAdded(
                payment_method_id=str(method.id),
                user_id=str(user_id),
                method_type=method_type,
                provider=provider,
                display_name=display_name,
                is_default=is_default,
                added_at=now,
            )
        )
        return method

    @classmethod
    def create_card_method(
        cls,
        user_id,
        provider,
        token,
        card,
        display_name=None,
        is_default=False,
        method_type=PaymentMethodType.CREDIT_CARD.value,
        metadata=None,
    ):
        if method_type not in CARD_TYPES:
            raise DomainValidationError(
                "PaymentMethod.InvalidType", "method_type", f"{method_type} is not a card payment method type"
            )
        if card.is_expired:
            raise DomainValidationError("PaymentMethod.CardExpired", "expiry_date", "Card has expired")

        return cls._new(
            user_id,
            method_type,
            provider,
            token,
            display_name or f"{card.brand} ending in {card.last_four_digits}",
            is_default,
            metadata,
            card=card,
        )

    @classmethod
    def create_paypal_method(cls, user_id, token, email, display_name=None, is_default=False, metadata=None):
        if not email:
            raise DomainValidationError("PaymentMethod.EmailRequired", "paypal_email", "PayPal email is required")

        return cls._new(
            user_id,
            PaymentMethodType.PAYPAL.value,
            PaymentProvider.PAYPAL.value,
            token,
            display_name or f"PayPal ({email})",
            is_default,
            metadata,
            paypal_email=email,
        )

    @classmethod
    def create(cls, user_id, method_type, provider, token, display_name, is_default=False, metadata=None):
        """Create a non-card, non-PayPal method such as a bank transfer mandate."""
        if not display_name:
            raise DomainValidationError(
                "PaymentMethod.DisplayNameRequired", "display_name", "Display name is required"
            )
        return cls._new(user_id, method_type, provider, token, display_name, is_default, metadata)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_card(self) -> bool:
        return self.method_type in CARD_TYPES

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_usable(self) -> bool:
        if not self.is_active:
            return False
        return not (self.is_card and self.card.is_expired)

    @property
    def metadata(self) -> dict:
        return json.loads(self.extra_metadata) if self.extra_metadata else {}

    def belongs_to(self, user_id) -> bool:
        return str(self.user_id) == str(user_id)

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def update_display_name(self, display_name):
        if not display_name:
            raise DomainValidationError(
                "PaymentMethod.DisplayNameRequired", "display_name", "Display name is required"
            )
        now = datetime.now(UTC)
        with atomic_change(self):
            self.display_name = display_name
            self.updated_at = now
        self.raise_(
            PaymentMethodUpdated(
                payment_method_id=str(self.id),
                user_id=str(self.user_id),
                display_name=display_name,
                updated_at=now,
            )
        )

    def update_card_details(self, card):
        if not self.is_card:
            raise ConflictError("PaymentMethod.NotACard", "Only card payment methods carry card details")
        if card.is_expired:
            raise DomainValidationError("PaymentMethod.CardExpired", "expiry_date", "Card has expired")
        self.card = card
        self.updated_at = datetime.now(UTC)

    def update_token(self, token):
        self.token = token
        self.updated_at = datetime.now(UTC)

    def link_provider_customer(self, customer_id):
        self.provider_customer_id = customer_id
        self.updated_at = datetime.now(UTC)

    def record_setup_intent(self, setup_intent_id):
        self.setup_intent_id = setup_intent_id
        self.updated_at = datetime.now(UTC)

    def _change_default(self, is_default):
        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_default = is_default
            self.updated_at = now
        self.raise_(
            DefaultPaymentMethodChanged(
                payment_method_id=str(self.id),
                user_id=str(self.user_id),
                is_default=is_default,
                changed_at=now,
            )
        )

    def set_default(self):
        if not self.is_active:
            raise ConflictError("PaymentMethod.Inactive", "An inactive payment method cannot be the default")
        if self.is_default:
            return
        self._change_default(True)

    def clear_default(self):
        if not self.is_default:
            return
        self._change_default(False)

    def activate(self):
        if self.is_deleted:
            raise ConflictError("PaymentMethod.Deleted", "A deleted payment method cannot be reactivated")
        if self.is_active:
            return
        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_active = True
            self.updated_at = now
        self.raise_(
            PaymentMethodActivated(payment_method_id=str(self.id), user_id=str(self.user_id), activated_at=now)
        )

    def deactivate(self):
        if not self.is_active:
            return
        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_active = False
            self.is_default = False
            self.updated_at = now
        self.raise_(
            PaymentMethodDeactivated(payment_method_id=str(self.id), user_id=str(self.user_id), deactivated_at=now)
        )

    def delete(self):
        if self.is_deleted:
            return
        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_active = False
            self.is_default = False
            self.deleted_at = now
            self.updated_at = now
        self.raise_(PaymentMethodDeleted(payment_method_id=str(self.id), user_id=str(self.user_id), deleted_at=now))
