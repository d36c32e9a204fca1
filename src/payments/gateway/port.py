"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and StripeGateway
(production) without changing any domain or application code.

Every operation returns a frozen result object rather than raising: callers
branch on ``success`` and, for the failures they care about, on the typed
``error_code``. Provider races that are really successes ("already attached",
"setup intent already succeeded") come back as dedicated codes so no caller
ever has to pattern-match a provider's error wording.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class GatewayErrorCode(Enum):
    ALREADY_ATTACHED = "already_attached"
    INTENT_ALREADY_SUCCEEDED = "intent_already_succeeded"
    CARD_DECLINED = "card_declined"
    INVALID_REQUEST = "invalid_request"
    INVALID_SIGNATURE = "invalid_signature"
    NOT_SUPPORTED = "not_supported"
    PROVIDER_ERROR = "provider_error"


@dataclass(frozen=True)
class PaymentRequest:
    amount: float
    currency: str
    payment_method_token: str
    customer_id: str | None = None
    description: str | None = None
    idempotency_key: str | None = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentResult:
    """Result of a payment (charge) attempt.

    ``requires_action`` with ``success=True`` means the charge is waiting on
    customer authentication (3-D Secure); ``client_secret`` lets the client
    finish it.
    """

    success: bool
    transaction_id: str | None = None
    status: str | None = None
    requires_action: bool = False
    client_secret: str | None = None
    error_code: GatewayErrorCode | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    refund_id: str | None = None
    status: str | None = None
    amount: float | None = None
    error_code: GatewayErrorCode | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class PaymentStatusResult:
    success: bool
    transaction_id: str | None = None
    status: str | None = None
    error_code: GatewayErrorCode | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class CustomerResult:
    success: bool
    customer_id: str | None = None
    created: bool = False
    error_code: GatewayErrorCode | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class AttachResult:
    success: bool
    error_code: GatewayErrorCode | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class SetupIntentResult:
    """Result of creating or confirming a setup intent (card authentication)."""

    success: bool
    setup_intent_id: str | None = None
    status: str | None = None  # requires_action, processing, succeeded, canceled
    client_secret: str | None = None
    requires_action: bool = False
    next_action_type: str | None = None
    payment_method_id: str | None = None
    metadata: dict = field(default_factory=dict)
    error_code: GatewayErrorCode | None = None
    failure_reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.success and self.status == "succeeded"


@dataclass(frozen=True)
class WebhookResult:
    """A provider webhook, normalized. The raw payload stays with the provider."""

    success: bool
    event_id: str | None = None
    event_type: str | None = None
    transaction_id: str | None = None
    customer_id: str | None = None
    is_processed: bool = False
    amount: float | None = None
    amount_refunded: float | None = None
    failure_reason: str | None = None
    event_data: dict = field(default_factory=dict)
    error_code: GatewayErrorCode | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    provider: str = ""

    @abstractmethod
    def process_payment(self, request: PaymentRequest) -> PaymentResult:
        """Charge a tokenized payment method."""
        ...

    @abstractmethod
    def refund_payment(
        self,
        transaction_id: str,
        amount: float | None = None,
        reason: str | None = None,
    ) -> RefundResult:
        """Refund a previous charge, in full when ``amount`` is None."""
        ...

    @abstractmethod
    def get_payment_status(self, transaction_id: str) -> PaymentStatusResult:
        ...

    @abstractmethod
    def get_or_create_customer(self, user_id: str, email: str | None, metadata: dict | None = None) -> CustomerResult:
        """Resolve the provider customer for ``user_id``, creating it once."""
        ...

    @abstractmethod
    def attach_payment_method(self, payment_method_token: str, customer_id: str) -> AttachResult:
        ...

    @abstractmethod
    def process_webhook(self, payload: str, signature: str | None, headers: dict | None = None) -> WebhookResult:
        """Verify and normalize a webhook delivery."""
        ...

    @abstractmethod
    def create_setup_intent(
        self,
        customer_id: str,
        payment_method_token: str,
        metadata: dict | None = None,
    ) -> SetupIntentResult:
        ...

    @abstractmethod
    def confirm_setup_intent(self, setup_intent_id: str, payment_method_token: str | None = None) -> SetupIntentResult:
        ...
