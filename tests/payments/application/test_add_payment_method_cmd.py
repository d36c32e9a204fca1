"""Application tests for AddPaymentMethod: direct, setup-intent and confirmation paths.

Covers:
- direct card: provider customer resolved, token attached, method stored
- an "already attached" answer from the provider is treated as success
- duplicate tokens for the same user are rejected
- setup intent: challenge first with nothing stored, then confirmation stores
  exactly one method without a second attachment
- an intent the provider reports as succeeded at creation is stored at once
- the provider's webhook winning the confirmation race is still a success
"""

from datetime import date

import pytest
from payments.payment_method.lookup import active_methods_for_user
from payments.payment_method.management import DeletePaymentMethod
from payments.payment_method.payment_method import PaymentMethod
from payments.payment_method.registration import AddPaymentMethod, PaymentMethodAdded, PaymentMethodChallenge
from protean import current_domain
from shared.dispatch import dispatch
from shared.outcomes import ErrorType

USER_ID = "user-001"


def _add_card(**overrides):
    defaults = {
        "user_id": USER_ID,
        "email": "jane@example.com",
        "method_type": "CreditCard",
        "provider": "Stripe",
        "token": "pm_card_visa",
        "card_brand": "Visa",
        "last_four_digits": "4242",
        "expiry_date": date(2030, 12, 31),
    }
    defaults.update(overrides)
    return AddPaymentMethod(**defaults)


def _stored_methods():
    return current_domain.repository_for(PaymentMethod)._dao.query.all().items


class TestDirectAdd:
    def test_card_is_attached_and_stored(self, gateway):
        result = current_domain.process(_add_card(), asynchronous=False)

        assert isinstance(result, PaymentMethodAdded)
        assert result.display_name == "Visa ending in 4242"
        assert result.provider_customer_id == gateway.customers[USER_ID]
        assert gateway.attachments["pm_card_visa"] == result.provider_customer_id

        method = current_domain.repository_for(PaymentMethod).get(result.payment_method_id)
        assert method.provider_customer_id == result.provider_customer_id
        assert method.card.last_four_digits == "4242"

    def test_already_attached_is_benign(self, gateway):
        customer_id = gateway.get_or_create_customer(USER_ID, None).customer_id
        gateway.attach_payment_method("pm_card_visa", customer_id)

        outcome = dispatch(_add_card())

        assert outcome.is_success
        assert len(_stored_methods()) == 1

    def test_attachment_failure(self, gateway):
        gateway.configure(should_succeed=False, failure_reason="Card declined")
        outcome = dispatch(_add_card())

        assert outcome.error.type == ErrorType.FAILURE
        assert outcome.error.code == "PaymentMethod.AttachmentFailed"
        assert _stored_methods() == []

    def test_duplicate_token_rejected(self):
        dispatch(_add_card())
        outcome = dispatch(_add_card())

        assert outcome.error.type == ErrorType.CONFLICT
        assert outcome.error.code == "PaymentMethod.DuplicateToken"

    def test_token_can_be_reused_after_delete(self):
        first = dispatch(_add_card()).value
        dispatch(DeletePaymentMethod(user_id=USER_ID, payment_method_id=first.payment_method_id))

        assert dispatch(_add_card()).is_success

    def test_paypal_skips_the_provider_customer(self, gateway):
        result = current_domain.process(
            AddPaymentMethod(
                user_id=USER_ID,
                method_type="PayPal",
                provider="PayPal",
                token="ba_001",
                paypal_email="jane@example.com",
            ),
            asynchronous=False,
        )

        assert result.provider_customer_id is None
        assert gateway.calls_to("get_or_create_customer") == []

    def test_card_details_required(self):
        outcome = dispatch(_add_card(card_brand=None))
        assert outcome.error.type == ErrorType.VALIDATION
        assert outcome.error.code == "PaymentMethod.CardDetailsRequired"

    @pytest.mark.parametrize(
        "overrides, code",
        [
            ({"method_type": "Cheque"}, "PaymentMethod.InvalidType"),
            ({"provider": "Acme"}, "PaymentMethod.InvalidProvider"),
            ({"token": None}, "PaymentMethod.TokenRequired"),
        ],
    )
    def test_invalid_requests(self, overrides, code):
        outcome = dispatch(_add_card(**overrides))
        assert outcome.error.type == ErrorType.VALIDATION
        assert outcome.error.code == code

    def test_new_default_replaces_old_default(self):
        first = dispatch(_add_card(is_default=True)).value
        second = dispatch(_add_card(token="pm_card_mc", is_default=True)).value

        defaults = [m for m in active_methods_for_user(USER_ID) if m.is_default]
        assert [str(m.id) for m in defaults] == [second.payment_method_id]
        assert not current_domain.repository_for(PaymentMethod).get(first.payment_method_id).is_default


class TestSetupIntentPath:
    def test_challenge_stores_nothing(self, gateway):
        result = current_domain.process(_add_card(requires_setup_intent=True), asynchronous=False)

        assert isinstance(result, PaymentMethodChallenge)
        assert result.setup_intent_id.startswith("seti_")
        assert result.client_secret
        assert result.requires_authentication
        assert _stored_methods() == []

    def test_challenge_requires_token(self):
        outcome = dispatch(_add_card(requires_setup_intent=True, token=None))
        assert outcome.error.code == "PaymentMethod.TokenRequired"

    def test_setup_intent_creation_failure(self, gateway):
        gateway.configure(should_succeed=False)
        outcome = dispatch(_add_card(requires_setup_intent=True))
        assert outcome.error.code == "PaymentMethod.SetupIntentFailed"

    def test_intent_succeeding_at_creation_stores_the_method(self, gateway):
        gateway.configure(frictionless_setup=True)

        result = current_domain.process(
            _add_card(requires_setup_intent=True, display_name="Travel card"), asynchronous=False
        )

        assert isinstance(result, PaymentMethodAdded)
        assert result.setup_intent_id.startswith("seti_")
        assert result.display_name == "Travel card"
        assert len(_stored_methods()) == 1
        assert gateway.calls_to("attach_payment_method") == []

    def test_confirmation_stores_one_method_without_reattaching(self, gateway):
        challenge = current_domain.process(
            _add_card(requires_setup_intent=True, display_name="Travel card", is_default=True), asynchronous=False
        )

        result = current_domain.process(
            AddPaymentMethod(
                user_id=USER_ID,
                method_type="CreditCard",
                provider="Stripe",
                setup_intent_id=challenge.setup_intent_id,
            ),
            asynchronous=False,
        )

        assert isinstance(result, PaymentMethodAdded)
        assert result.setup_intent_id == challenge.setup_intent_id
        # Values carried by the intent win over the (sparse) confirmation request
        assert result.display_name == "Travel card"
        assert result.is_default
        assert len(_stored_methods()) == 1
        assert gateway.calls_to("attach_payment_method") == []

    def test_webhook_won_the_race(self, gateway):
        challenge = current_domain.process(_add_card(requires_setup_intent=True), asynchronous=False)
        gateway.complete_setup_intent(challenge.setup_intent_id)

        outcome = dispatch(_add_card(setup_intent_id=challenge.setup_intent_id))

        assert outcome.is_success
        assert len(_stored_methods()) == 1

    def test_confirmation_needing_more_authentication_returns_challenge(self, gateway):
        challenge = current_domain.process(_add_card(requires_setup_intent=True), asynchronous=False)
        gateway.configure(confirm_requires_action=True)

        result = current_domain.process(_add_card(setup_intent_id=challenge.setup_intent_id), asynchronous=False)

        assert isinstance(result, PaymentMethodChallenge)
        assert result.next_action_type == "redirect_to_url"
        assert _stored_methods() == []

    def test_unsuccessful_intent_is_conflict(self, gateway):
        challenge = current_domain.process(_add_card(requires_setup_intent=True), asynchronous=False)
        gateway.configure(should_succeed=False)

        outcome = dispatch(_add_card(setup_intent_id=challenge.setup_intent_id))

        assert outcome.error.type == ErrorType.CONFLICT
        assert outcome.error.code == "PaymentMethod.SetupIntentNotSucceeded"
        assert _stored_methods() == []

    def test_unknown_intent(self):
        outcome = dispatch(_add_card(setup_intent_id="seti_missing"))
        assert outcome.error.code == "PaymentMethod.SetupIntentConfirmationFailed"
