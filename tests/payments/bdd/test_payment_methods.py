"""BDD tests for stored payment method defaults."""

from datetime import date

import pytest
from payments.payment_method.lookup import active_methods_for_user
from payments.payment_method.management import DeactivatePaymentMethod, SetDefaultPaymentMethod
from payments.payment_method.registration import AddPaymentMethod
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/payment_methods.feature")

USER_ID = "user-bdd-001"


@pytest.fixture()
def methods():
    """Card brand -> payment method id."""
    return {}


def _deactivate(methods, brand):
    current_domain.process(
        DeactivatePaymentMethod(user_id=USER_ID, payment_method_id=methods[brand]), asynchronous=False
    )


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the user stored a "{brand}" card ending in "{last_four}" as default'))
def _(methods, brand, last_four):
    methods[brand] = _add_card(brand, last_four, is_default=True)


@given(parsers.cfparse('the user stored a "{brand}" card ending in "{last_four}"'))
def _(methods, brand, last_four):
    methods[brand] = _add_card(brand, last_four)


@given(parsers.cfparse('the user deactivated the "{brand}" card'))
def _(methods, brand):
    _deactivate(methods, brand)


def _add_card(brand, last_four, is_default=False):
    result = current_domain.process(
        AddPaymentMethod(
            user_id=USER_ID,
            method_type="CreditCard",
            provider="Stripe",
            token=f"pm_{brand.lower()}",
            card_brand=brand,
            last_four_digits=last_four,
            expiry_date=date(2030, 12, 31),
            is_default=is_default,
        ),
        asynchronous=False,
    )
    return result.payment_method_id


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the user makes the "{brand}" card the default'))
def _(methods, attempt, brand):
    command = SetDefaultPaymentMethod(user_id=USER_ID, payment_method_id=methods[brand])
    attempt(lambda: current_domain.process(command, asynchronous=False))


@when(parsers.cfparse('the user deactivates the "{brand}" card'))
def _(methods, brand):
    _deactivate(methods, brand)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the "{brand}" card is the only default'))
def _(methods, brand):
    defaults = [str(m.id) for m in active_methods_for_user(USER_ID) if m.is_default]
    assert defaults == [methods[brand]]


@then("the user has no default method")
def _():
    assert not any(m.is_default for m in active_methods_for_user(USER_ID))


@then(parsers.cfparse('the request fails with "{code}"'))
def _(error, code):
    assert error["exc"].code == code
