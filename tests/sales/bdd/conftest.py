"""Shared BDD fixtures and step definitions for the Sales domain."""

import pytest
from pytest_bdd import given, parsers, then
from sales.order.order import Order, ProductSnapshot
from shared.errors import DomainError, DomainValidationError


def _build_order(amount):
    order = Order.create(user_id="user-001", shipping_address_id="addr-001")
    order.add_item(product_id="prod-001", quantity=1, unit_price=amount, snapshot=ProductSnapshot(name="Lamp"))
    return order


# Each state is reached by replaying the transitions that lead to it
_PATH_TO = {
    "pending": [],
    "paid": [lambda o: o.mark_as_paid()],
    "shipped": [lambda o: o.mark_as_paid(), lambda o: o.mark_as_shipped("TRACK-000")],
    "delivered": [
        lambda o: o.mark_as_paid(),
        lambda o: o.mark_as_shipped("TRACK-000"),
        lambda o: o.mark_as_delivered(),
    ],
    "returned": [
        lambda o: o.mark_as_paid(),
        lambda o: o.mark_as_shipped("TRACK-000"),
        lambda o: o.mark_as_delivered(),
        lambda o: o.mark_as_returned("Defective"),
    ],
}


@pytest.fixture()
def error():
    """Container for the domain error raised by the last When step."""
    return {"exc": None}


@pytest.fixture()
def attempt(error):
    """Run a When-step action, capturing a domain error instead of raising."""

    def _run(action):
        try:
            action()
        except (DomainError, DomainValidationError) as exc:
            error["exc"] = exc

    return _run


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a {state} order totalling {amount:f}"), target_fixture="order")
def _(state, amount):
    order = _build_order(amount)
    for step in _PATH_TO[state]:
        step(order)
    return order


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order, status):
    assert order.status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def _(order, status):
    assert order.payment_status == status


@then(parsers.cfparse('the action fails with "{code}"'))
def _(error, code):
    assert error["exc"] is not None
    assert error["exc"].code == code
