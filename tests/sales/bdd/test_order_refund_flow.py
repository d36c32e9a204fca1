"""BDD tests for order refunds."""

from pytest_bdd import parsers, scenarios, then, when

scenarios("features/order_refunds.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the order is fully refunded")
def _(order, attempt):
    attempt(lambda: order.process_refund(reason="Customer request"))


@when(parsers.cfparse("{amount:f} is refunded"))
def _(order, attempt, amount):
    attempt(lambda: order.process_partial_refund(amount))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the refunded amount is {amount:f}"))
def _(order, amount):
    assert order.refunded_amount == amount


@then(parsers.cfparse("the order has {count:d} refund records"))
def _(order, count):
    assert len(order.refunds) == count
