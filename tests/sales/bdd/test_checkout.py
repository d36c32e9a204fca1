"""BDD tests for checkout from a cart."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when
from sales.address.address import RegisterAddress
from sales.cart.cart import ShoppingCart
from sales.cart.management import AddItemToCart, CreateCart
from sales.catalogue.stock import RegisterVariant
from sales.catalogue.variant import ProductVariant
from sales.checkout.order_from_cart import CreateOrderFromCart
from sales.order.order import Order

scenarios("features/checkout.feature")

USER_ID = "user-bdd-001"


@pytest.fixture()
def variants():
    """SKU -> variant id."""
    return {}


@pytest.fixture()
def cart():
    return {"id": None}


@pytest.fixture()
def checkout():
    return {"result": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("the user has a shipping address", target_fixture="address_id")
def _():
    return current_domain.process(
        RegisterAddress(user_id=USER_ID, line1="1 Main St", city="Springfield", postal_code="62701", country="US"),
        asynchronous=False,
    )


@given(parsers.cfparse('a variant "{sku}" priced {price:f} with {stock:d} in stock'))
def _(variants, sku, price, stock):
    variants[sku] = current_domain.process(
        RegisterVariant(product_id=f"prod-{sku}", product_name=sku.title(), sku=sku, price=price, stock_quantity=stock),
        asynchronous=False,
    )


@given(parsers.cfparse('the cart holds {quantity:d} of "{sku}"'))
def _(cart, variants, quantity, sku):
    if cart["id"] is None:
        cart["id"] = current_domain.process(CreateCart(user_id=USER_ID), asynchronous=False)
    current_domain.process(
        AddItemToCart(cart_id=cart["id"], product_id=f"prod-{sku}", variant_id=variants[sku], quantity=quantity),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
def _check_out(checkout, attempt, cart, address_id, shipping_method="Standard"):
    command = CreateOrderFromCart(
        user_id=USER_ID,
        cart_id=cart["id"],
        shipping_address_id=address_id,
        shipping_method=shipping_method,
    )

    def _run():
        checkout["result"] = current_domain.process(command, asynchronous=False)

    attempt(_run)


@when("the user checks out")
def _(checkout, attempt, cart, address_id):
    _check_out(checkout, attempt, cart, address_id)


@when(parsers.cfparse('the user checks out with "{method}" shipping'))
def _(checkout, attempt, cart, address_id, method):
    _check_out(checkout, attempt, cart, address_id, shipping_method=method)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the order {field} is {amount:f}"))
def _(checkout, field, amount):
    attribute = field.replace(" ", "_")
    assert getattr(checkout["result"], attribute) == amount


@then(parsers.cfparse('"{sku}" has {stock:d} in stock'))
def _(variants, sku, stock):
    assert current_domain.repository_for(ProductVariant).get(variants[sku]).stock_quantity == stock


@then("the cart is empty")
def _(cart):
    assert current_domain.repository_for(ShoppingCart).get(cart["id"]).is_empty


@then(parsers.cfparse('checkout is rejected for "{sku}"'))
def _(error, sku):
    assert error["exc"].code == "Order.InsufficientStock"
    assert [item["sku"] for item in error["exc"].details["items"]] == [sku]


@then("no order was created")
def _():
    assert current_domain.repository_for(Order)._dao.query.all().items == []


@then(parsers.cfparse('the checkout fails with "{code}"'))
def _(error, code):
    assert error["exc"].code == code
