"""Domain tests for the ShoppingCart aggregate."""

import pytest
from protean.exceptions import ValidationError
from sales.cart.cart import MAX_CART_LINES, ShoppingCart
from sales.cart.events import CartCleared, CartItemAdded, CartItemRemoved, CartQuantityUpdated
from shared.errors import DomainValidationError, NotFoundError


def _make_cart():
    return ShoppingCart.create(user_id="user-001")


class TestCartItems:
    def test_new_cart_is_empty(self):
        assert _make_cart().is_empty

    def test_add_item(self):
        cart = _make_cart()
        cart.add_item(product_id="prod-001", variant_id="var-001", quantity=2)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2
        assert any(isinstance(e, CartItemAdded) for e in cart._events)

    def test_same_variant_merges_quantity(self):
        cart = _make_cart()
        first = cart.add_item(product_id="prod-001", variant_id="var-001", quantity=1)
        second = cart.add_item(product_id="prod-001", variant_id="var-001", quantity=2)
        assert first == second
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3

    def test_different_variants_are_separate_lines(self):
        cart = _make_cart()
        cart.add_item(product_id="prod-001", variant_id="var-001", quantity=1)
        cart.add_item(product_id="prod-001", variant_id="var-002", quantity=1)
        assert len(cart.items) == 2

    def test_rejects_non_positive_quantity(self):
        cart = _make_cart()
        with pytest.raises(DomainValidationError) as exc:
            cart.add_item(product_id="prod-001", quantity=0)
        assert exc.value.code == "Cart.InvalidQuantity"

    def test_update_quantity(self):
        cart = _make_cart()
        item_id = cart.add_item(product_id="prod-001", quantity=1)
        cart.update_item_quantity(item_id, 4)
        assert cart.items[0].quantity == 4
        assert any(isinstance(e, CartQuantityUpdated) for e in cart._events)

    def test_remove_item(self):
        cart = _make_cart()
        item_id = cart.add_item(product_id="prod-001", quantity=1)
        cart.remove_item(item_id)
        assert cart.is_empty
        assert any(isinstance(e, CartItemRemoved) for e in cart._events)

    def test_remove_unknown_item(self):
        cart = _make_cart()
        with pytest.raises(NotFoundError) as exc:
            cart.remove_item("missing")
        assert exc.value.code == "Cart.ItemNotFound"

    def test_clear(self):
        cart = _make_cart()
        cart.add_item(product_id="prod-001", quantity=1)
        cart.add_item(product_id="prod-002", quantity=1)
        cart.clear()
        assert cart.is_empty
        cleared = [e for e in cart._events if isinstance(e, CartCleared)]
        assert cleared[0].items_removed == 2

    def test_line_limit(self):
        cart = _make_cart()
        for i in range(MAX_CART_LINES):
            cart.add_item(product_id=f"prod-{i}", quantity=1)
        with pytest.raises(ValidationError):
            cart.add_item(product_id="one-too-many", quantity=1)


class TestCartOwnership:
    def test_belongs_to_owner(self):
        cart = _make_cart()
        assert cart.belongs_to("user-001")
        assert not cart.belongs_to("user-002")
        assert not cart.belongs_to(None)
