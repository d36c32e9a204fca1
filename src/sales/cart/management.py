"""Cart management — commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, Integer
from protean.utils.globals import current_domain

from sales.cart.cart import ShoppingCart
from sales.domain import sales
from shared.errors import NotFoundError


@sales.command(part_of="ShoppingCart")
class CreateCart:
    user_id = Identifier(required=True)


@sales.command(part_of="ShoppingCart")
class AddItemToCart:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(min_value=0.0)


@sales.command(part_of="ShoppingCart")
class UpdateCartItemQuantity:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    new_quantity = Integer(required=True, min_value=1)


@sales.command(part_of="ShoppingCart")
class RemoveItemFromCart:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@sales.command(part_of="ShoppingCart")
class ClearCart:
    cart_id = Identifier(required=True)


def get_cart(cart_id) -> ShoppingCart:
    try:
        return current_domain.repository_for(ShoppingCart).get(cart_id)
    except ObjectNotFoundError:
        raise NotFoundError("Cart.NotFound", f"Cart {cart_id} not found") from None


def find_cart_for_user(user_id) -> ShoppingCart | None:
    """Return the user's most recently updated cart, if any."""
    carts = current_domain.repository_for(ShoppingCart)._dao.query.filter(user_id=str(user_id)).all().items
    if not carts:
        return None
    return max(carts, key=lambda c: c.updated_at or c.created_at)


@sales.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        cart = ShoppingCart.create(user_id=command.user_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(AddItemToCart)
    def add_item(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = get_cart(command.cart_id)
        item_id = cart.add_item(
            product_id=command.product_id,
            variant_id=command.variant_id,
            quantity=command.quantity,
            unit_price=command.unit_price,
        )
        repo.add(cart)
        return item_id

    @handle(UpdateCartItemQuantity)
    def update_item_quantity(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = get_cart(command.cart_id)
        cart.update_item_quantity(item_id=command.item_id, new_quantity=command.new_quantity)
        repo.add(cart)

    @handle(RemoveItemFromCart)
    def remove_item(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = get_cart(command.cart_id)
        cart.remove_item(item_id=command.item_id)
        repo.add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = get_cart(command.cart_id)
        cart.clear()
        repo.add(cart)
