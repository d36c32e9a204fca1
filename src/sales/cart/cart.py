"""Shopping Cart aggregate (CQRS) — the lines a user intends to buy.

The cart belongs to one user. Checkout reads it, turns its lines into an
order, and clears it inside the same unit of work.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer

from sales.cart.events import CartCleared, CartItemAdded, CartItemRemoved, CartQuantityUpdated
from sales.domain import sales
from shared.errors import DomainValidationError, NotFoundError

MAX_CART_LINES = 50


@sales.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()  # Optional: products without variants have no stock tracking
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(min_value=0.0)  # Price seen when the line was added
    added_at = DateTime()


@sales.aggregate
class ShoppingCart:
    user_id = Identifier(required=True)
    items = HasMany(CartItem)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_cannot_exceed_maximum_lines(self):
        if len(self.items) > MAX_CART_LINES:
            raise ValidationError({"items": [f"A cart cannot hold more than {MAX_CART_LINES} lines"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(user_id=user_id, created_at=now, updated_at=now)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def belongs_to(self, user_id) -> bool:
        return user_id is not None and str(self.user_id) == str(user_id)

    def _find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise NotFoundError("Cart.ItemNotFound", f"Item {item_id} not found in cart")
        return item

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, variant_id=None, unit_price=None):
        """Add an item to the cart (or increase quantity if already present)."""
        if quantity is None or quantity <= 0:
            raise DomainValidationError("Cart.InvalidQuantity", "quantity", "Quantity must be greater than zero")

        existing = next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and str(i.variant_id or "") == str(variant_id or "")
            ),
            None,
        )

        now = datetime.now(UTC)

        if existing:
            existing.quantity += quantity
            if unit_price is not None:
                existing.unit_price = unit_price
            item_id = str(existing.id)
        else:
            item = CartItem(
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
                unit_price=unit_price,
                added_at=now,
            )
            self.add_items(item)
            item_id = str(item.id)

        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                unit_price=unit_price,
            )
        )
        return item_id

    def update_item_quantity(self, item_id, new_quantity):
        """Update the quantity of an existing cart item."""
        if new_quantity is None or new_quantity <= 0:
            raise DomainValidationError("Cart.InvalidQuantity", "quantity", "Quantity must be greater than zero")

        item = self._find_item(item_id)
        previous_quantity = item.quantity
        item.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, item_id):
        """Remove an item from the cart."""
        item = self._find_item(item_id)
        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def clear(self):
        """Remove every line from the cart."""
        removed = len(self.items)
        for item in list(self.items):
            self.remove_items(item)
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(CartCleared(cart_id=str(self.id), items_removed=removed, cleared_at=now))
