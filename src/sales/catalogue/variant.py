"""ProductVariant aggregate (CQRS) — a sellable SKU with its price and stock level.

Stock never goes negative: ``remove_stock`` refuses a decrement larger than
what is on hand, so a decrement that loses a race with another buyer fails
instead of overselling.
"""

import json
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from sales.catalogue.events import StockAdded, StockRemoved, VariantRegistered
from sales.domain import sales
from shared.errors import ConflictError, DomainValidationError
from shared.money import DEFAULT_CURRENCY, Money


@sales.aggregate
class ProductVariant:
    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    product_slug = String(max_length=255)
    product_sku = String(max_length=100)
    sku = String(required=True, max_length=100)
    price = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)
    stock_quantity = Integer(default=0)
    attributes = Text()  # JSON object, e.g. {"size": "M", "color": "Red"}
    is_active = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def stock_cannot_be_negative(self):
        if self.stock_quantity is not None and self.stock_quantity < 0:
            raise ValidationError({"stock_quantity": ["Stock quantity cannot be negative"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def register(
        cls,
        product_id,
        product_name,
        sku,
        price,
        currency=DEFAULT_CURRENCY,
        stock_quantity=0,
        product_slug=None,
        product_sku=None,
        attributes=None,
    ):
        if stock_quantity < 0:
            raise DomainValidationError(
                "ProductVariant.InvalidQuantity", "stock_quantity", "Opening stock cannot be negative"
            )
        money = Money.of(price, currency)
        now = datetime.now(UTC)

        variant = cls(
            product_id=product_id,
            product_name=product_name,
            product_slug=product_slug,
            product_sku=product_sku,
            sku=sku,
            price=money.amount_float,
            currency=money.currency,
            stock_quantity=stock_quantity,
            attributes=json.dumps(attributes or {}),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        variant.raise_(
            VariantRegistered(
                variant_id=str(variant.id),
                product_id=str(product_id),
                sku=sku,
                price=variant.price,
                currency=variant.currency,
                stock_quantity=stock_quantity,
                registered_at=now,
            )
        )
        return variant

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def has_stock(self, quantity) -> bool:
        return self.stock_quantity >= quantity

    def add_stock(self, quantity):
        if quantity is None or quantity <= 0:
            raise DomainValidationError("ProductVariant.InvalidQuantity", "quantity", "Quantity must be positive")

        self.stock_quantity += quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockAdded(
                variant_id=str(self.id),
                quantity=quantity,
                new_stock_quantity=self.stock_quantity,
            )
        )

    def remove_stock(self, quantity, reference=None):
        """Decrement stock, failing when less than ``quantity`` is on hand."""
        if quantity is None or quantity <= 0:
            raise DomainValidationError("ProductVariant.InvalidQuantity", "quantity", "Quantity must be positive")
        if not self.has_stock(quantity):
            raise ConflictError(
                "ProductVariant.InsufficientStock",
                f"Insufficient stock for {self.sku}: {self.stock_quantity} available, {quantity} requested",
                {"variant_id": str(self.id), "requested": quantity, "available": self.stock_quantity},
            )

        self.stock_quantity -= quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockRemoved(
                variant_id=str(self.id),
                quantity=quantity,
                new_stock_quantity=self.stock_quantity,
                reference=reference,
            )
        )

    @property
    def attribute_map(self) -> dict:
        return json.loads(self.attributes) if self.attributes else {}
