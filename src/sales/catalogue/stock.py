"""Variant registration and restocking — commands and handler."""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from sales.catalogue.variant import ProductVariant
from sales.domain import sales
from shared.errors import NotFoundError


@sales.command(part_of="ProductVariant")
class RegisterVariant:
    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    product_slug = String(max_length=255)
    product_sku = String(max_length=100)
    sku = String(required=True, max_length=100)
    price = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    stock_quantity = Integer(default=0)
    attributes = Text()  # JSON object


@sales.command(part_of="ProductVariant")
class AddStock:
    variant_id = Identifier(required=True)
    quantity = Integer(required=True)


def get_variant(variant_id) -> ProductVariant:
    try:
        return current_domain.repository_for(ProductVariant).get(variant_id)
    except ObjectNotFoundError:
        raise NotFoundError("ProductVariant.NotFound", f"Product variant {variant_id} not found") from None


@sales.command_handler(part_of=ProductVariant)
class VariantStockHandler:
    @handle(RegisterVariant)
    def register_variant(self, command):
        attributes = json.loads(command.attributes) if command.attributes else None
        variant = ProductVariant.register(
            product_id=command.product_id,
            product_name=command.product_name,
            product_slug=command.product_slug,
            product_sku=command.product_sku,
            sku=command.sku,
            price=command.price,
            currency=command.currency or "USD",
            stock_quantity=command.stock_quantity or 0,
            attributes=attributes,
        )
        current_domain.repository_for(ProductVariant).add(variant)
        return str(variant.id)

    @handle(AddStock)
    def add_stock(self, command):
        variant = get_variant(command.variant_id)
        variant.add_stock(command.quantity)
        current_domain.repository_for(ProductVariant).add(variant)
        return variant.stock_quantity
