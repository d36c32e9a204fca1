"""Domain events for the ProductVariant aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from sales.domain import sales


@sales.event(part_of="ProductVariant")
class VariantRegistered:
    """A sellable product variant was registered with an opening stock level."""

    __version__ = 1

    variant_id = Identifier(required=True)
    product_id = Identifier(required=True)
    sku = String(required=True)
    price = Float(required=True)
    currency = String(required=True)
    stock_quantity = Integer(required=True)
    registered_at = DateTime(required=True)


@sales.event(part_of="ProductVariant")
class StockAdded:
    __version__ = 1

    variant_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_stock_quantity = Integer(required=True)


@sales.event(part_of="ProductVariant")
class StockRemoved:
    """Stock was decremented, normally because an order consumed it."""

    __version__ = 1

    variant_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_stock_quantity = Integer(required=True)
    reference = String()
