"""Order modification — item commands and handler (Pending orders only)."""

import json

from protean import handle
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from sales.domain import sales
from sales.order.fulfillment import OrderState
from sales.order.lookup import get_order
from sales.order.order import Order, ProductSnapshot


@sales.command(part_of="Order")
class AddOrderItem:
    order_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    product_name = String(required=True, max_length=255)
    sku = String(max_length=100)
    slug = String(max_length=255)
    variant_sku = String(max_length=100)
    variant_attributes = Text()  # JSON object


@sales.command(part_of="Order")
class UpdateOrderItemQuantity:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)


@sales.command(part_of="Order")
class RemoveOrderItem:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)


@sales.command_handler(part_of=Order)
class OrderModificationHandler:
    @handle(AddOrderItem)
    def add_item(self, command):
        order = get_order(command.order_id)
        attributes = command.variant_attributes
        if attributes is not None and not isinstance(attributes, str):
            attributes = json.dumps(attributes)

        item = order.add_item(
            product_id=command.product_id,
            variant_id=command.variant_id,
            quantity=command.quantity,
            unit_price=command.unit_price,
            snapshot=ProductSnapshot(
                name=command.product_name,
                sku=command.sku,
                slug=command.slug,
                variant_sku=command.variant_sku,
                variant_attributes=attributes,
            ),
        )
        current_domain.repository_for(Order).add(order)
        return str(item.id)

    @handle(UpdateOrderItemQuantity)
    def update_item_quantity(self, command):
        order = get_order(command.order_id)
        order.update_item_quantity(command.item_id, command.quantity)
        current_domain.repository_for(Order).add(order)
        return OrderState.of(order)

    @handle(RemoveOrderItem)
    def remove_item(self, command):
        order = get_order(command.order_id)
        order.remove_item(command.item_id)
        current_domain.repository_for(Order).add(order)
        return OrderState.of(order)
