"""Order fulfillment — shipping, delivery and return commands and handler."""

from dataclasses import dataclass

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from sales.domain import sales
from sales.order.lookup import get_order
from sales.order.order import Order


@dataclass(frozen=True)
class OrderState:
    """Status snapshot returned by order transition commands."""

    order_id: str
    status: str
    payment_status: str

    @classmethod
    def of(cls, order: Order) -> "OrderState":
        return cls(order_id=str(order.id), status=order.status, payment_status=order.payment_status)


@sales.command(part_of="Order")
class MarkOrderAsShipped:
    order_id = Identifier(required=True)
    tracking_number = String(max_length=255)


@sales.command(part_of="Order")
class MarkOrderAsDelivered:
    order_id = Identifier(required=True)


@sales.command(part_of="Order")
class MarkOrderAsReturned:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@sales.command_handler(part_of=Order)
class OrderFulfillmentHandler:
    @handle(MarkOrderAsShipped)
    def mark_as_shipped(self, command):
        order = get_order(command.order_id)
        order.mark_as_shipped(tracking_number=command.tracking_number)
        current_domain.repository_for(Order).add(order)
        return OrderState.of(order)

    @handle(MarkOrderAsDelivered)
    def mark_as_delivered(self, command):
        order = get_order(command.order_id)
        order.mark_as_delivered()
        current_domain.repository_for(Order).add(order)
        return OrderState.of(order)

    @handle(MarkOrderAsReturned)
    def mark_as_returned(self, command):
        order = get_order(command.order_id)
        order.mark_as_returned(reason=command.reason)
        current_domain.repository_for(Order).add(order)
        return OrderState.of(order)
