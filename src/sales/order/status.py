"""Administrative status corrections — commands and handler.

These bypass the transition guards and are meant for back-office tooling.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from sales.domain import sales
from sales.order.fulfillment import OrderState
from sales.order.lookup import get_order
from sales.order.order import Order, OrderStatus, PaymentStatus


@sales.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)


@sales.command(part_of="Order")
class UpdateOrderPaymentStatus:
    order_id = Identifier(required=True)
    payment_status = String(required=True, choices=PaymentStatus)


@sales.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        order = get_order(command.order_id)
        order.update_status(command.status)
        current_domain.repository_for(Order).add(order)
        return OrderState.of(order)

    @handle(UpdateOrderPaymentStatus)
    def update_payment_status(self, command):
        order = get_order(command.order_id)
        if command.payment_status == PaymentStatus.SUCCEEDED.value:
            order.mark_as_paid()
        else:
            order.update_payment_status(command.payment_status)
        current_domain.repository_for(Order).add(order)
        return OrderState.of(order)
