"""Order cancellation — command and handler.

The acting role decides how far along an order may still be cancelled:
customers up to Processing, admins and managers up to Shipped.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from sales.domain import sales
from sales.order.fulfillment import OrderState
from sales.order.lookup import get_order
from sales.order.order import ActingRole, Order


@sales.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    acting_role = String(choices=ActingRole, default=ActingRole.CUSTOMER.value)


@sales.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = get_order(command.order_id)
        order.cancel(reason=command.reason, role=command.acting_role or ActingRole.CUSTOMER.value)
        current_domain.repository_for(Order).add(order)
        return OrderState.of(order)
