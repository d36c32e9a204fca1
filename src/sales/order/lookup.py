"""Order loading helper shared by the order command handlers."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from sales.order.order import Order
from shared.errors import NotFoundError


def get_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        raise NotFoundError("Order.NotFound", f"Order {order_id} not found") from None
