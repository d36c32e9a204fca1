"""FastAPI routes for the Sales domain — addresses, variants, carts and orders.

Every write goes through ``shared.dispatch.dispatch`` so business failures
come back as typed errors (404/409/422/...) instead of 500s. Commands that
touch a single order are serialized on the order id; checkout is serialized
on a shared stock key because it decrements variants that other carts
may also hold.
"""

import json

from fastapi import APIRouter, HTTPException
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from sales.address.address import RegisterAddress
from sales.api.schemas import (
    AddOrderItemRequest,
    AddressIdResponse,
    AddStockRequest,
    AddToCartRequest,
    CancelOrderRequest,
    CartIdResponse,
    CheckoutRequest,
    CreateCartRequest,
    ItemIdResponse,
    OrderCreatedResponse,
    OrderDetailResponse,
    OrderItemResponse,
    OrderStateResponse,
    RefundOrderRequest,
    RefundRecordResponse,
    RefundResponse,
    RegisterAddressRequest,
    RegisterVariantRequest,
    ReturnOrderRequest,
    ShipOrderRequest,
    StockResponse,
    UpdateCartQuantityRequest,
    UpdateOrderItemQuantityRequest,
    UpdateOrderStatusRequest,
    VariantIdResponse,
)
from sales.cart.management import (
    AddItemToCart,
    ClearCart,
    CreateCart,
    RemoveItemFromCart,
    UpdateCartItemQuantity,
)
from sales.catalogue.stock import AddStock, RegisterVariant
from sales.checkout.order_from_cart import CreateOrderFromCart
from sales.order.cancellation import CancelOrder
from sales.order.fulfillment import MarkOrderAsDelivered, MarkOrderAsReturned, MarkOrderAsShipped
from sales.order.modification import AddOrderItem, RemoveOrderItem, UpdateOrderItemQuantity
from sales.order.order import Order
from sales.order.refund import ProcessOrderRefund
from sales.order.status import UpdateOrderStatus
from shared.dispatch import dispatch
from shared.http import build, unwrap

# Checkouts share variant stock, so they run one at a time
CHECKOUT_SERIALIZATION_KEY = "checkout:stock"

# ---------------------------------------------------------------------------
# Address Router
# ---------------------------------------------------------------------------
address_router = APIRouter(prefix="/addresses", tags=["addresses"])


@address_router.post("", status_code=201, response_model=AddressIdResponse)
async def register_address(body: RegisterAddressRequest) -> AddressIdResponse:
    """Register a shipping/billing address for a user."""
    address_id = unwrap(dispatch(build(RegisterAddress, **body.model_dump())))
    return AddressIdResponse(address_id=address_id)


# ---------------------------------------------------------------------------
# Variant Router
# ---------------------------------------------------------------------------
variant_router = APIRouter(prefix="/variants", tags=["variants"])


@variant_router.post("", status_code=201, response_model=VariantIdResponse)
async def register_variant(body: RegisterVariantRequest) -> VariantIdResponse:
    """Register a sellable variant with its opening stock."""
    command = build(
        RegisterVariant,
        product_id=body.product_id,
        product_name=body.product_name,
        product_slug=body.product_slug,
        product_sku=body.product_sku,
        sku=body.sku,
        price=body.price,
        currency=body.currency,
        stock_quantity=body.stock_quantity,
        attributes=json.dumps(body.attributes),
    )
    variant_id = unwrap(dispatch(command))
    return VariantIdResponse(variant_id=variant_id)


@variant_router.post("/{variant_id}/stock", response_model=StockResponse)
async def add_stock(variant_id: str, body: AddStockRequest) -> StockResponse:
    """Add stock to a variant."""
    stock = unwrap(
        dispatch(AddStock(variant_id=variant_id, quantity=body.quantity), serialize_on=CHECKOUT_SERIALIZATION_KEY)
    )
    return StockResponse(variant_id=variant_id, stock_quantity=stock)


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", status_code=201, response_model=CartIdResponse)
async def create_cart(body: CreateCartRequest) -> CartIdResponse:
    """Create a new cart for a user."""
    cart_id = unwrap(dispatch(CreateCart(user_id=body.user_id)))
    return CartIdResponse(cart_id=cart_id)


@cart_router.post("/{cart_id}/items", status_code=201, response_model=ItemIdResponse)
async def add_to_cart(cart_id: str, body: AddToCartRequest) -> ItemIdResponse:
    """Add an item to the cart."""
    command = AddItemToCart(
        cart_id=cart_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
        unit_price=body.unit_price,
    )
    item_id = unwrap(dispatch(command, serialize_on=cart_id))
    return ItemIdResponse(item_id=item_id)


@cart_router.put("/{cart_id}/items/{item_id}", response_model=CartIdResponse)
async def update_cart_quantity(cart_id: str, item_id: str, body: UpdateCartQuantityRequest) -> CartIdResponse:
    """Update the quantity of an item in the cart."""
    command = UpdateCartItemQuantity(cart_id=cart_id, item_id=item_id, new_quantity=body.new_quantity)
    unwrap(dispatch(command, serialize_on=cart_id))
    return CartIdResponse(cart_id=cart_id)


@cart_router.delete("/{cart_id}/items/{item_id}", response_model=CartIdResponse)
async def remove_from_cart(cart_id: str, item_id: str) -> CartIdResponse:
    """Remove an item from the cart."""
    unwrap(dispatch(RemoveItemFromCart(cart_id=cart_id, item_id=item_id), serialize_on=cart_id))
    return CartIdResponse(cart_id=cart_id)


@cart_router.delete("/{cart_id}/items", response_model=CartIdResponse)
async def clear_cart(cart_id: str) -> CartIdResponse:
    """Remove every item from the cart."""
    unwrap(dispatch(ClearCart(cart_id=cart_id), serialize_on=cart_id))
    return CartIdResponse(cart_id=cart_id)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderCreatedResponse)
async def create_order_from_cart(body: CheckoutRequest) -> OrderCreatedResponse:
    """Check out a cart: validate stock, create the order, clear the cart."""
    command = CreateOrderFromCart(
        user_id=body.user_id,
        cart_id=body.cart_id,
        shipping_address_id=body.shipping_address_id,
        billing_address_id=body.billing_address_id,
        shipping_method=body.shipping_method,
        metadata=json.dumps(body.metadata),
    )
    result = unwrap(dispatch(command, serialize_on=CHECKOUT_SERIALIZATION_KEY))
    return OrderCreatedResponse(**result.__dict__)


@order_router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(order_id: str) -> OrderDetailResponse:
    """Return the current state of an order."""
    try:
        order = current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        raise HTTPException(
            status_code=404,
            detail={"code": "Order.NotFound", "message": f"Order {order_id} not found", "details": {}},
        ) from None

    return OrderDetailResponse(
        order_id=str(order.id),
        user_id=str(order.user_id) if order.user_id else None,
        status=order.status,
        payment_status=order.payment_status,
        shipping_method=order.shipping_method,
        subtotal=order.subtotal,
        tax=order.tax,
        shipping_cost=order.shipping_cost,
        total=order.total,
        currency=order.currency,
        refunded_amount=order.refunded_amount,
        tracking_number=order.tracking_number,
        items=[
            OrderItemResponse(
                item_id=str(item.id),
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                product_name=item.snapshot.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
            )
            for item in order.items
        ],
        refunds=[
            RefundRecordResponse(
                refund_id=str(record.id),
                kind=record.kind,
                amount=record.amount,
                currency=record.currency,
                reason=record.reason,
                refunded_at=record.refunded_at,
            )
            for record in order.refunds
        ],
    )


@order_router.post("/{order_id}/items", status_code=201, response_model=ItemIdResponse)
async def add_order_item(order_id: str, body: AddOrderItemRequest) -> ItemIdResponse:
    """Add an item to a Pending order."""
    command = AddOrderItem(
        order_id=order_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
        unit_price=body.unit_price,
        product_name=body.product_name,
        sku=body.sku,
        slug=body.slug,
        variant_sku=body.variant_sku,
        variant_attributes=json.dumps(body.variant_attributes),
    )
    item_id = unwrap(dispatch(command, serialize_on=order_id))
    return ItemIdResponse(item_id=item_id)


@order_router.put("/{order_id}/items/{item_id}", response_model=OrderStateResponse)
async def update_order_item(order_id: str, item_id: str, body: UpdateOrderItemQuantityRequest) -> OrderStateResponse:
    """Change the quantity of an item on a Pending order."""
    command = UpdateOrderItemQuantity(order_id=order_id, item_id=item_id, quantity=body.quantity)
    state = unwrap(dispatch(command, serialize_on=order_id))
    return OrderStateResponse(**state.__dict__)


@order_router.delete("/{order_id}/items/{item_id}", response_model=OrderStateResponse)
async def remove_order_item(order_id: str, item_id: str) -> OrderStateResponse:
    """Remove an item from a Pending order."""
    state = unwrap(dispatch(RemoveOrderItem(order_id=order_id, item_id=item_id), serialize_on=order_id))
    return OrderStateResponse(**state.__dict__)


@order_router.put("/{order_id}/ship", response_model=OrderStateResponse)
async def mark_order_as_shipped(order_id: str, body: ShipOrderRequest) -> OrderStateResponse:
    """Mark a paid order as shipped."""
    command = MarkOrderAsShipped(order_id=order_id, tracking_number=body.tracking_number)
    state = unwrap(dispatch(command, serialize_on=order_id))
    return OrderStateResponse(**state.__dict__)


@order_router.put("/{order_id}/deliver", response_model=OrderStateResponse)
async def mark_order_as_delivered(order_id: str) -> OrderStateResponse:
    """Mark a shipped order as delivered."""
    state = unwrap(dispatch(MarkOrderAsDelivered(order_id=order_id), serialize_on=order_id))
    return OrderStateResponse(**state.__dict__)


@order_router.put("/{order_id}/return", response_model=OrderStateResponse)
async def mark_order_as_returned(order_id: str, body: ReturnOrderRequest) -> OrderStateResponse:
    """Record that a delivered order came back."""
    state = unwrap(dispatch(MarkOrderAsReturned(order_id=order_id, reason=body.reason), serialize_on=order_id))
    return OrderStateResponse(**state.__dict__)


@order_router.put("/{order_id}/cancel", response_model=OrderStateResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> OrderStateResponse:
    """Cancel an order on behalf of a customer, manager or admin."""
    command = build(CancelOrder, order_id=order_id, reason=body.reason, acting_role=body.acting_role)
    state = unwrap(dispatch(command, serialize_on=order_id))
    return OrderStateResponse(**state.__dict__)


@order_router.post("/{order_id}/refund", response_model=RefundResponse)
async def refund_order(order_id: str, body: RefundOrderRequest) -> RefundResponse:
    """Refund an order in full (no amount) or in part."""
    command = ProcessOrderRefund(
        order_id=order_id,
        amount=body.amount,
        currency=body.currency,
        reason=body.reason,
        idempotency_key=body.idempotency_key,
    )
    summary = unwrap(dispatch(command, serialize_on=order_id))
    return RefundResponse(**summary.__dict__)


@order_router.put("/{order_id}/status", response_model=OrderStateResponse)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> OrderStateResponse:
    """Administrative status correction."""
    state = unwrap(dispatch(build(UpdateOrderStatus, order_id=order_id, status=body.status), serialize_on=order_id))
    return OrderStateResponse(**state.__dict__)
