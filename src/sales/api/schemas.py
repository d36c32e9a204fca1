"""Pydantic request/response schemas for the Sales API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Address / Variant Schemas
# ---------------------------------------------------------------------------
class RegisterAddressRequest(BaseModel):
    user_id: str
    line1: str
    line2: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str = Field(min_length=2, max_length=2)


class AddressIdResponse(BaseModel):
    address_id: str


class RegisterVariantRequest(BaseModel):
    product_id: str
    product_name: str
    product_slug: str | None = None
    product_sku: str | None = None
    sku: str
    price: float = Field(ge=0)
    currency: str = "USD"
    stock_quantity: int = Field(default=0, ge=0)
    attributes: dict[str, str] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "product_name": "Classic Tee",
                    "product_slug": "classic-tee",
                    "sku": "TEE-RED-M",
                    "price": 10.0,
                    "currency": "USD",
                    "stock_quantity": 25,
                    "attributes": {"color": "Red", "size": "M"},
                }
            ]
        }
    }


class VariantIdResponse(BaseModel):
    variant_id: str


class AddStockRequest(BaseModel):
    quantity: int = Field(gt=0)


class StockResponse(BaseModel):
    variant_id: str
    stock_quantity: int


# ---------------------------------------------------------------------------
# Cart Schemas
# ---------------------------------------------------------------------------
class CreateCartRequest(BaseModel):
    user_id: str


class CartIdResponse(BaseModel):
    cart_id: str


class AddToCartRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1)
    unit_price: float | None = Field(default=None, ge=0)


class UpdateCartQuantityRequest(BaseModel):
    new_quantity: int = Field(ge=1)


class ItemIdResponse(BaseModel):
    item_id: str


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    user_id: str
    cart_id: str | None = None
    shipping_address_id: str
    billing_address_id: str | None = None
    shipping_method: str = "Standard"
    metadata: dict[str, str] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-001",
                    "cart_id": "cart-001",
                    "shipping_address_id": "addr-001",
                    "shipping_method": "Express",
                    "metadata": {"channel": "web"},
                }
            ]
        }
    }


class AddOrderItemRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    product_name: str
    sku: str | None = None
    slug: str | None = None
    variant_sku: str | None = None
    variant_attributes: dict[str, str] = Field(default_factory=dict)


class UpdateOrderItemQuantityRequest(BaseModel):
    quantity: int = Field(ge=1)


class ShipOrderRequest(BaseModel):
    tracking_number: str | None = None


class ReturnOrderRequest(BaseModel):
    reason: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None
    acting_role: str = "Customer"


class RefundOrderRequest(BaseModel):
    amount: float | None = Field(default=None, gt=0)
    currency: str | None = None
    reason: str | None = None
    idempotency_key: str | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Order Response Schemas
# ---------------------------------------------------------------------------
class OrderCreatedResponse(BaseModel):
    order_id: str
    cart_id: str
    item_count: int
    subtotal: float
    tax: float
    shipping_cost: float
    total: float
    currency: str
    status: str
    payment_status: str


class OrderStateResponse(BaseModel):
    order_id: str
    status: str
    payment_status: str


class RefundResponse(BaseModel):
    order_id: str
    refund_id: str
    refund_amount: float
    currency: str
    total_refunded: float
    remaining: float
    is_fully_refunded: bool
    status: str
    payment_status: str
    reason: str | None = None
    refunded_at: datetime


class OrderItemResponse(BaseModel):
    item_id: str
    product_id: str
    variant_id: str | None = None
    product_name: str
    quantity: int
    unit_price: float
    total_price: float


class RefundRecordResponse(BaseModel):
    refund_id: str
    kind: str
    amount: float
    currency: str
    reason: str | None = None
    refunded_at: datetime


class OrderDetailResponse(BaseModel):
    order_id: str
    user_id: str | None = None
    status: str
    payment_status: str
    shipping_method: str
    subtotal: float
    tax: float
    shipping_cost: float
    total: float
    currency: str
    refunded_amount: float
    tracking_number: str | None = None
    items: list[OrderItemResponse]
    refunds: list[RefundRecordResponse]
