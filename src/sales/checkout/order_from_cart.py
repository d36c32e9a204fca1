"""Checkout coordinator — turn a user's cart into an order.

Runs as a single command handler, so everything below happens inside one
Protean unit of work: stock decrements, the new order, and the cleared cart
commit together or not at all.

    1. Load the cart (by id, or the user's cart) and both addresses.
    2. Check stock for every line that has a variant. If any line is short,
       reject the whole checkout and report every shortfall.
    3. Price the order (placeholder 8% tax, flat shipping per method).
    4. Create the order; for each line decrement stock and add the item with
       a snapshot of the variant's catalogue data.
    5. Persist the order, clear the cart.

A decrement that fails after validation passed (another buyer won the race)
raises ``Order.StockReductionFailed``, which aborts the unit of work.
"""

import json
from dataclasses import asdict, dataclass

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from sales.address.address import get_user_address
from sales.cart.cart import ShoppingCart
from sales.cart.management import find_cart_for_user, get_cart
from sales.catalogue.stock import get_variant
from sales.catalogue.variant import ProductVariant
from sales.checkout.pricing import DEFAULT_SHIPPING_METHOD, price_order
from sales.domain import sales
from sales.order.order import Order, ProductSnapshot
from shared.errors import ConflictError, DomainValidationError, NotFoundError
from shared.money import DEFAULT_CURRENCY, Money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockShortfall:
    variant_id: str
    sku: str
    requested: int
    available: int


@dataclass(frozen=True)
class OrderCreatedFromCart:
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


class InsufficientStockError(ConflictError):
    def __init__(self, shortfalls: list[StockShortfall]) -> None:
        skus = ", ".join(s.sku for s in shortfalls)
        super().__init__(
            "Order.InsufficientStock",
            f"Insufficient stock for {len(shortfalls)} item(s): {skus}",
            {"items": [asdict(s) for s in shortfalls]},
        )
        self.shortfalls = shortfalls


@dataclass(frozen=True)
class _Line:
    product_id: str
    variant: ProductVariant | None
    quantity: int
    unit_price: Money


@sales.command(part_of="Order")
class CreateOrderFromCart:
    user_id = Identifier(required=True)
    cart_id = Identifier()
    shipping_address_id = Identifier(required=True)
    billing_address_id = Identifier()
    shipping_method = String(max_length=50, default=DEFAULT_SHIPPING_METHOD)
    metadata = Text()  # JSON object copied onto the order


def _load_cart(command) -> ShoppingCart:
    if command.cart_id:
        cart = get_cart(command.cart_id)
        if not cart.belongs_to(command.user_id):
            raise NotFoundError("Cart.NotFound", f"Cart {command.cart_id} not found")
    else:
        cart = find_cart_for_user(command.user_id)
        if cart is None:
            raise DomainValidationError("Order.EmptyCart", "cart", "The user has no cart to check out")

    if cart.is_empty:
        raise DomainValidationError("Order.EmptyCart", "cart", "Cannot create an order from an empty cart")
    return cart


def _resolve_lines(cart: ShoppingCart) -> list[_Line]:
    lines = []
    # One instance per variant, so repeated variants decrement the same stock
    variants: dict[str, ProductVariant] = {}
    for item in cart.items:
        variant = None
        if item.variant_id:
            key = str(item.variant_id)
            if key not in variants:
                variants[key] = get_variant(item.variant_id)
            variant = variants[key]
        if variant is not None:
            unit_price = Money.of(variant.price, variant.currency)
        elif item.unit_price is not None:
            unit_price = Money.of(item.unit_price, DEFAULT_CURRENCY)
        else:
            raise DomainValidationError(
                "Order.PriceUnavailable",
                "items",
                f"No price available for product {item.product_id}",
            )
        lines.append(
            _Line(
                product_id=str(item.product_id),
                variant=variant,
                quantity=item.quantity,
                unit_price=unit_price,
            )
        )
    return lines


def _find_shortfalls(lines: list[_Line]) -> list[StockShortfall]:
    requested: dict[str, int] = {}
    variants: dict[str, ProductVariant] = {}
    for line in lines:
        if line.variant is None:
            continue
        key = str(line.variant.id)
        requested[key] = requested.get(key, 0) + line.quantity
        variants[key] = line.variant

    return [
        StockShortfall(
            variant_id=key,
            sku=variants[key].sku or "N/A",
            requested=quantity,
            available=variants[key].stock_quantity,
        )
        for key, quantity in requested.items()
        if not variants[key].has_stock(quantity)
    ]


def _snapshot_for(line: _Line) -> ProductSnapshot:
    variant = line.variant
    if variant is None:
        return ProductSnapshot(name=f"Product {line.product_id}")
    return ProductSnapshot(
        name=variant.product_name,
        sku=variant.product_sku,
        slug=variant.product_slug,
        variant_sku=variant.sku,
        variant_attributes=variant.attributes,
    )


def _parse_metadata(raw) -> dict:
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    return json.loads(raw)


@sales.command_handler(part_of=Order)
class CreateOrderFromCartHandler:
    @handle(CreateOrderFromCart)
    def create_order_from_cart(self, command):
        cart = _load_cart(command)
        shipping_address = get_user_address(command.shipping_address_id, command.user_id)
        billing_address = (
            get_user_address(command.billing_address_id, command.user_id)
            if command.billing_address_id
            else shipping_address
        )

        lines = _resolve_lines(cart)
        shortfalls = _find_shortfalls(lines)
        if shortfalls:
            logger.info(
                "Checkout rejected for insufficient stock",
                cart_id=str(cart.id),
                shortfalls=[asdict(s) for s in shortfalls],
            )
            raise InsufficientStockError(shortfalls)

        currency = lines[0].unit_price.currency
        pricing = price_order(
            [line.unit_price.multiply(line.quantity) for line in lines],
            command.shipping_method,
            currency,
        )

        order = Order.create(
            user_id=command.user_id,
            shipping_address_id=str(shipping_address.id),
            billing_address_id=str(billing_address.id),
            shipping_method=command.shipping_method or DEFAULT_SHIPPING_METHOD,
            tax=pricing.tax.amount,
            shipping_cost=pricing.shipping_cost.amount,
            currency=currency,
            extra_metadata=_parse_metadata(command.metadata),
        )

        variant_repo = current_domain.repository_for(ProductVariant)
        for line in lines:
            if line.variant is not None:
                try:
                    line.variant.remove_stock(line.quantity, reference=str(order.id))
                except ConflictError as exc:
                    raise ConflictError(
                        "Order.StockReductionFailed",
                        f"Could not reduce stock for {line.variant.sku}: {exc.message}",
                        exc.details,
                    ) from exc
                variant_repo.add(line.variant)

            order.add_item(
                product_id=line.product_id,
                variant_id=str(line.variant.id) if line.variant is not None else None,
                quantity=line.quantity,
                unit_price=line.unit_price.amount,
                snapshot=_snapshot_for(line),
            )

        current_domain.repository_for(Order).add(order)

        cart.clear()
        current_domain.repository_for(ShoppingCart).add(cart)

        logger.info(
            "Order created from cart",
            order_id=str(order.id),
            cart_id=str(cart.id),
            total=order.total,
            currency=order.currency,
        )

        return OrderCreatedFromCart(
            order_id=str(order.id),
            cart_id=str(cart.id),
            item_count=len(order.items),
            subtotal=order.subtotal,
            tax=order.tax,
            shipping_cost=order.shipping_cost,
            total=order.total,
            currency=order.currency,
            status=order.status,
            payment_status=order.payment_status,
        )
