"""Placeholder pricing policy used at checkout.

Flat 8% tax on the subtotal and a flat rate per shipping method. A real
tax/shipping engine is out of scope; this keeps totals deterministic.
"""

from dataclasses import dataclass
from decimal import Decimal

from shared.errors import DomainValidationError
from shared.money import DEFAULT_CURRENCY, Money

TAX_RATE = Decimal("0.08")
DEFAULT_SHIPPING_METHOD = "Standard"

SHIPPING_RATES = {
    "Standard": Decimal("5.00"),
    "Express": Decimal("15.00"),
    "Overnight": Decimal("25.00"),
}


@dataclass(frozen=True)
class OrderPricing:
    subtotal: Money
    tax: Money
    shipping_cost: Money

    @property
    def total(self) -> Money:
        return self.subtotal.add(self.tax).add(self.shipping_cost)


def shipping_cost_for(method: str | None, currency: str = DEFAULT_CURRENCY) -> Money:
    method = method or DEFAULT_SHIPPING_METHOD
    if method not in SHIPPING_RATES:
        raise DomainValidationError(
            "Order.InvalidShippingMethod",
            "shipping_method",
            f"Unknown shipping method {method!r}; expected one of {', '.join(SHIPPING_RATES)}",
        )
    return Money.of(SHIPPING_RATES[method], currency)


def price_order(line_totals: list[Money], shipping_method: str | None, currency: str = DEFAULT_CURRENCY) -> OrderPricing:
    """Compute subtotal, tax and shipping for a set of line totals."""
    subtotal = Money.zero(currency)
    for line_total in line_totals:
        subtotal = subtotal.add(line_total)
    return OrderPricing(
        subtotal=subtotal,
        tax=subtotal.multiply(TAX_RATE),
        shipping_cost=shipping_cost_for(shipping_method, currency),
    )
