"""Money value type shared by orders, payments and refunds.

Amounts are held as ``Decimal`` and quantized to cents. Aggregates persist
the float form (``amount_float``) alongside a currency code, the same way
pricing has always been stored; all arithmetic goes through this type so
rounding happens in one place.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from shared.errors import DomainValidationError

DEFAULT_CURRENCY = "USD"
_CENTS = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Convert a float/str/int/Decimal into a cent-quantized Decimal."""
    if isinstance(value, Decimal):
        amount = value
    else:
        # str() avoids binary float artefacts (0.1 + 0.2)
        amount = Decimal(str(value if value is not None else 0))
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        if not self.currency or len(self.currency.strip()) != 3:
            raise DomainValidationError("Order.InvalidCurrency", "currency", "Currency must be a 3-letter ISO code")
        object.__setattr__(self, "currency", self.currency.strip().upper())
        if self.amount < 0:
            raise DomainValidationError("Order.NegativeAmount", "amount", "Amount cannot be negative")

    @classmethod
    def of(cls, amount, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(amount=to_decimal(amount), currency=currency or DEFAULT_CURRENCY)

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(amount=Decimal("0"), currency=currency or DEFAULT_CURRENCY)

    def _assert_same_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise DomainValidationError(
                "Order.CurrencyMismatch",
                "currency",
                f"Cannot combine {self.currency} with {other.currency}",
            )

    def add(self, other: "Money") -> "Money":
        self._assert_same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def subtract(self, other: "Money") -> "Money":
        self._assert_same_currency(other)
        if other.amount > self.amount:
            raise DomainValidationError(
                "Order.NegativeAmount",
                "amount",
                f"Subtracting {other} from {self} would result in a negative amount",
            )
        return Money(self.amount - other.amount, self.currency)

    def multiply(self, factor) -> "Money":
        factor = Decimal(str(factor))
        if factor < 0:
            raise DomainValidationError("Order.NegativeAmount", "amount", "Cannot multiply money by a negative factor")
        return Money(self.amount * factor, self.currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def amount_float(self) -> float:
        return float(self.amount)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"
