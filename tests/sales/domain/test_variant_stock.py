"""Domain tests for ProductVariant stock levels."""

import pytest
from sales.catalogue.events import StockAdded, StockRemoved, VariantRegistered
from sales.catalogue.variant import ProductVariant
from shared.errors import ConflictError, DomainValidationError


def _make_variant(stock=5):
    variant = ProductVariant.register(
        product_id="prod-001",
        product_name="Classic Tee",
        sku="TEE-RED-M",
        price=10.0,
        stock_quantity=stock,
        attributes={"color": "Red", "size": "M"},
    )
    variant._events.clear()
    return variant


class TestVariantRegistration:
    def test_register(self):
        variant = ProductVariant.register(product_id="prod-001", product_name="Tee", sku="TEE", price=10.0)
        assert variant.stock_quantity == 0
        assert variant.currency == "USD"
        assert any(isinstance(e, VariantRegistered) for e in variant._events)

    def test_attributes_round_trip(self):
        assert _make_variant().attribute_map == {"color": "Red", "size": "M"}

    def test_negative_opening_stock_rejected(self):
        with pytest.raises(DomainValidationError):
            ProductVariant.register(product_id="p", product_name="Tee", sku="TEE", price=1.0, stock_quantity=-1)


class TestStock:
    def test_add_stock(self):
        variant = _make_variant()
        variant.add_stock(3)
        assert variant.stock_quantity == 8
        assert variant._events[0].new_stock_quantity == 8
        assert isinstance(variant._events[0], StockAdded)

    def test_remove_stock(self):
        variant = _make_variant()
        variant.remove_stock(2, reference="ord-001")
        assert variant.stock_quantity == 3
        removed = variant._events[0]
        assert isinstance(removed, StockRemoved)
        assert removed.reference == "ord-001"

    def test_remove_all_stock(self):
        variant = _make_variant(stock=2)
        variant.remove_stock(2)
        assert variant.stock_quantity == 0

    def test_insufficient_stock(self):
        variant = _make_variant(stock=1)
        with pytest.raises(ConflictError) as exc:
            variant.remove_stock(2)
        assert exc.value.code == "ProductVariant.InsufficientStock"
        assert exc.value.details["available"] == 1
        assert variant.stock_quantity == 1

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantities(self, quantity):
        variant = _make_variant()
        with pytest.raises(DomainValidationError):
            variant.add_stock(quantity)
        with pytest.raises(DomainValidationError):
            variant.remove_stock(quantity)
