"""Tests for the pricing calculator."""

from dataclasses import dataclass
from decimal import Decimal

from commerce.services.pricing_service import PricingCalculator, to_money


@dataclass
class Line:
    unit_price: Decimal
    quantity: int


class TestPricingCalculator:
    """Subtotal, tax, shipping and total for a cart."""

    def test_laptop_and_two_mice(self):
        calculator = PricingCalculator()

        breakdown = calculator.price([
            Line(Decimal("1999.99"), 1),
            Line(Decimal("199.99"), 2),
        ])

        assert breakdown.subtotal == Decimal("2399.97")
        assert breakdown.tax_amount == Decimal("240.00")
        assert breakdown.shipping_amount == Decimal("10.00")
        assert breakdown.discount_amount == Decimal("0.00")
        assert breakdown.total == Decimal("2649.97")

    def test_explicit_ten_percent_policy(self):
        """tax = 2399.97 x 10% = 239.997, rounded half-up to 240.00."""
        breakdown = PricingCalculator(tax_rate=Decimal("0.10"), shipping_fee=Decimal("10.00")).price([
            Line(Decimal("999.99"), 1),
            Line(Decimal("699.99"), 2),
        ])

        assert breakdown.subtotal == Decimal("2399.97")
        assert breakdown.tax_amount == Decimal("240.00")
        assert breakdown.shipping_amount == Decimal("10.00")
        assert breakdown.total == Decimal("2649.97")

    def test_empty_cart_still_pays_shipping(self):
        breakdown = PricingCalculator().price([])

        assert breakdown.subtotal == Decimal("0.00")
        assert breakdown.tax_amount == Decimal("0.00")
        assert breakdown.total == Decimal("10.00")

    def test_tax_rounds_half_up(self):
        """0.05 x 10% = 0.005, which rounds up to 0.01."""
        breakdown = PricingCalculator().price([Line(Decimal("0.05"), 1)])

        assert breakdown.tax_amount == Decimal("0.01")
        assert breakdown.total == Decimal("10.06")

    def test_custom_rate_and_shipping(self):
        calculator = PricingCalculator(tax_rate=Decimal("0.18"), shipping_fee=Decimal("0"))

        breakdown = calculator.price([Line(Decimal("100.00"), 3)])

        assert breakdown.subtotal == Decimal("300.00")
        assert breakdown.tax_amount == Decimal("54.00")
        assert breakdown.shipping_amount == Decimal("0.00")
        assert breakdown.total == Decimal("354.00")

    def test_total_is_sum_of_parts(self):
        breakdown = PricingCalculator().price([
            Line(Decimal("27.50"), 3),
            Line(Decimal("0.99"), 7),
        ])

        assert breakdown.total == (
            breakdown.subtotal + breakdown.tax_amount
            + breakdown.shipping_amount - breakdown.discount_amount
        )

    def test_line_total(self):
        assert PricingCalculator().line_total(Decimal("199.99"), 2) == Decimal("399.98")


def test_to_money_accepts_floats_and_strings():
    assert to_money(2.675) == Decimal("2.68")
    assert to_money("10") == Decimal("10.00")
