"""Pricing Calculator for order totals.

Implements the store's pricing policy:
- Subtotal is the sum of unit price x quantity over all lines
- Tax is a flat rate on the subtotal, rounded half-up to the paisa
- Shipping is a flat fee per order, independent of item count or weight
- No discounts are applied at checkout
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Protocol
import logging

from commerce.config import settings

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class PricedLine(Protocol):
    unit_price: Decimal
    quantity: int


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total: Decimal


def to_money(value) -> Decimal:
    """Round a monetary value half-up to two decimals."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class PricingCalculator:
    """
    Computes the monetary breakdown of an order.

    Example:
    - 1 x 1999.99 + 2 x 199.99 -> subtotal 2399.97
    - Tax 10% -> 239.997 -> 240.00
    - Shipping -> 10.00
    - Total -> 2649.97
    """

    def __init__(
        self,
        tax_rate: Optional[Decimal] = None,
        shipping_fee: Optional[Decimal] = None,
    ):
        self.tax_rate = Decimal(str(tax_rate if tax_rate is not None else settings.TAX_RATE))
        self.shipping_fee = to_money(shipping_fee if shipping_fee is not None else settings.FLAT_SHIPPING_FEE)

    def line_total(self, unit_price: Decimal, quantity: int) -> Decimal:
        return to_money(Decimal(str(unit_price)) * quantity)

    def price(self, line_items: Iterable[PricedLine]) -> PriceBreakdown:
        subtotal = sum(
            (self.line_total(item.unit_price, item.quantity) for item in line_items),
            Decimal("0.00"),
        )
        subtotal = to_money(subtotal)
        tax_amount = to_money(subtotal * self.tax_rate)
        shipping_amount = self.shipping_fee
        discount_amount = Decimal("0.00")
        total = to_money(subtotal + tax_amount + shipping_amount - discount_amount)

        return PriceBreakdown(
            subtotal=subtotal,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            discount_amount=discount_amount,
            total=total,
        )
