"""
Cart pricing.

Pure functions over cart line items; no I/O. Money is Decimal end to end:
prices are parsed from their string form and never pass through float.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from remote.models import CartLineItem

TAX_RATE = Decimal("0.08")
FREE_SHIPPING_THRESHOLD = Decimal("50.00")
FLAT_SHIPPING_FEE = Decimal("9.99")

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Parse a price (str, int or Decimal) and quantize it to cents."""
    if isinstance(value, float):
        raise TypeError("money must not be a float")
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return f"${to_money(value):.2f}"


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal

    @property
    def free_shipping(self) -> bool:
        return self.shipping == ZERO

    def formatted(self) -> dict:
        return {
            "subtotal": format_money(self.subtotal),
            "tax": format_money(self.tax),
            "shipping": "Free" if self.free_shipping else format_money(self.shipping),
            "total": format_money(self.total),
        }


def line_total(item: CartLineItem) -> Decimal:
    return to_money(item.product.price) * item.qty


def item_count(items: Iterable[CartLineItem]) -> int:
    return sum(item.qty for item in items)


def shipping_for(subtotal: Decimal) -> Decimal:
    # strictly above the threshold; exactly 50.00 still pays shipping
    return ZERO if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_FEE


def compute_breakdown(items: Sequence[CartLineItem]) -> PricingBreakdown:
    """
    Subtotal, tax, shipping and total for the given line items.

    Tax is rounded half-up to cents before it is added, so total is always
    exactly subtotal + tax + shipping at two decimal places.
    """
    subtotal = sum((line_total(item) for item in items), ZERO)
    tax = (subtotal * TAX_RATE).quantize(CENT, rounding=ROUND_HALF_UP)
    shipping = shipping_for(subtotal)
    return PricingBreakdown(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        total=subtotal + tax + shipping,
    )
