# Overview: Pure cart and sale total calculations.

"""
Cart totals

Single source of truth for line, discount, tax and total arithmetic. The
sales service stores what this computes; checkout reads it back to decide
whether the payment step is settled.

All amounts are Decimals quantized to 4 places (ROUND_HALF_UP).
"""

from dataclasses import dataclass
from decimal import Decimal

from ..money import HUNDRED, ZERO, q_money, to_decimal


DISCOUNT_TYPES = ("percentage", "fixed")


@dataclass(frozen=True)
class CartLine:
    item_id: int | None
    unit_price: Decimal
    quantity: int = 1
    discount_type: str | None = None
    discount_value: Decimal | None = None


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    paid: Decimal
    remaining: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "discount_amount": str(self.discount_amount),
            "tax_amount": str(self.tax_amount),
            "total": str(self.total),
            "paid": str(self.paid),
            "remaining": str(self.remaining),
        }


def discount_for(base, discount_type: str | None, discount_value) -> Decimal:
    """
    Discount on a base amount.

    percentage: base * value / 100; fixed: value, capped at base.
    """
    base = to_decimal(base)
    if not discount_type or discount_value is None:
        return ZERO
    value = to_decimal(discount_value)
    if value <= ZERO:
        return ZERO
    if discount_type == "percentage":
        return q_money(base * min(value, HUNDRED) / HUNDRED)
    if discount_type == "fixed":
        return q_money(min(value, base))
    raise ValueError(f"Unknown discount type: {discount_type}")


def line_discount(line: CartLine) -> Decimal:
    gross = to_decimal(line.unit_price) * line.quantity
    return discount_for(gross, line.discount_type, line.discount_value)


def line_total(line: CartLine) -> Decimal:
    gross = to_decimal(line.unit_price) * line.quantity
    return q_money(max(ZERO, gross - line_discount(line)))


def compute_totals(
    lines: list[CartLine],
    *,
    discount_type: str | None = None,
    discount_value=None,
    tax_rate=ZERO,
    paid=ZERO,
) -> CartTotals:
    subtotal = q_money(sum((line_total(line) for line in lines), ZERO))
    discount_amount = discount_for(subtotal, discount_type, discount_value)
    taxable = max(ZERO, subtotal - discount_amount)
    tax_amount = q_money(taxable * to_decimal(tax_rate) / HUNDRED)
    total = q_money(max(ZERO, subtotal - discount_amount + tax_amount))
    paid = q_money(paid)
    remaining = q_money(max(ZERO, total - paid))

    return CartTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total=total,
        paid=paid,
        remaining=remaining,
    )
