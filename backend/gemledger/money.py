# Overview: Decimal helpers for money, weight and percentage precision.

"""
Fixed-precision arithmetic for monetary and physical quantities.

WHY: Jewelry pricing carries 4 decimal places (gold per-gram rates), weights
carry 3 (milligram resolution), and percentages carry 2. Floats cannot hold
these exactly, so every amount travels as a Decimal and is quantized with
ROUND_HALF_UP at the boundary where it is stored or returned.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

MONEY_PLACES = Decimal("0.0001")
WEIGHT_PLACES = Decimal("0.001")
PERCENT_PLACES = Decimal("0.01")

ZERO = Decimal("0")
HUNDRED = Decimal("100")

MAX_MONEY = Decimal("99999999999.9999")
MAX_WORKSHOP_COST = Decimal("99999999.9999")
MAX_WEIGHT = Decimal("9999999.999")

# Payments within a cent of the total count as settled
SETTLEMENT_TOLERANCE = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def q_money(value) -> Decimal:
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def q_weight(value) -> Decimal:
    return to_decimal(value).quantize(WEIGHT_PLACES, rounding=ROUND_HALF_UP)


def q_percent(value) -> Decimal:
    return to_decimal(value).quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)


def money_str(value) -> str | None:
    """Serialize a stored amount as a fixed 4dp string (None passes through)."""
    if value is None:
        return None
    return str(q_money(value))


def weight_str(value) -> str | None:
    if value is None:
        return None
    return str(q_weight(value))


def percent_str(value) -> str | None:
    if value is None:
        return None
    return str(q_percent(value))


def payment_status_for(paid, total) -> str:
    """unpaid / partial / paid from a paid amount against a total."""
    paid = to_decimal(paid)
    total = to_decimal(total)
    if paid > ZERO and paid >= total:
        return "paid"
    if paid > ZERO:
        return "partial"
    return "unpaid"
