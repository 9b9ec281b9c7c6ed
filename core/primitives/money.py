"""
DineIn Primitives - Money
===========================
All monetary arithmetic is done in decimal.Decimal.

Rules:
- Never mix binary floats into a computation; floats are converted
  through str() so 19.99 stays 19.99.
- No rounding mid-calculation. quantize() is applied only when a value
  leaves the engine (BillSnapshot, display, HTTP response).
- Rounding mode is ROUND_HALF_UP to two places.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

MoneyLike = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_money(value: MoneyLike) -> Decimal:
    """Coerce an amount into Decimal. Rejects NaN/inf and non-numeric input."""
    if isinstance(value, bool):
        raise ValueError("Boolean is not a monetary amount.")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"'{value}' is not a monetary amount.")
    else:
        raise ValueError(
            f"Unsupported monetary type: {type(value).__name__}"
        )
    if not amount.is_finite():
        raise ValueError(f"Monetary amount must be finite, got {amount}.")
    return amount


def quantize(amount: MoneyLike) -> Decimal:
    """Round to cents, half up. Display/snapshot boundary only."""
    return to_money(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(amounts: Iterable[MoneyLike]) -> Decimal:
    total = ZERO
    for amount in amounts:
        total += to_money(amount)
    return total


def percent_of(amount: MoneyLike, rate_percent: MoneyLike) -> Decimal:
    """amount × rate / 100, unrounded."""
    return to_money(amount) * to_money(rate_percent) / HUNDRED


def inclusive_part(amount: MoneyLike, rate_percent: MoneyLike) -> Decimal:
    """Share of `amount` that is a rate already included in it: a × r / (100 + r)."""
    rate = to_money(rate_percent)
    if rate == ZERO:
        return ZERO
    return to_money(amount) * rate / (HUNDRED + rate)


def money_str(amount: MoneyLike) -> str:
    """Two-place string form used in JSON responses."""
    return str(quantize(amount))


def amounts_match(left: MoneyLike, right: MoneyLike, tolerance: MoneyLike = CENT) -> bool:
    return abs(to_money(left) - to_money(right)) <= to_money(tolerance)
