"""
DineIn Billing Engine - Bill Calculator
=========================================
Pure function from billable items + BillingConfig to a Breakdown.

Composition order (fixed):
    1. menu_subtotal = Σ (unit_price + Σ add-on price) × quantity,
       cancelled items excluded
    2. service charge on menu_subtotal
    3. sales tax on (menu_subtotal + service charge), where an inclusive
       service charge is already inside menu_subtotal
    4. grand_total_before_discount = menu_subtotal + every exclusive amount

Exclusive rate: amount = base × r / 100, added to the total.
Inclusive rate: amount = base × r / (100 + r), extracted, total unchanged.

No rounding happens here. quantized() produces the display form.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from core.config.rules import DEFAULT_BILLING_CONFIG, BillingConfig
from core.primitives.money import ZERO, inclusive_part, percent_of, quantize


@dataclass(frozen=True)
class Breakdown:
    menu_subtotal: Decimal
    service_charge_amount: Decimal
    tax_amount: Decimal
    grand_total_before_discount: Decimal

    def quantized(self) -> "Breakdown":
        return Breakdown(
            menu_subtotal=quantize(self.menu_subtotal),
            service_charge_amount=quantize(self.service_charge_amount),
            tax_amount=quantize(self.tax_amount),
            grand_total_before_discount=quantize(self.grand_total_before_discount),
        )

    def to_dict(self) -> dict:
        shown = self.quantized()
        return {
            "menu_subtotal": shown.menu_subtotal,
            "service_charge_amount": shown.service_charge_amount,
            "tax_amount": shown.tax_amount,
            "grand_total_before_discount": shown.grand_total_before_discount,
        }


EMPTY_BREAKDOWN = Breakdown(ZERO, ZERO, ZERO, ZERO)


def menu_subtotal(items: Iterable) -> Decimal:
    total = ZERO
    for item in items:
        if item.is_billable:
            total += item.line_total
    return total


def _rate_amount(base: Decimal, rate: Decimal, inclusive: bool) -> Decimal:
    if inclusive:
        return inclusive_part(base, rate)
    return percent_of(base, rate)


def calculate_breakdown(
    items: Iterable,
    config: Optional[BillingConfig] = None,
) -> Breakdown:
    """
    Compute the bill breakdown.

    `items` are OrderItem-like objects exposing `line_total` and
    `is_billable`. A missing config falls back to DEFAULT_BILLING_CONFIG.
    """
    config = config or DEFAULT_BILLING_CONFIG
    subtotal = menu_subtotal(items)

    service_charge = _rate_amount(
        subtotal, config.service_charge_rate, config.service_charge_inclusive,
    )

    tax_base = subtotal
    if not config.service_charge_inclusive:
        tax_base = subtotal + service_charge
    tax = _rate_amount(tax_base, config.sales_tax_rate, config.sales_tax_inclusive)

    grand_total = subtotal
    if not config.service_charge_inclusive:
        grand_total += service_charge
    if not config.sales_tax_inclusive:
        grand_total += tax

    return Breakdown(
        menu_subtotal=subtotal,
        service_charge_amount=service_charge,
        tax_amount=tax,
        grand_total_before_discount=grand_total,
    )


def net_total(breakdown: Breakdown, discount: Decimal) -> Decimal:
    """Discount applies after tax. Never below zero."""
    return max(ZERO, breakdown.grand_total_before_discount - discount)
