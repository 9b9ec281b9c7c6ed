"""
DineIn Session Engine - Booking Fee Split
===========================================
How a reservation fee paid at claim time is divided.

Completed visit:          platform 20 %, restaurant 80 %
Cancelled / declined:     platform 30 %, guest refund up to 70 %,
                          restaurant keeps the remainder

The refund percentage comes from the restaurant's ReservationConfig and
is zero unless the fee is refundable.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from core.config.rules import ReservationConfig, DEFAULT_RESERVATION_CONFIG
from core.primitives.money import ZERO, percent_of, quantize, to_money

COMPLETION_PLATFORM_RATE = Decimal("20")
CANCELLATION_PLATFORM_RATE = Decimal("30")


@dataclass(frozen=True)
class RevenueSplit:
    platform_share: Decimal = ZERO
    restaurant_share: Decimal = ZERO
    refund_amount: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.platform_share + self.restaurant_share + self.refund_amount

    def to_dict(self) -> dict:
        return {
            "platform_share": quantize(self.platform_share),
            "restaurant_share": quantize(self.restaurant_share),
            "refund_amount": quantize(self.refund_amount),
        }


NO_SPLIT = RevenueSplit()


def completion_split(amount_paid) -> RevenueSplit:
    amount = to_money(amount_paid)
    if amount <= ZERO:
        return NO_SPLIT
    platform = percent_of(amount, COMPLETION_PLATFORM_RATE)
    return RevenueSplit(platform_share=platform, restaurant_share=amount - platform)


def cancellation_split(
    amount_paid,
    config: ReservationConfig | None = None,
) -> RevenueSplit:
    amount = to_money(amount_paid)
    if amount <= ZERO:
        return NO_SPLIT
    config = config or DEFAULT_RESERVATION_CONFIG
    platform = percent_of(amount, CANCELLATION_PLATFORM_RATE)
    refund = percent_of(amount, config.effective_refund_percentage)
    return RevenueSplit(
        platform_share=platform,
        restaurant_share=amount - platform - refund,
        refund_amount=refund,
    )
