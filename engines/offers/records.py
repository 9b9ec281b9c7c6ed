"""
DineIn Offers Engine - Records
================================
Offer definitions, their running counters, and redemption audit rows.

usage_count and total_discount_given only ever grow, and only through a
recorded redemption.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from core.primitives.money import ZERO, to_money

OFFER_TYPE_OFFER = "offer"
OFFER_TYPE_COUPON = "coupon"
OFFER_TYPES = frozenset({OFFER_TYPE_OFFER, OFFER_TYPE_COUPON})

REWARD_DISCOUNT = "discount"
REWARD_FREE_ITEM = "free_item"
REWARD_TYPES = frozenset({REWARD_DISCOUNT, REWARD_FREE_ITEM})

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
DISCOUNT_TYPES = frozenset({DISCOUNT_PERCENTAGE, DISCOUNT_FIXED})


def normalize_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    code = code.strip().upper()
    return code or None


@dataclass
class Offer:
    offer_id: str
    restaurant_id: str
    title: str
    offer_type: str
    reward_type: str
    created_at: datetime
    discount_type: str = DISCOUNT_PERCENTAGE
    discount_value: Decimal = ZERO
    max_discount: Optional[Decimal] = None
    min_spend: Decimal = ZERO
    applicable_item_ids: Tuple[str, ...] = ()
    trigger_item_id: Optional[str] = None
    free_item_id: Optional[str] = None
    code: Optional[str] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    max_usage: Optional[int] = None
    global_budget: Optional[Decimal] = None
    usage_count: int = 0
    total_discount_given: Decimal = ZERO

    @property
    def is_coupon(self) -> bool:
        return self.offer_type == OFFER_TYPE_COUPON

    @property
    def remaining_budget(self) -> Optional[Decimal]:
        if self.global_budget is None:
            return None
        return max(ZERO, self.global_budget - self.total_discount_given)

    def describe(self) -> str:
        if self.reward_type == REWARD_FREE_ITEM:
            return f"{self.title} (free item)"
        if self.discount_type == DISCOUNT_PERCENTAGE:
            return f"{self.title} ({self.discount_value.normalize():f}% off)"
        return f"{self.title} ({self.discount_value:.2f} off)"

    @classmethod
    def from_payload(cls, payload: dict) -> "Offer":
        max_discount = payload.get("max_discount")
        global_budget = payload.get("global_budget")
        return cls(
            offer_id=payload["offer_id"],
            restaurant_id=str(payload["restaurant_id"]),
            title=payload["title"],
            offer_type=payload["offer_type"],
            reward_type=payload["reward_type"],
            created_at=payload["created_at"],
            discount_type=payload.get("discount_type", DISCOUNT_PERCENTAGE),
            discount_value=to_money(payload.get("discount_value", ZERO)),
            max_discount=to_money(max_discount) if max_discount is not None else None,
            min_spend=to_money(payload.get("min_spend", ZERO)),
            applicable_item_ids=tuple(payload.get("applicable_item_ids", ())),
            trigger_item_id=payload.get("trigger_item_id"),
            free_item_id=payload.get("free_item_id"),
            code=normalize_code(payload.get("code")),
            valid_from=payload.get("valid_from"),
            valid_until=payload.get("valid_until"),
            max_usage=payload.get("max_usage"),
            global_budget=to_money(global_budget) if global_budget is not None else None,
        )


@dataclass(frozen=True)
class OfferUsage:
    usage_id: str
    offer_id: str
    restaurant_id: str
    reservation_id: str
    user_id: str
    settlement_id: str
    discount_amount: Decimal
    used_at: datetime
    order_ids: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "usage_id": self.usage_id,
            "offer_id": self.offer_id,
            "reservation_id": self.reservation_id,
            "user_id": self.user_id,
            "settlement_id": self.settlement_id,
            "discount_amount": self.discount_amount,
            "order_ids": list(self.order_ids),
            "used_at": self.used_at,
        }
