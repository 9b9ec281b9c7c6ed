"""
DineIn Offers Engine - Request Commands
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from core.commands.base import Command, build_command
from core.primitives.money import HUNDRED, ZERO, to_money
from engines.offers.records import (
    DISCOUNT_PERCENTAGE,
    DISCOUNT_TYPES,
    OFFER_TYPE_COUPON,
    OFFER_TYPES,
    REWARD_DISCOUNT,
    REWARD_FREE_ITEM,
    REWARD_TYPES,
    normalize_code,
)

OFFERS_OFFER_CREATE_REQUEST = "offers.offer.create.request"
OFFERS_OFFER_DEACTIVATE_REQUEST = "offers.offer.deactivate.request"
OFFERS_REDEMPTION_RECORD_REQUEST = "offers.redemption.record.request"

OFFERS_COMMAND_TYPES = frozenset({
    OFFERS_OFFER_CREATE_REQUEST,
    OFFERS_OFFER_DEACTIVATE_REQUEST,
    OFFERS_REDEMPTION_RECORD_REQUEST,
})


def _cmd(command_type, payload, **kw) -> Command:
    return build_command(command_type, payload, source_engine="offers", **kw)


def _optional_money(value, name: str) -> Optional[Decimal]:
    if value is None:
        return None
    amount = to_money(value)
    if amount < ZERO:
        raise ValueError(f"{name} must be non-negative.")
    return amount


@dataclass(frozen=True)
class OfferCreateRequest:
    offer_id: str
    title: str
    offer_type: str
    reward_type: str = REWARD_DISCOUNT
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
    max_usage: Optional[int] = None
    global_budget: Optional[Decimal] = None

    def __post_init__(self):
        if not self.offer_id:
            raise ValueError("offer_id must be non-empty.")
        if not self.title:
            raise ValueError("title must be non-empty.")
        if self.offer_type not in OFFER_TYPES:
            raise ValueError(
                f"offer_type '{self.offer_type}' not valid. "
                f"Must be one of: {sorted(OFFER_TYPES)}"
            )
        if self.reward_type not in REWARD_TYPES:
            raise ValueError(
                f"reward_type '{self.reward_type}' not valid. "
                f"Must be one of: {sorted(REWARD_TYPES)}"
            )
        if self.discount_type not in DISCOUNT_TYPES:
            raise ValueError(
                f"discount_type '{self.discount_type}' not valid. "
                f"Must be one of: {sorted(DISCOUNT_TYPES)}"
            )

        code = normalize_code(self.code)
        if self.offer_type == OFFER_TYPE_COUPON and code is None:
            raise ValueError("a coupon needs a code.")
        object.__setattr__(self, "code", code)

        value = to_money(self.discount_value)
        if self.reward_type == REWARD_DISCOUNT:
            if value <= ZERO:
                raise ValueError("discount_value must be positive.")
            if self.discount_type == DISCOUNT_PERCENTAGE and value > HUNDRED:
                raise ValueError("a percentage discount cannot exceed 100.")
        elif not self.free_item_id:
            raise ValueError("a free_item reward needs free_item_id.")
        object.__setattr__(self, "discount_value", value)

        object.__setattr__(self, "max_discount", _optional_money(self.max_discount, "max_discount"))
        object.__setattr__(self, "global_budget", _optional_money(self.global_budget, "global_budget"))
        min_spend = to_money(self.min_spend)
        if min_spend < ZERO:
            raise ValueError("min_spend must be non-negative.")
        object.__setattr__(self, "min_spend", min_spend)
        object.__setattr__(self, "applicable_item_ids", tuple(self.applicable_item_ids))

        if self.max_usage is not None and (
            not isinstance(self.max_usage, int) or self.max_usage < 1
        ):
            raise ValueError("max_usage must be a positive integer.")
        if (
            self.valid_from is not None and self.valid_until is not None
            and self.valid_until < self.valid_from
        ):
            raise ValueError("valid_until must not precede valid_from.")

    def to_command(self, **kw) -> Command:
        return _cmd(OFFERS_OFFER_CREATE_REQUEST,
                    {"offer_id": self.offer_id,
                     "title": self.title,
                     "offer_type": self.offer_type,
                     "reward_type": self.reward_type,
                     "discount_type": self.discount_type,
                     "discount_value": self.discount_value,
                     "max_discount": self.max_discount,
                     "min_spend": self.min_spend,
                     "applicable_item_ids": list(self.applicable_item_ids),
                     "trigger_item_id": self.trigger_item_id,
                     "free_item_id": self.free_item_id,
                     "code": self.code,
                     "valid_from": self.valid_from,
                     "valid_until": self.valid_until,
                     "max_usage": self.max_usage,
                     "global_budget": self.global_budget},
                    **kw)


@dataclass(frozen=True)
class OfferDeactivateRequest:
    offer_id: str

    def __post_init__(self):
        if not self.offer_id:
            raise ValueError("offer_id must be non-empty.")

    def to_command(self, **kw) -> Command:
        return _cmd(OFFERS_OFFER_DEACTIVATE_REQUEST,
                    {"offer_id": self.offer_id}, **kw)


@dataclass(frozen=True)
class RedemptionRecordRequest:
    """One successful use of an offer, recorded when a bill settles."""
    offer_id: str
    reservation_id: str
    user_id: str
    settlement_id: str
    discount_amount: Decimal
    order_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.offer_id:
            raise ValueError("offer_id must be non-empty.")
        if not self.reservation_id:
            raise ValueError("reservation_id must be non-empty.")
        if not self.settlement_id:
            raise ValueError("settlement_id must be non-empty.")
        amount = to_money(self.discount_amount)
        if amount <= ZERO:
            raise ValueError("discount_amount must be positive.")
        object.__setattr__(self, "discount_amount", amount)
        object.__setattr__(self, "order_ids", tuple(self.order_ids))

    def to_command(self, **kw) -> Command:
        return _cmd(OFFERS_REDEMPTION_RECORD_REQUEST,
                    {"offer_id": self.offer_id,
                     "reservation_id": self.reservation_id,
                     "user_id": self.user_id,
                     "settlement_id": self.settlement_id,
                     "discount_amount": self.discount_amount,
                     "order_ids": list(self.order_ids)},
                    **kw)
