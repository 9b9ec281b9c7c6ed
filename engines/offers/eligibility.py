"""
DineIn Offers Engine - Eligibility and Savings
================================================
Pure functions. No I/O, no counters mutated.

evaluate_offer() is the single eligibility function used for the live
bill preview, for coupon validation, and for the re-check made at
settlement under the offer's lock.

Order of checks:
    inactive → outside window → budget exhausted → usage exhausted
    → min spend → trigger item → eligible amount → reward → budget clamp

Savings are clamped to the remaining global budget, so a redemption can
never push total_discount_given past global_budget.

Best public offer: greatest savings wins; ties go to the earliest
created_at, then the lowest offer_id. An offer that saves nothing never
wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from core.primitives.money import ZERO, money_sum, percent_of
from core.time.clock import within_window
from engines.offers.records import (
    DISCOUNT_FIXED,
    OFFER_TYPE_OFFER,
    REWARD_FREE_ITEM,
    Offer,
    normalize_code,
)

INACTIVE = "INACTIVE"
OUTSIDE_WINDOW = "OUTSIDE_WINDOW"
BUDGET_EXHAUSTED = "BUDGET_EXHAUSTED"
USAGE_EXHAUSTED = "USAGE_EXHAUSTED"
MIN_SPEND_NOT_MET = "MIN_SPEND_NOT_MET"
TRIGGER_ITEM_MISSING = "TRIGGER_ITEM_MISSING"
NO_ELIGIBLE_ITEMS = "NO_ELIGIBLE_ITEMS"
FREE_ITEM_MISSING = "FREE_ITEM_MISSING"
ZERO_SAVINGS = "ZERO_SAVINGS"

# Reasons a caller may see change between preview and commit.
CAP_REASONS = frozenset({BUDGET_EXHAUSTED, USAGE_EXHAUSTED})


@dataclass(frozen=True)
class Evaluation:
    savings: Decimal
    reason: Optional[str] = None

    @property
    def eligible(self) -> bool:
        return self.reason is None and self.savings > ZERO


@dataclass(frozen=True)
class OfferQuote:
    offer: Offer
    savings: Decimal


def _rejected(reason: str) -> Evaluation:
    return Evaluation(savings=ZERO, reason=reason)


def eligible_amount(offer: Offer, items: Sequence) -> Decimal:
    """Line totals of the items the offer covers (all items when unrestricted)."""
    if not offer.applicable_item_ids:
        return money_sum(item.line_total for item in items)
    scope = set(offer.applicable_item_ids)
    return money_sum(item.line_total for item in items if item.menu_item_id in scope)


def _free_item_price(offer: Offer, items: Sequence) -> Decimal:
    prices = [item.unit_price for item in items if item.menu_item_id == offer.free_item_id]
    if not prices:
        return ZERO
    # One unit is free; the cheapest if the item was ordered at different prices.
    return min(prices)


def evaluate_offer(
    offer: Offer,
    subtotal: Decimal,
    items: Sequence,
    now: datetime,
) -> Evaluation:
    """
    Savings one offer gives on a bill.

    `items` are the billable (non-cancelled) order items, `subtotal` their
    menu subtotal.
    """
    if not offer.is_active:
        return _rejected(INACTIVE)

    if not within_window(now, offer.valid_from, offer.valid_until):
        return _rejected(OUTSIDE_WINDOW)

    if offer.global_budget is not None and offer.total_discount_given >= offer.global_budget:
        return _rejected(BUDGET_EXHAUSTED)

    if offer.max_usage is not None and offer.usage_count >= offer.max_usage:
        return _rejected(USAGE_EXHAUSTED)

    if subtotal < offer.min_spend:
        return _rejected(MIN_SPEND_NOT_MET)

    if offer.trigger_item_id and not any(
        item.menu_item_id == offer.trigger_item_id for item in items
    ):
        return _rejected(TRIGGER_ITEM_MISSING)

    if offer.reward_type == REWARD_FREE_ITEM:
        savings = _free_item_price(offer, items)
        if savings <= ZERO:
            return _rejected(FREE_ITEM_MISSING)
    else:
        amount = eligible_amount(offer, items)
        if amount <= ZERO:
            return _rejected(NO_ELIGIBLE_ITEMS)
        if offer.discount_type == DISCOUNT_FIXED:
            savings = min(amount, offer.discount_value)
        else:
            savings = percent_of(amount, offer.discount_value)
            if offer.max_discount is not None:
                savings = min(savings, offer.max_discount)

    remaining = offer.remaining_budget
    if remaining is not None:
        savings = min(savings, remaining)

    if savings <= ZERO:
        return _rejected(ZERO_SAVINGS)
    return Evaluation(savings=savings)


def eligible_savings(offer: Offer, subtotal: Decimal, items: Sequence, now: datetime) -> Decimal:
    return evaluate_offer(offer, subtotal, items, now).savings


def select_best_public_offer(
    offers: Iterable[Offer],
    subtotal: Decimal,
    items: Sequence,
    now: datetime,
) -> Optional[OfferQuote]:
    candidates = []
    for offer in offers:
        if offer.offer_type != OFFER_TYPE_OFFER:
            continue
        evaluation = evaluate_offer(offer, subtotal, items, now)
        if evaluation.eligible:
            candidates.append(OfferQuote(offer=offer, savings=evaluation.savings))

    if not candidates:
        return None
    return min(
        candidates,
        key=lambda quote: (-quote.savings, quote.offer.created_at, quote.offer.offer_id),
    )


def find_coupon(offers: Iterable[Offer], code: str) -> Optional[Offer]:
    wanted = normalize_code(code)
    if wanted is None:
        return None
    for offer in offers:
        if offer.is_coupon and offer.code == wanted:
            return offer
    return None
