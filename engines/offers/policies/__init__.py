"""
DineIn Offers Engine - Policies
=================================
Each policy is active only when its lookup is provided.

redemption_capacity_policy is the commit-time re-check: it reads the
offer's current counters, so it must run under the offer's lock.
"""

from __future__ import annotations

from typing import Optional

from core.commands.base import Command
from core.commands.rejection import ReasonCode, RejectionReason
from core.primitives.money import to_money


def offer_must_not_exist_policy(
    command: Command,
    offer_lookup=None,
) -> Optional[RejectionReason]:
    if offer_lookup is None:
        return None
    if command.command_type != "offers.offer.create.request":
        return None

    offer_id = command.payload["offer_id"]
    if offer_lookup(offer_id) is not None:
        return RejectionReason(
            code=ReasonCode.OFFER_ALREADY_EXISTS,
            message=f"Offer '{offer_id}' already exists.",
            policy_name="offer_must_not_exist_policy",
        )
    return None


def coupon_code_unique_policy(
    command: Command,
    coupon_lookup=None,
) -> Optional[RejectionReason]:
    """coupon_lookup(code) returns the restaurant's coupon with that code."""
    if coupon_lookup is None:
        return None
    if command.command_type != "offers.offer.create.request":
        return None

    code = command.payload.get("code")
    if not code or command.payload["offer_type"] != "coupon":
        return None
    if coupon_lookup(code) is not None:
        return RejectionReason(
            code=ReasonCode.COUPON_CODE_TAKEN,
            message=f"Coupon code '{code}' is already in use.",
            policy_name="coupon_code_unique_policy",
        )
    return None


def offer_must_exist_policy(
    command: Command,
    offer_lookup=None,
) -> Optional[RejectionReason]:
    if offer_lookup is None:
        return None
    if command.command_type not in (
        "offers.offer.deactivate.request",
        "offers.redemption.record.request",
    ):
        return None

    offer_id = command.payload["offer_id"]
    offer = offer_lookup(offer_id)
    if offer is None or offer.restaurant_id != str(command.restaurant_id):
        return RejectionReason(
            code=ReasonCode.OFFER_NOT_FOUND,
            message=f"Offer '{offer_id}' not found.",
            policy_name="offer_must_exist_policy",
        )
    return None


def redemption_capacity_policy(
    command: Command,
    offer_lookup=None,
) -> Optional[RejectionReason]:
    """Neither usage_count nor total_discount_given may pass its cap."""
    if offer_lookup is None:
        return None
    if command.command_type != "offers.redemption.record.request":
        return None

    offer = offer_lookup(command.payload["offer_id"])
    if offer is None:
        return None

    if offer.max_usage is not None and offer.usage_count + 1 > offer.max_usage:
        return RejectionReason(
            code=ReasonCode.OFFER_EXHAUSTED,
            message=f"'{offer.title}' has reached its usage limit.",
            policy_name="redemption_capacity_policy",
        )

    amount = to_money(command.payload["discount_amount"])
    if (
        offer.global_budget is not None
        and offer.total_discount_given + amount > offer.global_budget
    ):
        return RejectionReason(
            code=ReasonCode.OFFER_EXHAUSTED,
            message=f"'{offer.title}' has run out of budget.",
            policy_name="redemption_capacity_policy",
        )
    return None
