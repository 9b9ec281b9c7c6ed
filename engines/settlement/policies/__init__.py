"""
DineIn Settlement Engine - Policies
=====================================
Each policy is active only when its lookup is provided.
"""

from __future__ import annotations

from typing import Optional

from core.commands.base import Command
from core.commands.rejection import ReasonCode, RejectionReason


def settlement_must_be_new_policy(
    command: Command,
    settlement_lookup=None,
) -> Optional[RejectionReason]:
    if settlement_lookup is None:
        return None
    if command.command_type != "settlement.bill.settle.request":
        return None

    settlement_id = command.payload["settlement_id"]
    if settlement_lookup(settlement_id) is not None:
        return RejectionReason(
            code=ReasonCode.DUPLICATE_SETTLEMENT,
            message=f"Settlement '{settlement_id}' is already recorded.",
            policy_name="settlement_must_be_new_policy",
        )
    return None


def reservation_must_be_settleable_policy(
    command: Command,
    reservation_lookup=None,
) -> Optional[RejectionReason]:
    """Only an active reservation of this restaurant can be settled."""
    if reservation_lookup is None:
        return None
    if command.command_type != "settlement.bill.settle.request":
        return None

    reservation_id = command.payload["reservation_id"]
    reservation = reservation_lookup(reservation_id)
    if reservation is None or reservation.restaurant_id != str(command.restaurant_id):
        return RejectionReason(
            code=ReasonCode.RESERVATION_NOT_FOUND,
            message=f"Reservation '{reservation_id}' not found.",
            policy_name="reservation_must_be_settleable_policy",
        )

    if reservation.status == "completed":
        return RejectionReason(
            code=ReasonCode.DUPLICATE_SETTLEMENT,
            message=(
                f"Reservation '{reservation_id}' was already settled "
                f"under {reservation.settlement_id}."
            ),
            policy_name="reservation_must_be_settleable_policy",
        )

    if reservation.status != "active":
        return RejectionReason(
            code=ReasonCode.NOT_SETTLEABLE,
            message=f"Reservation is {reservation.status} and cannot be settled.",
            policy_name="reservation_must_be_settleable_policy",
        )
    return None
