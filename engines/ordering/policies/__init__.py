"""
DineIn Ordering Engine - Policies
===================================
Each policy is active only when its lookup is provided.
"""

from __future__ import annotations

from typing import Optional

from core.commands.base import Command
from core.commands.rejection import ReasonCode, RejectionReason
from engines.ordering.records import (
    ITEM_CANCELLED,
    ITEM_ORDERED,
    ITEM_PREPARING,
    ITEM_SERVED,
)

ITEM_TRANSITIONS = {
    ITEM_ORDERED: frozenset({ITEM_PREPARING, ITEM_CANCELLED}),
    ITEM_PREPARING: frozenset({ITEM_SERVED, ITEM_CANCELLED}),
}


def reservation_must_be_active_policy(
    command: Command,
    reservation_lookup=None,
) -> Optional[RejectionReason]:
    """Tickets can only be placed or extended on an active reservation."""
    if reservation_lookup is None:
        return None

    if command.command_type not in (
        "ordering.order.place.request",
        "ordering.order.append.request",
    ):
        return None

    reservation_id = command.payload["reservation_id"]
    reservation = reservation_lookup(reservation_id)
    if reservation is None:
        return RejectionReason(
            code=ReasonCode.RESERVATION_NOT_FOUND,
            message=f"Reservation '{reservation_id}' not found.",
            policy_name="reservation_must_be_active_policy",
        )

    if reservation.status != "active":
        return RejectionReason(
            code=ReasonCode.RESERVATION_NOT_ACTIVE,
            message=(
                f"Reservation '{reservation_id}' is {reservation.status}. "
                f"Orders need an active table session."
            ),
            policy_name="reservation_must_be_active_policy",
        )

    return None


def order_must_not_exist_policy(
    command: Command,
    order_lookup=None,
) -> Optional[RejectionReason]:
    if order_lookup is None:
        return None
    if command.command_type != "ordering.order.place.request":
        return None

    order_id = command.payload["order_id"]
    if order_lookup(order_id) is not None:
        return RejectionReason(
            code=ReasonCode.ORDER_ALREADY_EXISTS,
            message=f"Order '{order_id}' already exists.",
            policy_name="order_must_not_exist_policy",
        )
    return None


def order_must_be_open_policy(
    command: Command,
    order_lookup=None,
) -> Optional[RejectionReason]:
    """Append only to an ordered/preparing ticket of the same reservation."""
    if order_lookup is None:
        return None
    if command.command_type != "ordering.order.append.request":
        return None

    order_id = command.payload["order_id"]
    order = order_lookup(order_id)
    if order is None or order.reservation_id != command.payload["reservation_id"]:
        return RejectionReason(
            code=ReasonCode.ORDER_NOT_FOUND,
            message=f"Order '{order_id}' not found for this reservation.",
            policy_name="order_must_be_open_policy",
        )

    if not order.is_open:
        return RejectionReason(
            code=ReasonCode.ORDER_NOT_OPEN,
            message=f"Order '{order_id}' is {order.status} and cannot take new items.",
            policy_name="order_must_be_open_policy",
        )

    duplicate = [
        line["line_id"] for line in command.payload["lines"]
        if order.find_item(line["line_id"]) is not None
    ]
    if duplicate:
        return RejectionReason(
            code=ReasonCode.ORDER_ALREADY_EXISTS,
            message=f"Lines already on order '{order_id}': {', '.join(duplicate)}.",
            policy_name="order_must_be_open_policy",
        )

    return None


def item_transition_policy(
    command: Command,
    order_lookup=None,
) -> Optional[RejectionReason]:
    """ordered → preparing → served; ordered|preparing → cancelled."""
    if order_lookup is None:
        return None
    if command.command_type != "ordering.item.status.request":
        return None

    order_id = command.payload["order_id"]
    line_id = command.payload["line_id"]
    order = order_lookup(order_id)
    if order is None:
        return RejectionReason(
            code=ReasonCode.ORDER_NOT_FOUND,
            message=f"Order '{order_id}' not found.",
            policy_name="item_transition_policy",
        )

    item = order.find_item(line_id)
    if item is None:
        return RejectionReason(
            code=ReasonCode.ITEM_NOT_FOUND,
            message=f"Line '{line_id}' not found on order '{order_id}'.",
            policy_name="item_transition_policy",
        )

    target = command.payload["status"]
    if target not in ITEM_TRANSITIONS.get(item.status, frozenset()):
        return RejectionReason(
            code=ReasonCode.INVALID_TRANSITION,
            message=f"Item cannot move from {item.status} to {target}.",
            policy_name="item_transition_policy",
        )

    return None
