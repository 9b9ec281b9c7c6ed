"""
DineIn Session Engine - Policies
==================================
Each policy is active only when its lookup is provided.

table_lookup(table_id)             -> Table | None
reservation_lookup(reservation_id) -> Reservation | None
occupant_lookup(table_id)          -> Reservation | None  (pending/active)
"""

from __future__ import annotations

from typing import Optional

from core.commands.base import Command
from core.commands.rejection import ReasonCode, RejectionReason
from engines.session.records import (
    PAYMENT_PAID,
    RESERVATION_ACTIVE,
    RESERVATION_PENDING,
)

# command type → statuses the reservation may be in beforehand
RESERVATION_TRANSITIONS = {
    "session.reservation.accept.request": frozenset({RESERVATION_PENDING}),
    "session.reservation.decline.request": frozenset({RESERVATION_PENDING}),
    "session.reservation.cancel.request": frozenset({RESERVATION_PENDING, RESERVATION_ACTIVE}),
    "session.reservation.complete.request": frozenset({RESERVATION_ACTIVE}),
    "session.coupon.apply.request": frozenset({RESERVATION_ACTIVE}),
    "session.coupon.remove.request": frozenset({RESERVATION_ACTIVE}),
    "session.payment.counter.request": frozenset({RESERVATION_ACTIVE}),
}


def table_must_not_exist_policy(
    command: Command,
    table_lookup=None,
) -> Optional[RejectionReason]:
    if table_lookup is None:
        return None
    if command.command_type != "session.table.register.request":
        return None

    table_id = command.payload["table_id"]
    if table_lookup(table_id) is not None:
        return RejectionReason(
            code=ReasonCode.TABLE_ALREADY_REGISTERED,
            message=f"Table '{table_id}' is already registered.",
            policy_name="table_must_not_exist_policy",
        )
    return None


def reservation_must_not_exist_policy(
    command: Command,
    reservation_lookup=None,
) -> Optional[RejectionReason]:
    if reservation_lookup is None:
        return None
    if command.command_type != "session.table.claim.request":
        return None

    reservation_id = command.payload["reservation_id"]
    if reservation_lookup(reservation_id) is not None:
        return RejectionReason(
            code=ReasonCode.RESERVATION_ALREADY_EXISTS,
            message=f"Reservation '{reservation_id}' already exists.",
            policy_name="reservation_must_not_exist_policy",
        )
    return None


def table_must_be_free_policy(
    command: Command,
    table_lookup=None,
    occupant_lookup=None,
) -> Optional[RejectionReason]:
    """
    A claim is admitted only when the table has no pending/active
    reservation, whoever holds it.
    """
    if table_lookup is None or occupant_lookup is None:
        return None
    if command.command_type != "session.table.claim.request":
        return None

    table_id = command.payload["table_id"]
    if table_lookup(table_id) is None:
        return RejectionReason(
            code=ReasonCode.TABLE_NOT_FOUND,
            message=f"Table '{table_id}' not found.",
            policy_name="table_must_be_free_policy",
        )

    occupant = occupant_lookup(table_id)
    if occupant is not None:
        if occupant.user_id == command.payload["user_id"]:
            message = f"You already hold table '{table_id}'; waiting for the restaurant."
        else:
            message = f"Table '{table_id}' is occupied by another guest."
        return RejectionReason(
            code=ReasonCode.TABLE_OCCUPIED,
            message=message,
            policy_name="table_must_be_free_policy",
        )
    return None


def reservation_transition_policy(
    command: Command,
    reservation_lookup=None,
) -> Optional[RejectionReason]:
    if reservation_lookup is None:
        return None

    allowed = RESERVATION_TRANSITIONS.get(command.command_type)
    if allowed is None:
        return None

    reservation_id = command.payload["reservation_id"]
    reservation = reservation_lookup(reservation_id)
    if reservation is None:
        return RejectionReason(
            code=ReasonCode.RESERVATION_NOT_FOUND,
            message=f"Reservation '{reservation_id}' not found.",
            policy_name="reservation_transition_policy",
        )

    if reservation.status not in allowed:
        action = command.command_type.split(".")[2]
        return RejectionReason(
            code=ReasonCode.INVALID_TRANSITION,
            message=f"Reservation is {reservation.status}; cannot {action}.",
            policy_name="reservation_transition_policy",
        )
    return None


def counter_payment_policy(
    command: Command,
    reservation_lookup=None,
) -> Optional[RejectionReason]:
    if reservation_lookup is None:
        return None
    if command.command_type != "session.payment.counter.request":
        return None

    reservation = reservation_lookup(command.payload["reservation_id"])
    if reservation is not None and reservation.payment_status == PAYMENT_PAID:
        return RejectionReason(
            code=ReasonCode.INVALID_TRANSITION,
            message="This bill has already been paid.",
            policy_name="counter_payment_policy",
        )
    return None
