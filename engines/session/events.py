"""
DineIn Session Engine - Event Types and Payload Builders
==========================================================
"""

from __future__ import annotations

from core.commands.base import Command

SESSION_TABLE_REGISTERED_V1 = "session.table.registered.v1"
SESSION_TABLE_CLAIMED_V1 = "session.table.claimed.v1"
SESSION_RESERVATION_ACCEPTED_V1 = "session.reservation.accepted.v1"
SESSION_RESERVATION_DECLINED_V1 = "session.reservation.declined.v1"
SESSION_RESERVATION_CANCELLED_V1 = "session.reservation.cancelled.v1"
SESSION_RESERVATION_COMPLETED_V1 = "session.reservation.completed.v1"
SESSION_COUPON_APPLIED_V1 = "session.coupon.applied.v1"
SESSION_COUPON_REMOVED_V1 = "session.coupon.removed.v1"
SESSION_PAYMENT_COUNTER_REQUESTED_V1 = "session.payment.counter_requested.v1"

SESSION_EVENT_TYPES = (
    SESSION_TABLE_REGISTERED_V1,
    SESSION_TABLE_CLAIMED_V1,
    SESSION_RESERVATION_ACCEPTED_V1,
    SESSION_RESERVATION_DECLINED_V1,
    SESSION_RESERVATION_CANCELLED_V1,
    SESSION_RESERVATION_COMPLETED_V1,
    SESSION_COUPON_APPLIED_V1,
    SESSION_COUPON_REMOVED_V1,
    SESSION_PAYMENT_COUNTER_REQUESTED_V1,
)

COMMAND_TO_EVENT_TYPE = {
    "session.table.register.request": SESSION_TABLE_REGISTERED_V1,
    "session.table.claim.request": SESSION_TABLE_CLAIMED_V1,
    "session.reservation.accept.request": SESSION_RESERVATION_ACCEPTED_V1,
    "session.reservation.decline.request": SESSION_RESERVATION_DECLINED_V1,
    "session.reservation.cancel.request": SESSION_RESERVATION_CANCELLED_V1,
    "session.reservation.complete.request": SESSION_RESERVATION_COMPLETED_V1,
    "session.coupon.apply.request": SESSION_COUPON_APPLIED_V1,
    "session.coupon.remove.request": SESSION_COUPON_REMOVED_V1,
    "session.payment.counter.request": SESSION_PAYMENT_COUNTER_REQUESTED_V1,
}


def resolve_session_event_type(command_type: str) -> str | None:
    return COMMAND_TO_EVENT_TYPE.get(command_type)


def register_session_event_types(event_type_registry) -> None:
    for event_type in sorted(SESSION_EVENT_TYPES):
        event_type_registry.register(event_type)


def _base_payload(command: Command) -> dict:
    return {
        "restaurant_id": command.restaurant_id,
        "actor_id": command.actor_id,
        "actor_type": command.actor_type,
        "correlation_id": command.correlation_id,
        "command_id": command.command_id,
    }


def build_table_registered_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "table_id": command.payload["table_id"],
        "name": command.payload["name"],
        "seats": command.payload["seats"],
        "area": command.payload.get("area", ""),
    })
    return payload


def build_table_claimed_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "reservation_id": command.payload["reservation_id"],
        "table_id": command.payload["table_id"],
        "user_id": command.payload["user_id"],
        "user_name": command.payload.get("user_name", ""),
        "reservation_type": command.payload["reservation_type"],
        "amount_paid": command.payload["amount_paid"],
        "claimed_at": command.issued_at,
    })
    return payload


def _reservation_payload(command: Command, stamp: str) -> dict:
    payload = _base_payload(command)
    payload.update({
        "reservation_id": command.payload["reservation_id"],
        stamp: command.issued_at,
    })
    return payload


def build_reservation_accepted_payload(command: Command) -> dict:
    return _reservation_payload(command, "accepted_at")


def build_reservation_declined_payload(command: Command) -> dict:
    payload = _reservation_payload(command, "declined_at")
    payload["reason"] = command.payload.get("reason", "")
    return payload


def build_reservation_cancelled_payload(command: Command) -> dict:
    payload = _reservation_payload(command, "cancelled_at")
    payload["reason"] = command.payload.get("reason", "")
    return payload


def build_reservation_completed_payload(command: Command) -> dict:
    payload = _reservation_payload(command, "completed_at")
    payload.update({
        "settlement_id": command.payload["settlement_id"],
        "payment_method": command.payload["payment_method"],
        "total_bill_amount": command.payload["total_bill_amount"],
        "transaction_id": command.payload.get("transaction_id"),
    })
    return payload


def build_coupon_applied_payload(command: Command) -> dict:
    payload = _reservation_payload(command, "applied_at")
    payload.update({
        "offer_id": command.payload["offer_id"],
        "code": command.payload["code"],
    })
    return payload


def build_coupon_removed_payload(command: Command) -> dict:
    return _reservation_payload(command, "removed_at")


def build_counter_requested_payload(command: Command) -> dict:
    payload = _reservation_payload(command, "requested_at")
    payload["total_bill_amount"] = command.payload["total_bill_amount"]
    return payload


PAYLOAD_BUILDERS = {
    "session.table.register.request": build_table_registered_payload,
    "session.table.claim.request": build_table_claimed_payload,
    "session.reservation.accept.request": build_reservation_accepted_payload,
    "session.reservation.decline.request": build_reservation_declined_payload,
    "session.reservation.cancel.request": build_reservation_cancelled_payload,
    "session.reservation.complete.request": build_reservation_completed_payload,
    "session.coupon.apply.request": build_coupon_applied_payload,
    "session.coupon.remove.request": build_coupon_removed_payload,
    "session.payment.counter.request": build_counter_requested_payload,
}
