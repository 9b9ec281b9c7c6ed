"""
DineIn Settlement Engine - Event Types and Payload Builders
=============================================================
One event per settled bill. Session, ordering, offers and wallet react
to it; nothing else writes a settlement.
"""

from __future__ import annotations

from core.commands.base import Command

SETTLEMENT_BILL_SETTLED_V1 = "settlement.bill.settled.v1"

SETTLEMENT_EVENT_TYPES = (
    SETTLEMENT_BILL_SETTLED_V1,
)

COMMAND_TO_EVENT_TYPE = {
    "settlement.bill.settle.request": SETTLEMENT_BILL_SETTLED_V1,
}


def resolve_settlement_event_type(command_type: str) -> str | None:
    return COMMAND_TO_EVENT_TYPE.get(command_type)


def register_settlement_event_types(event_type_registry) -> None:
    for event_type in sorted(SETTLEMENT_EVENT_TYPES):
        event_type_registry.register(event_type)


def build_bill_settled_payload(command: Command) -> dict:
    return {
        "restaurant_id": command.restaurant_id,
        "actor_id": command.actor_id,
        "actor_type": command.actor_type,
        "correlation_id": command.correlation_id,
        "command_id": command.command_id,
        "reservation_id": command.payload["reservation_id"],
        "settlement_id": command.payload["settlement_id"],
        "idempotency_key": command.payload["idempotency_key"],
        "user_id": command.payload.get("user_id", ""),
        "bill_snapshot": dict(command.payload["bill_snapshot"]),
        "settled_at": command.issued_at,
    }


PAYLOAD_BUILDERS = {
    "settlement.bill.settle.request": build_bill_settled_payload,
}
