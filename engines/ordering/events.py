"""
DineIn Ordering Engine - Event Types and Payload Builders
===========================================================
Tickets, kitchen item workflow, and the paid marking written after a
settlement commits.
"""

from __future__ import annotations

from core.commands.base import Command

ORDERING_ORDER_PLACED_V1 = "ordering.order.placed.v1"
ORDERING_ORDER_APPENDED_V1 = "ordering.order.appended.v1"
ORDERING_ITEM_STATUS_CHANGED_V1 = "ordering.item.status_changed.v1"
ORDERING_ORDERS_SETTLED_V1 = "ordering.orders.settled.v1"

ORDERING_EVENT_TYPES = (
    ORDERING_ORDER_PLACED_V1,
    ORDERING_ORDER_APPENDED_V1,
    ORDERING_ITEM_STATUS_CHANGED_V1,
    ORDERING_ORDERS_SETTLED_V1,
)

COMMAND_TO_EVENT_TYPE = {
    "ordering.order.place.request": ORDERING_ORDER_PLACED_V1,
    "ordering.order.append.request": ORDERING_ORDER_APPENDED_V1,
    "ordering.item.status.request": ORDERING_ITEM_STATUS_CHANGED_V1,
    "ordering.orders.settle.request": ORDERING_ORDERS_SETTLED_V1,
}


def resolve_ordering_event_type(command_type: str) -> str | None:
    return COMMAND_TO_EVENT_TYPE.get(command_type)


def register_ordering_event_types(event_type_registry) -> None:
    for event_type in sorted(ORDERING_EVENT_TYPES):
        event_type_registry.register(event_type)


def _base_payload(command: Command) -> dict:
    return {
        "restaurant_id": command.restaurant_id,
        "actor_id": command.actor_id,
        "actor_type": command.actor_type,
        "correlation_id": command.correlation_id,
        "command_id": command.command_id,
    }


def _lines(command: Command) -> list:
    return [dict(line, status="ordered") for line in command.payload["lines"]]


def build_order_placed_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "order_id": command.payload["order_id"],
        "reservation_id": command.payload["reservation_id"],
        "table_id": command.payload["table_id"],
        "lines": _lines(command),
        "placed_at": command.issued_at,
    })
    return payload


def build_order_appended_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "order_id": command.payload["order_id"],
        "reservation_id": command.payload["reservation_id"],
        "lines": _lines(command),
        "appended_at": command.issued_at,
    })
    return payload


def build_item_status_changed_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "order_id": command.payload["order_id"],
        "line_id": command.payload["line_id"],
        "status": command.payload["status"],
        "changed_at": command.issued_at,
    })
    return payload


def build_orders_settled_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "reservation_id": command.payload["reservation_id"],
        "settlement_id": command.payload["settlement_id"],
        "bill_snapshot": command.payload["bill_snapshot"],
        "transaction_id": command.payload.get("transaction_id"),
        "applied_offer_id": command.payload.get("applied_offer_id"),
        "settled_at": command.issued_at,
    })
    return payload


PAYLOAD_BUILDERS = {
    "ordering.order.place.request": build_order_placed_payload,
    "ordering.order.append.request": build_order_appended_payload,
    "ordering.item.status.request": build_item_status_changed_payload,
    "ordering.orders.settle.request": build_orders_settled_payload,
}
