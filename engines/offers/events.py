"""
DineIn Offers Engine - Event Types and Payload Builders
=========================================================
"""

from __future__ import annotations

from core.commands.base import Command

OFFERS_OFFER_CREATED_V1 = "offers.offer.created.v1"
OFFERS_OFFER_DEACTIVATED_V1 = "offers.offer.deactivated.v1"
OFFERS_REDEMPTION_RECORDED_V1 = "offers.redemption.recorded.v1"

OFFERS_EVENT_TYPES = (
    OFFERS_OFFER_CREATED_V1,
    OFFERS_OFFER_DEACTIVATED_V1,
    OFFERS_REDEMPTION_RECORDED_V1,
)

COMMAND_TO_EVENT_TYPE = {
    "offers.offer.create.request": OFFERS_OFFER_CREATED_V1,
    "offers.offer.deactivate.request": OFFERS_OFFER_DEACTIVATED_V1,
    "offers.redemption.record.request": OFFERS_REDEMPTION_RECORDED_V1,
}


def resolve_offers_event_type(command_type: str) -> str | None:
    return COMMAND_TO_EVENT_TYPE.get(command_type)


def register_offers_event_types(event_type_registry) -> None:
    for event_type in sorted(OFFERS_EVENT_TYPES):
        event_type_registry.register(event_type)


def _base_payload(command: Command) -> dict:
    return {
        "restaurant_id": command.restaurant_id,
        "actor_id": command.actor_id,
        "actor_type": command.actor_type,
        "correlation_id": command.correlation_id,
        "command_id": command.command_id,
    }


def build_offer_created_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update(command.payload)
    payload["created_at"] = command.issued_at
    return payload


def build_offer_deactivated_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "offer_id": command.payload["offer_id"],
        "deactivated_at": command.issued_at,
    })
    return payload


def build_redemption_recorded_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "usage_id": str(command.command_id),
        "offer_id": command.payload["offer_id"],
        "reservation_id": command.payload["reservation_id"],
        "user_id": command.payload["user_id"],
        "settlement_id": command.payload["settlement_id"],
        "discount_amount": command.payload["discount_amount"],
        "order_ids": list(command.payload.get("order_ids", [])),
        "used_at": command.issued_at,
    })
    return payload


PAYLOAD_BUILDERS = {
    "offers.offer.create.request": build_offer_created_payload,
    "offers.offer.deactivate.request": build_offer_deactivated_payload,
    "offers.redemption.record.request": build_redemption_recorded_payload,
}
