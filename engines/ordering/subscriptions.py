"""
DineIn Ordering Engine - Event Subscriptions
==============================================
Subscriptions:
- settlement.bill.settled.v1 → mark the reservation's tickets paid and
  attach the bill snapshot (and transaction id) to each of them
"""

from __future__ import annotations

import uuid
from typing import Dict

from core.commands.base import derive_command_id
from engines.ordering.commands import OrdersSettleRequest

ORDERING_SUBSCRIPTIONS: Dict[str, str] = {
    "settlement.bill.settled.v1": "handle_bill_settled",
}


class OrderingSubscriptionHandler:
    def __init__(self, ordering_service=None):
        self._ordering_service = ordering_service

    def handle_bill_settled(self, event_data: dict) -> None:
        if self._ordering_service is None:
            return

        payload = event_data["payload"]
        store = self._ordering_service.projection_store
        if store.settlement_for(payload["reservation_id"]) == payload["settlement_id"]:
            return

        snapshot = payload["bill_snapshot"]
        request = OrdersSettleRequest(
            reservation_id=payload["reservation_id"],
            settlement_id=payload["settlement_id"],
            bill_snapshot=snapshot,
            transaction_id=snapshot.get("transaction_id"),
            applied_offer_id=snapshot.get("offer_id"),
        )
        command = request.to_command(
            restaurant_id=uuid.UUID(str(event_data["restaurant_id"])),
            actor_type="SYSTEM",
            actor_id="system:ordering.subscription",
            command_id=derive_command_id(event_data["event_id"], "ordering"),
            correlation_id=uuid.UUID(str(event_data["correlation_id"])),
            issued_at=event_data["created_at"],
        )
        self._ordering_service._execute_command(command)


def register_ordering_subscriptions(subscriber_registry, handler: OrderingSubscriptionHandler) -> None:
    for event_type, method_name in ORDERING_SUBSCRIPTIONS.items():
        subscriber_registry.register_subscriber(
            event_type, getattr(handler, method_name), subscriber_engine="ordering",
        )
