"""
DineIn Session Engine - Event Subscriptions
=============================================
Subscriptions:
- settlement.bill.settled.v1 → complete the reservation and free the table

The command id is derived from the settlement event id, so a re-dispatch
of the same settlement collides at the event store.
"""

from __future__ import annotations

import uuid
from typing import Dict

from core.commands.base import derive_command_id
from engines.session.commands import ReservationCompleteRequest
from engines.session.records import RESERVATION_COMPLETED

SESSION_SUBSCRIPTIONS: Dict[str, str] = {
    "settlement.bill.settled.v1": "handle_bill_settled",
}


class SessionSubscriptionHandler:
    def __init__(self, session_service=None):
        self._session_service = session_service

    def handle_bill_settled(self, event_data: dict) -> None:
        if self._session_service is None:
            return

        payload = event_data["payload"]
        store = self._session_service.projection_store
        reservation = store.get_reservation(payload["reservation_id"])
        if (
            reservation is not None
            and reservation.status == RESERVATION_COMPLETED
            and reservation.settlement_id == payload["settlement_id"]
        ):
            return

        snapshot = payload["bill_snapshot"]
        request = ReservationCompleteRequest(
            reservation_id=payload["reservation_id"],
            settlement_id=payload["settlement_id"],
            payment_method=snapshot["payment_method"],
            total_bill_amount=snapshot["net_total"],
            transaction_id=snapshot.get("transaction_id"),
        )
        command = request.to_command(
            restaurant_id=uuid.UUID(str(event_data["restaurant_id"])),
            actor_type="SYSTEM",
            actor_id="system:session.subscription",
            command_id=derive_command_id(event_data["event_id"], "session"),
            correlation_id=uuid.UUID(str(event_data["correlation_id"])),
            issued_at=event_data["created_at"],
        )
        self._session_service._execute_command(command)


def register_session_subscriptions(subscriber_registry, handler: SessionSubscriptionHandler) -> None:
    for event_type, method_name in SESSION_SUBSCRIPTIONS.items():
        subscriber_registry.register_subscriber(
            event_type, getattr(handler, method_name), subscriber_engine="session",
        )
