"""
DineIn Wallet Engine - Event Types and Payload Builders
=========================================================
"""

from __future__ import annotations

from core.commands.base import Command
from engines.wallet.records import STATUS_COMPLETED, TX_WITHDRAWAL

WALLET_TRANSACTION_POSTED_V1 = "wallet.transaction.posted.v1"
WALLET_TRANSACTION_STATUS_CHANGED_V1 = "wallet.transaction.status_changed.v1"
WALLET_WITHDRAWAL_RECORDED_V1 = "wallet.withdrawal.recorded.v1"

WALLET_EVENT_TYPES = (
    WALLET_TRANSACTION_POSTED_V1,
    WALLET_TRANSACTION_STATUS_CHANGED_V1,
    WALLET_WITHDRAWAL_RECORDED_V1,
)

COMMAND_TO_EVENT_TYPE = {
    "wallet.transaction.post.request": WALLET_TRANSACTION_POSTED_V1,
    "wallet.transaction.status.request": WALLET_TRANSACTION_STATUS_CHANGED_V1,
    "wallet.withdrawal.request.request": WALLET_WITHDRAWAL_RECORDED_V1,
}


def resolve_wallet_event_type(command_type: str) -> str | None:
    return COMMAND_TO_EVENT_TYPE.get(command_type)


def register_wallet_event_types(event_type_registry) -> None:
    for event_type in sorted(WALLET_EVENT_TYPES):
        event_type_registry.register(event_type)


def _base_payload(command: Command) -> dict:
    return {
        "restaurant_id": command.restaurant_id,
        "actor_id": command.actor_id,
        "actor_type": command.actor_type,
        "correlation_id": command.correlation_id,
        "command_id": command.command_id,
    }


def build_transaction_posted_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "transaction_id": command.payload["transaction_id"],
        "tx_type": command.payload["tx_type"],
        "amount": command.payload["amount"],
        "status": command.payload["status"],
        "reference": command.payload["reference"],
        "description": command.payload.get("description", ""),
        "reservation_id": command.payload.get("reservation_id"),
        "order_id": command.payload.get("order_id"),
        "metadata": dict(command.payload.get("metadata") or {}),
        "posted_at": command.issued_at,
    })
    return payload


def build_transaction_status_changed_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "transaction_id": command.payload["transaction_id"],
        "status": command.payload["status"],
        "changed_at": command.issued_at,
    })
    return payload


def build_withdrawal_recorded_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "transaction_id": command.payload["transaction_id"],
        "tx_type": TX_WITHDRAWAL,
        "amount": -command.payload["amount"],
        "status": STATUS_COMPLETED,
        "reference": f"withdrawal:{command.payload['transaction_id']}",
        "description": "Withdrawal",
        "reservation_id": None,
        "order_id": None,
        "metadata": {"destination": command.payload.get("destination", "")},
        "posted_at": command.issued_at,
    })
    return payload


PAYLOAD_BUILDERS = {
    "wallet.transaction.post.request": build_transaction_posted_payload,
    "wallet.transaction.status.request": build_transaction_status_changed_payload,
    "wallet.withdrawal.request.request": build_withdrawal_recorded_payload,
}
