"""
DineIn Wallet Engine - Event Subscriptions
============================================
The ledger is written only in reaction to session and settlement events.

Subscriptions:
- session.table.claimed.v1          → booking fee paid: pending
                                       `reservation` entry for the
                                       restaurant's share
- session.reservation.declined.v1   → fail the pending fee entry, post the
- session.reservation.cancelled.v1    restaurant's cancellation share
- settlement.bill.settled.v1        → completed `bill_payment` entry for
                                       the net total, pending fee entry
                                       completed

Every entry carries a reference (one per business fact) and a command id
derived from the triggering event, so re-dispatch never double-posts.
"""

from __future__ import annotations

import logging
import uuid
from typing import Dict

from core.commands.base import derive_command_id
from core.primitives.money import ZERO, quantize, to_money
from engines.wallet.commands import TransactionPostRequest, TransactionStatusRequest
from engines.wallet.records import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    TX_BILL_PAYMENT,
    TX_CANCELLATION,
    TX_RESERVATION,
)

logger = logging.getLogger("dinein.wallet")

WALLET_SUBSCRIPTIONS: Dict[str, str] = {
    "session.table.claimed.v1": "handle_table_claimed",
    "session.reservation.declined.v1": "handle_reservation_released",
    "session.reservation.cancelled.v1": "handle_reservation_released",
    "settlement.bill.settled.v1": "handle_bill_settled",
}


def fee_reference(reservation_id: str) -> str:
    return f"reservation-fee:{reservation_id}"


def cancellation_reference(reservation_id: str) -> str:
    return f"cancellation:{reservation_id}"


def settlement_reference(settlement_id: str) -> str:
    return f"settlement:{settlement_id}"


class WalletSubscriptionHandler:
    def __init__(self, wallet_service=None):
        self._wallet_service = wallet_service

    def _envelope(self, event_data: dict, purpose: str) -> dict:
        command_id = derive_command_id(event_data["event_id"], f"wallet:{purpose}")
        return {
            "restaurant_id": uuid.UUID(str(event_data["restaurant_id"])),
            "actor_type": "SYSTEM",
            "actor_id": "system:wallet.subscription",
            "command_id": command_id,
            "correlation_id": uuid.UUID(str(event_data["correlation_id"])),
            "issued_at": event_data["created_at"],
        }

    def _post(self, event_data: dict, purpose: str, **fields) -> None:
        envelope = self._envelope(event_data, purpose)
        request = TransactionPostRequest(
            transaction_id=str(envelope["command_id"]), **fields,
        )
        self._wallet_service._execute_command(request.to_command(**envelope))

    def _set_status(self, event_data: dict, purpose: str, transaction_id: str, status: str) -> None:
        request = TransactionStatusRequest(transaction_id=transaction_id, status=status)
        self._wallet_service._execute_command(
            request.to_command(**self._envelope(event_data, purpose))
        )

    def handle_table_claimed(self, event_data: dict) -> None:
        if self._wallet_service is None:
            return

        payload = event_data["payload"]
        amount_paid = to_money(payload.get("amount_paid", ZERO))
        if amount_paid <= ZERO:
            return

        reservation_id = payload["reservation_id"]
        store = self._wallet_service.projection_store
        if store.get_by_reference(fee_reference(reservation_id)) is not None:
            return

        split = payload.get("expected_split") or {}
        share = to_money(split.get("restaurant_share", ZERO))
        if share <= ZERO:
            return
        self._post(
            event_data, "fee",
            tx_type=TX_RESERVATION,
            amount=share,
            status=STATUS_PENDING,
            reference=fee_reference(reservation_id),
            description=f"Reservation fee, table {payload['table_id']}",
            reservation_id=reservation_id,
            metadata={"amount_paid": quantize(amount_paid),
                      "platform_share": to_money(split.get("platform_share", ZERO))},
        )

    def handle_reservation_released(self, event_data: dict) -> None:
        if self._wallet_service is None:
            return

        payload = event_data["payload"]
        reservation_id = payload["reservation_id"]
        store = self._wallet_service.projection_store

        fee_tx = store.get_by_reference(fee_reference(reservation_id))
        if fee_tx is not None and fee_tx.status == STATUS_PENDING:
            self._set_status(event_data, "fee-failed", fee_tx.transaction_id, STATUS_FAILED)

        split = payload.get("revenue_split") or {}
        share = to_money(split.get("restaurant_share", ZERO))
        if share <= ZERO:
            return
        if store.get_by_reference(cancellation_reference(reservation_id)) is not None:
            return
        self._post(
            event_data, "cancellation",
            tx_type=TX_CANCELLATION,
            amount=share,
            status=STATUS_COMPLETED,
            reference=cancellation_reference(reservation_id),
            description="Cancellation fee share",
            reservation_id=reservation_id,
            metadata={key: to_money(value) for key, value in split.items()},
        )

    def handle_bill_settled(self, event_data: dict) -> None:
        if self._wallet_service is None:
            return

        payload = event_data["payload"]
        snapshot = payload["bill_snapshot"]
        reservation_id = payload["reservation_id"]
        store = self._wallet_service.projection_store

        net_total = to_money(snapshot["net_total"])
        reference = settlement_reference(payload["settlement_id"])
        if net_total > ZERO and store.get_by_reference(reference) is None:
            order_ids = snapshot.get("order_ids") or []
            self._post(
                event_data, "bill",
                tx_type=TX_BILL_PAYMENT,
                amount=net_total,
                status=STATUS_COMPLETED,
                reference=reference,
                description=f"Bill payment ({snapshot['payment_method']})",
                reservation_id=reservation_id,
                order_id=order_ids[0] if order_ids else None,
                metadata={
                    "settlement_id": payload["settlement_id"],
                    "payment_method": snapshot["payment_method"],
                    "transaction_id": snapshot.get("transaction_id"),
                    "menu_subtotal": snapshot["menu_subtotal"],
                    "discount_amount": snapshot["discount_amount"],
                    "discount_description": snapshot.get("discount_description", ""),
                    "order_ids": list(order_ids),
                },
            )
        elif net_total <= ZERO:
            logger.info(f"Settlement {payload['settlement_id']} has a zero net total; no ledger entry")

        fee_tx = store.get_by_reference(fee_reference(reservation_id))
        if fee_tx is not None and fee_tx.status == STATUS_PENDING:
            self._set_status(event_data, "fee-completed", fee_tx.transaction_id, STATUS_COMPLETED)


def register_wallet_subscriptions(subscriber_registry, handler: WalletSubscriptionHandler) -> None:
    for event_type, method_name in WALLET_SUBSCRIPTIONS.items():
        subscriber_registry.register_subscriber(
            event_type, getattr(handler, method_name), subscriber_engine="wallet",
        )
