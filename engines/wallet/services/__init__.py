"""
DineIn Wallet Engine - Service Layer
======================================
Append-only restaurant ledger with balances derived on read.

Withdrawals run under the restaurant's wallet lock so two concurrent
requests cannot both pass the balance check.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.commands.base import Command
from core.commands.rejection import ReasonCode
from core.concurrency.locks import KeyedLockTable, wallet_key
from core.engines.execution import (
    EventFactoryProtocol,
    ExecutionResult,
    PersistEventProtocol,
    first_rejection,
    persist_and_apply,
    publish,
    raise_for_rejection,
)
from core.errors import (
    InsufficientBalanceError,
    InvalidTransitionError,
    ValidationFailure,
)
from core.primitives.money import to_money
from engines.wallet.balances import WalletStats, derive_wallet_stats
from engines.wallet.commands import WALLET_COMMAND_TYPES
from engines.wallet.events import (
    PAYLOAD_BUILDERS,
    WALLET_TRANSACTION_POSTED_V1,
    WALLET_TRANSACTION_STATUS_CHANGED_V1,
    WALLET_WITHDRAWAL_RECORDED_V1,
    register_wallet_event_types,
    resolve_wallet_event_type,
)
from engines.wallet.policies import (
    sufficient_balance_policy,
    transaction_must_be_new_policy,
    transaction_status_policy,
)
from engines.wallet.records import STATUS_PENDING, Transaction

logger = logging.getLogger("dinein.wallet")

_REJECTION_ERRORS = {
    ReasonCode.TRANSACTION_NOT_FOUND: ValidationFailure,
    ReasonCode.INVALID_TRANSITION: InvalidTransitionError,
    ReasonCode.INSUFFICIENT_BALANCE: InsufficientBalanceError,
}


# ── Projection Store ──────────────────────────────────────────

class WalletProjectionStore:
    """In-memory ledger per restaurant, in posting order."""

    def __init__(self):
        self._events: List[dict] = []
        self._transactions: Dict[str, Transaction] = {}
        self._by_restaurant: Dict[str, List[str]] = {}
        self._by_reference: Dict[str, str] = {}

    def apply(self, event_type: str, payload: Dict[str, Any]) -> None:
        self._events.append({"event_type": event_type, "payload": payload})

        if event_type in (WALLET_TRANSACTION_POSTED_V1, WALLET_WITHDRAWAL_RECORDED_V1):
            rid = str(payload["restaurant_id"])
            tx = Transaction(
                transaction_id=payload["transaction_id"],
                restaurant_id=rid,
                tx_type=payload["tx_type"],
                amount=to_money(payload["amount"]),
                status=payload["status"],
                created_at=payload["posted_at"],
                reference=payload["reference"],
                description=payload.get("description", ""),
                reservation_id=payload.get("reservation_id"),
                order_id=payload.get("order_id"),
                metadata=dict(payload.get("metadata") or {}),
            )
            self._transactions[tx.transaction_id] = tx
            self._by_restaurant.setdefault(rid, []).append(tx.transaction_id)
            self._by_reference[tx.reference] = tx.transaction_id

        elif event_type == WALLET_TRANSACTION_STATUS_CHANGED_V1:
            tx = self._transactions.get(payload["transaction_id"])
            if tx is not None:
                tx.status = payload["status"]
                tx.updated_at = payload["changed_at"]

    # ── Queries ───────────────────────────────────────────────

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    def get_by_reference(self, reference: str) -> Optional[Transaction]:
        transaction_id = self._by_reference.get(reference)
        return self._transactions.get(transaction_id) if transaction_id else None

    def transactions_for_restaurant(
        self,
        restaurant_id,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[Transaction]:
        txs = [self._transactions[t] for t in self._by_restaurant.get(str(restaurant_id), [])]
        if since is not None:
            txs = [t for t in txs if t.created_at >= since]
        if until is not None:
            txs = [t for t in txs if t.created_at <= until]
        return txs

    def pending_for_reservation(self, reservation_id: str) -> List[Transaction]:
        return [
            t for t in self._transactions.values()
            if t.reservation_id == reservation_id and t.status == STATUS_PENDING
        ]

    def get_stats(self, restaurant_id) -> WalletStats:
        return derive_wallet_stats(self.transactions_for_restaurant(restaurant_id))

    def available_balance(self, restaurant_id) -> Decimal:
        return self.get_stats(restaurant_id).available_balance

    @property
    def event_count(self) -> int:
        return len(self._events)


# ── Command Handler ───────────────────────────────────────────

class _WalletCommandHandler:
    def __init__(self, service: "WalletService"):
        self._service = service

    def execute(self, command: Command) -> ExecutionResult:
        return self._service._execute_command(command)


# ── Service ───────────────────────────────────────────────────

class WalletService:
    """Wallet Engine application service."""

    def __init__(
        self,
        *,
        restaurant_context,
        command_bus,
        event_factory: EventFactoryProtocol,
        persist_event: PersistEventProtocol,
        event_type_registry,
        projection_store: WalletProjectionStore | None = None,
        locks: KeyedLockTable | None = None,
        subscriber_registry=None,
    ):
        self._restaurant_context = restaurant_context
        self._command_bus = command_bus
        self._event_factory = event_factory
        self._persist_event = persist_event
        self._event_type_registry = event_type_registry
        self._projection_store = projection_store or WalletProjectionStore()
        self._locks = locks or KeyedLockTable()
        self._subscriber_registry = subscriber_registry

        register_wallet_event_types(self._event_type_registry)
        self._register_handlers()

    def _register_handlers(self) -> None:
        handler = _WalletCommandHandler(self)
        for command_type in sorted(WALLET_COMMAND_TYPES):
            self._command_bus.register_handler(command_type, handler)

    def _execute_command(self, command: Command) -> ExecutionResult:
        with self._locks.hold(wallet_key(command.restaurant_id)):
            result = self._execute_locked(command)
        if result.projection_applied:
            publish(self._subscriber_registry, result.event_data)
        return result

    def _execute_locked(self, command: Command) -> ExecutionResult:
        event_type = resolve_wallet_event_type(command.command_type)
        if event_type is None:
            raise ValueError(
                f"Unsupported wallet command type: {command.command_type}"
            )

        store = self._projection_store
        reason = first_rejection(command, (
            lambda c: transaction_must_be_new_policy(
                c, store.get_transaction, store.get_by_reference),
            lambda c: transaction_status_policy(c, store.get_transaction),
            lambda c: sufficient_balance_policy(c, store.available_balance),
        ))
        if reason is not None:
            logger.warning(f"{command.command_type} rejected: {reason.message}")
            raise_for_rejection(reason, _REJECTION_ERRORS)

        payload = PAYLOAD_BUILDERS[command.command_type](command)

        result = persist_and_apply(
            command=command,
            event_type=event_type,
            payload=payload,
            event_factory=self._event_factory,
            persist_event=self._persist_event,
            context=self._restaurant_context,
            registry=self._event_type_registry,
            apply=store.apply,
        )
        if result.projection_applied:
            logger.info(
                f"{event_type} {payload['transaction_id']} "
                f"({payload.get('tx_type', payload.get('status'))})"
            )
        return result

    # ── Read side ─────────────────────────────────────────────

    def get_wallet_stats(self, restaurant_id) -> WalletStats:
        return self._projection_store.get_stats(restaurant_id)

    def list_transactions(self, restaurant_id, since=None, until=None) -> List[Transaction]:
        return self._projection_store.transactions_for_restaurant(restaurant_id, since, until)

    @property
    def projection_store(self) -> WalletProjectionStore:
        return self._projection_store
