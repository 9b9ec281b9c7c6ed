"""
DineIn Ordering Engine - Application Service
==============================================
Tickets per reservation, kitchen item workflow, and the read-time
aggregation every bill is computed from.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from core.commands.base import Command
from core.commands.rejection import ReasonCode
from core.concurrency.locks import KeyedLockTable, reservation_key
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
    InvalidTransitionError,
    OrderNotFoundError,
    ReservationNotFoundError,
)
from core.primitives.money import to_money
from engines.ordering.aggregation import (
    AggregatedLine,
    billable_items,
    flatten_orders,
)
from engines.ordering.commands import ORDERING_COMMAND_TYPES
from engines.ordering.events import (
    ORDERING_ITEM_STATUS_CHANGED_V1,
    ORDERING_ORDER_APPENDED_V1,
    ORDERING_ORDER_PLACED_V1,
    ORDERING_ORDERS_SETTLED_V1,
    PAYLOAD_BUILDERS,
    register_ordering_event_types,
    resolve_ordering_event_type,
)
from engines.ordering.policies import (
    item_transition_policy,
    order_must_be_open_policy,
    order_must_not_exist_policy,
    reservation_must_be_active_policy,
)
from engines.ordering.records import (
    ITEM_CANCELLED,
    ITEM_PAID,
    Order,
    OrderItem,
)

logger = logging.getLogger("dinein.ordering")

_REJECTION_ERRORS = {
    ReasonCode.RESERVATION_NOT_FOUND: ReservationNotFoundError,
    ReasonCode.ORDER_NOT_FOUND: OrderNotFoundError,
    ReasonCode.ITEM_NOT_FOUND: OrderNotFoundError,
    ReasonCode.INVALID_TRANSITION: InvalidTransitionError,
}


# ══════════════════════════════════════════════════════════════
# PROJECTION STORE
# ══════════════════════════════════════════════════════════════

class OrderingProjectionStore:
    """In-memory projection of tickets, indexed by reservation."""

    def __init__(self):
        self._events: List[dict] = []
        self._orders: Dict[str, Order] = {}
        # reservation_id → order_ids in placement order
        self._by_reservation: Dict[str, List[str]] = {}
        # reservation_id → settlement_id that marked it paid
        self._settled: Dict[str, str] = {}

    def apply(self, event_type: str, payload: dict) -> None:
        self._events.append({"event_type": event_type, "payload": payload})

        if event_type == ORDERING_ORDER_PLACED_V1:
            order = Order(
                order_id=payload["order_id"],
                restaurant_id=str(payload["restaurant_id"]),
                reservation_id=payload["reservation_id"],
                table_id=payload["table_id"],
                created_at=payload["placed_at"],
                items=[OrderItem.from_payload(line) for line in payload["lines"]],
            )
            order.recompute_total()
            self._orders[order.order_id] = order
            self._by_reservation.setdefault(order.reservation_id, []).append(order.order_id)

        elif event_type == ORDERING_ORDER_APPENDED_V1:
            order = self._orders.get(payload["order_id"])
            if order is not None:
                order.items.extend(OrderItem.from_payload(line) for line in payload["lines"])
                order.recompute_total()

        elif event_type == ORDERING_ITEM_STATUS_CHANGED_V1:
            order = self._orders.get(payload["order_id"])
            if order is not None:
                item = order.find_item(payload["line_id"])
                if item is not None:
                    item.status = payload["status"]
                order.status = order.derive_status()
                order.recompute_total()

        elif event_type == ORDERING_ORDERS_SETTLED_V1:
            rid = payload["reservation_id"]
            snapshot = payload["bill_snapshot"]
            billed = {
                (line["order_id"], line["line_id"])
                for line in snapshot.get("billed_lines", ())
            }
            for order in self.get_orders_for_reservation(rid):
                paid = [item for item in order.items
                        if (order.order_id, item.line_id) in billed
                        and item.status != ITEM_CANCELLED]
                if not paid:
                    continue
                for item in paid:
                    item.status = ITEM_PAID
                if all(i.status in (ITEM_PAID, ITEM_CANCELLED) for i in order.items):
                    order.status = ITEM_PAID
                order.transaction_id = payload.get("transaction_id")
                order.bill_snapshot = dict(snapshot)
                order.applied_offer_id = payload.get("applied_offer_id")
                if payload.get("applied_offer_id"):
                    order.applied_discount_amount = to_money(snapshot.get("discount_amount", 0))
            self._settled[rid] = payload["settlement_id"]

    # ── Queries ───────────────────────────────────────────────

    def get_order(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def get_orders_for_reservation(self, reservation_id: str) -> List[Order]:
        return [self._orders[oid] for oid in self._by_reservation.get(reservation_id, [])]

    def get_open_order(self, reservation_id: str) -> Optional[Order]:
        """Most recent ticket that can still take lines."""
        for order in reversed(self.get_orders_for_reservation(reservation_id)):
            if order.is_open:
                return order
        return None

    def settlement_for(self, reservation_id: str) -> Optional[str]:
        return self._settled.get(reservation_id)

    @property
    def event_count(self) -> int:
        return len(self._events)


# ══════════════════════════════════════════════════════════════
# COMMAND HANDLER
# ══════════════════════════════════════════════════════════════

class _OrderingCommandHandler:
    def __init__(self, service: "OrderingService"):
        self._service = service

    def execute(self, command: Command) -> ExecutionResult:
        return self._service._execute_command(command)


# ══════════════════════════════════════════════════════════════
# APPLICATION SERVICE
# ══════════════════════════════════════════════════════════════

class OrderingService:
    """Ordering Engine application service."""

    def __init__(
        self,
        *,
        restaurant_context,
        command_bus,
        event_factory: EventFactoryProtocol,
        persist_event: PersistEventProtocol,
        event_type_registry,
        projection_store: OrderingProjectionStore | None = None,
        reservation_lookup=None,
        locks: KeyedLockTable | None = None,
        subscriber_registry=None,
    ):
        self._restaurant_context = restaurant_context
        self._command_bus = command_bus
        self._event_factory = event_factory
        self._persist_event = persist_event
        self._event_type_registry = event_type_registry
        self._projection_store = projection_store or OrderingProjectionStore()
        self._reservation_lookup = reservation_lookup
        self._locks = locks or KeyedLockTable()
        self._subscriber_registry = subscriber_registry

        register_ordering_event_types(self._event_type_registry)
        self._register_handlers()

    def _register_handlers(self) -> None:
        handler = _OrderingCommandHandler(self)
        for command_type in sorted(ORDERING_COMMAND_TYPES):
            self._command_bus.register_handler(command_type, handler)

    def _reservation_of(self, command: Command) -> Optional[str]:
        if "reservation_id" in command.payload:
            return command.payload["reservation_id"]
        order = self._projection_store.get_order(command.payload.get("order_id", ""))
        return order.reservation_id if order is not None else None

    def _execute_command(self, command: Command) -> ExecutionResult:
        reservation_id = self._reservation_of(command)
        if reservation_id is None:
            return self._execute_locked(command)
        # a settlement holds this lock from live bill to dispatch
        with self._locks.hold(reservation_key(reservation_id)):
            return self._execute_locked(command)

    def _execute_locked(self, command: Command) -> ExecutionResult:
        event_type = resolve_ordering_event_type(command.command_type)
        if event_type is None:
            raise ValueError(
                f"Unsupported ordering command type: {command.command_type}"
            )

        order_lookup = self._projection_store.get_order
        reason = first_rejection(command, (
            lambda c: reservation_must_be_active_policy(c, self._reservation_lookup),
            lambda c: order_must_not_exist_policy(c, order_lookup),
            lambda c: order_must_be_open_policy(c, order_lookup),
            lambda c: item_transition_policy(c, order_lookup),
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
            apply=self._projection_store.apply,
        )
        if result.projection_applied:
            publish(self._subscriber_registry, result.event_data)
        return result

    # ── Read side ─────────────────────────────────────────────

    def lines_for_reservation(self, reservation_id: str) -> List[AggregatedLine]:
        return flatten_orders(self._projection_store.get_orders_for_reservation(reservation_id))

    def billable_items(self, reservation_id: str) -> List[OrderItem]:
        return billable_items(self._projection_store.get_orders_for_reservation(reservation_id))

    @property
    def projection_store(self) -> OrderingProjectionStore:
        return self._projection_store
