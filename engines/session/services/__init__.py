"""
DineIn Session Engine - Application Service
=============================================
Table occupancy and the reservation lifecycle.

Claim admission runs under the table's lock: the occupancy check and the
claimed event are one step, so two guests racing for the same table get
exactly one pending reservation and one TableOccupiedError.

Transitions that release a table take the reservation lock first and the
table lock second (same order as settlement).
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Dict, List, Optional, Tuple

from core.commands.base import Command
from core.commands.rejection import ReasonCode
from core.concurrency.locks import KeyedLockTable, reservation_key, table_key
from core.config.rules import resolve_reservation_config
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
    ReservationNotFoundError,
    TableNotFoundError,
    TableOccupiedError,
)
from core.primitives.money import ZERO, to_money
from engines.session.commands import SESSION_COMMAND_TYPES
from engines.session.events import (
    PAYLOAD_BUILDERS,
    SESSION_COUPON_APPLIED_V1,
    SESSION_COUPON_REMOVED_V1,
    SESSION_PAYMENT_COUNTER_REQUESTED_V1,
    SESSION_RESERVATION_ACCEPTED_V1,
    SESSION_RESERVATION_CANCELLED_V1,
    SESSION_RESERVATION_COMPLETED_V1,
    SESSION_RESERVATION_DECLINED_V1,
    SESSION_TABLE_CLAIMED_V1,
    SESSION_TABLE_REGISTERED_V1,
    register_session_event_types,
    resolve_session_event_type,
)
from engines.session.policies import (
    counter_payment_policy,
    reservation_must_not_exist_policy,
    reservation_transition_policy,
    table_must_be_free_policy,
    table_must_not_exist_policy,
)
from engines.session.records import (
    PAYMENT_PAID,
    PAYMENT_PENDING_COUNTER,
    PAYMENT_REFUNDED,
    RESERVATION_ACTIVE,
    RESERVATION_CANCELLED,
    RESERVATION_COMPLETED,
    RESERVATION_DECLINED,
    TABLE_AVAILABLE,
    TABLE_OCCUPIED,
    TABLE_RESERVED,
    Reservation,
    Table,
)
from engines.session.revenue import cancellation_split, completion_split

logger = logging.getLogger("dinein.session")

_REJECTION_ERRORS = {
    ReasonCode.TABLE_NOT_FOUND: TableNotFoundError,
    ReasonCode.RESERVATION_NOT_FOUND: ReservationNotFoundError,
    ReasonCode.INVALID_TRANSITION: InvalidTransitionError,
}

_RELEASING_COMMANDS = frozenset({
    "session.reservation.accept.request",
    "session.reservation.decline.request",
    "session.reservation.cancel.request",
    "session.reservation.complete.request",
})


# ══════════════════════════════════════════════════════════════
# PROJECTION STORE
# ══════════════════════════════════════════════════════════════

class SessionProjectionStore:
    """In-memory projection of tables and reservations."""

    def __init__(self):
        self._events: List[dict] = []
        self._tables: Dict[Tuple[str, str], Table] = {}
        self._reservations: Dict[str, Reservation] = {}

    def apply(self, event_type: str, payload: dict) -> None:
        self._events.append({"event_type": event_type, "payload": payload})
        restaurant_id = str(payload["restaurant_id"])

        if event_type == SESSION_TABLE_REGISTERED_V1:
            self._tables[(restaurant_id, payload["table_id"])] = Table(
                table_id=payload["table_id"],
                restaurant_id=restaurant_id,
                name=payload["name"],
                seats=payload["seats"],
                area=payload.get("area", ""),
            )
            return

        if event_type == SESSION_TABLE_CLAIMED_V1:
            table = self._tables.get((restaurant_id, payload["table_id"]))
            reservation = Reservation(
                reservation_id=payload["reservation_id"],
                restaurant_id=restaurant_id,
                table_id=payload["table_id"],
                table_name=table.name if table else payload["table_id"],
                user_id=payload["user_id"],
                user_name=payload.get("user_name", ""),
                created_at=payload["claimed_at"],
                reservation_type=payload["reservation_type"],
                amount_paid=to_money(payload.get("amount_paid", ZERO)),
                updated_at=payload["claimed_at"],
            )
            self._reservations[reservation.reservation_id] = reservation
            if table is not None:
                table.status = TABLE_RESERVED
                table.current_reservation_id = reservation.reservation_id
            return

        reservation = self._reservations.get(payload.get("reservation_id", ""))
        if reservation is None:
            return
        table = self._tables.get((reservation.restaurant_id, reservation.table_id))

        if event_type == SESSION_RESERVATION_ACCEPTED_V1:
            reservation.status = RESERVATION_ACTIVE
            reservation.updated_at = payload["accepted_at"]
            if table is not None:
                table.status = TABLE_OCCUPIED

        elif event_type in (SESSION_RESERVATION_DECLINED_V1, SESSION_RESERVATION_CANCELLED_V1):
            declined = event_type == SESSION_RESERVATION_DECLINED_V1
            reservation.status = RESERVATION_DECLINED if declined else RESERVATION_CANCELLED
            reservation.status_reason = payload.get("reason", "")
            reservation.updated_at = payload["declined_at" if declined else "cancelled_at"]
            reservation.revenue_split = dict(payload.get("revenue_split", {}))
            if reservation.amount_paid > ZERO:
                reservation.payment_status = PAYMENT_REFUNDED
            self._release(table, reservation)

        elif event_type == SESSION_RESERVATION_COMPLETED_V1:
            reservation.status = RESERVATION_COMPLETED
            reservation.payment_status = PAYMENT_PAID
            reservation.payment_method = payload["payment_method"]
            reservation.total_bill_amount = to_money(payload["total_bill_amount"])
            reservation.transaction_id = payload.get("transaction_id")
            reservation.settlement_id = payload["settlement_id"]
            reservation.revenue_split = dict(payload.get("revenue_split", {}))
            reservation.updated_at = payload["completed_at"]
            self._release(table, reservation)

        elif event_type == SESSION_COUPON_APPLIED_V1:
            reservation.coupon_offer_id = payload["offer_id"]
            reservation.coupon_code = payload["code"]

        elif event_type == SESSION_COUPON_REMOVED_V1:
            reservation.coupon_offer_id = None
            reservation.coupon_code = None

        elif event_type == SESSION_PAYMENT_COUNTER_REQUESTED_V1:
            reservation.payment_status = PAYMENT_PENDING_COUNTER
            reservation.payment_method = "counter"
            reservation.total_bill_amount = to_money(payload["total_bill_amount"])
            reservation.updated_at = payload["requested_at"]

    @staticmethod
    def _release(table: Optional[Table], reservation: Reservation) -> None:
        if table is not None and table.current_reservation_id == reservation.reservation_id:
            table.status = TABLE_AVAILABLE
            table.current_reservation_id = None

    # ── Queries ───────────────────────────────────────────────

    def get_table(self, restaurant_id, table_id: str) -> Optional[Table]:
        return self._tables.get((str(restaurant_id), table_id))

    def list_tables(self, restaurant_id) -> List[Table]:
        rid = str(restaurant_id)
        return [t for (r, _), t in sorted(self._tables.items()) if r == rid]

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        return self._reservations.get(reservation_id)

    def occupant_of(self, restaurant_id, table_id: str) -> Optional[Reservation]:
        """The pending/active reservation holding the table, if any."""
        table = self.get_table(restaurant_id, table_id)
        if table is None or table.current_reservation_id is None:
            return None
        reservation = self._reservations.get(table.current_reservation_id)
        if reservation is None or not reservation.is_live:
            return None
        return reservation

    def live_reservations_for_table(self, restaurant_id, table_id: str) -> List[Reservation]:
        rid = str(restaurant_id)
        return [
            r for r in self._reservations.values()
            if r.restaurant_id == rid and r.table_id == table_id and r.is_live
        ]

    def reservations_for_restaurant(self, restaurant_id) -> List[Reservation]:
        rid = str(restaurant_id)
        return sorted(
            (r for r in self._reservations.values() if r.restaurant_id == rid),
            key=lambda r: (r.created_at, r.reservation_id),
        )

    @property
    def event_count(self) -> int:
        return len(self._events)


# ══════════════════════════════════════════════════════════════
# COMMAND HANDLER
# ══════════════════════════════════════════════════════════════

class _SessionCommandHandler:
    def __init__(self, service: "SessionService"):
        self._service = service

    def execute(self, command: Command) -> ExecutionResult:
        return self._service._execute_command(command)


# ══════════════════════════════════════════════════════════════
# APPLICATION SERVICE
# ══════════════════════════════════════════════════════════════

class SessionService:
    """Session Engine application service."""

    def __init__(
        self,
        *,
        restaurant_context,
        command_bus,
        event_factory: EventFactoryProtocol,
        persist_event: PersistEventProtocol,
        event_type_registry,
        projection_store: SessionProjectionStore | None = None,
        locks: KeyedLockTable | None = None,
        config_store=None,
        subscriber_registry=None,
    ):
        self._restaurant_context = restaurant_context
        self._command_bus = command_bus
        self._event_factory = event_factory
        self._persist_event = persist_event
        self._event_type_registry = event_type_registry
        self._projection_store = projection_store or SessionProjectionStore()
        self._locks = locks or KeyedLockTable()
        self._config_store = config_store
        self._subscriber_registry = subscriber_registry

        register_session_event_types(self._event_type_registry)
        self._register_handlers()

    def _register_handlers(self) -> None:
        handler = _SessionCommandHandler(self)
        for command_type in sorted(SESSION_COMMAND_TYPES):
            self._command_bus.register_handler(command_type, handler)

    def _lock_keys(self, command: Command) -> List[str]:
        payload = command.payload
        if command.command_type == "session.table.claim.request":
            return [table_key(command.restaurant_id, payload["table_id"])]
        if "reservation_id" not in payload:
            return []
        return [reservation_key(payload["reservation_id"])]

    def _released_table_key(self, command: Command) -> Optional[str]:
        # read only while the reservation lock is held
        if command.command_type not in _RELEASING_COMMANDS:
            return None
        reservation = self._projection_store.get_reservation(
            command.payload["reservation_id"]
        )
        if reservation is None:
            return None
        return table_key(command.restaurant_id, reservation.table_id)

    def _execute_command(self, command: Command) -> ExecutionResult:
        with ExitStack() as stack:
            for key in self._lock_keys(command):
                stack.enter_context(self._locks.hold(key))
            released = self._released_table_key(command)
            if released is not None:
                stack.enter_context(self._locks.hold(released))
            result = self._execute_locked(command)
        if result.projection_applied:
            publish(self._subscriber_registry, result.event_data)
        return result

    def _execute_locked(self, command: Command) -> ExecutionResult:
        event_type = resolve_session_event_type(command.command_type)
        if event_type is None:
            raise ValueError(
                f"Unsupported session command type: {command.command_type}"
            )

        store = self._projection_store
        rid = command.restaurant_id
        table_lookup = lambda table_id: store.get_table(rid, table_id)
        occupant_lookup = lambda table_id: store.occupant_of(rid, table_id)

        reason = first_rejection(command, (
            lambda c: table_must_not_exist_policy(c, table_lookup),
            lambda c: reservation_must_not_exist_policy(c, store.get_reservation),
            lambda c: table_must_be_free_policy(c, table_lookup, occupant_lookup),
            lambda c: reservation_transition_policy(c, store.get_reservation),
            lambda c: counter_payment_policy(c, store.get_reservation),
        ))
        if reason is not None:
            logger.warning(f"{command.command_type} rejected: {reason.message}")
            if reason.code == ReasonCode.TABLE_OCCUPIED:
                occupant = occupant_lookup(command.payload["table_id"])
                raise TableOccupiedError.from_rejection(
                    reason,
                    occupant_reservation_id=occupant.reservation_id,
                    occupant_user_id=occupant.user_id,
                    occupant_user_name=occupant.user_name,
                )
            raise_for_rejection(reason, _REJECTION_ERRORS)

        payload = PAYLOAD_BUILDERS[command.command_type](command)
        payload.update(self._reservation_context(command))

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
            logger.info(
                f"{event_type} applied for "
                f"{payload.get('reservation_id') or payload.get('table_id')}"
            )
        return result

    def _reservation_context(self, command: Command) -> dict:
        """Fields downstream listeners need that the command does not carry."""
        if command.command_type == "session.table.claim.request":
            return {"expected_split": completion_split(command.payload["amount_paid"]).to_dict()}
        if command.command_type not in _RELEASING_COMMANDS:
            return {}
        reservation = self._projection_store.get_reservation(command.payload["reservation_id"])
        extra = {
            "table_id": reservation.table_id,
            "user_id": reservation.user_id,
            "amount_paid": reservation.amount_paid,
        }
        if command.command_type == "session.reservation.complete.request":
            extra["revenue_split"] = completion_split(reservation.amount_paid).to_dict()
        elif command.command_type in (
            "session.reservation.decline.request",
            "session.reservation.cancel.request",
        ):
            config = resolve_reservation_config(self._config_store, command.restaurant_id)
            extra["revenue_split"] = cancellation_split(reservation.amount_paid, config).to_dict()
        return extra

    @property
    def projection_store(self) -> SessionProjectionStore:
        return self._projection_store
