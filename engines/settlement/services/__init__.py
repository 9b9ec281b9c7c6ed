"""
DineIn Settlement Engine - Settlement Coordinator
===================================================
Counter and online payments converge on one commit routine:

    reservation lock
      → idempotency key seen?  → re-dispatch if needed, return snapshot
      → reservation settleable?
      → live bill (orders + config + discount source)
      → offer lock → discount re-checked against current counters
      → freeze + round → amount check (online)
      → offers.redemption.recorded.v1, still under the offer lock
      → settlement.bill.settled.v1 persisted under uuid5(idempotency key)
      → dispatched to session, ordering and wallet

The redemption is written before the settled event and keyed by the
settlement id. A retry under the same key finds it and reuses its
discount instead of redeeming again.

Listener commands derive their ids from the settlement event id, so a
dispatch that failed half-way is safe to repeat: listeners that already
ran collide at the event store and the rest catch up. The reservation
lock is held throughout, so no ticket can change under a bill being
committed.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from core.commands.base import Command, derive_command_id
from core.commands.rejection import ReasonCode
from core.concurrency.locks import KeyedLockTable, offer_key, reservation_key
from core.config.rules import resolve_billing_config
from core.engines.execution import (
    EventFactoryProtocol,
    ExecutionResult,
    PersistEventProtocol,
    first_rejection,
    persist_and_apply,
    raise_for_rejection,
)
from core.errors import (
    CouponNotApplicableError,
    DuplicateSettlementError,
    OfferNotFoundError,
    PaymentAmountMismatchError,
    ProjectionConsistencyError,
    ReservationNotFoundError,
    SettlementError,
)
from core.events.dispatcher import dispatch
from core.primitives.money import ZERO, amounts_match, to_money
from core.time.clock import Clock, SystemClock
from engines.billing.calculator import calculate_breakdown
from engines.offers.commands import RedemptionRecordRequest
from engines.ordering.aggregation import group_for_bill
from engines.settlement.commands import SETTLEMENT_COMMAND_TYPES, BillSettleRequest
from engines.settlement.events import (
    PAYLOAD_BUILDERS,
    SETTLEMENT_BILL_SETTLED_V1,
    register_settlement_event_types,
    resolve_settlement_event_type,
)
from engines.settlement.policies import (
    reservation_must_be_settleable_policy,
    settlement_must_be_new_policy,
)
from engines.settlement.snapshot import (
    DISCOUNT_SOURCE_COUPON,
    DISCOUNT_SOURCE_OFFER,
    METHOD_ONLINE,
    PAYMENT_METHODS,
    BillSnapshot,
    LiveBill,
    freeze_bill,
    idempotency_key,
    settlement_id_for,
)

logger = logging.getLogger("dinein.settlement")

_REJECTION_ERRORS = {
    ReasonCode.DUPLICATE_SETTLEMENT: DuplicateSettlementError,
    ReasonCode.NOT_SETTLEABLE: SettlementError,
    ReasonCode.RESERVATION_NOT_FOUND: ReservationNotFoundError,
}

DEFAULT_ONLINE_FEE_RATE = Decimal("3")


# ══════════════════════════════════════════════════════════════
# PROJECTION STORE
# ══════════════════════════════════════════════════════════════

@dataclass
class SettlementRecord:
    snapshot: BillSnapshot
    idempotency_key: str
    event_data: dict
    dispatched: bool = False


class SettlementProjectionStore:
    """Committed settlements, by settlement id, idempotency key and reservation."""

    def __init__(self):
        self._events: List[dict] = []
        self._records: Dict[str, SettlementRecord] = {}
        self._by_key: Dict[str, str] = {}
        self._by_reservation: Dict[str, List[str]] = {}

    def apply(self, event_type: str, payload: dict) -> None:
        self._events.append({"event_type": event_type, "payload": payload})

        if event_type == SETTLEMENT_BILL_SETTLED_V1:
            settlement_id = str(payload["settlement_id"])
            self._records[settlement_id] = SettlementRecord(
                snapshot=BillSnapshot.from_dict(payload["bill_snapshot"]),
                idempotency_key=payload["idempotency_key"],
                event_data={},
            )
            self._by_key[payload["idempotency_key"]] = settlement_id
            self._by_reservation.setdefault(payload["reservation_id"], []).append(settlement_id)

    def attach_event(self, settlement_id: str, event_data: dict) -> None:
        record = self._records.get(str(settlement_id))
        if record is not None:
            record.event_data = event_data

    def mark_dispatched(self, settlement_id: str) -> None:
        record = self._records.get(str(settlement_id))
        if record is not None:
            record.dispatched = True

    # ── Queries ───────────────────────────────────────────────

    def get(self, settlement_id: str) -> Optional[SettlementRecord]:
        return self._records.get(str(settlement_id))

    def by_idempotency_key(self, key: str) -> Optional[SettlementRecord]:
        settlement_id = self._by_key.get(key)
        if settlement_id is None:
            return None
        return self._records.get(settlement_id)

    def snapshots_for_reservation(self, reservation_id: str) -> List[BillSnapshot]:
        return [self._records[sid].snapshot for sid in self._by_reservation.get(reservation_id, [])]

    @property
    def event_count(self) -> int:
        return len(self._events)


# ══════════════════════════════════════════════════════════════
# COMMAND HANDLER
# ══════════════════════════════════════════════════════════════

class _SettlementCommandHandler:
    def __init__(self, service: "SettlementService"):
        self._service = service

    def execute(self, command: Command) -> ExecutionResult:
        with self._service._locks.hold(reservation_key(command.payload["reservation_id"])):
            result = self._service._execute_command(command)
            if result.projection_applied:
                self._service._dispatch(str(command.payload["settlement_id"]))
        return result


# ══════════════════════════════════════════════════════════════
# APPLICATION SERVICE
# ══════════════════════════════════════════════════════════════

class SettlementService:
    """Settlement coordinator and live-bill reader."""

    def __init__(
        self,
        *,
        restaurant_context,
        command_bus,
        event_factory: EventFactoryProtocol,
        persist_event: PersistEventProtocol,
        event_type_registry,
        reservation_lookup,
        ordering_service,
        offers_service,
        projection_store: SettlementProjectionStore | None = None,
        config_store=None,
        locks: KeyedLockTable | None = None,
        clock: Clock | None = None,
        online_fee_rate: Decimal = DEFAULT_ONLINE_FEE_RATE,
        subscriber_registry=None,
    ):
        self._restaurant_context = restaurant_context
        self._command_bus = command_bus
        self._event_factory = event_factory
        self._persist_event = persist_event
        self._event_type_registry = event_type_registry
        self._reservation_lookup = reservation_lookup
        self._ordering = ordering_service
        self._offers = offers_service
        self._projection_store = projection_store or SettlementProjectionStore()
        self._config_store = config_store
        self._locks = locks or KeyedLockTable()
        self._clock = clock or SystemClock()
        self._online_fee_rate = to_money(online_fee_rate)
        self._subscriber_registry = subscriber_registry

        register_settlement_event_types(self._event_type_registry)
        self._register_handlers()

    def _register_handlers(self) -> None:
        handler = _SettlementCommandHandler(self)
        for command_type in sorted(SETTLEMENT_COMMAND_TYPES):
            self._command_bus.register_handler(command_type, handler)

    # ── Live bill ─────────────────────────────────────────────

    def live_bill(self, restaurant_id, reservation_id: str,
                  now: Optional[datetime] = None) -> LiveBill:
        """
        Side-effect-free preview of the current bill.

        An applied coupon is the only discount source while it stays
        applied. When it no longer fits the bill, `coupon_error` says why
        and no discount is shown; the best public offer is not substituted.
        """
        reservation = self._get_reservation(restaurant_id, reservation_id)
        now = now or self._clock.now_utc()

        lines = self._ordering.lines_for_reservation(reservation_id)
        items = self._ordering.billable_items(reservation_id)
        config = resolve_billing_config(self._config_store, restaurant_id)
        breakdown = calculate_breakdown(items, config)
        subtotal = breakdown.menu_subtotal

        bill = dict(
            reservation_id=reservation_id,
            lines=tuple(lines),
            groups=tuple(group_for_bill(lines)),
            breakdown=breakdown,
        )

        if reservation.has_coupon:
            try:
                quote = self._offers.quote_offer(
                    reservation.coupon_offer_id, subtotal, items, now,
                )
            except (CouponNotApplicableError, OfferNotFoundError) as exc:
                return LiveBill(coupon_error=exc.message, **bill)
            return LiveBill(
                discount_amount=quote.savings,
                discount_source=DISCOUNT_SOURCE_COUPON,
                offer_id=quote.offer.offer_id,
                discount_description=quote.offer.describe(),
                **bill,
            )

        quote = self._offers.best_public_offer(restaurant_id, subtotal, items, now)
        if quote is None:
            return LiveBill(**bill)
        return LiveBill(
            discount_amount=quote.savings,
            discount_source=DISCOUNT_SOURCE_OFFER,
            offer_id=quote.offer.offer_id,
            discount_description=quote.offer.describe(),
            **bill,
        )

    # ── Settle ────────────────────────────────────────────────

    def settle(
        self,
        *,
        restaurant_id: uuid.UUID,
        reservation_id: str,
        payment_method: str,
        actor_type: str,
        actor_id: str,
        transaction_id: Optional[str] = None,
        amount=None,
        correlation_id: Optional[uuid.UUID] = None,
    ) -> BillSnapshot:
        """
        Commit the bill for an active reservation.

        Re-delivery with the same idempotency key returns the original
        snapshot and writes nothing. Any failure before the settled event
        is persisted leaves every projection untouched.
        """
        if payment_method not in PAYMENT_METHODS:
            raise ValueError(
                f"payment_method '{payment_method}' not valid. "
                f"Must be one of: {sorted(PAYMENT_METHODS)}"
            )
        if payment_method == METHOD_ONLINE and not transaction_id:
            raise ValueError("online settlement requires a transaction_id.")

        key = idempotency_key(reservation_id, transaction_id)
        settlement_id = settlement_id_for(key)

        with self._locks.hold(reservation_key(reservation_id)):
            existing = self._projection_store.by_idempotency_key(key)
            if existing is not None:
                logger.info(f"Settlement {settlement_id} already committed for key {key}")
                if not existing.dispatched:
                    self._dispatch(str(settlement_id))
                return existing.snapshot

            reservation = self._get_reservation(restaurant_id, reservation_id)
            earlier = self._projection_store.snapshots_for_reservation(reservation_id)
            if reservation.status == "completed" or earlier:
                logger.error(
                    f"Reservation {reservation_id} already settled under "
                    f"{reservation.settlement_id or earlier[0].settlement_id}; "
                    f"refusing key {key}"
                )
                raise DuplicateSettlementError(
                    f"Reservation '{reservation_id}' was already settled."
                )
            if reservation.status != "active":
                raise SettlementError(
                    f"Reservation is {reservation.status} and cannot be settled."
                )

            now = self._clock.now_utc()
            bill = self.live_bill(restaurant_id, reservation_id, now=now)
            if bill.coupon_error:
                raise CouponNotApplicableError(bill.coupon_error)

            correlation_id = correlation_id or uuid.uuid4()
            with ExitStack() as stack:
                discount = ZERO
                reserved = None
                if bill.offer_id:
                    stack.enter_context(self._locks.hold(offer_key(bill.offer_id)))
                    # an earlier attempt under this key may have redeemed already
                    reserved = self._offers.projection_store.usage_for_settlement(str(settlement_id))
                    if reserved is not None and reserved.offer_id == bill.offer_id:
                        discount = reserved.discount_amount
                    else:
                        reserved = None
                        discount = self._offers.confirm_discount(
                            bill.offer_id,
                            bill.breakdown.menu_subtotal,
                            self._ordering.billable_items(reservation_id),
                            now,
                        )

                snapshot = freeze_bill(
                    bill,
                    settlement_id=str(settlement_id),
                    discount_amount=discount,
                    payment_method=payment_method,
                    settled_at=now,
                    online_fee_rate=self._online_fee_rate,
                    transaction_id=transaction_id,
                )
                if payment_method == METHOD_ONLINE and amount is not None:
                    if not amounts_match(to_money(amount), snapshot.amount_charged):
                        logger.warning(
                            f"Payment {transaction_id} for {reservation_id}: "
                            f"paid {amount}, bill is {snapshot.amount_charged}"
                        )
                        raise PaymentAmountMismatchError(
                            "The bill changed while you were paying. Please review it and retry."
                        )

                if snapshot.offer_id and reserved is None:
                    self._redeem(snapshot, reservation.user_id, restaurant_id,
                                 actor_type, actor_id, correlation_id, now)

                request = BillSettleRequest(
                    reservation_id=reservation_id,
                    settlement_id=str(settlement_id),
                    idempotency_key=key,
                    bill_snapshot=snapshot.to_dict(),
                    user_id=reservation.user_id,
                )
                command = request.to_command(
                    restaurant_id=restaurant_id,
                    actor_type=actor_type,
                    actor_id=actor_id,
                    command_id=uuid.uuid4(),
                    correlation_id=correlation_id,
                    issued_at=now,
                )
                result = self._execute_command(command)
                if not result.projection_applied:
                    raise DuplicateSettlementError(
                        f"Settlement {settlement_id} is already recorded."
                    )
                logger.info(
                    f"Settled reservation {reservation_id} via {payment_method}: "
                    f"net {snapshot.net_total}, discount {snapshot.discount_amount}"
                )
                self._dispatch(str(settlement_id))

        return snapshot

    def _redeem(self, snapshot: BillSnapshot, user_id: str, restaurant_id,
                actor_type: str, actor_id: str, correlation_id: uuid.UUID,
                now: datetime) -> None:
        """Count the discount against the offer while its lock is still held."""
        request = RedemptionRecordRequest(
            offer_id=snapshot.offer_id,
            reservation_id=snapshot.reservation_id,
            user_id=user_id,
            settlement_id=snapshot.settlement_id,
            discount_amount=snapshot.discount_amount,
            order_ids=snapshot.order_ids,
        )
        command = request.to_command(
            restaurant_id=restaurant_id,
            actor_type=actor_type,
            actor_id=actor_id,
            command_id=derive_command_id(snapshot.settlement_id, f"offers.{snapshot.offer_id}"),
            correlation_id=correlation_id,
            issued_at=now,
        )
        self._command_bus.handle(command)

    def _execute_command(self, command: Command) -> ExecutionResult:
        event_type = resolve_settlement_event_type(command.command_type)
        if event_type is None:
            raise ValueError(
                f"Unsupported settlement command type: {command.command_type}"
            )

        reason = first_rejection(command, (
            lambda c: settlement_must_be_new_policy(c, self._projection_store.get),
            lambda c: reservation_must_be_settleable_policy(c, self._reservation_lookup),
        ))
        if reason is not None:
            log = logger.error if reason.code == ReasonCode.DUPLICATE_SETTLEMENT else logger.warning
            log(f"{command.command_type} rejected: {reason.message}")
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
            event_id=uuid.UUID(str(command.payload["settlement_id"])),
        )
        if result.projection_applied:
            self._projection_store.attach_event(
                command.payload["settlement_id"], result.event_data,
            )
        return result

    def _dispatch(self, settlement_id: str) -> None:
        """Every listener must succeed; a failure is left for the next retry."""
        record = self._projection_store.get(settlement_id)
        if self._subscriber_registry is None:
            self._projection_store.mark_dispatched(settlement_id)
            return

        outcome = dispatch(record.event_data, self._subscriber_registry)
        if outcome["subscribers_failed"]:
            logger.error(
                f"Settlement {settlement_id} persisted but "
                f"{outcome['subscribers_failed']} listener(s) failed: {outcome['failures']}"
            )
            raise ProjectionConsistencyError(
                f"Settlement {settlement_id} is recorded but not fully applied; retry to complete it."
            )
        self._projection_store.mark_dispatched(settlement_id)

    # ── Queries ───────────────────────────────────────────────

    def _get_reservation(self, restaurant_id, reservation_id: str):
        reservation = self._reservation_lookup(reservation_id)
        if reservation is None or reservation.restaurant_id != str(restaurant_id):
            raise ReservationNotFoundError(f"Reservation '{reservation_id}' not found.")
        return reservation

    def get_settlement(self, settlement_id: str) -> Optional[BillSnapshot]:
        record = self._projection_store.get(settlement_id)
        return record.snapshot if record else None

    @property
    def projection_store(self) -> SettlementProjectionStore:
        return self._projection_store
