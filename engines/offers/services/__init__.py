"""
DineIn Offers Engine - Application Service
============================================
Offer registry, redemption counters, and the read-side quotes used by
the live bill.

Redemptions run under the offer's lock. The capacity re-check and the
counter increment are a single step per offer, so concurrent settlements
cannot together overshoot max_usage or global_budget.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from typing import Dict, List, Optional, Sequence

from core.commands.base import Command
from core.commands.rejection import ReasonCode
from core.concurrency.locks import KeyedLockTable, offer_key
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
    CouponNotApplicableError,
    OfferExhaustedError,
    OfferNotFoundError,
)
from core.primitives.money import CENT, ZERO, quantize, to_money
from engines.offers.commands import OFFERS_COMMAND_TYPES
from engines.offers.eligibility import (
    BUDGET_EXHAUSTED,
    CAP_REASONS,
    FREE_ITEM_MISSING,
    INACTIVE,
    MIN_SPEND_NOT_MET,
    NO_ELIGIBLE_ITEMS,
    OUTSIDE_WINDOW,
    TRIGGER_ITEM_MISSING,
    USAGE_EXHAUSTED,
    Evaluation,
    OfferQuote,
    evaluate_offer,
    find_coupon,
    select_best_public_offer,
)
from engines.offers.events import (
    OFFERS_OFFER_CREATED_V1,
    OFFERS_OFFER_DEACTIVATED_V1,
    OFFERS_REDEMPTION_RECORDED_V1,
    PAYLOAD_BUILDERS,
    register_offers_event_types,
    resolve_offers_event_type,
)
from engines.offers.policies import (
    coupon_code_unique_policy,
    offer_must_exist_policy,
    offer_must_not_exist_policy,
    redemption_capacity_policy,
)
from engines.offers.records import Offer, OfferUsage

logger = logging.getLogger("dinein.offers")

_REJECTION_ERRORS = {
    ReasonCode.OFFER_NOT_FOUND: OfferNotFoundError,
    ReasonCode.OFFER_EXHAUSTED: OfferExhaustedError,
}

INVALID_CODE_MESSAGE = "Invalid code."

_COUPON_MESSAGES = {
    INACTIVE: "This code is no longer active.",
    OUTSIDE_WINDOW: "This code is not valid right now.",
    BUDGET_EXHAUSTED: "This code has reached its limit.",
    USAGE_EXHAUSTED: "This code has reached its limit.",
    TRIGGER_ITEM_MISSING: "Add the qualifying item to use this code.",
    NO_ELIGIBLE_ITEMS: "None of the items on this bill qualify for this code.",
    FREE_ITEM_MISSING: "Add the free item to your order to use this code.",
}


def coupon_rejection_message(offer: Offer, evaluation: Evaluation) -> str:
    if evaluation.reason == MIN_SPEND_NOT_MET:
        return f"Minimum spend of {offer.min_spend:.2f} not met."
    return _COUPON_MESSAGES.get(evaluation.reason, "Conditions not met.")


# ══════════════════════════════════════════════════════════════
# PROJECTION STORE
# ══════════════════════════════════════════════════════════════

class OffersProjectionStore:
    """In-memory projection of offers and their redemption history."""

    def __init__(self):
        self._events: List[dict] = []
        self._offers: Dict[str, Offer] = {}
        self._usages: Dict[str, List[OfferUsage]] = {}
        # settlement_id → offer usage recorded for it
        self._by_settlement: Dict[str, OfferUsage] = {}

    def apply(self, event_type: str, payload: dict) -> None:
        self._events.append({"event_type": event_type, "payload": payload})

        if event_type == OFFERS_OFFER_CREATED_V1:
            offer = Offer.from_payload(payload)
            self._offers[offer.offer_id] = offer

        elif event_type == OFFERS_OFFER_DEACTIVATED_V1:
            offer = self._offers.get(payload["offer_id"])
            if offer is not None:
                offer.is_active = False

        elif event_type == OFFERS_REDEMPTION_RECORDED_V1:
            offer = self._offers.get(payload["offer_id"])
            amount = to_money(payload["discount_amount"])
            if offer is not None:
                offer.usage_count += 1
                offer.total_discount_given += amount
            usage = OfferUsage(
                usage_id=payload["usage_id"],
                offer_id=payload["offer_id"],
                restaurant_id=str(payload["restaurant_id"]),
                reservation_id=payload["reservation_id"],
                user_id=payload["user_id"],
                settlement_id=payload["settlement_id"],
                discount_amount=amount,
                used_at=payload["used_at"],
                order_ids=tuple(payload.get("order_ids", ())),
            )
            self._usages.setdefault(usage.offer_id, []).append(usage)
            self._by_settlement[usage.settlement_id] = usage

    # ── Queries ───────────────────────────────────────────────

    def get_offer(self, offer_id: str) -> Optional[Offer]:
        return self._offers.get(offer_id)

    def offers_for_restaurant(self, restaurant_id) -> List[Offer]:
        rid = str(restaurant_id)
        return sorted(
            (o for o in self._offers.values() if o.restaurant_id == rid),
            key=lambda o: (o.created_at, o.offer_id),
        )

    def coupon_by_code(self, restaurant_id, code: str) -> Optional[Offer]:
        return find_coupon(self.offers_for_restaurant(restaurant_id), code)

    def usages_for_offer(self, offer_id: str) -> List[OfferUsage]:
        return list(self._usages.get(offer_id, []))

    def usage_for_settlement(self, settlement_id: str) -> Optional[OfferUsage]:
        return self._by_settlement.get(settlement_id)

    @property
    def event_count(self) -> int:
        return len(self._events)


# ══════════════════════════════════════════════════════════════
# COMMAND HANDLER
# ══════════════════════════════════════════════════════════════

class _OffersCommandHandler:
    def __init__(self, service: "OffersService"):
        self._service = service

    def execute(self, command: Command) -> ExecutionResult:
        return self._service._execute_command(command)


# ══════════════════════════════════════════════════════════════
# APPLICATION SERVICE
# ══════════════════════════════════════════════════════════════

class OffersService:
    """Offers Engine application service."""

    def __init__(
        self,
        *,
        restaurant_context,
        command_bus,
        event_factory: EventFactoryProtocol,
        persist_event: PersistEventProtocol,
        event_type_registry,
        projection_store: OffersProjectionStore | None = None,
        locks: KeyedLockTable | None = None,
        subscriber_registry=None,
    ):
        self._restaurant_context = restaurant_context
        self._command_bus = command_bus
        self._event_factory = event_factory
        self._persist_event = persist_event
        self._event_type_registry = event_type_registry
        self._projection_store = projection_store or OffersProjectionStore()
        self._locks = locks or KeyedLockTable()
        self._subscriber_registry = subscriber_registry

        register_offers_event_types(self._event_type_registry)
        self._register_handlers()

    def _register_handlers(self) -> None:
        handler = _OffersCommandHandler(self)
        for command_type in sorted(OFFERS_COMMAND_TYPES):
            self._command_bus.register_handler(command_type, handler)

    def _execute_command(self, command: Command) -> ExecutionResult:
        if "offer_id" in command.payload:
            with self._locks.hold(offer_key(command.payload["offer_id"])):
                result = self._execute_locked(command)
        else:
            result = self._execute_locked(command)
        if result.projection_applied:
            publish(self._subscriber_registry, result.event_data)
        return result

    def _execute_locked(self, command: Command) -> ExecutionResult:
        event_type = resolve_offers_event_type(command.command_type)
        if event_type is None:
            raise ValueError(
                f"Unsupported offers command type: {command.command_type}"
            )

        store = self._projection_store
        coupon_lookup = lambda code: store.coupon_by_code(command.restaurant_id, code)
        reason = first_rejection(command, (
            lambda c: offer_must_not_exist_policy(c, store.get_offer),
            lambda c: coupon_code_unique_policy(c, coupon_lookup),
            lambda c: offer_must_exist_policy(c, store.get_offer),
            lambda c: redemption_capacity_policy(c, store.get_offer),
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
        if result.projection_applied and event_type == OFFERS_REDEMPTION_RECORDED_V1:
            offer = store.get_offer(payload["offer_id"])
            logger.info(
                f"Offer {offer.offer_id} redeemed for {payload['discount_amount']} "
                f"(usage {offer.usage_count}, given {offer.total_discount_given})"
            )
        return result

    # ── Read side ─────────────────────────────────────────────

    def best_public_offer(
        self,
        restaurant_id,
        subtotal: Decimal,
        items: Sequence,
        now: datetime,
    ) -> Optional[OfferQuote]:
        """Advisory: counters may move before the bill commits."""
        return select_best_public_offer(
            self._projection_store.offers_for_restaurant(restaurant_id),
            subtotal, items, now,
        )

    def validate_coupon(
        self,
        restaurant_id,
        code: str,
        subtotal: Decimal,
        items: Sequence,
        now: datetime,
    ) -> OfferQuote:
        """Price a coupon against a bill or raise CouponNotApplicableError."""
        offer = self._projection_store.coupon_by_code(restaurant_id, code)
        if offer is None:
            raise CouponNotApplicableError(INVALID_CODE_MESSAGE)
        return self.quote_offer(offer.offer_id, subtotal, items, now)

    def quote_offer(
        self,
        offer_id: str,
        subtotal: Decimal,
        items: Sequence,
        now: datetime,
    ) -> OfferQuote:
        offer = self._projection_store.get_offer(offer_id)
        if offer is None:
            raise OfferNotFoundError(f"Offer '{offer_id}' not found.")
        evaluation = evaluate_offer(offer, subtotal, items, now)
        if not evaluation.eligible:
            raise CouponNotApplicableError(
                coupon_rejection_message(offer, evaluation),
                code=ReasonCode.COUPON_NOT_APPLICABLE,
                policy_name=evaluation.reason or "",
            )
        return OfferQuote(offer=offer, savings=evaluation.savings)

    def confirm_discount(
        self,
        offer_id: str,
        subtotal: Decimal,
        items: Sequence,
        now: datetime,
    ) -> Decimal:
        """
        Commit-time re-check against current counters, rounded to cents.

        The caller must hold the offer's lock until the redemption is
        recorded. Counters that moved since the preview raise
        OfferExhaustedError; a coupon that no longer fits the bill raises
        CouponNotApplicableError.
        """
        offer = self._projection_store.get_offer(offer_id)
        if offer is None:
            raise OfferNotFoundError(f"Offer '{offer_id}' not found.")

        evaluation = evaluate_offer(offer, subtotal, items, now)
        if not evaluation.eligible:
            logger.warning(
                f"Offer {offer_id} failed commit re-check: {evaluation.reason}"
            )
            if offer.is_coupon and evaluation.reason not in CAP_REASONS:
                raise CouponNotApplicableError(
                    coupon_rejection_message(offer, evaluation),
                    policy_name=evaluation.reason or "",
                )
            raise OfferExhaustedError(
                f"'{offer.title}' is no longer available. Please review your bill and retry.",
                policy_name=evaluation.reason or "",
            )

        discount = quantize(evaluation.savings)
        remaining = offer.remaining_budget
        if remaining is not None and discount > remaining:
            discount = remaining.quantize(CENT, rounding=ROUND_DOWN)
        if discount <= ZERO:
            raise OfferExhaustedError(f"'{offer.title}' has run out of budget.")
        return discount

    def usage_history(self, offer_id: str) -> List[OfferUsage]:
        return self._projection_store.usages_for_offer(offer_id)

    @property
    def projection_store(self) -> OffersProjectionStore:
        return self._projection_store
