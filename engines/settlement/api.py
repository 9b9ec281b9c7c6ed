"""
DineIn - Public Operations
============================
The entry points guests, staff and the payment gateway call. Each
mutation becomes a Command routed through the CommandBus; reads go
straight to the engine projections.

build_dinein_api() wires every engine in memory with one shared lock
table, event store and notification port. Listener registration order
is session, ordering, wallet; UI listeners added through
subscribe() run after them.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Callable, List, Optional, Sequence

from core.commands.bus import CommandBus
from core.concurrency.locks import KeyedLockTable
from core.config.rules import InMemoryConfigStore
from core.errors import (
    CouponNotApplicableError,
    PaymentCallbackRejectedError,
    ReservationNotFoundError,
)
from core.event_store.factory import EventFactory
from core.event_store.memory import InMemoryEventStore
from core.event_store.validators.context import RestaurantContext
from core.event_store.validators.registry import EventTypeRegistry
from core.events.registry import SubscriberRegistry
from core.primitives.money import quantize, to_money
from core.replay import ReplayResult, replay_events
from core.time.clock import Clock, SystemClock
from engines.billing.calculator import net_total
from engines.offers.commands import OfferCreateRequest, OfferDeactivateRequest
from engines.offers.records import Offer
from engines.offers.services import OffersService
from engines.ordering.cart import CartBuilder
from engines.ordering.catalog import CatalogReader, InMemoryCatalog
from engines.ordering.commands import ItemStatusRequest
from engines.ordering.records import Order
from engines.ordering.services import OrderingService
from engines.ordering.subscriptions import (
    OrderingSubscriptionHandler,
    register_ordering_subscriptions,
)
from engines.session.commands import (
    CounterPaymentRequest,
    CouponApplyRequest,
    CouponRemoveRequest,
    ReservationAcceptRequest,
    ReservationCancelRequest,
    ReservationDeclineRequest,
    TableClaimRequest,
    TableRegisterRequest,
)
from engines.session.records import TYPE_WALK_IN, Reservation, Table
from engines.session.services import SessionService
from engines.session.subscriptions import SessionSubscriptionHandler, register_session_subscriptions
from engines.settlement.events import SETTLEMENT_BILL_SETTLED_V1
from engines.settlement.services import DEFAULT_ONLINE_FEE_RATE, SettlementService
from engines.settlement.snapshot import METHOD_COUNTER, METHOD_ONLINE, BillSnapshot, LiveBill
from engines.wallet.balances import WalletStats
from engines.wallet.commands import WithdrawalRequest
from engines.wallet.records import Transaction
from engines.wallet.services import WalletService
from engines.wallet.subscriptions import WalletSubscriptionHandler, register_wallet_subscriptions

logger = logging.getLogger("dinein.api")

GUEST = "GUEST"
STAFF = "STAFF"
GATEWAY = "GATEWAY"


def _rid(restaurant_id) -> uuid.UUID:
    if isinstance(restaurant_id, uuid.UUID):
        return restaurant_id
    return uuid.UUID(str(restaurant_id))


class DineInApi:
    def __init__(
        self,
        *,
        command_bus: CommandBus,
        subscriber_registry: SubscriberRegistry,
        session: SessionService,
        ordering: OrderingService,
        offers: OffersService,
        wallet: WalletService,
        settlement: SettlementService,
        catalog: CatalogReader,
        clock: Clock,
        gateway=None,
    ):
        self._bus = command_bus
        self._subscribers = subscriber_registry
        self.session = session
        self.ordering = ordering
        self.offers = offers
        self.wallet = wallet
        self.settlement = settlement
        self.catalog = catalog
        self._clock = clock
        self._gateway = gateway

    def _send(self, request, restaurant_id, actor_type: str, actor_id: str,
              correlation_id: Optional[uuid.UUID] = None):
        command = request.to_command(
            restaurant_id=_rid(restaurant_id),
            actor_type=actor_type,
            actor_id=actor_id,
            command_id=uuid.uuid4(),
            correlation_id=correlation_id or uuid.uuid4(),
            issued_at=self._clock.now_utc(),
        )
        return self._bus.handle(command)

    def _reservation(self, restaurant_id, reservation_id: str) -> Reservation:
        reservation = self.session.projection_store.get_reservation(reservation_id)
        if reservation is None or reservation.restaurant_id != str(_rid(restaurant_id)):
            raise ReservationNotFoundError(f"Reservation '{reservation_id}' not found.")
        return reservation

    def subscribe(self, event_type: str,
                  handler: Callable[[dict], None]) -> Callable[[], None]:
        """Notification port for UI listeners; call the result to detach."""
        return self._subscribers.register_subscriber(event_type, handler, subscriber_engine="ui")

    def replay(self, events) -> ReplayResult:
        """
        Rebuild every projection from stored envelopes, oldest first.

        Replayed settlements are not marked dispatched; a re-delivery
        dispatches them again and each listener finds its work done.
        """
        settlements = self.settlement.projection_store

        def attach(event: dict) -> None:
            if event["event_type"] == SETTLEMENT_BILL_SETTLED_V1:
                settlements.attach_event(event["payload"]["settlement_id"], event)

        return replay_events(events, {
            "session": self.session.projection_store,
            "ordering": self.ordering.projection_store,
            "offers": self.offers.projection_store,
            "wallet": self.wallet.projection_store,
            "settlement": settlements,
        }, on_applied=attach)

    # ══════════════════════════════════════════════════════════
    # TABLES AND RESERVATIONS
    # ══════════════════════════════════════════════════════════

    def register_table(self, restaurant_id, table_id: str, name: str, seats: int,
                       area: str = "", actor_id: str = "staff") -> Table:
        self._send(TableRegisterRequest(table_id=table_id, name=name, seats=seats, area=area),
                   restaurant_id, STAFF, actor_id)
        return self.session.projection_store.get_table(_rid(restaurant_id), table_id)

    def claim_table(self, restaurant_id, table_id: str, user_id: str, user_name: str = "",
                    reservation_type: str = TYPE_WALK_IN, amount_paid=0) -> Reservation:
        """Pending reservation for the guest, or TableOccupiedError."""
        reservation_id = uuid.uuid4().hex
        self._send(
            TableClaimRequest(
                reservation_id=reservation_id,
                table_id=table_id,
                user_id=user_id,
                user_name=user_name,
                reservation_type=reservation_type,
                amount_paid=to_money(amount_paid),
            ),
            restaurant_id, GUEST, user_id,
        )
        return self.session.projection_store.get_reservation(reservation_id)

    def accept_reservation(self, restaurant_id, reservation_id: str,
                           actor_id: str = "staff") -> Reservation:
        self._send(ReservationAcceptRequest(reservation_id=reservation_id),
                   restaurant_id, STAFF, actor_id)
        return self._reservation(restaurant_id, reservation_id)

    def decline_reservation(self, restaurant_id, reservation_id: str, reason: str = "",
                            actor_id: str = "staff") -> Reservation:
        self._send(ReservationDeclineRequest(reservation_id=reservation_id, reason=reason),
                   restaurant_id, STAFF, actor_id)
        return self._reservation(restaurant_id, reservation_id)

    def cancel_reservation(self, restaurant_id, reservation_id: str, reason: str = "",
                           actor_type: str = GUEST, actor_id: str = "guest") -> Reservation:
        self._send(ReservationCancelRequest(reservation_id=reservation_id, reason=reason),
                   restaurant_id, actor_type, actor_id)
        return self._reservation(restaurant_id, reservation_id)

    # ══════════════════════════════════════════════════════════
    # ORDERS
    # ══════════════════════════════════════════════════════════

    def new_cart(self, restaurant_id, reservation_id: str) -> CartBuilder:
        reservation = self._reservation(restaurant_id, reservation_id)
        return CartBuilder(
            catalog=self.catalog,
            restaurant_id=_rid(restaurant_id),
            reservation_id=reservation_id,
            table_id=reservation.table_id,
        )

    def submit_cart(self, restaurant_id, reservation_id: str, cart: CartBuilder) -> Order:
        """Commit the cart as one ticket, appending to the open one if any."""
        reservation = self._reservation(restaurant_id, reservation_id)
        open_order = self.ordering.projection_store.get_open_order(reservation_id)
        request = cart.flush(open_order.order_id if open_order else None)
        self._send(request, restaurant_id, GUEST, reservation.user_id)
        return self.ordering.projection_store.get_order(request.order_id)

    def place_order(self, restaurant_id, reservation_id: str, items: Sequence[dict]) -> Order:
        """Shortcut: each item is {menu_item_id, quantity, add_on_ids, note}."""
        cart = self.new_cart(restaurant_id, reservation_id)
        for item in items:
            cart.add(
                item["menu_item_id"],
                quantity=item.get("quantity", 1),
                add_on_ids=tuple(item.get("add_on_ids", ())),
                note=item.get("note", ""),
            )
        return self.submit_cart(restaurant_id, reservation_id, cart)

    def update_item_status(self, restaurant_id, order_id: str, line_id: str, status: str,
                           actor_id: str = "kitchen") -> Order:
        self._send(ItemStatusRequest(order_id=order_id, line_id=line_id, status=status),
                   restaurant_id, STAFF, actor_id)
        return self.ordering.projection_store.get_order(order_id)

    def order_summary(self, restaurant_id, reservation_id: str) -> List[Order]:
        self._reservation(restaurant_id, reservation_id)
        return self.ordering.projection_store.get_orders_for_reservation(reservation_id)

    # ══════════════════════════════════════════════════════════
    # BILL AND DISCOUNTS
    # ══════════════════════════════════════════════════════════

    def get_live_bill(self, restaurant_id, reservation_id: str) -> LiveBill:
        return self.settlement.live_bill(_rid(restaurant_id), reservation_id)

    def apply_coupon(self, restaurant_id, reservation_id: str, code: str) -> Decimal:
        """Attach a coupon to the reservation and return its discount now."""
        reservation = self._reservation(restaurant_id, reservation_id)
        items = self.ordering.billable_items(reservation_id)
        bill = self.settlement.live_bill(_rid(restaurant_id), reservation_id)
        quote = self.offers.validate_coupon(
            _rid(restaurant_id), code, bill.breakdown.menu_subtotal, items,
            self._clock.now_utc(),
        )
        self._send(
            CouponApplyRequest(reservation_id=reservation_id,
                               offer_id=quote.offer.offer_id, code=code),
            restaurant_id, GUEST, reservation.user_id,
        )
        return quantize(quote.savings)

    def remove_coupon(self, restaurant_id, reservation_id: str) -> LiveBill:
        reservation = self._reservation(restaurant_id, reservation_id)
        self._send(CouponRemoveRequest(reservation_id=reservation_id),
                   restaurant_id, GUEST, reservation.user_id)
        return self.get_live_bill(restaurant_id, reservation_id)

    # ══════════════════════════════════════════════════════════
    # PAYMENT
    # ══════════════════════════════════════════════════════════

    def request_counter_payment(self, restaurant_id, reservation_id: str) -> Decimal:
        """Guest asks to pay at the counter; returns the amount staff should collect."""
        reservation = self._reservation(restaurant_id, reservation_id)
        bill = self.get_live_bill(restaurant_id, reservation_id)
        if bill.coupon_error:
            raise CouponNotApplicableError(bill.coupon_error)
        total = net_total(bill.breakdown.quantized(), quantize(bill.discount_amount))
        self._send(CounterPaymentRequest(reservation_id=reservation_id, total_bill_amount=total),
                   restaurant_id, GUEST, reservation.user_id)
        return total

    def confirm_counter_payment(self, restaurant_id, reservation_id: str,
                                actor_id: str = "staff") -> BillSnapshot:
        return self.settlement.settle(
            restaurant_id=_rid(restaurant_id),
            reservation_id=reservation_id,
            payment_method=METHOD_COUNTER,
            actor_type=STAFF,
            actor_id=actor_id,
        )

    def settle(self, restaurant_id, reservation_id: str, payment_method: str,
               transaction_id: Optional[str] = None, amount=None,
               actor_type: str = STAFF, actor_id: str = "staff") -> BillSnapshot:
        return self.settlement.settle(
            restaurant_id=_rid(restaurant_id),
            reservation_id=reservation_id,
            payment_method=payment_method,
            actor_type=actor_type,
            actor_id=actor_id,
            transaction_id=transaction_id,
            amount=amount,
        )

    def handle_payment_callback(self, body: bytes, signature: str) -> BillSnapshot:
        """Verify a gateway callback, then settle online. Nothing mutates on rejection."""
        if self._gateway is None:
            logger.error("Payment callback received but no gateway is configured")
            raise PaymentCallbackRejectedError("No payment gateway configured.")
        callback = self._gateway.verify(body, signature)
        return self.settlement.settle(
            restaurant_id=callback.restaurant_id,
            reservation_id=callback.reservation_id,
            payment_method=METHOD_ONLINE,
            actor_type=GATEWAY,
            actor_id=f"gateway:{self._gateway.system_id}",
            transaction_id=callback.transaction_id,
            amount=callback.amount,
        )

    # ══════════════════════════════════════════════════════════
    # OFFERS
    # ══════════════════════════════════════════════════════════

    def create_offer(self, restaurant_id, request: OfferCreateRequest,
                     actor_id: str = "staff") -> Offer:
        self._send(request, restaurant_id, STAFF, actor_id)
        return self.offers.projection_store.get_offer(request.offer_id)

    def deactivate_offer(self, restaurant_id, offer_id: str, actor_id: str = "staff") -> Offer:
        self._send(OfferDeactivateRequest(offer_id=offer_id), restaurant_id, STAFF, actor_id)
        return self.offers.projection_store.get_offer(offer_id)

    # ══════════════════════════════════════════════════════════
    # WALLET
    # ══════════════════════════════════════════════════════════

    def get_wallet_stats(self, restaurant_id) -> WalletStats:
        return self.wallet.get_wallet_stats(_rid(restaurant_id))

    def list_transactions(self, restaurant_id, since=None, until=None) -> List[Transaction]:
        return self.wallet.list_transactions(_rid(restaurant_id), since, until)

    def withdraw(self, restaurant_id, amount, destination: str = "",
                 actor_id: str = "staff") -> Transaction:
        transaction_id = uuid.uuid4().hex
        self._send(
            WithdrawalRequest(transaction_id=transaction_id, amount=to_money(amount),
                              destination=destination),
            restaurant_id, STAFF, actor_id,
        )
        return self.wallet.projection_store.get_transaction(transaction_id)


# ══════════════════════════════════════════════════════════════
# WIRING
# ══════════════════════════════════════════════════════════════

def build_dinein_api(
    *,
    clock: Optional[Clock] = None,
    config_store=None,
    catalog: Optional[CatalogReader] = None,
    persist_event=None,
    restaurant_context=None,
    online_fee_rate=DEFAULT_ONLINE_FEE_RATE,
    gateway=None,
) -> DineInApi:
    clock = clock or SystemClock()
    config_store = config_store or InMemoryConfigStore()
    catalog = catalog or InMemoryCatalog()
    persist_event = persist_event or InMemoryEventStore()
    restaurant_context = restaurant_context or RestaurantContext()

    locks = KeyedLockTable()
    bus = CommandBus()
    subscribers = SubscriberRegistry()
    shared = dict(
        restaurant_context=restaurant_context,
        command_bus=bus,
        event_factory=EventFactory(),
        persist_event=persist_event,
        event_type_registry=EventTypeRegistry(),
        subscriber_registry=subscribers,
    )

    session = SessionService(locks=locks, config_store=config_store, **shared)
    reservation_lookup = session.projection_store.get_reservation
    ordering = OrderingService(reservation_lookup=reservation_lookup, locks=locks, **shared)
    offers = OffersService(locks=locks, **shared)
    wallet = WalletService(locks=locks, **shared)
    settlement = SettlementService(
        reservation_lookup=reservation_lookup,
        ordering_service=ordering,
        offers_service=offers,
        config_store=config_store,
        locks=locks,
        clock=clock,
        online_fee_rate=online_fee_rate,
        **shared,
    )

    register_session_subscriptions(subscribers, SessionSubscriptionHandler(session))
    register_ordering_subscriptions(subscribers, OrderingSubscriptionHandler(ordering))
    register_wallet_subscriptions(subscribers, WalletSubscriptionHandler(wallet))

    return DineInApi(
        command_bus=bus,
        subscriber_registry=subscribers,
        session=session,
        ordering=ordering,
        offers=offers,
        wallet=wallet,
        settlement=settlement,
        catalog=catalog,
        clock=clock,
        gateway=gateway,
    )
