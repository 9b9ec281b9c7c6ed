"""
DineIn Ordering Engine - Test Suite
=====================================
Tickets, kitchen workflow, cart flush and read-time aggregation.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

RID = uuid.uuid4()
NOW = datetime(2026, 3, 1, 19, 0, 0, tzinfo=timezone.utc)
RES = "res-1"


# ══════════════════════════════════════════════════════════════
# TEST HELPERS
# ══════════════════════════════════════════════════════════════

def kw(issued_at=NOW):
    return dict(
        restaurant_id=RID,
        actor_type="GUEST",
        actor_id="guest-1",
        command_id=uuid.uuid4(),
        correlation_id=uuid.uuid4(),
        issued_at=issued_at,
    )


class StubReg:
    def __init__(self):
        self._types = set()

    def register(self, event_type):
        self._types.add(event_type)

    def is_registered(self, event_type):
        return event_type in self._types


class StubFactory:
    def __call__(self, *, command, event_type, payload, event_id=None):
        return {
            "event_id": event_id or command.command_id,
            "event_type": event_type,
            "payload": payload,
            "restaurant_id": command.restaurant_id,
            "source_engine": command.source_engine,
        }


class StubPersist:
    def __init__(self):
        self.calls = []

    def __call__(self, *, event_data, context, registry, **kwargs):
        self.calls.append(event_data)
        return {"accepted": True}


class StubBus:
    def __init__(self):
        self.handlers = {}

    def register_handler(self, command_type, handler):
        self.handlers[command_type] = handler


def _line(line_id, menu_item_id="burger", price="10.00", qty=1, add_ons=()):
    from engines.ordering.records import AddOnSelection, OrderLine

    return OrderLine(
        line_id=line_id, menu_item_id=menu_item_id, name=menu_item_id.title(),
        unit_price=Decimal(price), quantity=qty,
        add_ons=tuple(AddOnSelection(add_on_id=a, name=a, price=p) for a, p in add_ons),
    )


def _service(status="active"):
    from engines.ordering.services import OrderingService

    reservations = {RES: SimpleNamespace(status=status)}
    persist = StubPersist()
    svc = OrderingService(
        restaurant_context=None, command_bus=StubBus(),
        event_factory=StubFactory(), persist_event=persist,
        event_type_registry=StubReg(), reservation_lookup=reservations.get,
    )
    return svc, persist, reservations


def _place(svc, order_id, lines, issued_at=NOW):
    from engines.ordering.commands import OrderPlaceRequest

    request = OrderPlaceRequest(order_id=order_id, reservation_id=RES,
                                table_id="T1", lines=tuple(lines))
    return svc._execute_command(request.to_command(**kw(issued_at)))


def _status(svc, order_id, line_id, status):
    from engines.ordering.commands import ItemStatusRequest

    request = ItemStatusRequest(order_id=order_id, line_id=line_id, status=status)
    return svc._execute_command(request.to_command(**kw()))


# ══════════════════════════════════════════════════════════════
# RECORDS AND COMMANDS
# ══════════════════════════════════════════════════════════════

class TestOrderRecords:
    def test_quantity_must_be_positive(self):
        with pytest.raises(ValueError, match="quantity"):
            _line("l1", qty=0)

    def test_bool_quantity_rejected(self):
        with pytest.raises(ValueError):
            _line("l1", qty=True)

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError):
            _line("l1", price="-1")

    def test_line_total_includes_add_ons(self):
        from engines.ordering.records import OrderItem

        item = OrderItem.from_payload(dict(
            _line("l1", price="8.50", qty=2, add_ons=(("cheese", "1.25"),)).to_dict()))
        assert item.line_total == Decimal("19.50")

    def test_request_rejects_duplicate_line_ids(self):
        from engines.ordering.commands import OrderPlaceRequest

        with pytest.raises(ValueError, match="unique"):
            OrderPlaceRequest(order_id="o1", reservation_id=RES, table_id="T1",
                              lines=(_line("l1"), _line("l1")))

    def test_request_needs_lines(self):
        from engines.ordering.commands import OrderPlaceRequest

        with pytest.raises(ValueError):
            OrderPlaceRequest(order_id="o1", reservation_id=RES, table_id="T1", lines=())

    def test_paid_is_not_a_kitchen_status(self):
        from engines.ordering.commands import ItemStatusRequest

        with pytest.raises(ValueError):
            ItemStatusRequest(order_id="o1", line_id="l1", status="paid")


# ══════════════════════════════════════════════════════════════
# SERVICE
# ══════════════════════════════════════════════════════════════

class TestOrderingService:
    def test_registers_every_command(self):
        from engines.ordering.commands import ORDERING_COMMAND_TYPES
        from engines.ordering.services import OrderingService

        bus = StubBus()
        OrderingService(restaurant_context=None, command_bus=bus,
                        event_factory=StubFactory(), persist_event=StubPersist(),
                        event_type_registry=StubReg())
        assert set(bus.handlers) == set(ORDERING_COMMAND_TYPES)

    def test_place_order(self):
        svc, persist, _ = _service()
        result = _place(svc, "o1", [_line("l1", qty=2), _line("l2", "fries", "3.50")])
        assert result.projection_applied
        order = svc.projection_store.get_order("o1")
        assert order.total_amount == Decimal("23.50")
        assert order.created_at == NOW
        assert order.is_open
        assert persist.calls[0]["event_type"] == "ordering.order.placed.v1"

    def test_needs_active_reservation(self):
        from core.errors import ValidationFailure

        svc, _, _ = _service(status="pending")
        with pytest.raises(ValidationFailure) as info:
            _place(svc, "o1", [_line("l1")])
        assert info.value.code == "RESERVATION_NOT_ACTIVE"

    def test_unknown_reservation(self):
        from core.errors import ReservationNotFoundError
        from engines.ordering.commands import OrderPlaceRequest

        svc, _, _ = _service()
        request = OrderPlaceRequest(order_id="o1", reservation_id="ghost",
                                    table_id="T1", lines=(_line("l1"),))
        with pytest.raises(ReservationNotFoundError):
            svc._execute_command(request.to_command(**kw()))

    def test_append_to_open_ticket(self):
        from engines.ordering.commands import OrderAppendRequest

        svc, _, _ = _service()
        _place(svc, "o1", [_line("l1")])
        request = OrderAppendRequest(order_id="o1", reservation_id=RES,
                                     lines=(_line("l2", "soda", "2.00"),))
        svc._execute_command(request.to_command(**kw()))
        order = svc.projection_store.get_order("o1")
        assert [i.line_id for i in order.items] == ["l1", "l2"]
        assert order.total_amount == Decimal("12.00")

    def test_append_to_served_ticket_rejected(self):
        from core.errors import ValidationFailure
        from engines.ordering.commands import OrderAppendRequest

        svc, _, _ = _service()
        _place(svc, "o1", [_line("l1")])
        _status(svc, "o1", "l1", "preparing")
        _status(svc, "o1", "l1", "served")
        request = OrderAppendRequest(order_id="o1", reservation_id=RES,
                                     lines=(_line("l2"),))
        with pytest.raises(ValidationFailure) as info:
            svc._execute_command(request.to_command(**kw()))
        assert info.value.code == "ORDER_NOT_OPEN"

    def test_kitchen_workflow_derives_order_status(self):
        svc, _, _ = _service()
        _place(svc, "o1", [_line("l1"), _line("l2", "fries", "3.00")])
        _status(svc, "o1", "l1", "preparing")
        order = svc.projection_store.get_order("o1")
        assert order.status == "preparing"
        _status(svc, "o1", "l2", "cancelled")
        _status(svc, "o1", "l1", "served")
        assert order.status == "served"
        assert order.total_amount == Decimal("10.00")

    def test_illegal_item_transition(self):
        from core.errors import InvalidTransitionError

        svc, _, _ = _service()
        _place(svc, "o1", [_line("l1")])
        with pytest.raises(InvalidTransitionError):
            _status(svc, "o1", "l1", "served")

    def test_cancelled_item_is_final(self):
        from core.errors import InvalidTransitionError

        svc, _, _ = _service()
        _place(svc, "o1", [_line("l1"), _line("l2")])
        _status(svc, "o1", "l1", "cancelled")
        with pytest.raises(InvalidTransitionError):
            _status(svc, "o1", "l1", "preparing")

    def test_settle_marks_live_items_paid(self):
        from engines.ordering.commands import OrdersSettleRequest

        svc, _, _ = _service()
        _place(svc, "o1", [_line("l1"), _line("l2")])
        _status(svc, "o1", "l2", "cancelled")
        _place(svc, "o2", [_line("l3")], issued_at=NOW + timedelta(minutes=5))
        request = OrdersSettleRequest(
            reservation_id=RES, settlement_id="s1",
            bill_snapshot={"discount_amount": "2.00", "billed_lines": [
                {"order_id": "o1", "line_id": "l1"}, {"order_id": "o2", "line_id": "l3"},
            ]},
            transaction_id="tx-1", applied_offer_id="offer-1",
        )
        svc._execute_command(request.to_command(**kw()))

        store = svc.projection_store
        first, second = store.get_orders_for_reservation(RES)
        assert [i.status for i in first.items] == ["paid", "cancelled"]
        assert second.status == "paid"
        assert first.transaction_id == "tx-1"
        assert first.applied_discount_amount == Decimal("2.00")
        assert store.settlement_for(RES) == "s1"
        assert store.get_open_order(RES) is None

    def test_settle_leaves_unbilled_lines_alone(self):
        from engines.ordering.commands import OrdersSettleRequest

        svc, _, _ = _service()
        _place(svc, "o1", [_line("l1"), _line("l2")])
        _place(svc, "o2", [_line("l3")], issued_at=NOW + timedelta(minutes=5))
        request = OrdersSettleRequest(
            reservation_id=RES, settlement_id="s1",
            bill_snapshot={"billed_lines": [{"order_id": "o1", "line_id": "l1"}]},
        )
        svc._execute_command(request.to_command(**kw()))

        first, second = svc.projection_store.get_orders_for_reservation(RES)
        assert [i.status for i in first.items] == ["paid", "ordered"]
        assert first.status == "ordered"
        assert [i.status for i in second.items] == ["ordered"]
        assert second.bill_snapshot is None

    def test_item_status_waits_for_reservation_lock(self):
        import threading

        from core.concurrency.locks import KeyedLockTable, reservation_key
        from engines.ordering.services import OrderingService

        locks = KeyedLockTable()
        svc = OrderingService(
            restaurant_context=None, command_bus=StubBus(),
            event_factory=StubFactory(), persist_event=StubPersist(),
            event_type_registry=StubReg(), locks=locks,
            reservation_lookup={RES: SimpleNamespace(status="active")}.get,
        )
        _place(svc, "o1", [_line("l1")])

        worker = threading.Thread(target=_status, args=(svc, "o1", "l1", "preparing"))
        with locks.hold(reservation_key(RES)):
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            assert svc.projection_store.get_order("o1").items[0].status == "ordered"
        worker.join(timeout=5)
        assert svc.projection_store.get_order("o1").items[0].status == "preparing"

    def test_duplicate_event_not_reapplied(self):
        from engines.ordering.commands import OrderPlaceRequest
        from engines.ordering.services import OrderingService

        class DuplicatePersist:
            def __call__(self, *, event_data, context, registry, **kwargs):
                return {"accepted": False,
                        "rejection": {"code": "DUPLICATE_EVENT_ID"}}

        svc = OrderingService(restaurant_context=None, command_bus=StubBus(),
                              event_factory=StubFactory(),
                              persist_event=DuplicatePersist(),
                              event_type_registry=StubReg())
        request = OrderPlaceRequest(order_id="o1", reservation_id=RES,
                                    table_id="T1", lines=(_line("l1"),))
        result = svc._execute_command(request.to_command(**kw()))
        assert result.projection_applied is False
        assert svc.projection_store.get_order("o1") is None


# ══════════════════════════════════════════════════════════════
# AGGREGATION
# ══════════════════════════════════════════════════════════════

class TestAggregation:
    def test_lines_in_ticket_time_order(self):
        svc, _, _ = _service()
        _place(svc, "late", [_line("l9")], issued_at=NOW + timedelta(minutes=10))
        _place(svc, "early", [_line("l1"), _line("l2")])
        ids = [line.item.line_id for line in svc.lines_for_reservation(RES)]
        assert ids == ["l1", "l2", "l9"]

    def test_grouping_preserves_total(self):
        from engines.ordering.aggregation import group_for_bill, ungrouped_total

        svc, _, _ = _service()
        _place(svc, "o1", [
            _line("l1", "burger", "9.99", 1, (("cheese", "0.75"), ("bacon", "1.50"))),
            _line("l2", "fries", "3.33", 3),
        ])
        _place(svc, "o2", [
            _line("l3", "burger", "9.99", 2, (("bacon", "1.50"), ("cheese", "0.75"))),
            _line("l4", "burger", "9.99", 1),
            _line("l5", "fries", "3.33", 1),
        ], issued_at=NOW + timedelta(minutes=3))
        _status(svc, "o2", "l5", "cancelled")

        lines = svc.lines_for_reservation(RES)
        groups = group_for_bill(lines)
        assert [(g.menu_item_id, g.quantity) for g in groups] == [
            ("burger", 3), ("fries", 3), ("burger", 1),
        ]
        assert sum(g.total for g in groups) == ungrouped_total(lines)
        assert ungrouped_total(lines) == Decimal("12.24") * 3 + Decimal("9.99") + Decimal("9.99")

    @pytest.mark.parametrize("tickets, cancelled, group_count, expected", [
        pytest.param(
            [[("l1", "burger", "9.99", 1, (("cheese", "0.75"), ("bacon", "1.50")))],
             [("l2", "burger", "9.99", 2, (("bacon", "1.50"), ("cheese", "0.75"))),
              ("l3", "burger", "9.99", 1, (("cheese", "0.75"),))]],
            (), 2, "47.46", id="add-on-permutations"),
        pytest.param(
            [[("l1", "fries", "3.33", 3, ()), ("l2", "fries", "3.33", 1, ())],
             [("l3", "soup", "4.10", 2, ()), ("l4", "burger", "9.99", 1, ())]],
            ("l2", "l3"), 2, "19.98", id="cancelled-lines"),
        pytest.param(
            [[("l1", "soup", "4.10", 1, ())],
             [("l2", "soup", "4.10", 2, ())],
             [("l3", "soup", "4.10", 1, (("bread", "0.35"),)), ("l4", "soup", "4.10", 4, ())]],
            (), 2, "33.15", id="duplicates-across-tickets"),
        pytest.param(
            [[("l1", "tea", "0.07", 3, ()),
              ("l2", "tea", "0.07", 5, (("honey", "0.33"), ("lemon", "0.11")))],
             [("l3", "tea", "0.07", 1, (("lemon", "0.11"), ("honey", "0.33"))),
              ("l4", "tea", "0.07", 2, (("honey", "0.33"),))]],
            ("l4",), 2, "3.27", id="small-amounts"),
        pytest.param(
            [[("l1", "burger", "9.99", 1, ())], [("l2", "fries", "3.33", 2, ())]],
            ("l1", "l2"), 0, "0", id="all-cancelled"),
    ])
    def test_grouped_total_matches_line_sum(self, tickets, cancelled, group_count, expected):
        from engines.ordering.aggregation import group_for_bill, ungrouped_total

        svc, _, _ = _service()
        for n, ticket in enumerate(tickets):
            _place(svc, f"o{n}", [_line(*spec) for spec in ticket],
                   issued_at=NOW + timedelta(minutes=n))
            for spec in ticket:
                if spec[0] in cancelled:
                    _status(svc, f"o{n}", spec[0], "cancelled")

        lines = svc.lines_for_reservation(RES)
        groups = group_for_bill(lines)
        assert len(groups) == group_count
        assert sum(g.total for g in groups) == ungrouped_total(lines)
        assert ungrouped_total(lines) == Decimal(expected)
        assert sum(g.quantity for g in groups) == sum(
            spec[3] for ticket in tickets for spec in ticket if spec[0] not in cancelled)

    def test_summary_keeps_cancelled_lines(self):
        from engines.ordering.aggregation import summarize

        svc, _, _ = _service()
        _place(svc, "o1", [_line("l1"), _line("l2")])
        _status(svc, "o1", "l2", "cancelled")
        summary = summarize(svc.lines_for_reservation(RES))
        assert len(summary["lines"]) == 2
        assert summary["billable_count"] == 1
        assert summary["cancelled_count"] == 1
        assert summary["billable_total"] == Decimal("10.00")
        assert [i.line_id for i in svc.billable_items(RES)] == ["l1"]


# ══════════════════════════════════════════════════════════════
# CART
# ══════════════════════════════════════════════════════════════

class TestCartBuilder:
    def _cart(self):
        from engines.ordering.cart import CartBuilder
        from engines.ordering.catalog import CatalogAddOn, InMemoryCatalog, MenuItem

        catalog = InMemoryCatalog()
        catalog.put(RID, MenuItem("burger", "Burger", "9.50",
                                  add_ons=(CatalogAddOn("cheese", "Cheese", "1.00"),)))
        catalog.put(RID, MenuItem("special", "Special", "20", is_available=False))
        counter = iter(range(100))
        cart = CartBuilder(catalog=catalog, restaurant_id=RID, reservation_id=RES,
                           table_id="T1", id_factory=lambda: f"id-{next(counter)}")
        return cart, catalog

    def test_price_captured_at_add(self):
        from engines.ordering.catalog import MenuItem

        cart, catalog = self._cart()
        line = cart.add("burger", 2, add_on_ids=["cheese"])
        catalog.put(RID, MenuItem("burger", "Burger", "99.00"))
        assert line.unit_price == Decimal("9.50")
        assert cart.lines[0].add_ons[0].price == Decimal("1.00")

    def test_unavailable_and_unknown_items(self):
        from engines.ordering.cart import CartError

        cart, _ = self._cart()
        with pytest.raises(CartError):
            cart.add("special")
        with pytest.raises(CartError):
            cart.add("nope")
        with pytest.raises(CartError, match="Add-on"):
            cart.add("burger", add_on_ids=["truffle"])

    def test_flush_places_new_ticket(self):
        from engines.ordering.commands import OrderPlaceRequest

        cart, _ = self._cart()
        cart.add("burger")
        request = cart.flush()
        assert isinstance(request, OrderPlaceRequest)
        assert request.table_id == "T1"
        assert cart.is_empty()

    def test_flush_appends_to_open_ticket(self):
        from engines.ordering.commands import OrderAppendRequest

        cart, _ = self._cart()
        cart.add("burger")
        request = cart.flush(open_order_id="o1")
        assert isinstance(request, OrderAppendRequest)
        assert request.order_id == "o1"

    def test_remove_and_empty_flush(self):
        from engines.ordering.cart import CartError

        cart, _ = self._cart()
        line = cart.add("burger")
        cart.remove(line.line_id)
        with pytest.raises(CartError, match="empty"):
            cart.flush()
