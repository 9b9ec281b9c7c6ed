"""
DineIn Event Store - validation, idempotency and the Django write path.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

RID = uuid.uuid4()
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
EVENT_TYPE = "session.table.claimed.v1"


def kw(**overrides):
    base = dict(
        event_id=uuid.uuid4(),
        event_type=EVENT_TYPE,
        event_version=1,
        restaurant_id=RID,
        source_engine="session",
        actor_type="GUEST",
        actor_id="guest-1",
        correlation_id=uuid.uuid4(),
        causation_id=uuid.uuid4(),
        payload={"table_id": "T1", "amount_paid": Decimal("5.00")},
        created_at=NOW,
    )
    base.update(overrides)
    return base


def _registry():
    from core.event_store.validators.registry import EventTypeRegistry

    registry = EventTypeRegistry()
    registry.register(EVENT_TYPE)
    return registry


def _context(*restaurant_ids):
    from core.event_store.validators.context import RestaurantContext

    return RestaurantContext(restaurant_ids or None)


# ══════════════════════════════════════════════════════════════
# VALIDATOR
# ══════════════════════════════════════════════════════════════


class TestValidator:
    def test_accepts_complete_event(self):
        from core.event_store.validators.event_validator import validate_event

        result = validate_event(kw(), _context(), _registry())
        assert result.accepted

    def test_missing_field(self):
        from core.event_store.validators.errors import RejectionCode
        from core.event_store.validators.event_validator import validate_event

        result = validate_event(kw(correlation_id=None), _context(), _registry())
        assert result.rejection.code == RejectionCode.MISSING_FIELD

    def test_unknown_event_type(self):
        from core.event_store.validators.errors import RejectionCode
        from core.event_store.validators.event_validator import validate_event

        result = validate_event(kw(event_type="session.table.teleported.v1"),
                                _context(), _registry())
        assert result.rejection.code == RejectionCode.EVENT_TYPE_UNKNOWN

    def test_restaurant_outside_context(self):
        from core.event_store.validators.errors import RejectionCode
        from core.event_store.validators.event_validator import validate_event

        result = validate_event(kw(), _context(uuid.uuid4()), _registry())
        assert result.rejection.code == RejectionCode.RESTAURANT_OUT_OF_CONTEXT

    def test_blank_actor(self):
        from core.event_store.validators.errors import RejectionCode
        from core.event_store.validators.event_validator import validate_event

        result = validate_event(kw(actor_id="  "), _context(), _registry())
        assert result.rejection.code == RejectionCode.EMPTY_ACTOR_ID

    def test_engine_emits_only_its_own_types(self):
        from core.event_store.validators.errors import RejectionCode
        from core.event_store.validators.event_validator import validate_event

        result = validate_event(kw(source_engine="wallet"), _context(), _registry())
        assert result.rejection.code == RejectionCode.SOURCE_ENGINE_MISMATCH

    def test_float_amount_rejected(self):
        from core.event_store.validators.errors import RejectionCode
        from core.event_store.validators.event_validator import validate_event

        payload = {"table_id": "T1", "split": {"shares": [Decimal("1"), 2.5]}}
        result = validate_event(kw(payload=payload), _context(), _registry())
        assert result.rejection.code == RejectionCode.FLOAT_IN_PAYLOAD
        assert "payload.split.shares[1]" in result.rejection.message


class TestEventTypeRegistry:
    def test_short_type_rejected(self):
        from core.event_store.validators.registry import EventTypeRegistry

        with pytest.raises(ValueError):
            EventTypeRegistry().register("session.claimed")

    def test_register_many(self):
        from core.event_store.validators.registry import EventTypeRegistry

        registry = EventTypeRegistry()
        registry.register_many(["a.b.c", "a.b.d"])
        assert registry.get_all_registered() == frozenset({"a.b.c", "a.b.d"})


# ══════════════════════════════════════════════════════════════
# IN-MEMORY STORE
# ══════════════════════════════════════════════════════════════


class TestInMemoryEventStore:
    def test_append_and_query(self):
        from core.event_store.memory import InMemoryEventStore

        store = InMemoryEventStore()
        event = kw()
        assert store(event_data=event, context=_context(), registry=_registry()).accepted
        assert store.count(EVENT_TYPE) == 1
        assert store.get(event["event_id"])["payload"]["table_id"] == "T1"
        assert len(store.events_for_restaurant(RID, "session.")) == 1
        assert store.events_for_restaurant(uuid.uuid4()) == ()

    def test_events_for_reservation(self):
        from core.event_store.memory import InMemoryEventStore

        store = InMemoryEventStore()
        store(event_data=kw(payload={"reservation_id": "res-1"}), context=_context(),
              registry=_registry())
        store(event_data=kw(), context=_context(), registry=_registry())
        assert len(store.events_for_reservation(RID, "res-1")) == 1

    def test_duplicate_event_id_is_rejected_not_appended(self):
        from core.event_store.memory import InMemoryEventStore

        store = InMemoryEventStore()
        event = kw()
        store(event_data=event, context=_context(), registry=_registry())
        second = store(event_data=event, context=_context(), registry=_registry())
        assert not second.accepted
        assert second.is_duplicate
        assert store.count() == 1

    def test_invalid_event_not_stored(self):
        from core.event_store.memory import InMemoryEventStore

        store = InMemoryEventStore()
        result = store(event_data=kw(event_type="x.y.z"), context=_context(),
                       registry=_registry())
        assert not result.accepted
        assert store.count() == 0

    def test_stored_copy_is_isolated(self):
        from core.event_store.memory import InMemoryEventStore

        store = InMemoryEventStore()
        event = kw()
        store(event_data=event, context=_context(), registry=_registry())
        event["payload"]["table_id"] = "T9"
        assert store.get(event["event_id"])["payload"]["table_id"] == "T1"


class TestEventFactory:
    def test_event_id_defaults_to_command_id(self):
        from core.commands.base import build_command
        from core.event_store.factory import EventFactory

        command = build_command(
            "session.table.claim.request", {"table_id": "T1"},
            source_engine="session", restaurant_id=RID, actor_type="GUEST",
            actor_id="guest-1", command_id=uuid.uuid4(),
            correlation_id=uuid.uuid4(), issued_at=NOW,
        )
        event = EventFactory()(command=command, event_type=EVENT_TYPE,
                               payload={"table_id": "T1"})
        assert event["event_id"] == command.command_id
        assert event["causation_id"] == command.command_id
        assert event["event_version"] == 1
        assert event["created_at"] == NOW

    def test_explicit_event_id(self):
        from core.commands.base import build_command
        from core.event_store.factory import EventFactory

        fixed = uuid.uuid4()
        command = build_command(
            "session.table.claim.request", {},
            source_engine="session", restaurant_id=RID, actor_type="GUEST",
            actor_id="guest-1", command_id=uuid.uuid4(),
            correlation_id=uuid.uuid4(), issued_at=NOW,
        )
        event = EventFactory()(command=command, event_type=EVENT_TYPE,
                               payload={}, event_id=fixed)
        assert event["event_id"] == fixed

    def test_version_suffix(self):
        from core.event_store.factory import event_version

        assert event_version("settlement.bill.settled.v2") == 2
        assert event_version("session.table.claimed") == 1


# ══════════════════════════════════════════════════════════════
# DJANGO PERSISTENCE
# ══════════════════════════════════════════════════════════════


@pytest.mark.django_db(transaction=True)
class TestPersistEvent:
    def test_persist_and_load(self):
        from core.event_store.persistence import load_events_for_restaurant, persist_event

        event = kw()
        result = persist_event(event_data=event, context=_context(), registry=_registry())
        assert result.accepted
        rows = load_events_for_restaurant(RID, event_type_prefix="session.")
        assert len(rows) == 1
        assert rows[0]["payload"]["amount_paid"] == Decimal("5.00")

    def test_load_one_table_visit(self):
        from core.event_store.persistence import load_events_for_reservation, persist_event

        visit = kw(payload={"reservation_id": "res-1", "table_id": "T1"})
        other = kw(payload={"reservation_id": "res-2", "table_id": "T2"})
        for event in (visit, other):
            persist_event(event_data=event, context=_context(), registry=_registry())

        rows = load_events_for_reservation(RID, "res-1")
        assert [row["event_id"] for row in rows] == [visit["event_id"]]
        assert load_events_for_reservation(uuid.uuid4(), "res-1") == ()

    def test_duplicate_rejected(self):
        from core.event_store.persistence import persist_event

        event = kw()
        persist_event(event_data=event, context=_context(), registry=_registry())
        result = persist_event(event_data=event, context=_context(), registry=_registry())
        assert result.is_duplicate

    def test_events_are_immutable(self):
        from core.event_store.models import Event
        from core.event_store.persistence import persist_event

        event = kw()
        persist_event(event_data=event, context=_context(), registry=_registry())
        row = Event.objects.get(event_id=event["event_id"])
        with pytest.raises(PermissionError):
            row.save()
        with pytest.raises(PermissionError):
            row.delete()

    def test_payload_types_survive_the_column(self):
        from core.event_store.persistence import load_events_for_restaurant, persist_event

        offer_id = uuid.uuid4()
        event = kw(payload={
            "reservation_id": "res-1",
            "claimed_at": NOW,
            "offer": offer_id,
            "lines": [{"line_id": "l1", "unit_price": Decimal("9.99")}],
        })
        persist_event(event_data=event, context=_context(), registry=_registry())

        payload = load_events_for_restaurant(RID)[0]["payload"]
        assert payload["claimed_at"] == NOW
        assert payload["offer"] == offer_id
        assert payload["lines"][0]["unit_price"] == Decimal("9.99")

    def test_restaurants_with_history(self):
        from core.event_store.persistence import persist_event, restaurant_ids

        persist_event(event_data=kw(), context=_context(), registry=_registry())
        assert restaurant_ids() == (RID,)
