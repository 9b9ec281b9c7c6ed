"""
DineIn Event Store - ORM Access
"""

from __future__ import annotations

import uuid

from core.event_store.models import Event

EVENT_FIELDS = (
    "event_id",
    "event_type",
    "event_version",
    "restaurant_id",
    "source_engine",
    "actor_type",
    "actor_id",
    "correlation_id",
    "causation_id",
    "payload",
    "created_at",
)

_REPLAY_ORDER = ("created_at", "received_at")


def reservation_of(event_data: dict) -> str:
    payload = event_data.get("payload") or {}
    return str(payload.get("reservation_id") or "")


def save_event(event_data: dict) -> Event:
    """Unchecked insert; persist_event owns validation and the transaction."""
    return Event.objects.create(
        reservation_id=reservation_of(event_data),
        **{name: event_data.get(name) for name in EVENT_FIELDS},
    )


def event_exists(event_id: uuid.UUID) -> bool:
    return Event.objects.filter(event_id=event_id).exists()


def _envelopes(query) -> tuple[dict, ...]:
    return tuple(dict(row) for row in query.order_by(*_REPLAY_ORDER).values(*EVENT_FIELDS))


def load_events_for_restaurant(
    restaurant_id: uuid.UUID,
    *,
    event_type_prefix: str = "",
) -> tuple[dict, ...]:
    query = Event.objects.filter(restaurant_id=restaurant_id)
    if event_type_prefix:
        query = query.filter(event_type__startswith=event_type_prefix)
    return _envelopes(query)


def load_events_for_reservation(restaurant_id: uuid.UUID, reservation_id: str) -> tuple[dict, ...]:
    """Every fact of one table visit, across engines, in replay order."""
    return _envelopes(
        Event.objects.filter(restaurant_id=restaurant_id, reservation_id=reservation_id)
    )


def restaurant_ids() -> tuple[uuid.UUID, ...]:
    return tuple(
        Event.objects.order_by("restaurant_id")
        .values_list("restaurant_id", flat=True)
        .distinct()
    )
