"""
DineIn Event Store - In-Memory Store
======================================
Same contract and rejection codes as the Django persist_event, without
a database. Used by the engine test suite and by the adapter wiring when
no database-backed store is configured.

Thread-safe: the idempotency check and the append happen under one lock.
"""

from __future__ import annotations

import copy
import threading
import uuid
from typing import Any, Optional

from core.event_store.validators.context import RestaurantContextProtocol
from core.event_store.validators.errors import ValidationResult, duplicate_rejection
from core.event_store.validators.event_validator import validate_event
from core.event_store.validators.registry import EventTypeRegistry


class InMemoryEventStore:
    """
    Callable event store.

    Usage:
        store = InMemoryEventStore()
        result = store(event_data=..., context=ctx, registry=reg)
    """

    def __init__(self):
        self._events: list[dict[str, Any]] = []
        self._ids: set[uuid.UUID] = set()
        self._lock = threading.Lock()

    def __call__(
        self,
        event_data: dict[str, Any],
        context: RestaurantContextProtocol,
        registry: EventTypeRegistry,
        **kwargs: Any,
    ) -> ValidationResult:
        validation_result = validate_event(
            event_data=event_data, context=context, registry=registry,
        )
        if not validation_result.accepted:
            return validation_result

        event_id = event_data["event_id"]
        with self._lock:
            if event_id in self._ids:
                return duplicate_rejection(event_id)
            self._ids.add(event_id)
            self._events.append(copy.deepcopy(event_data))

        return ValidationResult(accepted=True)

    # ── Queries ───────────────────────────────────────────────

    def get(self, event_id: uuid.UUID) -> Optional[dict[str, Any]]:
        with self._lock:
            for event in self._events:
                if event["event_id"] == event_id:
                    return copy.deepcopy(event)
        return None

    def events_for_restaurant(
        self, restaurant_id: uuid.UUID, event_type_prefix: str = "",
    ) -> tuple[dict[str, Any], ...]:
        with self._lock:
            return tuple(
                copy.deepcopy(e) for e in self._events
                if e["restaurant_id"] == restaurant_id
                and e["event_type"].startswith(event_type_prefix)
            )

    def count(self, event_type: str = "") -> int:
        with self._lock:
            if not event_type:
                return len(self._events)
            return sum(1 for e in self._events if e["event_type"] == event_type)

    def events_for_reservation(
        self, restaurant_id: uuid.UUID, reservation_id: str,
    ) -> tuple[dict[str, Any], ...]:
        with self._lock:
            return tuple(
                copy.deepcopy(e) for e in self._events
                if e["restaurant_id"] == restaurant_id
                and str(e["payload"].get("reservation_id") or "") == reservation_id
            )
