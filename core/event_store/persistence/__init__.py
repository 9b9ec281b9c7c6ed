"""
DineIn Event Store persistence public API.
"""

from core.event_store.persistence.repository import (
    load_events_for_reservation,
    load_events_for_restaurant,
    restaurant_ids,
)
from core.event_store.persistence.service import persist_event

__all__ = [
    "persist_event",
    "load_events_for_restaurant",
    "load_events_for_reservation",
    "restaurant_ids",
]
