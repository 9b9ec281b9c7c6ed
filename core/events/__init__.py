"""
DineIn Event Bus - Public API
===============================
The event store seals facts. The event bus tells listeners about them.
Session, ordering, offers, wallet and UI listeners subscribe here instead
of watching a storage change stream.
"""

from core.events.dispatcher import dispatch
from core.events.errors import (
    DuplicateSubscriberError,
    EventBusError,
    InvalidEventTypeFormat,
    SelfSubscriptionError,
)
from core.events.registry import SubscriberRegistry, Subscription

__all__ = [
    "dispatch",
    "SubscriberRegistry",
    "Subscription",
    "EventBusError",
    "InvalidEventTypeFormat",
    "DuplicateSubscriberError",
    "SelfSubscriptionError",
]
