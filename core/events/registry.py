"""
DineIn Event Bus - Subscriber Registry
========================================
Who hears about a committed fact, and in what order.

The EventTypeRegistry in event_store decides what may be persisted;
this one decides who is told. Engines register at wiring time
(session, ordering, offers, wallet); UI listeners come last and may
detach again.
"""

import logging
import re
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, List

from core.events.errors import (
    DuplicateSubscriberError,
    EventBusError,
    InvalidEventTypeFormat,
    SelfSubscriptionError,
)

logger = logging.getLogger("dinein.events")

_EVENT_TYPE = re.compile(r"^[a-z_]+(\.[a-z_]+){2,}\.v\d+$")


@dataclass(frozen=True)
class Subscription:
    event_type: str
    handler: Callable[[dict], None]
    engine: str

    @property
    def name(self) -> str:
        return getattr(self.handler, "__qualname__", repr(self.handler))


class SubscriberRegistry:
    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._lock = Lock()

    def register_subscriber(
        self,
        event_type: str,
        handler: Callable[[dict], None],
        subscriber_engine: str,
        allow_self_subscription: bool = False,
    ) -> Callable[[], None]:
        """
        Attach `handler` to `event_type` and return a callable that detaches it.

        Raises InvalidEventTypeFormat, DuplicateSubscriberError or
        SelfSubscriptionError.
        """
        if not isinstance(event_type, str) or not _EVENT_TYPE.match(event_type):
            raise InvalidEventTypeFormat(str(event_type or ""))
        if not callable(handler):
            raise EventBusError(f"Listener must be callable, got {type(handler).__name__}.")
        if event_type.split(".", 1)[0] == subscriber_engine and not allow_self_subscription:
            raise SelfSubscriptionError(subscriber_engine, event_type)

        subscription = Subscription(event_type, handler, subscriber_engine)
        with self._lock:
            listeners = self._subscriptions.setdefault(event_type, [])
            if any(s.handler == handler for s in listeners):
                raise DuplicateSubscriberError(event_type, subscription.name)
            listeners.append(subscription)

        logger.debug(f"{subscriber_engine} listens to {event_type} via {subscription.name}")
        return lambda: self._detach(subscription)

    def _detach(self, subscription: Subscription) -> None:
        with self._lock:
            listeners = self._subscriptions.get(subscription.event_type, [])
            if subscription in listeners:
                listeners.remove(subscription)
                logger.debug(
                    f"{subscription.engine} stopped listening to {subscription.event_type}"
                )

    def get_subscribers(self, event_type: str) -> List[Subscription]:
        """Registration order; empty when nobody listens."""
        with self._lock:
            return list(self._subscriptions.get(event_type, ()))
