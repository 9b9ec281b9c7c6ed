"""
DineIn Event Bus - Errors
"""


class EventBusError(Exception):
    pass


class InvalidEventTypeFormat(EventBusError):
    """Listeners attach to versioned names: engine.entity.action.vN."""

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(
            f"'{event_type}' is not a versioned event name "
            f"(expected engine.entity.action.vN)."
        )


class DuplicateSubscriberError(EventBusError):
    def __init__(self, event_type: str, handler_name: str):
        self.event_type = event_type
        self.handler_name = handler_name
        super().__init__(f"'{handler_name}' already listens to '{event_type}'.")


class SelfSubscriptionError(EventBusError):
    """An engine reacts to its own facts inside its command handler, not here."""

    def __init__(self, engine: str, event_type: str):
        self.engine = engine
        self.event_type = event_type
        super().__init__(
            f"Engine '{engine}' may not listen to its own event '{event_type}'."
        )
