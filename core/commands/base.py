"""
DineIn Command Layer - Command
================================
A Command is a guest's, staff member's, gateway's or listener's intent,
frozen before any engine looks at it. Engines build them through their
request dataclasses; nothing else constructs one by hand.

command_type is engine.entity.action.request, and its first segment
names the engine that owns it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

VALID_ACTOR_TYPES = frozenset({"GUEST", "STAFF", "SYSTEM", "GATEWAY"})

REQUEST_SUFFIX = ".request"


def _require_uuid(value, name: str) -> None:
    if not isinstance(value, uuid.UUID):
        raise ValueError(f"{name} must be UUID, got {type(value).__name__}.")


@dataclass(frozen=True)
class Command:
    command_id: uuid.UUID
    command_type: str
    restaurant_id: uuid.UUID
    actor_type: str
    actor_id: str
    payload: dict
    issued_at: datetime
    correlation_id: uuid.UUID
    source_engine: str

    def __post_init__(self):
        _require_uuid(self.command_id, "command_id")
        _require_uuid(self.restaurant_id, "restaurant_id")
        _require_uuid(self.correlation_id, "correlation_id")

        kind = self.command_type
        if not isinstance(kind, str) or not kind.endswith(REQUEST_SUFFIX):
            raise ValueError(f"command_type '{kind}' must end with '{REQUEST_SUFFIX}'.")
        segments = kind.split(".")
        if len(segments) < 4:
            raise ValueError(
                f"command_type '{kind}' needs 4 segments: engine.entity.action.request."
            )
        if segments[0] != self.source_engine:
            raise ValueError(
                f"command_type '{kind}' does not match source_engine '{self.source_engine}'."
            )

        if self.actor_type not in VALID_ACTOR_TYPES:
            raise ValueError(
                f"actor_type '{self.actor_type}' not valid. "
                f"Must be one of: {sorted(VALID_ACTOR_TYPES)}"
            )
        if not isinstance(self.actor_id, str) or not self.actor_id:
            raise ValueError("actor_id must be a non-empty string.")
        if not isinstance(self.payload, dict):
            raise TypeError(f"payload must be a dict, got {type(self.payload).__name__}.")


def build_command(command_type, payload, *, source_engine, restaurant_id,
                  actor_type, actor_id, command_id, correlation_id,
                  issued_at) -> Command:
    return Command(
        command_id=command_id, command_type=command_type,
        restaurant_id=restaurant_id,
        actor_type=actor_type, actor_id=actor_id,
        payload=payload, issued_at=issued_at,
        correlation_id=correlation_id, source_engine=source_engine,
    )


def derive_command_id(source_event_id, engine: str) -> uuid.UUID:
    """
    Stable id for the command an engine issues in reaction to an event.

    Re-dispatching the event yields the same id, so the engine's own
    event collides at the store instead of being written twice.
    """
    return uuid.uuid5(uuid.UUID(str(source_event_id)), engine)
