"""
DineIn Event Store - Event Factory
====================================
Wraps an engine payload into the canonical event envelope.

The event_id defaults to the command_id, so re-submitting the same
command collides at the store. Settlement passes a deterministic
event_id derived from its idempotency key instead.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

from core.commands.base import Command


def event_version(event_type: str) -> int:
    """settlement.bill.settled.v1 → 1; unversioned types are version 1."""
    last = event_type.rsplit(".", 1)[-1]
    if last.startswith("v") and last[1:].isdigit():
        return int(last[1:])
    return 1


class EventFactory:
    def __call__(
        self,
        *,
        command: Command,
        event_type: str,
        payload: dict,
        event_id: Optional[uuid.UUID] = None,
    ) -> dict[str, Any]:
        return {
            "event_id": event_id or command.command_id,
            "event_type": event_type,
            "event_version": event_version(event_type),
            "restaurant_id": command.restaurant_id,
            "source_engine": command.source_engine,
            "actor_type": command.actor_type,
            "actor_id": command.actor_id,
            "correlation_id": command.correlation_id,
            "causation_id": command.command_id,
            "payload": dict(payload),
            "created_at": command.issued_at,
        }
