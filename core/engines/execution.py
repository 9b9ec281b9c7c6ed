"""
DineIn Engines - Shared Execution Pipeline
============================================
Pieces every engine service uses between "policies passed" and
"projection applied":

    event_factory → persist_event → accepted?  → projection.apply → publish

Rules:
- A policy rejection raises the typed error mapped from its code
- A duplicate event_id means the command was already recorded: the
  result reports projection_applied=False and nothing is re-applied
- Any other persistence rejection raises EventPersistenceError
- Publishing happens only after the projection is applied
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Protocol, Type

from core.commands.base import Command
from core.commands.rejection import RejectionReason
from core.errors import DineInError, EventPersistenceError, ValidationFailure
from core.events.dispatcher import dispatch

logger = logging.getLogger("dinein.commands")


# ══════════════════════════════════════════════════════════════
# PROTOCOLS
# ══════════════════════════════════════════════════════════════

class EventFactoryProtocol(Protocol):
    def __call__(
        self, *, command: Command, event_type: str, payload: dict, **kwargs,
    ) -> dict:
        ...


class PersistEventProtocol(Protocol):
    def __call__(
        self, *, event_data: dict, context: Any, registry: Any, **kwargs,
    ) -> Any:
        ...


# ══════════════════════════════════════════════════════════════
# EXECUTION RESULT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ExecutionResult:
    event_type: str
    event_data: dict
    persist_result: Any
    projection_applied: bool


# ══════════════════════════════════════════════════════════════
# HELPERS
# ══════════════════════════════════════════════════════════════

def is_persist_accepted(persist_result: Any) -> bool:
    if hasattr(persist_result, "accepted"):
        return bool(getattr(persist_result, "accepted"))
    if isinstance(persist_result, dict):
        return bool(persist_result.get("accepted"))
    return bool(persist_result)


def is_duplicate(persist_result: Any) -> bool:
    rejection = getattr(persist_result, "rejection", None)
    if rejection is None and isinstance(persist_result, dict):
        rejection = persist_result.get("rejection")
    code = getattr(rejection, "code", None)
    if code is None and isinstance(rejection, dict):
        code = rejection.get("code")
    return code == "DUPLICATE_EVENT_ID"


def first_rejection(
    command: Command,
    checks: Iterable[Callable[[Command], Optional[RejectionReason]]],
) -> Optional[RejectionReason]:
    for check in checks:
        reason = check(command)
        if reason is not None:
            return reason
    return None


def raise_for_rejection(
    reason: RejectionReason,
    error_map: Dict[str, Type[DineInError]],
) -> None:
    error_cls = error_map.get(reason.code, ValidationFailure)
    raise error_cls.from_rejection(reason)


def persist_and_apply(
    *,
    command: Command,
    event_type: str,
    payload: dict,
    event_factory: EventFactoryProtocol,
    persist_event: PersistEventProtocol,
    context: Any,
    registry: Any,
    apply: Callable[[str, dict], None],
    event_id=None,
) -> ExecutionResult:
    factory_kwargs = {"command": command, "event_type": event_type, "payload": payload}
    if event_id is not None:
        factory_kwargs["event_id"] = event_id
    event_data = event_factory(**factory_kwargs)

    persist_result = persist_event(
        event_data=event_data,
        context=context,
        registry=registry,
    )

    if is_persist_accepted(persist_result):
        apply(event_type, payload)
        return ExecutionResult(
            event_type=event_type,
            event_data=event_data,
            persist_result=persist_result,
            projection_applied=True,
        )

    if is_duplicate(persist_result):
        logger.info(
            f"{event_type} for command {command.command_id} already recorded; "
            f"projection left unchanged."
        )
        return ExecutionResult(
            event_type=event_type,
            event_data=event_data,
            persist_result=persist_result,
            projection_applied=False,
        )

    rejection = getattr(persist_result, "rejection", None)
    message = getattr(rejection, "message", str(persist_result))
    logger.error(f"Event store rejected {event_type} ({event_data['event_id']}): {message}")
    raise EventPersistenceError(f"Event store rejected {event_type}: {message}")


def publish(subscriber_registry, event_data: dict) -> Optional[dict]:
    """Tell listeners about an applied event. Failures are logged by dispatch."""
    if subscriber_registry is None:
        return None
    return dispatch(event_data, subscriber_registry)
