"""
DineIn Event Store - Event Validator
======================================
Gatekeeper for every envelope before it is written: required fields,
actor, restaurant context, registered type owned by the emitting engine,
and money carried as Decimal rather than binary float.

Payload meaning is the engines' business. Idempotency is the store's.
"""

from typing import Any, Callable, Iterable, Optional

from core.commands.base import VALID_ACTOR_TYPES
from core.event_store.validators.context import RestaurantContextProtocol
from core.event_store.validators.errors import (
    Rejection,
    RejectionCode,
    ValidationResult,
    ViolatedRule,
)
from core.event_store.validators.registry import EventTypeRegistry

MANDATORY_FIELDS = (
    "event_id",
    "event_type",
    "event_version",
    "restaurant_id",
    "source_engine",
    "actor_type",
    "actor_id",
    "correlation_id",
    "payload",
    "created_at",
)


def _reject(code: str, rule: str, message: str) -> Rejection:
    return Rejection(code=code, message=message, violated_rule=rule)


def _check_fields(event: dict) -> Optional[Rejection]:
    missing = [name for name in MANDATORY_FIELDS if event.get(name) is None]
    if missing:
        return _reject(RejectionCode.MISSING_FIELD, ViolatedRule.SCHEMA_PRESENCE,
                       f"Event is missing required field(s): {', '.join(missing)}.")
    if not isinstance(event["payload"], dict):
        return _reject(RejectionCode.INVALID_PAYLOAD, ViolatedRule.SCHEMA_PRESENCE,
                       "payload must be a dict.")
    return None


def _check_actor(event: dict) -> Optional[Rejection]:
    if event["actor_type"] not in VALID_ACTOR_TYPES:
        return _reject(RejectionCode.INVALID_ACTOR_TYPE, ViolatedRule.ACTOR_VALIDITY,
                       f"actor_type '{event['actor_type']}' is not one of "
                       f"{', '.join(sorted(VALID_ACTOR_TYPES))}.")
    actor_id = event["actor_id"]
    if not isinstance(actor_id, str) or not actor_id.strip():
        return _reject(RejectionCode.EMPTY_ACTOR_ID, ViolatedRule.ACTOR_VALIDITY,
                       "actor_id must be a non-empty string.")
    return None


def _check_restaurant(event: dict, context: RestaurantContextProtocol) -> Optional[Rejection]:
    if context is None or not context.has_active_context():
        return _reject(RejectionCode.NO_ACTIVE_CONTEXT, ViolatedRule.RESTAURANT_CONTEXT,
                       "No active restaurant context.")
    if not context.allows_restaurant(event["restaurant_id"]):
        return _reject(RejectionCode.RESTAURANT_OUT_OF_CONTEXT, ViolatedRule.RESTAURANT_CONTEXT,
                       f"Restaurant {event['restaurant_id']} is outside the active context.")
    return None


def _check_type(event: dict, registry: EventTypeRegistry) -> Optional[Rejection]:
    event_type = event["event_type"]
    if not registry.is_registered(event_type):
        return _reject(RejectionCode.EVENT_TYPE_UNKNOWN, ViolatedRule.EVENT_TYPE_REGISTRY,
                       f"Event type '{event_type}' is not registered.")
    owner = event_type.split(".", 1)[0]
    if owner != event["source_engine"]:
        return _reject(RejectionCode.SOURCE_ENGINE_MISMATCH, ViolatedRule.EVENT_TYPE_REGISTRY,
                       f"'{event['source_engine']}' cannot emit {event_type}; "
                       f"it belongs to '{owner}'.")
    return None


def _floats(value: Any, path: str) -> Iterable[str]:
    if isinstance(value, float):
        yield path
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from _floats(item, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from _floats(item, f"{path}[{index}]")


def _check_money(event: dict) -> Optional[Rejection]:
    found = list(_floats(event["payload"], "payload"))
    if found:
        return _reject(RejectionCode.FLOAT_IN_PAYLOAD, ViolatedRule.MONEY_PRECISION,
                       f"Amounts must be Decimal; float at {', '.join(found)}.")
    return None


def validate_event(
    event_data: dict[str, Any],
    context: RestaurantContextProtocol,
    registry: EventTypeRegistry,
) -> ValidationResult:
    """First failing check wins; later checks may rely on earlier ones."""
    checks: tuple[Callable[[], Optional[Rejection]], ...] = (
        lambda: _check_fields(event_data),
        lambda: _check_actor(event_data),
        lambda: _check_restaurant(event_data, context),
        lambda: _check_type(event_data, registry),
        lambda: _check_money(event_data),
    )
    for check in checks:
        rejection = check()
        if rejection is not None:
            return ValidationResult(accepted=False, rejection=rejection)
    return ValidationResult(accepted=True)
