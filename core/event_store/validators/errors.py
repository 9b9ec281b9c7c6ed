"""
DineIn Event Store - Rejections
=================================
What the store answers when it will not keep an event. Callers branch
on `code`; `violated_rule` groups codes for the log.
"""

from dataclasses import dataclass
from typing import Optional


class RejectionCode:
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    INVALID_ACTOR_TYPE = "INVALID_ACTOR_TYPE"
    EMPTY_ACTOR_ID = "EMPTY_ACTOR_ID"
    NO_ACTIVE_CONTEXT = "NO_ACTIVE_CONTEXT"
    RESTAURANT_OUT_OF_CONTEXT = "RESTAURANT_OUT_OF_CONTEXT"
    EVENT_TYPE_UNKNOWN = "EVENT_TYPE_UNKNOWN"
    SOURCE_ENGINE_MISMATCH = "SOURCE_ENGINE_MISMATCH"
    FLOAT_IN_PAYLOAD = "FLOAT_IN_PAYLOAD"
    # the only code engines treat as success: the fact is already stored
    DUPLICATE_EVENT_ID = "DUPLICATE_EVENT_ID"
    TRANSACTION_ABORTED = "TRANSACTION_ABORTED"


class ViolatedRule:
    SCHEMA_PRESENCE = "SCHEMA_PRESENCE"
    ACTOR_VALIDITY = "ACTOR_VALIDITY"
    RESTAURANT_CONTEXT = "RESTAURANT_CONTEXT"
    EVENT_TYPE_REGISTRY = "EVENT_TYPE_REGISTRY"
    MONEY_PRECISION = "MONEY_PRECISION"
    EVENT_IDEMPOTENCY = "EVENT_IDEMPOTENCY"
    ATOMIC_PERSISTENCE = "ATOMIC_PERSISTENCE"


@dataclass(frozen=True)
class Rejection:
    code: str
    message: str
    violated_rule: str


@dataclass(frozen=True)
class ValidationResult:
    """Answer from the validator and from both store backends."""

    accepted: bool
    rejection: Optional[Rejection] = None

    @property
    def is_duplicate(self) -> bool:
        return (
            self.rejection is not None
            and self.rejection.code == RejectionCode.DUPLICATE_EVENT_ID
        )


PersistResult = ValidationResult


def duplicate_rejection(event_id, *, detail: str = "") -> ValidationResult:
    return ValidationResult(
        accepted=False,
        rejection=Rejection(
            code=RejectionCode.DUPLICATE_EVENT_ID,
            message=f"Event {event_id} is already stored{detail}.",
            violated_rule=ViolatedRule.EVENT_IDEMPOTENCY,
        ),
    )
