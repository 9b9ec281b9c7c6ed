"""
DineIn Event Store - Validators Public API
============================================
"""

from core.event_store.validators.context import (
    RestaurantContext,
    RestaurantContextProtocol,
)
from core.event_store.validators.errors import (
    PersistResult,
    Rejection,
    RejectionCode,
    ValidationResult,
    ViolatedRule,
    duplicate_rejection,
)
from core.event_store.validators.event_validator import validate_event
from core.event_store.validators.registry import EventTypeRegistry

__all__ = [
    "validate_event",
    "ValidationResult",
    "PersistResult",
    "Rejection",
    "RejectionCode",
    "ViolatedRule",
    "duplicate_rejection",
    "RestaurantContext",
    "RestaurantContextProtocol",
    "EventTypeRegistry",
]
