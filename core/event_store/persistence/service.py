"""
DineIn Event Store - Database Write Path
==========================================
persist_event(event_data, context, registry) → ValidationResult

An event is validated, then inserted inside one transaction. A repeated
event_id is answered with DUPLICATE_EVENT_ID whether it is spotted
before the insert or by the primary key; that answer is how a repeated
settlement or listener command learns it already happened. Nothing is
dispatched from here.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import DatabaseError, IntegrityError, transaction

from core.event_store.persistence.repository import event_exists, save_event
from core.event_store.validators.context import RestaurantContextProtocol
from core.event_store.validators.errors import (
    Rejection,
    RejectionCode,
    ValidationResult,
    ViolatedRule,
    duplicate_rejection,
)
from core.event_store.validators.event_validator import validate_event
from core.event_store.validators.registry import EventTypeRegistry

logger = logging.getLogger("dinein.events")


def persist_event(
    event_data: dict[str, Any],
    context: RestaurantContextProtocol,
    registry: EventTypeRegistry,
    **kwargs: Any,
) -> ValidationResult:
    checked = validate_event(event_data=event_data, context=context, registry=registry)
    if not checked.accepted:
        logger.warning(
            f"Event {event_data.get('event_id')} refused: {checked.rejection.code}"
        )
        return checked

    event_id = event_data["event_id"]
    try:
        with transaction.atomic():
            if event_exists(event_id):
                return duplicate_rejection(event_id)
            save_event(event_data)
    except IntegrityError:
        return duplicate_rejection(event_id, detail=" (primary key)")
    except DatabaseError as exc:
        logger.error(
            f"Writing {event_data['event_type']} {event_id} aborted: {exc}", exc_info=True,
        )
        return ValidationResult(
            accepted=False,
            rejection=Rejection(
                code=RejectionCode.TRANSACTION_ABORTED,
                message=f"Transaction aborted: {exc}",
                violated_rule=ViolatedRule.ATOMIC_PERSISTENCE,
            ),
        )
    return ValidationResult(accepted=True)
