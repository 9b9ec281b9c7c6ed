"""
DineIn Event Bus - Dispatcher
===============================
Hands a persisted event to its listeners, one after another.

A failing listener is logged and skipped; the rest still run and the
event stays persisted. The returned summary is how a caller that needs
every listener to succeed (settlement) finds out it did not.
"""

import logging

from core.events.registry import SubscriberRegistry

logger = logging.getLogger("dinein.events")


def dispatch(event_data: dict, registry: SubscriberRegistry) -> dict:
    """
    Returns:
        {"event_type", "event_id", "subscribers_notified",
         "subscribers_failed", "failures": [{"handler", "engine", "error", "error_type"}]}
    """
    event_type = event_data["event_type"]
    event_id = str(event_data.get("event_id", ""))
    summary = {
        "event_type": event_type,
        "event_id": event_id,
        "subscribers_notified": 0,
        "subscribers_failed": 0,
        "failures": [],
    }

    for subscription in registry.get_subscribers(event_type):
        try:
            subscription.handler(event_data)
        except Exception as exc:
            summary["subscribers_failed"] += 1
            summary["failures"].append({
                "handler": subscription.name,
                "engine": subscription.engine,
                "error": str(exc),
                "error_type": type(exc).__name__,
            })
            logger.error(
                f"{subscription.engine} listener {subscription.name} failed on "
                f"{event_type} ({event_id}): {exc}",
                exc_info=True,
            )
        else:
            summary["subscribers_notified"] += 1

    if summary["subscribers_notified"] == summary["subscribers_failed"] == 0:
        logger.debug(f"No listeners for {event_type} ({event_id})")
    return summary
