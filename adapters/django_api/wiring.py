"""
DineIn Django Adapter Wiring
==============================
Builds the process-wide DineInApi from Django settings.

This module is adapter-only glue:
- engines receive plain values, never the settings object
- DINEIN["EVENT_STORE"] = "database" persists events through the ORM,
  anything else keeps them in memory
- projections are in memory; with the database store they are rebuilt
  from the stored events when the API is first built
"""

from __future__ import annotations

import logging
import threading

from django.conf import settings

from core.config.rules import InMemoryConfigStore
from core.event_store.memory import InMemoryEventStore
from core.primitives.money import to_money
from engines.ordering.catalog import InMemoryCatalog
from engines.settlement.api import DineInApi, build_dinein_api
from integration.payment_gateway import PaymentGatewayAdapter

logger = logging.getLogger("dinein.replay")

_API_LOCK = threading.Lock()
_API: DineInApi | None = None


def _dinein_settings() -> dict:
    return dict(getattr(settings, "DINEIN", {}))


def _persist_event(store_name: str):
    if store_name == "database":
        from core.event_store.persistence import persist_event
        return persist_event
    return InMemoryEventStore()


def _restore_from_database(api: DineInApi) -> None:
    from core.event_store.persistence import load_events_for_restaurant, restaurant_ids

    for restaurant_id in restaurant_ids():
        result = api.replay(load_events_for_restaurant(restaurant_id))
        logger.info(
            f"Restaurant {restaurant_id}: {result.events_applied} events replayed"
        )


def _build_api() -> DineInApi:
    options = _dinein_settings()
    store_name = options.get("EVENT_STORE", "memory")
    secret = options.get("PAYMENT_GATEWAY_SECRET") or ""
    gateway = PaymentGatewayAdapter(secret=secret) if secret else None
    api = build_dinein_api(
        config_store=InMemoryConfigStore(),
        catalog=InMemoryCatalog(),
        persist_event=_persist_event(store_name),
        online_fee_rate=to_money(str(options.get("ONLINE_FEE_RATE", "3"))),
        gateway=gateway,
    )
    if store_name == "database":
        _restore_from_database(api)
    return api


def get_api() -> DineInApi:
    global _API
    with _API_LOCK:
        if _API is None:
            _API = _build_api()
        return _API


def reset_api() -> None:
    """Drop the cached API so the next request rebuilds it (tests only)."""
    global _API
    with _API_LOCK:
        _API = None
