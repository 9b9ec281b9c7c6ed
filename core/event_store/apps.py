"""
DineIn Core - Event Store App Configuration
=============================================
The immutable record every projection is derived from.

This app validates event structure, enforces idempotency on event_id
and persists. It does not interpret events or dispatch them.
"""

from django.apps import AppConfig


class EventStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.event_store"
    label = "event_store"
    verbose_name = "DineIn Event Store"
