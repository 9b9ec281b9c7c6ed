"""
DineIn Core Config - Public API
=================================
Restaurant-configurable billing and reservation rules.
"""

from core.config.rules import (
    DEFAULT_BILLING_CONFIG,
    DEFAULT_RESERVATION_CONFIG,
    BillingConfig,
    ConfigStore,
    InMemoryConfigStore,
    ReservationConfig,
    resolve_billing_config,
    resolve_reservation_config,
)

__all__ = [
    "BillingConfig",
    "ReservationConfig",
    "DEFAULT_BILLING_CONFIG",
    "DEFAULT_RESERVATION_CONFIG",
    "ConfigStore",
    "InMemoryConfigStore",
    "resolve_billing_config",
    "resolve_reservation_config",
]
