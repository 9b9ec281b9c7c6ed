"""
DineIn Core Config - Restaurant-Configurable Rules
=====================================================
Service charge, sales tax and reservation fee rules come from
restaurant-configured data, never from source code.

Rates are percentages expressed as Decimal (Decimal("8") means 8 %).
When a restaurant has no billing config, DEFAULT_BILLING_CONFIG applies
(0 % service charge, 0 % tax, both exclusive) instead of failing the bill.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Protocol

from core.primitives.money import HUNDRED, ZERO, to_money


def _check_percent(name: str, value: Decimal, upper: Decimal = HUNDRED) -> None:
    if value < ZERO or value > upper:
        raise ValueError(f"{name} must be between 0 and {upper}, got {value}.")


# ══════════════════════════════════════════════════════════════
# BILLING CONFIG
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BillingConfig:
    """
    Service charge and sales tax settings for one restaurant.

    Each rate has its own inclusive flag. An inclusive rate is already
    part of menu prices and is extracted, an exclusive one is added.
    """

    service_charge_rate: Decimal = ZERO
    sales_tax_rate: Decimal = ZERO
    service_charge_inclusive: bool = False
    sales_tax_inclusive: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "service_charge_rate", to_money(self.service_charge_rate))
        object.__setattr__(self, "sales_tax_rate", to_money(self.sales_tax_rate))
        _check_percent("service_charge_rate", self.service_charge_rate)
        _check_percent("sales_tax_rate", self.sales_tax_rate)

    def to_dict(self) -> dict:
        return {
            "service_charge_rate": str(self.service_charge_rate),
            "sales_tax_rate": str(self.sales_tax_rate),
            "service_charge_inclusive": self.service_charge_inclusive,
            "sales_tax_inclusive": self.sales_tax_inclusive,
        }


DEFAULT_BILLING_CONFIG = BillingConfig()


# ══════════════════════════════════════════════════════════════
# RESERVATION CONFIG
# ══════════════════════════════════════════════════════════════

MAX_REFUND_PERCENTAGE = Decimal("70")


@dataclass(frozen=True)
class ReservationConfig:
    """
    Booking fee rules.

    refund_percentage is capped at 70 when the split is computed, the
    platform always keeps its 30 % cancellation share.
    """

    reservation_fee: Decimal = ZERO
    is_refundable: bool = False
    refund_percentage: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "reservation_fee", to_money(self.reservation_fee))
        object.__setattr__(self, "refund_percentage", to_money(self.refund_percentage))
        if self.reservation_fee < ZERO:
            raise ValueError("reservation_fee must be non-negative.")
        _check_percent("refund_percentage", self.refund_percentage)

    @property
    def effective_refund_percentage(self) -> Decimal:
        if not self.is_refundable:
            return ZERO
        return min(self.refund_percentage, MAX_REFUND_PERCENTAGE)


DEFAULT_RESERVATION_CONFIG = ReservationConfig()


# ══════════════════════════════════════════════════════════════
# CONFIG STORE PROTOCOL
# ══════════════════════════════════════════════════════════════

class ConfigStore(Protocol):
    """
    Protocol for restaurant-configured rule storage.

    Implementations may back this with a database, file, or in-memory store.
    """

    def get_billing_config(self, restaurant_id) -> Optional[BillingConfig]:
        ...  # pragma: no cover

    def get_reservation_config(self, restaurant_id) -> Optional[ReservationConfig]:
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IN-MEMORY CONFIG STORE (for testing / bootstrap)
# ══════════════════════════════════════════════════════════════

class InMemoryConfigStore:
    """Simple in-memory config store for testing and bootstrap."""

    def __init__(self) -> None:
        self._billing: Dict[str, BillingConfig] = {}
        self._reservation: Dict[str, ReservationConfig] = {}

    def set_billing_config(self, restaurant_id, config: BillingConfig) -> None:
        self._billing[str(restaurant_id)] = config

    def set_reservation_config(self, restaurant_id, config: ReservationConfig) -> None:
        self._reservation[str(restaurant_id)] = config

    def get_billing_config(self, restaurant_id) -> Optional[BillingConfig]:
        return self._billing.get(str(restaurant_id))

    def get_reservation_config(self, restaurant_id) -> Optional[ReservationConfig]:
        return self._reservation.get(str(restaurant_id))


def resolve_billing_config(store: Optional[ConfigStore], restaurant_id) -> BillingConfig:
    if store is None:
        return DEFAULT_BILLING_CONFIG
    return store.get_billing_config(restaurant_id) or DEFAULT_BILLING_CONFIG


def resolve_reservation_config(store: Optional[ConfigStore], restaurant_id) -> ReservationConfig:
    if store is None:
        return DEFAULT_RESERVATION_CONFIG
    return store.get_reservation_config(restaurant_id) or DEFAULT_RESERVATION_CONFIG
