"""
DineIn Event Store - Restaurant Context
=========================================
The validator depends on this contract, not on a concrete class.

A context answers one question: may this process write events for
the given restaurant? A context built without restaurant ids serves
every restaurant (single-deployment mode).
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional, Protocol


class RestaurantContextProtocol(Protocol):
    def has_active_context(self) -> bool:
        ...

    def allows_restaurant(self, restaurant_id: uuid.UUID) -> bool:
        ...


class RestaurantContext:
    """Concrete context used by wiring and tests."""

    def __init__(self, restaurant_ids: Optional[Iterable[uuid.UUID]] = None):
        self._restaurant_ids = (
            frozenset(restaurant_ids) if restaurant_ids is not None else None
        )

    def has_active_context(self) -> bool:
        return True

    def allows_restaurant(self, restaurant_id: uuid.UUID) -> bool:
        if self._restaurant_ids is None:
            return True
        return restaurant_id in self._restaurant_ids
