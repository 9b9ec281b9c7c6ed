"""
DineIn Ordering Engine - Catalog Snapshot Reader
==================================================
Menu items are owned by an external catalog service. Ordering reads an
item only when a line is added to a cart; after that the captured price
is the truth for that line, whatever the catalog says later.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Protocol, Tuple

from core.primitives.money import to_money


@dataclass(frozen=True)
class CatalogAddOn:
    add_on_id: str
    name: str
    price: Decimal

    def __post_init__(self):
        object.__setattr__(self, "price", to_money(self.price))


@dataclass(frozen=True)
class MenuItem:
    menu_item_id: str
    name: str
    price: Decimal
    add_ons: Tuple[CatalogAddOn, ...] = ()
    is_available: bool = True

    def __post_init__(self):
        object.__setattr__(self, "price", to_money(self.price))
        object.__setattr__(self, "add_ons", tuple(self.add_ons))

    def find_add_on(self, add_on_id: str) -> Optional[CatalogAddOn]:
        for add_on in self.add_ons:
            if add_on.add_on_id == add_on_id:
                return add_on
        return None


class CatalogReader(Protocol):
    def get_menu_item(self, restaurant_id, menu_item_id: str) -> Optional[MenuItem]:
        ...  # pragma: no cover


class InMemoryCatalog:
    """Catalog stand-in for tests and local wiring."""

    def __init__(self):
        self._items: Dict[Tuple[str, str], MenuItem] = {}
        self._lock = threading.Lock()

    def put(self, restaurant_id, item: MenuItem) -> None:
        with self._lock:
            self._items[(str(restaurant_id), item.menu_item_id)] = item

    def get_menu_item(self, restaurant_id, menu_item_id: str) -> Optional[MenuItem]:
        with self._lock:
            return self._items.get((str(restaurant_id), menu_item_id))
