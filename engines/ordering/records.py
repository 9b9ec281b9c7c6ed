"""
DineIn Ordering Engine - Records
==================================
Value types for order tickets.

Prices are captured from the catalog when a line is added and are never
re-read: unit_price and every add-on price are frozen on the line.
Only status fields change after placement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from core.primitives.money import money_sum, to_money

ITEM_ORDERED = "ordered"
ITEM_PREPARING = "preparing"
ITEM_SERVED = "served"
ITEM_PAID = "paid"
ITEM_CANCELLED = "cancelled"

ITEM_STATUSES = frozenset({
    ITEM_ORDERED, ITEM_PREPARING, ITEM_SERVED, ITEM_PAID, ITEM_CANCELLED,
})

# Order-level statuses use the same vocabulary.
ORDER_STATUSES = ITEM_STATUSES
OPEN_ORDER_STATUSES = frozenset({ITEM_ORDERED, ITEM_PREPARING})


@dataclass(frozen=True)
class AddOnSelection:
    add_on_id: str
    name: str
    price: Decimal

    def __post_init__(self):
        if not self.add_on_id:
            raise ValueError("add_on_id must be non-empty.")
        price = to_money(self.price)
        if price < 0:
            raise ValueError("add-on price must be non-negative.")
        object.__setattr__(self, "price", price)

    def to_dict(self) -> dict:
        return {"add_on_id": self.add_on_id, "name": self.name, "price": self.price}

    @classmethod
    def from_dict(cls, data: dict) -> "AddOnSelection":
        return cls(
            add_on_id=data["add_on_id"],
            name=data.get("name", ""),
            price=data["price"],
        )


@dataclass(frozen=True)
class OrderLine:
    """One line as submitted with a place/append request."""

    line_id: str
    menu_item_id: str
    name: str
    unit_price: Decimal
    quantity: int
    add_ons: Tuple[AddOnSelection, ...] = ()
    note: str = ""

    def __post_init__(self):
        if not self.line_id:
            raise ValueError("line_id must be non-empty.")
        if not self.menu_item_id:
            raise ValueError("menu_item_id must be non-empty.")
        price = to_money(self.unit_price)
        if price < 0:
            raise ValueError("unit_price must be non-negative.")
        object.__setattr__(self, "unit_price", price)
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool) or self.quantity <= 0:
            raise ValueError("quantity must be positive integer.")
        object.__setattr__(self, "add_ons", tuple(self.add_ons))

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "add_ons": [a.to_dict() for a in self.add_ons],
            "note": self.note,
        }


@dataclass
class OrderItem:
    """Projection record for one line. Only `status` is mutable."""

    line_id: str
    menu_item_id: str
    name: str
    unit_price: Decimal
    quantity: int
    add_ons: Tuple[AddOnSelection, ...] = ()
    note: str = ""
    status: str = ITEM_ORDERED

    @property
    def add_on_total(self) -> Decimal:
        return money_sum(a.price for a in self.add_ons)

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price + self.add_on_total) * self.quantity

    @property
    def is_billable(self) -> bool:
        return self.status != ITEM_CANCELLED

    @property
    def add_on_ids(self) -> Tuple[str, ...]:
        return tuple(sorted(a.add_on_id for a in self.add_ons))

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "add_ons": [a.to_dict() for a in self.add_ons],
            "note": self.note,
            "status": self.status,
            "line_total": self.line_total,
        }

    @classmethod
    def from_payload(cls, data: dict) -> "OrderItem":
        return cls(
            line_id=data["line_id"],
            menu_item_id=data["menu_item_id"],
            name=data.get("name", ""),
            unit_price=to_money(data["unit_price"]),
            quantity=int(data["quantity"]),
            add_ons=tuple(AddOnSelection.from_dict(a) for a in data.get("add_ons", [])),
            note=data.get("note", ""),
            status=data.get("status", ITEM_ORDERED),
        )


@dataclass
class Order:
    """One ticket placed during a session. Never merged at storage level."""

    order_id: str
    restaurant_id: str
    reservation_id: str
    table_id: str
    created_at: datetime
    items: List[OrderItem] = field(default_factory=list)
    status: str = ITEM_ORDERED
    total_amount: Decimal = Decimal("0")
    transaction_id: Optional[str] = None
    bill_snapshot: Optional[dict] = None
    applied_offer_id: Optional[str] = None
    applied_discount_amount: Optional[Decimal] = None

    def find_item(self, line_id: str) -> Optional[OrderItem]:
        for item in self.items:
            if item.line_id == line_id:
                return item
        return None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_ORDER_STATUSES

    def recompute_total(self) -> None:
        self.total_amount = money_sum(i.line_total for i in self.items if i.is_billable)

    def derive_status(self) -> str:
        """
        preparing once any item is preparing on an ordered ticket,
        served when every live item is served, cancelled when all are.
        """
        if self.status == ITEM_PAID:
            return ITEM_PAID
        live = [i for i in self.items if i.status != ITEM_CANCELLED]
        if not live:
            return ITEM_CANCELLED
        if all(i.status == ITEM_SERVED for i in live):
            return ITEM_SERVED
        if any(i.status == ITEM_PREPARING for i in live) and self.status == ITEM_ORDERED:
            return ITEM_PREPARING
        return self.status

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "reservation_id": self.reservation_id,
            "table_id": self.table_id,
            "created_at": self.created_at,
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
            "total_amount": self.total_amount,
            "transaction_id": self.transaction_id,
            "applied_offer_id": self.applied_offer_id,
        }
