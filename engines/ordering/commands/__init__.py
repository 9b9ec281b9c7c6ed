"""
DineIn Ordering Engine - Request Commands
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from core.commands.base import Command, build_command
from engines.ordering.records import (
    ITEM_CANCELLED,
    ITEM_PREPARING,
    ITEM_SERVED,
    OrderLine,
)

ORDERING_ORDER_PLACE_REQUEST = "ordering.order.place.request"
ORDERING_ORDER_APPEND_REQUEST = "ordering.order.append.request"
ORDERING_ITEM_STATUS_REQUEST = "ordering.item.status.request"
ORDERING_ORDERS_SETTLE_REQUEST = "ordering.orders.settle.request"

ORDERING_COMMAND_TYPES = frozenset({
    ORDERING_ORDER_PLACE_REQUEST,
    ORDERING_ORDER_APPEND_REQUEST,
    ORDERING_ITEM_STATUS_REQUEST,
    ORDERING_ORDERS_SETTLE_REQUEST,
})

# `paid` is only reachable through settlement.
KITCHEN_STATUSES = frozenset({ITEM_PREPARING, ITEM_SERVED, ITEM_CANCELLED})


def _cmd(command_type, payload, **kw) -> Command:
    return build_command(command_type, payload, source_engine="ordering", **kw)


def _check_lines(lines: Tuple[OrderLine, ...]) -> None:
    if not lines:
        raise ValueError("an order needs at least one line.")
    for line in lines:
        if not isinstance(line, OrderLine):
            raise ValueError("lines must be OrderLine instances.")
    line_ids = [line.line_id for line in lines]
    if len(set(line_ids)) != len(line_ids):
        raise ValueError("line_id values must be unique within a request.")


@dataclass(frozen=True)
class OrderPlaceRequest:
    order_id: str
    reservation_id: str
    table_id: str
    lines: Tuple[OrderLine, ...]

    def __post_init__(self):
        if not self.order_id:
            raise ValueError("order_id must be non-empty.")
        if not self.reservation_id:
            raise ValueError("reservation_id must be non-empty.")
        if not self.table_id:
            raise ValueError("table_id must be non-empty.")
        object.__setattr__(self, "lines", tuple(self.lines))
        _check_lines(self.lines)

    def to_command(self, **kw) -> Command:
        return _cmd(ORDERING_ORDER_PLACE_REQUEST,
                    {"order_id": self.order_id,
                     "reservation_id": self.reservation_id,
                     "table_id": self.table_id,
                     "lines": [line.to_dict() for line in self.lines]},
                    **kw)


@dataclass(frozen=True)
class OrderAppendRequest:
    """Add lines to a ticket that is still ordered/preparing."""
    order_id: str
    reservation_id: str
    lines: Tuple[OrderLine, ...]

    def __post_init__(self):
        if not self.order_id:
            raise ValueError("order_id must be non-empty.")
        if not self.reservation_id:
            raise ValueError("reservation_id must be non-empty.")
        object.__setattr__(self, "lines", tuple(self.lines))
        _check_lines(self.lines)

    def to_command(self, **kw) -> Command:
        return _cmd(ORDERING_ORDER_APPEND_REQUEST,
                    {"order_id": self.order_id,
                     "reservation_id": self.reservation_id,
                     "lines": [line.to_dict() for line in self.lines]},
                    **kw)


@dataclass(frozen=True)
class ItemStatusRequest:
    order_id: str
    line_id: str
    status: str

    def __post_init__(self):
        if not self.order_id:
            raise ValueError("order_id must be non-empty.")
        if not self.line_id:
            raise ValueError("line_id must be non-empty.")
        if self.status not in KITCHEN_STATUSES:
            raise ValueError(
                f"status '{self.status}' not valid. "
                f"Must be one of: {sorted(KITCHEN_STATUSES)}"
            )

    def to_command(self, **kw) -> Command:
        return _cmd(ORDERING_ITEM_STATUS_REQUEST,
                    {"order_id": self.order_id, "line_id": self.line_id,
                     "status": self.status},
                    **kw)


@dataclass(frozen=True)
class OrdersSettleRequest:
    """Issued by the settlement subscription, never by guests or staff."""
    reservation_id: str
    settlement_id: str
    bill_snapshot: dict
    transaction_id: Optional[str] = None
    applied_offer_id: Optional[str] = None

    def __post_init__(self):
        if not self.reservation_id:
            raise ValueError("reservation_id must be non-empty.")
        if not self.settlement_id:
            raise ValueError("settlement_id must be non-empty.")
        if not isinstance(self.bill_snapshot, dict):
            raise ValueError("bill_snapshot must be a dict.")

    def to_command(self, **kw) -> Command:
        return _cmd(ORDERING_ORDERS_SETTLE_REQUEST,
                    {"reservation_id": self.reservation_id,
                     "settlement_id": self.settlement_id,
                     "bill_snapshot": dict(self.bill_snapshot),
                     "transaction_id": self.transaction_id,
                     "applied_offer_id": self.applied_offer_id},
                    **kw)
