"""
DineIn Ordering Engine - Order Aggregation
============================================
Merges every ticket of one reservation into a single read-time view.

Orders are never merged in storage. Aggregation only:
- flattens tickets into time-ordered lines (ticket created_at, then
  position within the ticket)
- filters cancelled lines out of anything used for billing, while the
  summary view keeps them
- groups lines for the printed bill by (menu_item_id, sorted add-on ids)

Grouping accumulates the exact per-line totals, so the grouped total is
always equal to the ungrouped sum.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence, Tuple

from core.primitives.money import ZERO, money_sum
from engines.ordering.records import Order, OrderItem


@dataclass(frozen=True)
class AggregatedLine:
    item: OrderItem
    order_id: str
    order_created_at: datetime
    position: int

    @property
    def line_total(self) -> Decimal:
        return self.item.line_total


@dataclass(frozen=True)
class BillGroup:
    menu_item_id: str
    name: str
    add_on_ids: Tuple[str, ...]
    add_on_names: Tuple[str, ...]
    quantity: int
    total: Decimal


def flatten_orders(orders: Iterable[Order]) -> List[AggregatedLine]:
    lines = [
        AggregatedLine(
            item=item,
            order_id=order.order_id,
            order_created_at=order.created_at,
            position=position,
        )
        for order in orders
        for position, item in enumerate(order.items)
    ]
    lines.sort(key=lambda line: (line.order_created_at, line.order_id, line.position))
    return lines


def billable_lines(lines: Iterable[AggregatedLine]) -> List[AggregatedLine]:
    return [line for line in lines if line.item.is_billable]


def billable_items(orders: Iterable[Order]) -> List[OrderItem]:
    return [line.item for line in billable_lines(flatten_orders(orders))]


def ungrouped_total(lines: Iterable[AggregatedLine]) -> Decimal:
    return money_sum(line.line_total for line in billable_lines(lines))


def group_for_bill(lines: Sequence[AggregatedLine]) -> List[BillGroup]:
    """Group billable lines, first-seen order preserved."""
    groups: Dict[Tuple[str, Tuple[str, ...]], dict] = {}
    for line in billable_lines(lines):
        item = line.item
        key = (item.menu_item_id, item.add_on_ids)
        group = groups.get(key)
        if group is None:
            group = {
                "name": item.name,
                "add_on_names": tuple(
                    a.name for a in sorted(item.add_ons, key=lambda a: a.add_on_id)
                ),
                "quantity": 0,
                "total": ZERO,
            }
            groups[key] = group
        group["quantity"] += item.quantity
        group["total"] += item.line_total

    return [
        BillGroup(
            menu_item_id=menu_item_id,
            name=group["name"],
            add_on_ids=add_on_ids,
            add_on_names=group["add_on_names"],
            quantity=group["quantity"],
            total=group["total"],
        )
        for (menu_item_id, add_on_ids), group in groups.items()
    ]


def summarize(lines: Sequence[AggregatedLine]) -> dict:
    """History view: every line, cancelled ones included, with counts."""
    return {
        "lines": [
            {
                "order_id": line.order_id,
                "line_id": line.item.line_id,
                "menu_item_id": line.item.menu_item_id,
                "name": line.item.name,
                "quantity": line.item.quantity,
                "status": line.item.status,
                "line_total": line.line_total,
            }
            for line in lines
        ],
        "billable_count": len(billable_lines(lines)),
        "cancelled_count": sum(1 for line in lines if not line.item.is_billable),
        "billable_total": ungrouped_total(lines),
    }
