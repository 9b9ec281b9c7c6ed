"""
DineIn Settlement Engine - Bill Snapshot and Live Bill
========================================================
LiveBill is the advisory preview: recomputed on every read, never stored.
BillSnapshot is what a settlement commits: rounded once, frozen, and the
only thing history and reporting read from afterwards.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from core.primitives.money import ZERO, quantize
from engines.billing.calculator import Breakdown
from engines.ordering.aggregation import AggregatedLine, BillGroup, billable_lines

SETTLEMENT_NAMESPACE = uuid.UUID("6f1d8a52-3c47-4e0b-9a61-0c2f5b7d9e13")

DISCOUNT_SOURCE_OFFER = "offer"
DISCOUNT_SOURCE_COUPON = "coupon"

METHOD_COUNTER = "counter"
METHOD_ONLINE = "online"
PAYMENT_METHODS = frozenset({METHOD_COUNTER, METHOD_ONLINE})

COUNTER_SETTLEMENT = "counter-settlement"


def idempotency_key(reservation_id: str, transaction_id: Optional[str] = None) -> str:
    """(reservation, gateway transaction) online, (reservation, counter) otherwise."""
    return f"{reservation_id}:{transaction_id or COUNTER_SETTLEMENT}"


def settlement_id_for(key: str) -> uuid.UUID:
    return uuid.uuid5(SETTLEMENT_NAMESPACE, key)


@dataclass(frozen=True)
class LiveBill:
    reservation_id: str
    lines: Tuple[AggregatedLine, ...]
    groups: Tuple[BillGroup, ...]
    breakdown: Breakdown
    discount_amount: Decimal = ZERO
    discount_source: Optional[str] = None
    offer_id: Optional[str] = None
    discount_description: str = ""
    coupon_error: str = ""

    @property
    def net_total(self) -> Decimal:
        return max(ZERO, self.breakdown.grand_total_before_discount - self.discount_amount)

    @property
    def order_ids(self) -> List[str]:
        seen: List[str] = []
        for line in self.lines:
            if line.order_id not in seen:
                seen.append(line.order_id)
        return seen

    @property
    def billed_lines(self) -> Tuple[Tuple[str, str], ...]:
        """(order_id, line_id) of every line this bill charges for."""
        return tuple((line.order_id, line.item.line_id) for line in billable_lines(self.lines))

    def to_dict(self) -> dict:
        data = self.breakdown.to_dict()
        data.update({
            "reservation_id": self.reservation_id,
            "items": [
                {
                    "menu_item_id": group.menu_item_id,
                    "name": group.name,
                    "add_ons": list(group.add_on_names),
                    "quantity": group.quantity,
                    "total": quantize(group.total),
                }
                for group in self.groups
            ],
            "discount_amount": quantize(self.discount_amount),
            "discount_source": self.discount_source,
            "discount_description": self.discount_description,
            "offer_id": self.offer_id,
            "net_total": quantize(self.net_total),
            "coupon_error": self.coupon_error,
        })
        return data


@dataclass(frozen=True)
class BillSnapshot:
    """Frozen, rounded result of one settlement."""

    settlement_id: str
    reservation_id: str
    menu_subtotal: Decimal
    service_charge_amount: Decimal
    tax_amount: Decimal
    grand_total_before_discount: Decimal
    discount_amount: Decimal
    net_total: Decimal
    payment_method: str
    settled_at: datetime
    discount_description: str = ""
    discount_source: Optional[str] = None
    offer_id: Optional[str] = None
    platform_fee: Decimal = ZERO
    amount_charged: Decimal = ZERO
    transaction_id: Optional[str] = None
    order_ids: Tuple[str, ...] = field(default_factory=tuple)
    billed_lines: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "settlement_id": self.settlement_id,
            "reservation_id": self.reservation_id,
            "menu_subtotal": self.menu_subtotal,
            "service_charge_amount": self.service_charge_amount,
            "tax_amount": self.tax_amount,
            "grand_total_before_discount": self.grand_total_before_discount,
            "discount_amount": self.discount_amount,
            "discount_description": self.discount_description,
            "discount_source": self.discount_source,
            "offer_id": self.offer_id,
            "net_total": self.net_total,
            "platform_fee": self.platform_fee,
            "amount_charged": self.amount_charged,
            "payment_method": self.payment_method,
            "transaction_id": self.transaction_id,
            "order_ids": list(self.order_ids),
            "billed_lines": [
                {"order_id": order_id, "line_id": line_id}
                for order_id, line_id in self.billed_lines
            ],
            "settled_at": self.settled_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BillSnapshot":
        return cls(
            settlement_id=data["settlement_id"],
            reservation_id=data["reservation_id"],
            menu_subtotal=data["menu_subtotal"],
            service_charge_amount=data["service_charge_amount"],
            tax_amount=data["tax_amount"],
            grand_total_before_discount=data["grand_total_before_discount"],
            discount_amount=data["discount_amount"],
            net_total=data["net_total"],
            payment_method=data["payment_method"],
            settled_at=data["settled_at"],
            discount_description=data.get("discount_description", ""),
            discount_source=data.get("discount_source"),
            offer_id=data.get("offer_id"),
            platform_fee=data.get("platform_fee", ZERO),
            amount_charged=data.get("amount_charged", ZERO),
            transaction_id=data.get("transaction_id"),
            order_ids=tuple(data.get("order_ids", ())),
            billed_lines=tuple(
                (line["order_id"], line["line_id"]) for line in data.get("billed_lines", ())
            ),
        )


def freeze_bill(
    bill: LiveBill,
    *,
    settlement_id: str,
    discount_amount: Decimal,
    payment_method: str,
    settled_at: datetime,
    online_fee_rate: Decimal = ZERO,
    transaction_id: Optional[str] = None,
) -> BillSnapshot:
    """
    Round the bill once and freeze it.

    Net total is derived from the rounded grand total and rounded
    discount, so the snapshot's figures always add up as displayed.
    """
    shown = bill.breakdown.quantized()
    discount = quantize(discount_amount)
    net = max(ZERO, shown.grand_total_before_discount - discount)
    fee = ZERO
    if payment_method == METHOD_ONLINE:
        fee = quantize(net * online_fee_rate / Decimal("100"))
    return BillSnapshot(
        settlement_id=settlement_id,
        reservation_id=bill.reservation_id,
        menu_subtotal=shown.menu_subtotal,
        service_charge_amount=shown.service_charge_amount,
        tax_amount=shown.tax_amount,
        grand_total_before_discount=shown.grand_total_before_discount,
        discount_amount=discount,
        net_total=net,
        payment_method=payment_method,
        settled_at=settled_at,
        discount_description=bill.discount_description if discount > ZERO else "",
        discount_source=bill.discount_source if discount > ZERO else None,
        offer_id=bill.offer_id if discount > ZERO else None,
        platform_fee=fee,
        amount_charged=net + fee,
        transaction_id=transaction_id,
        order_ids=tuple(bill.order_ids),
        billed_lines=bill.billed_lines,
    )
