"""
DineIn Session Engine - Records
=================================
Tables and the reservations that occupy them.

Table status:        available → reserved (claim) → occupied (accept)
                     → available (decline / cancel / complete)
Reservation status:  pending → active → completed
                     pending → declined
                     pending | active → cancelled
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from core.primitives.money import ZERO

TABLE_AVAILABLE = "available"
TABLE_RESERVED = "reserved"
TABLE_OCCUPIED = "occupied"

TABLE_STATUSES = frozenset({TABLE_AVAILABLE, TABLE_RESERVED, TABLE_OCCUPIED})

RESERVATION_PENDING = "pending"
RESERVATION_ACTIVE = "active"
RESERVATION_DECLINED = "declined"
RESERVATION_CANCELLED = "cancelled"
RESERVATION_COMPLETED = "completed"

RESERVATION_STATUSES = frozenset({
    RESERVATION_PENDING, RESERVATION_ACTIVE, RESERVATION_DECLINED,
    RESERVATION_CANCELLED, RESERVATION_COMPLETED,
})

# A table holding one of these cannot be claimed.
LIVE_RESERVATION_STATUSES = frozenset({RESERVATION_PENDING, RESERVATION_ACTIVE})
TERMINAL_RESERVATION_STATUSES = frozenset({
    RESERVATION_DECLINED, RESERVATION_CANCELLED, RESERVATION_COMPLETED,
})

TYPE_RESERVATION = "reservation"
TYPE_WALK_IN = "walk_in"
RESERVATION_TYPES = frozenset({TYPE_RESERVATION, TYPE_WALK_IN})

PAYMENT_UNPAID = "unpaid"
PAYMENT_PENDING_COUNTER = "pending_counter"
PAYMENT_PAID = "paid"
PAYMENT_REFUNDED = "refunded"


@dataclass
class Table:
    table_id: str
    restaurant_id: str
    name: str
    seats: int
    area: str = ""
    status: str = TABLE_AVAILABLE
    current_reservation_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "table_id": self.table_id,
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "seats": self.seats,
            "area": self.area,
            "status": self.status,
            "current_reservation_id": self.current_reservation_id,
        }


@dataclass
class Reservation:
    reservation_id: str
    restaurant_id: str
    table_id: str
    table_name: str
    user_id: str
    user_name: str
    created_at: datetime
    reservation_type: str = TYPE_WALK_IN
    status: str = RESERVATION_PENDING
    payment_status: str = PAYMENT_UNPAID
    amount_paid: Decimal = ZERO
    total_bill_amount: Decimal = ZERO
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    settlement_id: Optional[str] = None
    coupon_offer_id: Optional[str] = None
    coupon_code: Optional[str] = None
    revenue_split: dict = field(default_factory=dict)
    status_reason: str = ""
    updated_at: Optional[datetime] = None

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_RESERVATION_STATUSES

    @property
    def has_coupon(self) -> bool:
        return bool(self.coupon_offer_id)

    def to_dict(self) -> dict:
        return {
            "reservation_id": self.reservation_id,
            "restaurant_id": self.restaurant_id,
            "table_id": self.table_id,
            "table_name": self.table_name,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "reservation_type": self.reservation_type,
            "status": self.status,
            "payment_status": self.payment_status,
            "amount_paid": self.amount_paid,
            "total_bill_amount": self.total_bill_amount,
            "payment_method": self.payment_method,
            "transaction_id": self.transaction_id,
            "settlement_id": self.settlement_id,
            "coupon_code": self.coupon_code,
            "revenue_split": dict(self.revenue_split),
            "created_at": self.created_at,
        }
