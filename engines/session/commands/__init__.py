"""
DineIn Session Engine - Request Commands
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from core.commands.base import Command, build_command
from core.primitives.money import ZERO, to_money
from engines.session.records import RESERVATION_TYPES, TYPE_WALK_IN

SESSION_TABLE_REGISTER_REQUEST = "session.table.register.request"
SESSION_TABLE_CLAIM_REQUEST = "session.table.claim.request"
SESSION_RESERVATION_ACCEPT_REQUEST = "session.reservation.accept.request"
SESSION_RESERVATION_DECLINE_REQUEST = "session.reservation.decline.request"
SESSION_RESERVATION_CANCEL_REQUEST = "session.reservation.cancel.request"
SESSION_RESERVATION_COMPLETE_REQUEST = "session.reservation.complete.request"
SESSION_COUPON_APPLY_REQUEST = "session.coupon.apply.request"
SESSION_COUPON_REMOVE_REQUEST = "session.coupon.remove.request"
SESSION_PAYMENT_COUNTER_REQUEST = "session.payment.counter.request"

SESSION_COMMAND_TYPES = frozenset({
    SESSION_TABLE_REGISTER_REQUEST,
    SESSION_TABLE_CLAIM_REQUEST,
    SESSION_RESERVATION_ACCEPT_REQUEST,
    SESSION_RESERVATION_DECLINE_REQUEST,
    SESSION_RESERVATION_CANCEL_REQUEST,
    SESSION_RESERVATION_COMPLETE_REQUEST,
    SESSION_COUPON_APPLY_REQUEST,
    SESSION_COUPON_REMOVE_REQUEST,
    SESSION_PAYMENT_COUNTER_REQUEST,
})

PAYMENT_METHODS = frozenset({"counter", "online"})


def _cmd(command_type, payload, **kw) -> Command:
    return build_command(command_type, payload, source_engine="session", **kw)


def _require(value: str, name: str) -> None:
    if not value or not isinstance(value, str):
        raise ValueError(f"{name} must be a non-empty string.")


@dataclass(frozen=True)
class TableRegisterRequest:
    table_id: str
    name: str
    seats: int
    area: str = ""

    def __post_init__(self):
        _require(self.table_id, "table_id")
        _require(self.name, "name")
        if not isinstance(self.seats, int) or isinstance(self.seats, bool) or self.seats < 1:
            raise ValueError("seats must be a positive integer.")

    def to_command(self, **kw) -> Command:
        return _cmd(SESSION_TABLE_REGISTER_REQUEST,
                    {"table_id": self.table_id, "name": self.name,
                     "seats": self.seats, "area": self.area},
                    **kw)


@dataclass(frozen=True)
class TableClaimRequest:
    """A guest sits down (walk-in) or arrives for a booking."""
    reservation_id: str
    table_id: str
    user_id: str
    user_name: str = ""
    reservation_type: str = TYPE_WALK_IN
    amount_paid: Decimal = ZERO

    def __post_init__(self):
        _require(self.reservation_id, "reservation_id")
        _require(self.table_id, "table_id")
        _require(self.user_id, "user_id")
        if self.reservation_type not in RESERVATION_TYPES:
            raise ValueError(
                f"reservation_type '{self.reservation_type}' not valid. "
                f"Must be one of: {sorted(RESERVATION_TYPES)}"
            )
        amount = to_money(self.amount_paid)
        if amount < ZERO:
            raise ValueError("amount_paid must be non-negative.")
        object.__setattr__(self, "amount_paid", amount)

    def to_command(self, **kw) -> Command:
        return _cmd(SESSION_TABLE_CLAIM_REQUEST,
                    {"reservation_id": self.reservation_id,
                     "table_id": self.table_id,
                     "user_id": self.user_id,
                     "user_name": self.user_name,
                     "reservation_type": self.reservation_type,
                     "amount_paid": self.amount_paid},
                    **kw)


@dataclass(frozen=True)
class ReservationAcceptRequest:
    reservation_id: str

    def __post_init__(self):
        _require(self.reservation_id, "reservation_id")

    def to_command(self, **kw) -> Command:
        return _cmd(SESSION_RESERVATION_ACCEPT_REQUEST,
                    {"reservation_id": self.reservation_id}, **kw)


@dataclass(frozen=True)
class ReservationDeclineRequest:
    reservation_id: str
    reason: str = ""

    def __post_init__(self):
        _require(self.reservation_id, "reservation_id")

    def to_command(self, **kw) -> Command:
        return _cmd(SESSION_RESERVATION_DECLINE_REQUEST,
                    {"reservation_id": self.reservation_id,
                     "reason": self.reason},
                    **kw)


@dataclass(frozen=True)
class ReservationCancelRequest:
    reservation_id: str
    reason: str = ""

    def __post_init__(self):
        _require(self.reservation_id, "reservation_id")

    def to_command(self, **kw) -> Command:
        return _cmd(SESSION_RESERVATION_CANCEL_REQUEST,
                    {"reservation_id": self.reservation_id,
                     "reason": self.reason},
                    **kw)


@dataclass(frozen=True)
class ReservationCompleteRequest:
    """Issued by the settlement subscription once a bill has committed."""
    reservation_id: str
    settlement_id: str
    payment_method: str
    total_bill_amount: Decimal
    transaction_id: Optional[str] = None

    def __post_init__(self):
        _require(self.reservation_id, "reservation_id")
        _require(self.settlement_id, "settlement_id")
        if self.payment_method not in PAYMENT_METHODS:
            raise ValueError(
                f"payment_method '{self.payment_method}' not valid. "
                f"Must be one of: {sorted(PAYMENT_METHODS)}"
            )
        object.__setattr__(self, "total_bill_amount", to_money(self.total_bill_amount))

    def to_command(self, **kw) -> Command:
        return _cmd(SESSION_RESERVATION_COMPLETE_REQUEST,
                    {"reservation_id": self.reservation_id,
                     "settlement_id": self.settlement_id,
                     "payment_method": self.payment_method,
                     "total_bill_amount": self.total_bill_amount,
                     "transaction_id": self.transaction_id},
                    **kw)


@dataclass(frozen=True)
class CouponApplyRequest:
    """Attach an already-validated coupon to the reservation."""
    reservation_id: str
    offer_id: str
    code: str

    def __post_init__(self):
        _require(self.reservation_id, "reservation_id")
        _require(self.offer_id, "offer_id")
        _require(self.code, "code")
        object.__setattr__(self, "code", self.code.strip().upper())

    def to_command(self, **kw) -> Command:
        return _cmd(SESSION_COUPON_APPLY_REQUEST,
                    {"reservation_id": self.reservation_id,
                     "offer_id": self.offer_id, "code": self.code},
                    **kw)


@dataclass(frozen=True)
class CouponRemoveRequest:
    reservation_id: str

    def __post_init__(self):
        _require(self.reservation_id, "reservation_id")

    def to_command(self, **kw) -> Command:
        return _cmd(SESSION_COUPON_REMOVE_REQUEST,
                    {"reservation_id": self.reservation_id}, **kw)


@dataclass(frozen=True)
class CounterPaymentRequest:
    """Guest asks to pay at the counter; staff confirms later."""
    reservation_id: str
    total_bill_amount: Decimal

    def __post_init__(self):
        _require(self.reservation_id, "reservation_id")
        amount = to_money(self.total_bill_amount)
        if amount < ZERO:
            raise ValueError("total_bill_amount must be non-negative.")
        object.__setattr__(self, "total_bill_amount", amount)

    def to_command(self, **kw) -> Command:
        return _cmd(SESSION_PAYMENT_COUNTER_REQUEST,
                    {"reservation_id": self.reservation_id,
                     "total_bill_amount": self.total_bill_amount},
                    **kw)
