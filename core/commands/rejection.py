"""
DineIn Command Layer - Rejection Model
========================================
Structured rejection reasons for denied commands.

Policies return a RejectionReason (or None). Services turn it into the
typed error from core.errors that matches the rejection's kind.

Every rejection must be:
- Deterministic (same input → same rejection)
- Machine-readable (code)
- Human-readable (message)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason for command rejection.

    Fields:
        code:        Machine-readable rejection code (e.g. 'TABLE_OCCUPIED').
        message:     Human-readable explanation.
        policy_name: Name of the policy that caused rejection.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


class ReasonCode:
    """
    Known rejection codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Session ───────────────────────────────────────────────
    TABLE_NOT_FOUND = "TABLE_NOT_FOUND"
    TABLE_ALREADY_REGISTERED = "TABLE_ALREADY_REGISTERED"
    TABLE_OCCUPIED = "TABLE_OCCUPIED"
    RESERVATION_NOT_FOUND = "RESERVATION_NOT_FOUND"
    RESERVATION_ALREADY_EXISTS = "RESERVATION_ALREADY_EXISTS"
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # ── Ordering ──────────────────────────────────────────────
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_ALREADY_EXISTS = "ORDER_ALREADY_EXISTS"
    ORDER_NOT_OPEN = "ORDER_NOT_OPEN"
    RESERVATION_NOT_ACTIVE = "RESERVATION_NOT_ACTIVE"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"

    # ── Offers ────────────────────────────────────────────────
    OFFER_NOT_FOUND = "OFFER_NOT_FOUND"
    OFFER_ALREADY_EXISTS = "OFFER_ALREADY_EXISTS"
    COUPON_CODE_TAKEN = "COUPON_CODE_TAKEN"
    COUPON_NOT_APPLICABLE = "COUPON_NOT_APPLICABLE"
    OFFER_EXHAUSTED = "OFFER_EXHAUSTED"

    # ── Wallet ────────────────────────────────────────────────
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
    TRANSACTION_ALREADY_EXISTS = "TRANSACTION_ALREADY_EXISTS"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"

    # ── Settlement ────────────────────────────────────────────
    NOT_SETTLEABLE = "NOT_SETTLEABLE"
    DUPLICATE_SETTLEMENT = "DUPLICATE_SETTLEMENT"
    PAYMENT_AMOUNT_MISMATCH = "PAYMENT_AMOUNT_MISMATCH"
    PAYMENT_CALLBACK_REJECTED = "PAYMENT_CALLBACK_REJECTED"

    # ── Infrastructure ────────────────────────────────────────
    PERSISTENCE_REJECTED = "PERSISTENCE_REJECTED"
    PROJECTION_INCONSISTENT = "PROJECTION_INCONSISTENT"
