"""
DineIn Core - Error Taxonomy
==============================
Every failure of a mutating operation surfaces as exactly one of four kinds:

  validation:  client-correctable, never retried automatically
  conflict:    conditions changed underneath the caller, retry is safe
  external:    an outside system sent something unusable
  consistency: storage/programmer fault, logged and blocking

There is no catch-all. Callers branch on the class (or on `kind`).
"""

from __future__ import annotations

from typing import Optional

from core.commands.rejection import ReasonCode, RejectionReason

GENERIC_USER_MESSAGE = "Something went wrong, please try again."


class DineInError(Exception):
    """Base error for every typed DineIn failure."""

    kind = "validation"
    retryable = False
    default_code = "DINEIN_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None,
                 policy_name: str = ""):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.policy_name = policy_name

    @classmethod
    def from_rejection(cls, reason: RejectionReason, **kwargs) -> "DineInError":
        return cls(reason.message, code=reason.code,
                   policy_name=reason.policy_name, **kwargs)

    @property
    def user_message(self) -> str:
        if self.kind in ("validation", "conflict"):
            return self.message
        return GENERIC_USER_MESSAGE

    def to_dict(self) -> dict:
        return {"code": self.code, "kind": self.kind,
                "message": self.user_message, "retryable": self.retryable}


# ══════════════════════════════════════════════════════════════
# KIND BASES
# ══════════════════════════════════════════════════════════════

class ValidationFailure(DineInError):
    kind = "validation"


class ConflictError(DineInError):
    kind = "conflict"
    retryable = True


class ExternalError(DineInError):
    kind = "external"


class ConsistencyError(DineInError):
    kind = "consistency"


# ══════════════════════════════════════════════════════════════
# VALIDATION
# ══════════════════════════════════════════════════════════════

class TableNotFoundError(ValidationFailure):
    default_code = ReasonCode.TABLE_NOT_FOUND


class ReservationNotFoundError(ValidationFailure):
    default_code = ReasonCode.RESERVATION_NOT_FOUND


class InvalidTransitionError(ValidationFailure):
    default_code = ReasonCode.INVALID_TRANSITION


class OrderNotFoundError(ValidationFailure):
    default_code = ReasonCode.ORDER_NOT_FOUND


class OfferNotFoundError(ValidationFailure):
    default_code = ReasonCode.OFFER_NOT_FOUND


class CouponNotApplicableError(ValidationFailure):
    default_code = ReasonCode.COUPON_NOT_APPLICABLE


class InsufficientBalanceError(ValidationFailure):
    default_code = ReasonCode.INSUFFICIENT_BALANCE


class SettlementError(ValidationFailure):
    """Reservation is not in a state that can be settled."""

    default_code = ReasonCode.NOT_SETTLEABLE


# ══════════════════════════════════════════════════════════════
# CONFLICT
# ══════════════════════════════════════════════════════════════

class TableOccupiedError(ConflictError):
    """
    The table already holds a pending/active reservation.

    Carries the occupant so the caller can render "waiting for staff"
    for the occupant themself and "occupied by another guest" otherwise.
    """

    default_code = ReasonCode.TABLE_OCCUPIED

    def __init__(self, message: str, *, code: Optional[str] = None,
                 policy_name: str = "", occupant_reservation_id: str = "",
                 occupant_user_id: str = "", occupant_user_name: str = ""):
        super().__init__(message, code=code, policy_name=policy_name)
        self.occupant_reservation_id = occupant_reservation_id
        self.occupant_user_id = occupant_user_id
        self.occupant_user_name = occupant_user_name

    def is_held_by(self, user_id: str) -> bool:
        return self.occupant_user_id == user_id


class OfferExhaustedError(ConflictError):
    default_code = ReasonCode.OFFER_EXHAUSTED


class PaymentAmountMismatchError(ConflictError):
    default_code = ReasonCode.PAYMENT_AMOUNT_MISMATCH
    retryable = False


# ══════════════════════════════════════════════════════════════
# EXTERNAL
# ══════════════════════════════════════════════════════════════

class PaymentCallbackRejectedError(ExternalError):
    default_code = ReasonCode.PAYMENT_CALLBACK_REJECTED


# ══════════════════════════════════════════════════════════════
# CONSISTENCY
# ══════════════════════════════════════════════════════════════

class DuplicateSettlementError(ConsistencyError):
    default_code = ReasonCode.DUPLICATE_SETTLEMENT


class EventPersistenceError(ConsistencyError):
    default_code = ReasonCode.PERSISTENCE_REJECTED


class ProjectionConsistencyError(ConsistencyError):
    default_code = ReasonCode.PROJECTION_INCONSISTENT
