"""
DineIn Settlement Engine - Request Commands
"""

from __future__ import annotations

from dataclasses import dataclass

from core.commands.base import Command, build_command

SETTLEMENT_BILL_SETTLE_REQUEST = "settlement.bill.settle.request"

SETTLEMENT_COMMAND_TYPES = frozenset({
    SETTLEMENT_BILL_SETTLE_REQUEST,
})


def _cmd(command_type, payload, **kw) -> Command:
    return build_command(command_type, payload, source_engine="settlement", **kw)


@dataclass(frozen=True)
class BillSettleRequest:
    """
    Commit one priced bill.

    Built by the settlement coordinator after pricing and re-checking the
    discount; `bill_snapshot` is the frozen BillSnapshot as a dict.
    """
    reservation_id: str
    settlement_id: str
    idempotency_key: str
    bill_snapshot: dict
    user_id: str = ""

    def __post_init__(self):
        if not self.reservation_id:
            raise ValueError("reservation_id must be non-empty.")
        if not self.settlement_id:
            raise ValueError("settlement_id must be non-empty.")
        if not self.idempotency_key:
            raise ValueError("idempotency_key must be non-empty.")
        if not isinstance(self.bill_snapshot, dict):
            raise ValueError("bill_snapshot must be a dict.")

    def to_command(self, **kw) -> Command:
        return _cmd(SETTLEMENT_BILL_SETTLE_REQUEST,
                    {"reservation_id": self.reservation_id,
                     "settlement_id": self.settlement_id,
                     "idempotency_key": self.idempotency_key,
                     "bill_snapshot": dict(self.bill_snapshot),
                     "user_id": self.user_id},
                    **kw)
