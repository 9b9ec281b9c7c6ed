"""
DineIn Wallet Engine - Commands
=================================
Append-only restaurant ledger. A posted amount is final; corrections are
new transactions, never edits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from core.commands.base import Command, build_command
from core.primitives.money import ZERO, to_money
from engines.wallet.records import (
    FINAL_STATUSES,
    OUTFLOW_TYPES,
    STATUS_COMPLETED,
    STATUS_PENDING,
    TRANSACTION_TYPES,
)

WALLET_TRANSACTION_POST_REQUEST = "wallet.transaction.post.request"
WALLET_TRANSACTION_STATUS_REQUEST = "wallet.transaction.status.request"
WALLET_WITHDRAWAL_REQUEST = "wallet.withdrawal.request.request"

WALLET_COMMAND_TYPES = frozenset({
    WALLET_TRANSACTION_POST_REQUEST,
    WALLET_TRANSACTION_STATUS_REQUEST,
    WALLET_WITHDRAWAL_REQUEST,
})


def _cmd(command_type, payload, **kw) -> Command:
    return build_command(command_type, payload, source_engine="wallet", **kw)


@dataclass(frozen=True)
class TransactionPostRequest:
    """
    Post one ledger entry.

    `reference` identifies the business fact (e.g. settlement:<id>); the
    ledger holds at most one entry per reference.
    """
    transaction_id: str
    tx_type: str
    amount: Decimal
    reference: str
    status: str = STATUS_COMPLETED
    description: str = ""
    reservation_id: Optional[str] = None
    order_id: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if not self.transaction_id:
            raise ValueError("transaction_id must be non-empty.")
        if not self.reference:
            raise ValueError("reference must be non-empty.")
        if self.tx_type not in TRANSACTION_TYPES:
            raise ValueError(
                f"tx_type '{self.tx_type}' not valid. "
                f"Must be one of: {sorted(TRANSACTION_TYPES)}"
            )
        if self.status not in (STATUS_PENDING, STATUS_COMPLETED):
            raise ValueError("a transaction is posted as pending or completed.")

        amount = to_money(self.amount)
        if amount == ZERO:
            raise ValueError("amount must be non-zero.")
        if self.tx_type in OUTFLOW_TYPES and amount > ZERO:
            raise ValueError(f"{self.tx_type} amounts are negative.")
        if self.tx_type not in OUTFLOW_TYPES and amount < ZERO:
            raise ValueError(f"{self.tx_type} amounts are positive.")
        object.__setattr__(self, "amount", amount)
        if not isinstance(self.metadata, dict):
            raise ValueError("metadata must be a dict.")

    def to_command(self, **kw) -> Command:
        return _cmd(WALLET_TRANSACTION_POST_REQUEST,
                    {"transaction_id": self.transaction_id,
                     "tx_type": self.tx_type,
                     "amount": self.amount,
                     "status": self.status,
                     "reference": self.reference,
                     "description": self.description,
                     "reservation_id": self.reservation_id,
                     "order_id": self.order_id,
                     "metadata": dict(self.metadata)},
                    **kw)


@dataclass(frozen=True)
class TransactionStatusRequest:
    """pending → completed | failed. The amount is untouched."""
    transaction_id: str
    status: str

    def __post_init__(self):
        if not self.transaction_id:
            raise ValueError("transaction_id must be non-empty.")
        if self.status not in FINAL_STATUSES:
            raise ValueError(
                f"status '{self.status}' not valid. "
                f"Must be one of: {sorted(FINAL_STATUSES)}"
            )

    def to_command(self, **kw) -> Command:
        return _cmd(WALLET_TRANSACTION_STATUS_REQUEST,
                    {"transaction_id": self.transaction_id,
                     "status": self.status},
                    **kw)


@dataclass(frozen=True)
class WithdrawalRequest:
    transaction_id: str
    amount: Decimal
    destination: str = ""

    def __post_init__(self):
        if not self.transaction_id:
            raise ValueError("transaction_id must be non-empty.")
        amount = to_money(self.amount)
        if amount <= ZERO:
            raise ValueError("withdrawal amount must be positive.")
        object.__setattr__(self, "amount", amount)

    def to_command(self, **kw) -> Command:
        return _cmd(WALLET_WITHDRAWAL_REQUEST,
                    {"transaction_id": self.transaction_id,
                     "amount": self.amount,
                     "destination": self.destination},
                    **kw)
