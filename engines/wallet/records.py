"""
DineIn Wallet Engine - Ledger Records
=======================================
One Transaction per monetary fact. Amounts are signed (positive is
income for the restaurant, negative is outflow) and never change after
posting; only status moves, and only pending → completed | failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

TX_RESERVATION = "reservation"
TX_BILL_PAYMENT = "bill_payment"
TX_CANCELLATION = "cancellation"
TX_WITHDRAWAL = "withdrawal"
TX_SUBSCRIPTION = "subscription"

TRANSACTION_TYPES = frozenset({
    TX_RESERVATION, TX_BILL_PAYMENT, TX_CANCELLATION, TX_WITHDRAWAL, TX_SUBSCRIPTION,
})
# Outflows are posted as negative amounts, everything else as positive.
OUTFLOW_TYPES = frozenset({TX_WITHDRAWAL, TX_SUBSCRIPTION})

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

TRANSACTION_STATUSES = frozenset({STATUS_PENDING, STATUS_COMPLETED, STATUS_FAILED})
FINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_FAILED})


@dataclass
class Transaction:
    transaction_id: str
    restaurant_id: str
    tx_type: str
    amount: Decimal
    status: str
    created_at: datetime
    reference: str
    description: str = ""
    reservation_id: Optional[str] = None
    order_id: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "type": self.tx_type,
            "amount": self.amount,
            "status": self.status,
            "reference": self.reference,
            "description": self.description,
            "reservation_id": self.reservation_id,
            "order_id": self.order_id,
            "metadata": dict(self.metadata),
            "created_at": self.created_at,
        }
