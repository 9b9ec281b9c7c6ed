"""
DineIn Wallet Engine - Balance Derivation
===========================================
Balances are never stored. They are summed from the transaction log on
every read, so concurrent writers cannot lose an update.

available_balance = Σ amount over completed transactions
pending_balance   = Σ amount over pending transactions with amount > 0
total_earnings    = Σ amount over completed transactions with amount > 0
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from core.primitives.money import ZERO, quantize
from engines.wallet.records import STATUS_COMPLETED, STATUS_PENDING, TX_WITHDRAWAL


@dataclass(frozen=True)
class WalletStats:
    available_balance: Decimal = ZERO
    pending_balance: Decimal = ZERO
    total_earnings: Decimal = ZERO
    total_withdrawn: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "available_balance": quantize(self.available_balance),
            "pending_balance": quantize(self.pending_balance),
            "total_earnings": quantize(self.total_earnings),
            "total_withdrawn": quantize(self.total_withdrawn),
        }


def derive_wallet_stats(transactions: Iterable) -> WalletStats:
    available = pending = earnings = withdrawn = ZERO
    for tx in transactions:
        if tx.status == STATUS_COMPLETED:
            available += tx.amount
            if tx.amount > ZERO:
                earnings += tx.amount
            elif tx.tx_type == TX_WITHDRAWAL:
                withdrawn -= tx.amount
        elif tx.status == STATUS_PENDING and tx.amount > ZERO:
            pending += tx.amount
    return WalletStats(
        available_balance=available,
        pending_balance=pending,
        total_earnings=earnings,
        total_withdrawn=withdrawn,
    )


def available_balance(transactions: Iterable) -> Decimal:
    return derive_wallet_stats(transactions).available_balance
