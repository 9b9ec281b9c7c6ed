"""
DineIn Core Concurrency - Public API
"""

from core.concurrency.locks import (
    KeyedLockTable,
    offer_key,
    reservation_key,
    table_key,
    wallet_key,
)

__all__ = ["KeyedLockTable", "offer_key", "reservation_key", "table_key", "wallet_key"]
