"""
DineIn Core Concurrency - Keyed Lock Table
============================================
Per-key serialisation for contended resources:

    table:{restaurant_id}:{table_id}   claim admission
    offer:{offer_id}                   budget check-and-increment
    reservation:{reservation_id}       settlement commit, ticket changes
    wallet:{restaurant_id}             withdrawal balance check

Unrelated keys never block each other. Locks are re-entrant so a
settlement holding reservation:X can take offer:Y inside the same thread.

Lock ordering: reservation, then table or offer, then wallet. Nothing
acquires them the other way round.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

logger = logging.getLogger("dinein.concurrency")


def table_key(restaurant_id, table_id: str) -> str:
    return f"table:{restaurant_id}:{table_id}"


def offer_key(offer_id: str) -> str:
    return f"offer:{offer_id}"


def reservation_key(reservation_id: str) -> str:
    return f"reservation:{reservation_id}"


def wallet_key(restaurant_id) -> str:
    return f"wallet:{restaurant_id}"


class KeyedLockTable:
    """
    Lazily-created re-entrant lock per key.

    Usage:
        locks = KeyedLockTable()
        with locks.hold(table_key(rid, "T1")):
            ...check then write...
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        if not key or not isinstance(key, str):
            raise ValueError("lock key must be a non-empty string.")
        lock = self._lock_for(key)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def known_keys(self) -> frozenset:
        with self._guard:
            return frozenset(self._locks.keys())
