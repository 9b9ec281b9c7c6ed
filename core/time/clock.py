"""
DineIn Core Time - Clock
==========================
Engines never call datetime.now(). Commands carry issued_at; offer
windows, ledger timestamps and the public API read "now" from an
injected Clock so tests can pin it.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now_utc(self) -> datetime:
        ...  # pragma: no cover


class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Pinned time for tests.

        clock = FixedClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
        clock.advance(60)
    """

    def __init__(self, fixed_dt: datetime) -> None:
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._now = fixed_dt

    def now_utc(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)


def within_window(moment: datetime, valid_from: Optional[datetime],
                  valid_until: Optional[datetime]) -> bool:
    """Both bounds inclusive; a missing bound never excludes."""
    if valid_from is not None and moment < valid_from:
        return False
    return valid_until is None or moment <= valid_until
