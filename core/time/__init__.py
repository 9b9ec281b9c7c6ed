"""
DineIn Core Time - Public API
"""

from core.time.clock import Clock, FixedClock, SystemClock, within_window

__all__ = ["Clock", "FixedClock", "SystemClock", "within_window"]
