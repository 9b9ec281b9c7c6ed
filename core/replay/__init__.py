"""
DineIn Replay - rebuild in-memory projections from stored events.
"""

from core.replay.projection_rebuilder import (
    ProjectionProtocol,
    ReplayResult,
    replay_events,
)

__all__ = ["ProjectionProtocol", "ReplayResult", "replay_events"]
