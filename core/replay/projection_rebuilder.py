"""
DineIn Replay - Projection Rebuilder
======================================
Projections live in memory, so a new process starts empty. The event
store is the truth; replay feeds its envelopes back into each engine's
projection in stored order.

Replay reads only. Nothing is persisted, nothing is published, and no
listener runs: every listener's own events are already in the store and
are replayed in their turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Optional, Protocol

logger = logging.getLogger("dinein.replay")


class ProjectionProtocol(Protocol):
    def apply(self, event_type: str, payload: dict) -> None:
        ...  # pragma: no cover


@dataclass
class ReplayResult:
    events_processed: int = 0
    events_applied: int = 0
    skipped_engines: set = field(default_factory=set)


def replay_events(
    events: Iterable[dict],
    projections: Mapping[str, ProjectionProtocol],
    on_applied: Optional[Callable[[dict], None]] = None,
) -> ReplayResult:
    """
    Apply each envelope to the projection of its source engine.

    Envelopes from an engine with no projection here are counted and
    skipped. on_applied sees every applied envelope, after its apply.
    """
    result = ReplayResult()
    for event in events:
        result.events_processed += 1
        projection = projections.get(event["source_engine"])
        if projection is None:
            result.skipped_engines.add(event["source_engine"])
            continue
        projection.apply(event["event_type"], event["payload"])
        result.events_applied += 1
        if on_applied is not None:
            on_applied(event)

    if result.skipped_engines:
        logger.warning(
            f"Replay skipped events from engines without a projection: "
            f"{sorted(result.skipped_engines)}"
        )
    logger.info(f"Replayed {result.events_applied} of {result.events_processed} events")
    return result
