"""
DineIn Engine Execution
=========================
The command → policy → persist → apply → publish path every engine
service runs its commands through.
"""

from core.engines.execution import (
    EventFactoryProtocol,
    ExecutionResult,
    PersistEventProtocol,
    first_rejection,
    persist_and_apply,
    publish,
    raise_for_rejection,
)

__all__ = [
    "EventFactoryProtocol",
    "ExecutionResult",
    "PersistEventProtocol",
    "first_rejection",
    "persist_and_apply",
    "publish",
    "raise_for_rejection",
]
