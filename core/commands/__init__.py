"""
DineIn Command Layer - Public API
====================================
Every mutation begins as a Command.
"""

from core.commands.base import (
    Command,
    build_command,
    derive_command_id,
)
from core.commands.bus import CommandBus, NoHandlerRegistered
from core.commands.rejection import ReasonCode, RejectionReason

__all__ = [
    "Command",
    "build_command",
    "derive_command_id",
    "CommandBus",
    "NoHandlerRegistered",
    "RejectionReason",
    "ReasonCode",
]
