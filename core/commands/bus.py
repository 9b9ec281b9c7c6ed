"""
DineIn Command Layer - Command Bus
====================================
One handler per command_type; each engine service claims its own types
at construction. The bus routes and logs. Policies, persistence and
projections belong to the handler, and typed DineIn errors reach the
caller unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Protocol

from core.commands.base import REQUEST_SUFFIX, Command
from core.errors import DineInError

logger = logging.getLogger("dinein.commands")


class CommandHandler(Protocol):
    def execute(self, command: Command) -> Any:
        ...  # pragma: no cover


class CommandBusError(Exception):
    pass


class NoHandlerRegistered(CommandBusError):
    def __init__(self, command_type: str):
        self.command_type = command_type
        super().__init__(f"No engine handles '{command_type}'.")


class DuplicateHandlerError(CommandBusError):
    def __init__(self, command_type: str):
        self.command_type = command_type
        super().__init__(f"'{command_type}' is already routed to another handler.")


class CommandBus:
    def __init__(self):
        self._handlers: Dict[str, CommandHandler] = {}

    def register_handler(self, command_type: str, handler: Any) -> None:
        if not command_type.endswith(REQUEST_SUFFIX):
            raise ValueError(
                f"command_type '{command_type}' must end with '{REQUEST_SUFFIX}'."
            )
        if not callable(getattr(handler, "execute", None)):
            raise TypeError("Handler must have callable .execute() method.")
        if command_type in self._handlers:
            raise DuplicateHandlerError(command_type)
        self._handlers[command_type] = handler

    def handle(self, command: Command) -> Any:
        handler = self._handlers.get(command.command_type)
        if handler is None:
            raise NoHandlerRegistered(command.command_type)
        try:
            return handler.execute(command)
        except DineInError as exc:
            # validation and conflict are the caller's to fix; the rest are ours
            log = logger.error if exc.kind in ("external", "consistency") else logger.warning
            log(
                f"{command.command_type} from {command.actor_type}:{command.actor_id} "
                f"refused [{exc.kind}/{exc.code}]: {exc.message}"
            )
            raise
