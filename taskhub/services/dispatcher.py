# taskhub/services/dispatcher.py

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from pydantic import ValidationError

from taskhub.services.connection_manager import Connection, ConnectionManager

logger = logging.getLogger(__name__)

EventHandler = Callable[[Connection, Any], Awaitable[None]]


class InvalidEventPayload(ValueError):
    """Raised by a handler when the data of an inbound event is unusable."""


def require_room_id(data: Any, field: str = "roomId") -> str:
    """Return a non-empty string id from ``data`` or raise InvalidEventPayload."""
    if isinstance(data, str) and data:
        return data
    raise InvalidEventPayload(f"{field} must be a non-empty string")


class EventDispatcher:
    """
    Dispatch table mapping an inbound event name to its handler.

    The transport calls :meth:`dispatch` once per frame and awaits it before
    reading the next frame from that connection, which is what keeps the
    events of one connection in order.

    Problems with a single frame (unknown event, bad payload) are reported
    back to the caller as an ``error`` frame and never close the connection.
    """

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager
        self.handlers: Dict[str, EventHandler] = {}

    def register(self, event: str, handler: EventHandler) -> None:
        self.handlers[event] = handler

    def register_many(self, table: Dict[str, EventHandler]) -> None:
        for event, handler in table.items():
            self.register(event, handler)

    @property
    def events(self) -> list[str]:
        return sorted(self.handlers)

    def send_error(self, connection: Connection, message: str) -> None:
        self.manager.emit(connection, "error", {"message": message})

    async def dispatch(self, connection: Connection, event: Any, data: Any) -> bool:
        handler = self.handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            logger.warning("Unknown event %r from %s", event, connection.id)
            self.send_error(connection, f"Unknown event: {event}")
            return False

        try:
            await handler(connection, data)
        except (InvalidEventPayload, ValidationError) as e:
            logger.warning("Invalid %s payload from %s: %s", event, connection.id, e)
            self.send_error(connection, f"Invalid payload for {event}")
            return False
        return True
