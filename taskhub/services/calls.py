# taskhub/services/calls.py

from __future__ import annotations

from typing import Any

from taskhub.models.models import CallSignalRequest
from taskhub.services.connection_manager import Connection, ConnectionManager
from taskhub.services.dispatcher import EventHandler, require_room_id


class CallHandler:
    """WebRTC signalling relay. Offers, answers and ICE candidates go to everyone else in the room."""

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager

    async def call_join(self, connection: Connection, room_id: Any) -> None:
        room_id = require_room_id(room_id)
        if self.manager.join(connection, room_id):
            await self.manager.broadcast(room_id, "call:joined", connection.id, exclude=connection.id)

    async def _relay(self, connection: Connection, event: str, field: str, data: Any) -> None:
        request = CallSignalRequest.model_validate(data)
        await self.manager.broadcast(
            request.room_id,
            event,
            {"sender": connection.id, field: getattr(request, field)},
            exclude=connection.id,
        )

    async def call_offer(self, connection: Connection, data: Any) -> None:
        await self._relay(connection, "call:offer", "offer", data)

    async def call_answer(self, connection: Connection, data: Any) -> None:
        await self._relay(connection, "call:answer", "answer", data)

    async def call_ice(self, connection: Connection, data: Any) -> None:
        await self._relay(connection, "call:ice", "candidate", data)

    def handlers(self) -> dict[str, EventHandler]:
        return {
            "call:join": self.call_join,
            "call:offer": self.call_offer,
            "call:answer": self.call_answer,
            "call:ice": self.call_ice,
        }
