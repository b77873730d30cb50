# taskhub/services/chat.py

from __future__ import annotations

import logging
from typing import Any

from taskhub.models.models import ChatMessage, ChatMessageRequest
from taskhub.services.connection_manager import Connection, ConnectionManager
from taskhub.services.dispatcher import EventHandler, require_room_id

logger = logging.getLogger(__name__)


class ChatHandler:
    """
    Chat rooms and typing indicators.

    Rooms are created on first join. There is no authorization at this
    layer: whoever is connected may join any room id.
    """

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager
        self.message_count = 0

    async def join_chat(self, connection: Connection, room_id: Any) -> None:
        self.manager.join(connection, require_room_id(room_id))

    async def send_message(self, connection: Connection, data: Any) -> None:
        """
        Broadcast a chat message to the whole room, sender included.

        The sender receives its own message through the same path as every
        other member so clients render all messages from one event.
        """
        request = ChatMessageRequest.model_validate(data)
        chat_message = ChatMessage(sender=connection.id, message=request.message)

        await self.manager.broadcast(
            request.room_id, "chat:message", chat_message.model_dump(mode="json")
        )
        self.message_count += 1

    async def typing(self, connection: Connection, room_id: Any) -> None:
        await self.manager.broadcast(
            require_room_id(room_id), "typing", connection.id, exclude=connection.id
        )

    def handlers(self) -> dict[str, EventHandler]:
        return {
            "join:chat": self.join_chat,
            "chat:message": self.send_message,
            "typing": self.typing,
        }
