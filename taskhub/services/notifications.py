# taskhub/services/notifications.py

from __future__ import annotations

import logging
import uuid
from typing import Any

from taskhub.models.models import PublishNotificationRequest, ServerNotification
from taskhub.services.connection_manager import Connection, ConnectionManager
from taskhub.services.dispatcher import EventHandler, require_room_id

logger = logging.getLogger(__name__)


class NotificationHandler:
    """
    Per-user notification topics.

    A client subscribes its connection to ``<prefix><userId>``; the backend
    then pushes ``notification`` events into that topic with :meth:`publish`.

    Trust assumption: nothing here checks that the connection belongs to
    ``userId``. That has to be enforced when the connection is established.
    """

    def __init__(self, manager: ConnectionManager, prefix: str = "notif:") -> None:
        self.manager = manager
        self.prefix = prefix

    def topic_for(self, user_id: str) -> str:
        return f"{self.prefix}{user_id}"

    async def subscribe_notifications(self, connection: Connection, user_id: Any) -> None:
        user_id = require_room_id(user_id, field="userId")
        topic = self.topic_for(user_id)

        if self.manager.join(connection, topic):
            logger.info("📡 %s joined %s", connection.id, topic)
            self.manager.emit(
                connection, "subscription:ack", {"userId": user_id, "socketId": connection.id}
            )

    async def unsubscribe_notifications(self, connection: Connection, user_id: Any) -> None:
        topic = self.topic_for(require_room_id(user_id, field="userId"))
        if self.manager.leave(connection, topic):
            logger.info("📡 %s left %s", connection.id, topic)

    async def publish(self, user_id: str, request: PublishNotificationRequest) -> ServerNotification:
        """
        Push a notification to every connection subscribed to a user's topic.

        Delivery is best effort: if the user has no open connection this is
        a no-op. Persisting the notification is the caller's job.
        """
        notification = ServerNotification(
            id=uuid.uuid4().hex,
            category=request.category,
            level=request.level,
            title=request.title,
            body=request.body,
            action_url=request.action_url,
            payload=request.payload,
        )
        await self.manager.broadcast(
            self.topic_for(user_id),
            "notification",
            notification.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return notification

    def handlers(self) -> dict[str, EventHandler]:
        return {
            "subscribe:notifications": self.subscribe_notifications,
            "unsubscribe:notifications": self.unsubscribe_notifications,
        }
