# taskhub/core/state.py
from __future__ import annotations

from datetime import datetime, timezone

from taskhub.core.config import settings
from taskhub.services.calls import CallHandler
from taskhub.services.chat import ChatHandler
from taskhub.services.connection_manager import ConnectionManager
from taskhub.services.dispatcher import EventDispatcher
from taskhub.services.notifications import NotificationHandler

# App-wide instances. Handlers get the registry through their constructor;
# nothing below reaches back into this module.
connection_manager = ConnectionManager(queue_size=settings.OUTBOUND_QUEUE_SIZE)

chat_handler = ChatHandler(connection_manager)
notification_handler = NotificationHandler(connection_manager, prefix=settings.NOTIFICATION_ROOM_PREFIX)
call_handler = CallHandler(connection_manager)

dispatcher = EventDispatcher(connection_manager)
dispatcher.register_many(chat_handler.handlers())
dispatcher.register_many(notification_handler.handlers())
dispatcher.register_many(call_handler.handlers())

# Set on startup when PUB_SUB_SERVICE is not "memory"
backplane = None

app_start_time: datetime = datetime.now(timezone.utc)
