# taskhub/services/redis_pub_sub.py

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

from taskhub.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "room:"


def log_listener_exit(task: asyncio.Task) -> None:
    """Done-callback for the background listener; it should only stop on shutdown."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Redis listener stopped - cross-instance broadcasts are no longer received", exc_info=exc)
    else:
        logger.warning("Redis listener exited")


class AsyncRedisPubSubService:
    """
    Redis pub/sub backplane for room broadcasts.

    Every broadcast is published on ``room:<room_key>``. Each instance
    listens on the ``room:*`` pattern and hands what it receives to its own
    ConnectionManager, so members connected to any instance get the frame.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        host: str = "localhost",
        port: int = 6379,
        access_key: str = "",
        ssl: bool = False,
    ):
        self.manager = manager
        self.host = host
        self.port = port
        self.access_key = access_key
        self.ssl = ssl
        self.client = None
        self.pubsub = None

    @property
    def url(self) -> str:
        scheme = "rediss" if self.ssl else "redis"
        auth = f":{self.access_key}@" if self.access_key else ""
        return f"{scheme}://{auth}{self.host}:{self.port}"

    async def connect(self):
        """Establish async connection to Redis."""
        self.client = redis.from_url(self.url, decode_responses=True)
        await self.client.ping()
        logger.info(f"✓ Connected to Redis at {self.host}:{self.port}")

    async def publish(
        self, room_key: str, event: str, payload: Any, exclude: Optional[str] = None
    ) -> None:
        """Publish a room broadcast to the room's Redis channel."""
        message = {"room": room_key, "event": event, "data": payload, "exclude": exclude}
        await self.client.publish(f"{CHANNEL_PREFIX}{room_key}", json.dumps(message))
        logger.debug(f"📤 Published {event} to Redis channel '{CHANNEL_PREFIX}{room_key}'")

    def route(self, raw: str) -> int:
        """Deliver one backplane message to the local members of its room."""
        data = json.loads(raw)
        room_key = data.get("room")
        event = data.get("event")

        if not room_key or not event:
            logger.warning("Redis message without room/event - ignoring")
            return 0

        return self.manager.deliver(room_key, event, data.get("data"), data.get("exclude"))

    async def listen(self, pattern: str = f"{CHANNEL_PREFIX}*"):
        """Listen on the room channels and broadcast to local WebSockets."""
        self.pubsub = self.client.pubsub()

        await self.pubsub.psubscribe(pattern)
        logger.info(f"✓ Subscribed to Redis pattern '{pattern}'")

        async for message in self.pubsub.listen():
            if message["type"] not in ("message", "pmessage"):
                continue
            try:
                self.route(message["data"])
            except Exception:
                logger.exception("Error processing Redis message")

    async def close(self):
        """Close connections."""
        if self.pubsub:
            await self.pubsub.punsubscribe()
            await self.pubsub.aclose()
        if self.client:
            await self.client.aclose()
        logger.info("Redis connection closed")
