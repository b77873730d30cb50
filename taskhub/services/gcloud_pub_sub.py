# taskhub/services/gcloud_pub_sub.py

from __future__ import annotations

import asyncio
import json
import logging
from concurrent.futures import Future
from typing import Any, Optional

from google.cloud import pubsub_v1

from taskhub.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


def log_delivery_failure(future: Future) -> None:
    """Done-callback for deliveries scheduled from the subscriber thread."""
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Error delivering Pub/Sub message", exc_info=exc)


class GooglePubSubService:
    """
    Google Cloud Pub/Sub backplane for room broadcasts.

    One topic carries every room; the room key travels in the message body,
    as the ``room`` attribute and as the ordering key. Each instance needs
    its own subscription so that all instances see every broadcast.

    Room order: the publisher is created with message ordering enabled and
    the subscription MUST be created with ``--enable-message-ordering``.
    Pub/Sub then hands the messages of one room to the callback one at a
    time and in publish order, and each one is queued on the event loop
    before the next callback runs.

    The subscriber callback runs on a Pub/Sub worker thread, so delivery is
    scheduled back onto the application's event loop.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        project_id: str,
        topic_id: str,
        subscription_id: str,
        publisher: Optional[pubsub_v1.PublisherClient] = None,
        subscriber: Optional[pubsub_v1.SubscriberClient] = None,
    ):
        self.manager = manager
        self.publisher = publisher or pubsub_v1.PublisherClient(
            publisher_options=pubsub_v1.types.PublisherOptions(enable_message_ordering=True)
        )
        self.subscriber = subscriber or pubsub_v1.SubscriberClient()
        self.topic_path = self.publisher.topic_path(project_id, topic_id)
        self.subscription_path = self.subscriber.subscription_path(project_id, subscription_id)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._streaming_future = None

    async def _deliver(self, event: dict) -> None:
        self.manager.deliver(event["room"], event["event"], event.get("data"), event.get("exclude"))

    def _callback(self, message) -> None:
        try:
            event = json.loads(message.data.decode("utf-8"))
            if not event.get("room") or not event.get("event"):
                logger.warning("Pub/Sub message without room/event - ignoring")
            elif self._loop is not None:
                # Schedule the delivery on the FastAPI event loop
                future = asyncio.run_coroutine_threadsafe(self._deliver(event), self._loop)
                future.add_done_callback(log_delivery_failure)
            message.ack()
        except Exception:
            logger.exception("Error processing Pub/Sub message")
            message.nack()

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Call this once on app startup with the running event loop."""
        self._loop = loop
        self._streaming_future = self.subscriber.subscribe(self.subscription_path, callback=self._callback)
        logger.info("✓ Listening for messages on %s", self.subscription_path)

    async def publish(
        self, room_key: str, event: str, payload: Any, exclude: Optional[str] = None
    ) -> None:
        data = json.dumps({"room": room_key, "event": event, "data": payload, "exclude": exclude})
        future = self.publisher.publish(
            self.topic_path, data=data.encode("utf-8"), ordering_key=room_key, room=room_key
        )
        try:
            # Publishing blocks until the server acknowledges; keep it off the loop
            await asyncio.get_running_loop().run_in_executor(None, future.result)
        except Exception:
            # A failed publish pauses its ordering key until resumed
            self.publisher.resume_publish(self.topic_path, room_key)
            raise

    def shutdown(self) -> None:
        """Call this once on app shutdown."""
        if self._streaming_future is not None:
            self._streaming_future.cancel()
        self.subscriber.close()
        logger.info("Pub/Sub subscriber closed")
