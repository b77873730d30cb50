# taskhub/services/push_worker.py

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Union

from pydantic import ValidationError

from taskhub.models.models import DisplayedNotification, PushPayload

logger = logging.getLogger(__name__)


# ============================================================================
# PLATFORM PORTS
# ============================================================================

class NotificationPresenter(Protocol):
    """Port: shows and closes notifications on the user's device."""

    async def show_notification(self, notification: DisplayedNotification) -> None: ...

    def close_notification(self, notification: DisplayedNotification) -> None: ...


class ClientWindows(Protocol):
    """Port: opens a URL in an existing or new client view."""

    async def open_window(self, url: str) -> None: ...


class RecordingPresenter:
    """Presenter/ClientWindows pair that only records what it was asked to do."""

    def __init__(self) -> None:
        self.shown: List[DisplayedNotification] = []
        self.closed: List[DisplayedNotification] = []
        self.opened: List[str] = []

    async def show_notification(self, notification: DisplayedNotification) -> None:
        self.shown.append(notification)

    def close_notification(self, notification: DisplayedNotification) -> None:
        self.closed.append(notification)

    async def open_window(self, url: str) -> None:
        self.opened.append(url)


# ============================================================================
# EVENTS
# ============================================================================

class ExtendableEvent:
    """
    Event with a pending-operation guard.

    Work started while handling the event is registered with
    :meth:`wait_until`; the platform shim awaits :meth:`settled` and must not
    tear the execution context down before it resolves.
    """

    def __init__(self) -> None:
        self._pending: List[asyncio.Future] = []

    def wait_until(self, awaitable: Awaitable[Any]) -> asyncio.Future:
        future = asyncio.ensure_future(awaitable)
        self._pending.append(future)
        return future

    async def settled(self) -> None:
        # Operations may register further operations while we wait
        while self._pending:
            pending, self._pending = self._pending, []
            await asyncio.gather(*pending)


class PushEvent(ExtendableEvent):
    def __init__(self, data: Union[bytes, str, None] = None) -> None:
        super().__init__()
        self.data = data

    def json(self) -> Any:
        if self.data is None:
            return None
        raw = self.data.decode("utf-8") if isinstance(self.data, bytes) else self.data
        return json.loads(raw)


class NotificationClickEvent(ExtendableEvent):
    def __init__(self, notification: DisplayedNotification) -> None:
        super().__init__()
        self.notification = notification


# ============================================================================
# PUSH DELIVERY WORKER
# ============================================================================

class PushWorker:
    """
    Turns inbound push messages into displayed notifications and routes
    notification clicks to their action URL.

    Runs without any live socket connection. A malformed or empty payload
    never fails delivery: every missing field falls back to its default.
    There is no retry here; redelivery is up to the push platform.
    """

    def __init__(
        self,
        presenter: NotificationPresenter,
        clients: ClientWindows,
        default_title: str = "Notification",
        icon: str = "/favicon.png",
        badge: str = "/badge.png",
    ) -> None:
        self.presenter = presenter
        self.clients = clients
        self.default_title = default_title
        self.icon = icon
        self.badge = badge

    def decode(self, event: PushEvent) -> PushPayload:
        try:
            raw = event.json()
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning("Undecodable push payload, using defaults: %s", e)
            return PushPayload()

        if not isinstance(raw, dict):
            return PushPayload()

        try:
            return PushPayload.model_validate(raw)
        except ValidationError as e:
            logger.warning("Malformed push payload, using defaults: %s", e)
            return PushPayload()

    def build_notification(self, payload: PushPayload) -> DisplayedNotification:
        return DisplayedNotification(
            title=payload.title or self.default_title,
            body=payload.body or "",
            icon=self.icon,
            badge=self.badge,
            data=payload.data or {},
        )

    def handle_push(self, event: PushEvent) -> asyncio.Future:
        """
        Present the notification carried by ``event``.

        Returns a handle that resolves once presentation has completed.
        """
        notification = self.build_notification(self.decode(event))
        logger.info("🔔 Showing push notification %r", notification.title)

        event.wait_until(self.presenter.show_notification(notification))
        return asyncio.ensure_future(event.settled())

    def handle_notification_click(self, event: NotificationClickEvent) -> asyncio.Future:
        """Close the clicked notification and open its action URL, if it has one."""
        notification = event.notification
        self.presenter.close_notification(notification)

        url = notification.action_url
        if url:
            logger.info("➡ Opening %s from notification click", url)
            event.wait_until(self.clients.open_window(url))
        return asyncio.ensure_future(event.settled())


async def preview(
    body: Optional[Dict[str, Any]],
    default_title: str = "Notification",
    icon: str = "/favicon.png",
    badge: str = "/badge.png",
) -> DisplayedNotification:
    """Run a push body through a worker and return what it would display."""
    recorder = RecordingPresenter()
    worker = PushWorker(recorder, recorder, default_title, icon, badge)
    await worker.handle_push(PushEvent(json.dumps(body) if body is not None else None))
    return recorder.shown[0]
