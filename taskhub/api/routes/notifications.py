# taskhub/api/routes/notifications.py

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body

from taskhub.core import state
from taskhub.core.config import settings
from taskhub.services import push_worker
from taskhub.models.models import DisplayedNotification, PublishNotificationRequest, ServerNotification

router = APIRouter()

# ============================================================================
# NOTIFICATION PUBLISHING ENDPOINTS
# ============================================================================

@router.post("/notifications/{user_id}", response_model=ServerNotification, response_model_by_alias=True)
async def publish_notification(user_id: str, request: PublishNotificationRequest):
    """
    Push a notification to a user's open connections.

    Called by the other backend services after they have stored the
    notification. Delivery is best effort; a user with no open connection
    simply receives nothing here.

    Args:
        user_id: Recipient; the topic is NOTIFICATION_ROOM_PREFIX + user_id
        request: PublishNotificationRequest with title, body, actionUrl, ...

    Returns:
        ServerNotification: The notification as sent to the topic
    """
    return await state.notification_handler.publish(user_id, request)


@router.post("/push/preview", response_model=DisplayedNotification)
async def preview_push(body: Optional[Dict[str, Any]] = Body(default=None)):
    """
    Show what the push worker would display for a given push body.

    Useful when wiring a new push sender: missing or malformed fields come
    back with the same defaults the worker applies.
    """
    return await push_worker.preview(
        body,
        default_title=settings.PUSH_DEFAULT_TITLE,
        icon=settings.PUSH_ICON,
        badge=settings.PUSH_BADGE,
    )
