# taskhub/api/routes/metrics.py
from datetime import datetime, timezone

from fastapi import APIRouter

from taskhub.core import state

router = APIRouter()

@router.get("/metrics")
async def get_metrics():
    """
    Usage metrics for the realtime service.

    Returns:
        dict: message statistics (total, messages/sec) and capacity
              (connections, active rooms, notification topics)
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()
    total_messages = state.chat_handler.message_count

    if uptime_seconds > 0:
        messages_per_second = total_messages / uptime_seconds
    else:
        messages_per_second = 0

    prefix = state.notification_handler.prefix
    rooms = state.connection_manager.rooms
    notification_topics = sum(1 for room_key in rooms if room_key.startswith(prefix))

    return {
        # Statistics
        "total_messages": total_messages,
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "messages_per_second": round(messages_per_second, 2),

        # Capacity
        "concurrent_connections": len(state.connection_manager.connections),
        "active_rooms_with_members": len(rooms),
        "notification_topics": notification_topics,
    }
