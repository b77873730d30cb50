# taskhub/api/routes/root.py

from fastapi import APIRouter

from taskhub.core import state

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the realtime service and the socket events it
    understands.
    """
    return {
        "message": "Taskhub realtime service",
        "version": "1.0",
        "features": ["chat_rooms", "typing_indicators", "notification_topics", "call_signalling"],
        "events": state.dispatcher.events,
        "endpoints": {
            "websocket": "/ws",
            "rooms": "/rooms",
            "notifications": "/notifications/{user_id}",
            "push_preview": "/push/preview",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
