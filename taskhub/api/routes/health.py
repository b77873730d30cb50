# taskhub/api/routes/health.py

from fastapi import APIRouter

from taskhub.core import state
from taskhub.core.config import settings

router = APIRouter()

@router.get("/health")
async def health():
    """
    Health check endpoint.

    Returns current system status, connection count and active room count.
    Used by container health checks and monitoring.
    """
    return {
        "status": "healthy",
        "pub_sub_service": settings.PUB_SUB_SERVICE,
        "connections": len(state.connection_manager.connections),
        "active_rooms_with_members": len(state.connection_manager.rooms),
    }
