# taskhub/api/routes/rooms.py

from typing import List

from fastapi import APIRouter, HTTPException

from taskhub.core import state

router = APIRouter()

# ============================================================================
# ACTIVE ROOM ENDPOINTS
# ============================================================================

@router.get("/rooms")
async def list_rooms() -> List[dict]:
    """
    List rooms that currently have members on this instance.

    Rooms only exist while someone is in them, so an empty list simply
    means nobody has joined anything yet.
    """
    return list(state.connection_manager.get_rooms_info().values())


@router.get("/rooms/{room_key}")
async def get_room(room_key: str) -> dict:
    """
    Get the members of a room.

    Raises:
        HTTPException: 404 if the room has no members
    """
    members = state.connection_manager.members(room_key)
    if not members:
        raise HTTPException(status_code=404, detail="Room not found")

    return {"room": room_key, "member_count": len(members), "members": sorted(members)}
