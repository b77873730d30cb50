# taskhub/api/websocket.py

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from taskhub.core import state
from taskhub.models.models import SocketFrame

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, user_id: str = "anonymous"):
    """
    WebSocket endpoint for chat, notifications and call signalling.

    Protocol:
    =========
    Every frame, in both directions, is a JSON object:
        {"event": "<name>", "data": <payload>}

    Client -> Server Events:
    ------------------------
    join:chat                  data: "room-id"
    chat:message               data: {"roomId": "room-id", "message": <any>}
    typing                     data: "room-id"
    subscribe:notifications    data: "user-id"   -> subscription:ack
    unsubscribe:notifications  data: "user-id"
    call:join                  data: "room-id"
    call:offer|answer|ice      data: {"roomId": "...", "offer"|"answer"|"candidate": ...}

    Server -> Client Events:
    ------------------------
    chat:message        {"sender": "<connection id>", "message": ..., "timestamp": "..."}
    typing              "<connection id>"
    notification        {"id", "category", "level", "title", "body", "actionUrl", ...}
    subscription:ack    {"userId": "...", "socketId": "..."}
    call:joined         "<connection id>"
    call:offer|answer|ice  {"sender": "<connection id>", ...}
    error               {"message": "..."}

    Lifecycle:
    ==========
    1. Client connects with user_id parameter (identity is established by
       the auth layer in front of this service)
    2. Connection registered; a writer task drains its outbound queue
    3. Frames are dispatched one at a time, in arrival order
    4. On disconnect, automatically removed from all rooms
    """
    manager = state.connection_manager
    connection = await manager.connect(websocket, user_id)
    writer = asyncio.create_task(connection.pump())

    def on_writer_done(task: asyncio.Task) -> None:
        # A failed send means the client is gone; stop routing frames to it
        if not task.cancelled() and task.exception() is not None:
            logger.error("Send error on %s: %s", connection.id, task.exception())
            manager.disconnect(connection)

    writer.add_done_callback(on_writer_done)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                frame = SocketFrame.model_validate(json.loads(data))
            except (json.JSONDecodeError, ValidationError):
                manager.emit(connection, "error", {"message": "Invalid frame"})
                continue

            logger.debug("Websocket input from %s: %s", connection.id, frame.event)
            await state.dispatcher.dispatch(connection, frame.event, frame.data)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket error: %s", e)
    finally:
        manager.disconnect(connection)
        writer.cancel()
