# taskhub/services/connection_manager.py

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional, Protocol, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class Backplane(Protocol):
    """Cross-instance transport for room broadcasts (Redis, Google Pub/Sub)."""

    async def publish(
        self, room_key: str, event: str, payload: Any, exclude: Optional[str] = None
    ) -> None: ...


# ============================================================================
# CONNECTION
# ============================================================================

class Connection:
    """
    One live client session on the /ws socket.

    Frames are never written to the socket directly by broadcasters. They are
    put on ``outbox`` and :meth:`pump` (run as a task by the WebSocket
    endpoint) writes them out in FIFO order, so a slow client only ever
    delays itself.
    """

    def __init__(self, websocket: WebSocket, user_id: str = "anonymous", queue_size: int = 0) -> None:
        self.id: str = uuid.uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self.rooms: Set[str] = set()
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def enqueue(self, frame: dict) -> bool:
        if self.closed:
            return False
        try:
            self.outbox.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning("Outbound queue full for %s (%s) - frame dropped", self.id, self.user_id)
            return False
        return True

    async def pump(self) -> None:
        while True:
            frame = await self.outbox.get()
            await self.websocket.send_json(frame)

    def __repr__(self) -> str:
        return f"<Connection {self.id} user={self.user_id} rooms={len(self.rooms)}>"


# ============================================================================
# ROOM REGISTRY
# ============================================================================

class ConnectionManager:
    """
    Manages WebSocket connections and room memberships.

    Rooms are implicit: a room key appears in ``rooms`` when its first member
    joins and is removed again as soon as its last member leaves or
    disconnects. Nothing here is persisted; a restart forgets everything.

    Data Structures:
        rooms: Maps room_key -> Set of connection ids in that room
               Example: {"project-42": {"3f2a...", "9be1..."}, "notif:u1": {"3f2a..."}}

        connections: Maps connection id -> Connection
                     (each Connection also tracks the rooms it joined)

    Scaling:
        - Single instance: everything is delivered in memory
        - Multi-instance: set a backplane; ``broadcast`` then publishes to it
          and each instance calls ``deliver`` for its own members

    All mutation happens on the event loop thread, so no locking is needed.
    """

    def __init__(self, queue_size: int = 0, backplane: Optional[Backplane] = None) -> None:
        self.rooms: Dict[str, Set[str]] = {}
        self.connections: Dict[str, Connection] = {}
        self.queue_size = queue_size
        self.backplane = backplane

    async def connect(self, websocket: WebSocket, user_id: str = "anonymous") -> Connection:
        """
        Accept a new WebSocket connection and register it.

        The connection is not joined to any room; clients join rooms
        explicitly through the chat and notification events.
        """
        await websocket.accept()

        connection = Connection(websocket, user_id=user_id, queue_size=self.queue_size)
        self.connections[connection.id] = connection

        logger.info("✓ User %s connected as %s. Total: %d", user_id, connection.id, len(self.connections))
        return connection

    def disconnect(self, connection: Connection) -> None:
        """Remove a connection from every room it joined. Safe to call twice."""
        if self.connections.pop(connection.id, None) is None:
            return

        connection.closed = True
        for room_key in connection.rooms:
            self._discard(room_key, connection.id)
        connection.rooms.clear()

        logger.info("✗ User %s disconnected (%s). Total: %d",
                    connection.user_id, connection.id, len(self.connections))

    def join(self, connection: Connection, room_key: str) -> bool:
        if connection.id not in self.connections:
            return False  # Connection already closed

        self.rooms.setdefault(room_key, set()).add(connection.id)
        connection.rooms.add(room_key)

        logger.info("→ %s joined '%s' (%d members)", connection.id, room_key, len(self.rooms[room_key]))
        return True

    def leave(self, connection: Connection, room_key: str) -> bool:
        if room_key not in connection.rooms:
            return False

        connection.rooms.discard(room_key)
        self._discard(room_key, connection.id)

        logger.info("← %s left '%s'", connection.id, room_key)
        return True

    def _discard(self, room_key: str, connection_id: str) -> None:
        members = self.rooms.get(room_key)
        if members is None:
            return
        members.discard(connection_id)
        # Clean up empty rooms from memory
        if not members:
            del self.rooms[room_key]

    def members(self, room_key: str) -> Set[str]:
        return set(self.rooms.get(room_key, ()))

    async def broadcast(
        self, room_key: str, event: str, payload: Any, exclude: Optional[str] = None
    ) -> None:
        """
        Broadcast an event to every connection in a room.

        Args:
            room_key: Target room
            event: Event name sent to clients
            payload: JSON-serialisable payload
            exclude: Connection id that must not receive the frame (the sender)

        With a backplane configured the frame goes through it, and the
        backplane listener of every instance (this one included) hands it
        back to :meth:`deliver`.

        A backplane failure is logged and the frame is lost; it never
        reaches the caller, so the sender's connection stays open.
        """
        if self.backplane is not None:
            try:
                await self.backplane.publish(room_key, event, payload, exclude)
            except Exception:
                logger.exception("Error publishing %s for room %s to the backplane", event, room_key)
            return
        self.deliver(room_key, event, payload, exclude)

    def deliver(
        self, room_key: str, event: str, payload: Any, exclude: Optional[str] = None
    ) -> int:
        """
        Fan a frame out to the members of a room connected to this instance.

        Returns the number of connections the frame was queued for.
        """
        if room_key not in self.rooms:
            # No one subscribed to this room currently
            logger.debug("[routing] Skipped broadcast: room=%s has 0 members", room_key)
            return 0

        frame = {"event": event, "data": payload}
        member_ids = list(self.rooms[room_key])  # Copy to avoid modification during iteration

        delivered = 0
        for connection_id in member_ids:
            if connection_id == exclude:
                continue
            connection = self.connections.get(connection_id)
            if connection is None:
                # Disconnected after the snapshot was taken
                continue
            if connection.enqueue(frame):
                delivered += 1

        logger.debug("📨 %s to room %s: %d clients", event, room_key, delivered)
        return delivered

    def emit(self, connection: Connection, event: str, payload: Any) -> bool:
        """Send a single frame to one connection."""
        return connection.enqueue({"event": event, "data": payload})

    def get_rooms_info(self) -> Dict[str, dict]:
        """
        Get information about all active rooms.

        Used by the /rooms and /metrics endpoints and for debugging.
        """
        return {
            room_key: {"room": room_key, "member_count": len(member_ids)}
            for room_key, member_ids in self.rooms.items()
        }
