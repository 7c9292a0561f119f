"""Connection manager for room WebSocket sessions."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterable

    from litestar import WebSocket

logger = structlog.get_logger(__name__)


@dataclass
class ConnectedUser:
    """An open WebSocket connection attached to a room."""

    user_id: str
    room_code: str
    websocket: WebSocket
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "user_id": self.user_id,
            "room_code": self.room_code,
            "connected_at": self.connected_at.isoformat(),
        }


class ConnectionManager:
    """Manages WebSocket connections per room.

    Tracks connections as ``room code -> user id -> connection`` and provides
    methods for delivering messages to a whole room, one user, or a set of
    users. Send failures are logged and never propagate to game code.
    """

    def __init__(self) -> None:
        """Initialize the connection manager."""
        self._connections: dict[str, dict[str, ConnectedUser]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, room_code: str, user_id: str) -> ConnectedUser:
        """Register a new WebSocket connection.

        Args:
            websocket: The WebSocket connection.
            room_code: The room being joined.
            user_id: Session-scoped identifier for the user.

        Returns:
            The ConnectedUser instance.
        """
        async with self._lock:
            room = self._connections.setdefault(room_code, {})
            user = ConnectedUser(user_id=user_id, room_code=room_code, websocket=websocket)
            room[user_id] = user

            logger.info("User connected", user_id=user_id, room_code=room_code, total_users=len(room))
            return user

    async def disconnect(self, room_code: str, user_id: str) -> None:
        """Remove a WebSocket connection.

        Args:
            room_code: The room being left.
            user_id: The user's identifier.
        """
        async with self._lock:
            room = self._connections.get(room_code)
            if room is None:
                return
            if room.pop(user_id, None) is not None:
                logger.info("User disconnected", user_id=user_id, room_code=room_code, remaining_users=len(room))
            if not room:
                del self._connections[room_code]
                logger.info("Room connections closed", room_code=room_code)

    async def get_connected_users(self, room_code: str) -> list[ConnectedUser]:
        """Get all connections of a room.

        Args:
            room_code: The room to query.

        Returns:
            List of connected users.
        """
        async with self._lock:
            return list(self._connections.get(room_code, {}).values())

    async def get_user(self, room_code: str, user_id: str) -> ConnectedUser | None:
        """Get a specific connection.

        Args:
            room_code: The room to query.
            user_id: The user's identifier.

        Returns:
            The ConnectedUser or None if not found.
        """
        async with self._lock:
            return self._connections.get(room_code, {}).get(user_id)

    async def broadcast(
        self,
        room_code: str,
        message: dict[str, Any],
        exclude_user: str | None = None,
    ) -> None:
        """Broadcast a message to every connection in a room.

        Args:
            room_code: The room to broadcast to.
            message: The message to send.
            exclude_user: Optional user ID to exclude from broadcast.
        """
        users = await self.get_connected_users(room_code)
        await self._deliver([u for u in users if u.user_id != exclude_user], message)

    async def send_to_users(self, room_code: str, user_ids: Iterable[str], message: dict[str, Any]) -> None:
        """Send a message to a set of users in a room.

        Args:
            room_code: The room.
            user_ids: The target users. Unknown ids are skipped.
            message: The message to send.
        """
        targets = set(user_ids)
        users = await self.get_connected_users(room_code)
        await self._deliver([u for u in users if u.user_id in targets], message)

    async def send_to_user(self, room_code: str, user_id: str, message: dict[str, Any]) -> bool:
        """Send a message to a specific user.

        Args:
            room_code: The room.
            user_id: The target user.
            message: The message to send.

        Returns:
            True if sent successfully, False otherwise.
        """
        user = await self.get_user(room_code, user_id)
        if not user:
            return False

        try:
            await user.websocket.send_json(message)
            return True
        except Exception:
            logger.exception("Failed to send message to user", user_id=user_id, room_code=room_code)
            return False

    async def close_connection(self, room_code: str, user_id: str, *, code: int = 4000, reason: str = "Kicked") -> None:
        """Close a user's WebSocket and forget the connection.

        Args:
            room_code: The room.
            user_id: The user to drop.
            code: WebSocket close code.
            reason: Close reason sent to the client.
        """
        user = await self.get_user(room_code, user_id)
        if user is None:
            return
        await self.disconnect(room_code, user_id)
        try:
            await user.websocket.close(code=code, reason=reason)
        except Exception:
            logger.exception("Failed to close connection", user_id=user_id, room_code=room_code)

    async def _deliver(self, users: list[ConnectedUser], message: dict[str, Any]) -> None:
        if not users:
            return
        json_message = json.dumps(message)
        await asyncio.gather(*(self._send_to_user(user, json_message) for user in users), return_exceptions=True)

    async def _send_to_user(self, user: ConnectedUser, message: str) -> None:
        """Internal method to send a message to a user.

        Args:
            user: The connected user.
            message: The JSON message string.
        """
        try:
            await user.websocket.send_text(message)
        except Exception:
            logger.exception("Failed to send message", user_id=user.user_id, room_code=user.room_code)

    @property
    def active_rooms(self) -> int:
        """Get the number of rooms with at least one connection."""
        return len(self._connections)

    @property
    def total_connections(self) -> int:
        """Get the total number of connected users."""
        return sum(len(users) for users in self._connections.values())
