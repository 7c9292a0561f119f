"""Outbound message addressing.

Game code never touches sockets. It talks to a :class:`RoomChannel`, which
addresses one room in three ways: everyone in the room, a single user, or an
explicit set of users (the spectators subscribed to a player's private
drawing). The transport behind it is any :class:`Broadcaster`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from sketchparty.realtime.messages import envelope

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sketchparty.realtime.manager import ConnectionManager


class Broadcaster(Protocol):
    """Transport able to deliver events to the members of a room."""

    async def to_room(self, room_code: str, event: str, data: Any = None, *, exclude: str | None = None) -> None:
        """Send to every member of the room, optionally skipping one user."""

    async def to_user(self, room_code: str, user_id: str, event: str, data: Any = None) -> None:
        """Send to a single member of the room."""

    async def to_users(self, room_code: str, user_ids: Iterable[str], event: str, data: Any = None) -> None:
        """Send to a set of members of the room."""

    async def close(self, room_code: str, user_id: str) -> None:
        """Drop a member's connection (after a kick)."""


class RoomChannel:
    """A :class:`Broadcaster` bound to one room code."""

    def __init__(self, broadcaster: Broadcaster, room_code: str) -> None:
        """Initialize the channel.

        Args:
            broadcaster: Transport used for delivery.
            room_code: Room every event is addressed to.
        """
        self.broadcaster = broadcaster
        self.room_code = room_code

    async def room(self, event: str, data: Any = None, *, exclude: str | None = None) -> None:
        """Send to the whole room."""
        await self.broadcaster.to_room(self.room_code, event, data, exclude=exclude)

    async def user(self, user_id: str, event: str, data: Any = None) -> None:
        """Send to one user."""
        await self.broadcaster.to_user(self.room_code, user_id, event, data)

    async def users(self, user_ids: Iterable[str], event: str, data: Any = None) -> None:
        """Send to several users. Nothing is sent for an empty set."""
        targets = list(user_ids)
        if targets:
            await self.broadcaster.to_users(self.room_code, targets, event, data)

    async def close(self, user_id: str) -> None:
        """Close one user's connection."""
        await self.broadcaster.close(self.room_code, user_id)


class ConnectionBroadcaster:
    """:class:`Broadcaster` delivering through WebSocket connections."""

    def __init__(self, manager: ConnectionManager) -> None:
        """Initialize the broadcaster.

        Args:
            manager: Registry of open WebSocket connections.
        """
        self.manager = manager

    async def to_room(self, room_code: str, event: str, data: Any = None, *, exclude: str | None = None) -> None:
        """Send to every connection in the room."""
        await self.manager.broadcast(room_code, envelope(event, data), exclude_user=exclude)

    async def to_user(self, room_code: str, user_id: str, event: str, data: Any = None) -> None:
        """Send to one connection."""
        await self.manager.send_to_user(room_code, user_id, envelope(event, data))

    async def to_users(self, room_code: str, user_ids: Iterable[str], event: str, data: Any = None) -> None:
        """Send to several connections."""
        await self.manager.send_to_users(room_code, user_ids, envelope(event, data))

    async def close(self, room_code: str, user_id: str) -> None:
        """Close one connection."""
        await self.manager.close_connection(room_code, user_id)
