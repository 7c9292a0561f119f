"""Registry of the live rooms of the server."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Literal

import structlog

from sketchparty.core.scheduler import AsyncioScheduler
from sketchparty.exceptions import RoomNotFoundError
from sketchparty.game.exceptions import JoinRejectedError
from sketchparty.game.models import clamp_max_players
from sketchparty.game.session import Session
from sketchparty.game.types import RoomState
from sketchparty.game.wordbank import WordBank

if TYPE_CHECKING:
    from sketchparty.core.scheduler import Scheduler
    from sketchparty.game.models import User
    from sketchparty.game.providers import ThemeWordProvider
    from sketchparty.realtime.broadcast import Broadcaster
    from sketchparty.realtime.messages import JoinRoom

logger = structlog.get_logger(__name__)

RoomFilter = Literal["any", "lobby", "playing"]


class RoomRegistry:
    """Owns every :class:`Session`, keyed by room code.

    A room is created by the first player joining its code and destroyed as
    soon as its last member leaves.
    """

    def __init__(
        self,
        broadcaster: Broadcaster,
        *,
        word_bank: WordBank | None = None,
        theme_provider: ThemeWordProvider | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        """Initialize an empty registry.

        Args:
            broadcaster: Transport shared by every room.
            word_bank: Dictionary shared by every room.
            theme_provider: Optional AI word provider for themed games.
            scheduler: Clock for room timers. Defaults to the asyncio loop.
        """
        self.broadcaster = broadcaster
        self.word_bank = word_bank or WordBank()
        self.theme_provider = theme_provider
        self.scheduler = scheduler or AsyncioScheduler()
        self._rooms: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_code: object) -> bool:
        return room_code in self._rooms

    def get(self, room_code: str) -> Session | None:
        """Get a live room by code."""
        return self._rooms.get(room_code)

    def require(self, room_code: str) -> Session:
        """Get a live room by code.

        Raises:
            RoomNotFoundError: If no live room has this code.
        """
        session = self._rooms.get(room_code)
        if session is None:
            raise RoomNotFoundError(room_code)
        return session

    @property
    def rooms(self) -> list[Session]:
        """Get every live room."""
        return list(self._rooms.values())

    def _create(self, room_code: str, request: JoinRoom) -> Session:
        session = Session(
            room_code,
            self.broadcaster,
            scheduler=self.scheduler,
            word_bank=self.word_bank,
            theme_provider=self.theme_provider,
        )
        session.settings.is_private = request.is_private
        session.settings.allow_spectators = request.allow_spectators
        if request.max_players is not None:
            session.settings.max_players = clamp_max_players(request.max_players)
        self._rooms[room_code] = session
        logger.info(
            "Room created",
            room_code=room_code,
            is_private=session.settings.is_private,
            max_players=session.settings.max_players,
        )
        return session

    async def join(self, room_code: str, user_id: str, request: JoinRoom) -> tuple[Session, User]:
        """Add a user to a room, creating the room on first join.

        Args:
            room_code: Code of the room.
            user_id: Session-scoped id of the user.
            request: The join message, carrying the room options used on creation.

        Returns:
            The room and the new member.

        Raises:
            JoinRejectedError: If a spectator tries to create the room or the
                room rejects the user.
        """
        session = self._rooms.get(room_code)
        created = session is None
        if session is None:
            if request.is_spectator:
                msg = "Spectators cannot create a room."
                raise JoinRejectedError(msg)
            session = self._create(room_code, request)

        try:
            user = await session.join(user_id, request.username, request.avatar, is_spectator=request.is_spectator)
        except JoinRejectedError:
            if session.closed and not created:
                # The room emptied and closed while this join waited for it.
                return await self.join(room_code, user_id, request)
            if created and session.is_empty:
                await self._destroy(room_code)
            raise
        return session, user

    async def leave(self, room_code: str, user_id: str) -> None:
        """Remove a user from a room, destroying the room once it is empty.

        Unknown rooms and users are ignored.
        """
        session = self._rooms.get(room_code)
        if session is None:
            return
        if await session.leave(user_id):
            await self._destroy(room_code)

    async def _destroy(self, room_code: str) -> None:
        session = self._rooms.pop(room_code, None)
        if session is None:
            return
        await session.close()
        logger.info("Room destroyed", room_code=room_code, remaining_rooms=len(self._rooms))

    async def close(self) -> None:
        """Destroy every room."""
        for room_code in list(self._rooms):
            await self._destroy(room_code)

    def public_rooms(self, state: RoomFilter = "any") -> list[Session]:
        """Get the public rooms, optionally filtered by lobby or playing state."""
        rooms = [session for session in self._rooms.values() if not session.settings.is_private]
        if state == "lobby":
            return [session for session in rooms if session.state != RoomState.PLAYING]
        if state == "playing":
            return [session for session in rooms if session.state == RoomState.PLAYING]
        return rooms

    def public_counts(self) -> dict[str, int]:
        """Count public rooms a player could join and rooms a spectator could watch."""
        rooms = self.public_rooms()
        return {
            "playable": sum(1 for session in rooms if len(session.players()) < session.settings.max_players),
            "observable": sum(1 for session in rooms if session.settings.allow_spectators),
        }

    def find_random(self, *, is_spectator: bool = False, state: RoomFilter = "any") -> Session | None:
        """Pick a random public room with room for the requester.

        Args:
            is_spectator: Look for a room accepting spectators instead of players.
            state: Restrict the search to rooms in the lobby or playing.

        Returns:
            A room, or None if none qualifies.
        """
        if is_spectator:
            candidates = [session for session in self.public_rooms(state) if session.settings.allow_spectators]
        else:
            candidates = [
                session
                for session in self.public_rooms(state)
                if len(session.players()) < session.settings.max_players
            ]
        return random.choice(candidates) if candidates else None
