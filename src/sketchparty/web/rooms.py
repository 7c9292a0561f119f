"""Lobby API: public room counts, random room lookup, and room lookup by code."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, ClassVar, Literal

import structlog
from litestar import Controller, get
from litestar.exceptions import NotFoundException
from litestar.params import Parameter

from sketchparty.exceptions import RoomNotFoundError
from sketchparty.game.registry import RoomRegistry  # noqa: TC001

if TYPE_CHECKING:
    from sketchparty.game.session import Session

logger = structlog.get_logger(__name__)


@dataclass
class PublicCountsDTO:
    """Number of public rooms open to players and to spectators."""

    playable: int
    observable: int


@dataclass
class RoomSummaryDTO:
    """Public description of a room."""

    code: str
    state: str
    mode: str
    players: int
    spectators: int
    max_players: int
    allow_spectators: bool


def room_to_response(session: Session) -> RoomSummaryDTO:
    """Convert a room to its response DTO."""
    return RoomSummaryDTO(
        code=session.code,
        state=str(session.state),
        mode=str(session.settings.mode),
        players=len(session.players()),
        spectators=len(session.spectators()),
        max_players=session.settings.max_players,
        allow_spectators=session.settings.allow_spectators,
    )


class RoomController(Controller):
    """Read-only lookups over the live rooms.

    Rooms are created and joined over the WebSocket; these endpoints only help
    a client find one.
    """

    path = "/rooms"
    tags: ClassVar[list[str]] = ["Rooms"]

    @get("/public-count")
    async def public_count(self, room_registry: RoomRegistry) -> PublicCountsDTO:
        """Count the public rooms.

        Args:
            room_registry: Room registry (injected).

        Returns:
            Rooms a player could join and rooms a spectator could watch.
        """
        counts = room_registry.public_counts()
        return PublicCountsDTO(playable=counts["playable"], observable=counts["observable"])

    @get("/random")
    async def random_room(
        self,
        room_registry: RoomRegistry,
        spectator: bool = False,
        room_state: Annotated[Literal["any", "lobby", "playing"], Parameter(query="state")] = "any",
    ) -> RoomSummaryDTO:
        """Pick a random public room with room for the requester.

        Args:
            room_registry: Room registry (injected).
            spectator: Look for a room to watch instead of one to play in.
            room_state: Only consider rooms in the lobby or rooms playing (the
                `state` query parameter).

        Returns:
            The chosen room.

        Raises:
            NotFoundException: If no public room qualifies.
        """
        session = room_registry.find_random(is_spectator=spectator, state=room_state)
        if session is None:
            msg = "No public room available"
            raise NotFoundException(msg)
        logger.debug("Random room picked", room_code=session.code, spectator=spectator, state=room_state)
        return room_to_response(session)

    @get("/{room_code:str}")
    async def get_room(self, room_code: str, room_registry: RoomRegistry) -> RoomSummaryDTO:
        """Look up a room by code, for invite links.

        Args:
            room_code: The room code.
            room_registry: Room registry (injected).

        Returns:
            The room.

        Raises:
            NotFoundException: If no live room has this code.
        """
        try:
            session = room_registry.require(room_code)
        except RoomNotFoundError as e:
            raise NotFoundException(str(e)) from e
        return room_to_response(session)
