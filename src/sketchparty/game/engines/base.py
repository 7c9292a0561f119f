"""Common contract of the mode engines.

A room runs at most one engine at a time. The engine is built when the game
starts and torn down when the room returns to the lobby. Every hook is called
with the room lock held, by the room's message dispatcher or by one of the
room's timers.

Hooks for actions a mode does not support raise
:class:`~sketchparty.game.exceptions.GameStateError`, which the room reports
back to the sender.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from sketchparty.game.exceptions import GameStateError
from sketchparty.realtime.messages import ServerEvent

if TYPE_CHECKING:
    from sketchparty.canvas.history import CanvasAction, CanvasHistory
    from sketchparty.game.models import User
    from sketchparty.game.session import Session
    from sketchparty.game.types import GameMode


class ModeEngine(ABC):
    """Base class for the guessing, creative, and telephone engines.

    Attributes:
        private_surfaces: Whether players draw on their own surfaces instead
            of the room's shared canvas.
    """

    private_surfaces: ClassVar[bool] = False

    def __init__(self, session: Session) -> None:
        """Initialize the engine for a room.

        Args:
            session: The room the engine runs in.
        """
        self.session = session
        self.channel = session.channel
        self.timers = session.timers
        self.settings = session.settings
        self.mode: GameMode = session.settings.mode
        self.finished = False
        # spectator id -> followed player id
        self.subscriptions: dict[str, str] = {}

    @abstractmethod
    async def start(self) -> None:
        """Start the first turn, round, or phase."""

    @abstractmethod
    async def handle_disconnect(self, user: User) -> None:
        """React to a user leaving the room mid-game.

        Args:
            user: The user who left; already removed from the room.
        """

    async def tear_down(self) -> None:
        """Cancel every pending timer of the game."""
        self.finished = True
        self.timers.cancel_all()
        self.subscriptions.clear()

    async def handle_join(self, user: User) -> None:
        """React to a user entering the room mid-game."""

    def state_for(self, user: User) -> dict[str, Any]:
        """Get the game view sent to a user joining mid-game."""
        return {"mode": str(self.mode)}

    def may_draw(self, user: User) -> bool:
        """Check whether ``user`` may draw on the shared canvas."""
        return not user.is_spectator

    async def handle_chat(self, user: User, text: str) -> bool:
        """Inspect a chat line before it is broadcast.

        Returns:
            True if the engine consumed the line (for example a correct guess).
        """
        return False

    async def handle_draw(self, user: User, action: CanvasAction) -> None:
        """Record an action on the user's private surface."""
        msg = "Drawing is not available right now."
        raise GameStateError(msg)

    async def handle_undo(self, user: User) -> None:
        """Undo on the user's private surface."""
        msg = "Undo is not available right now."
        raise GameStateError(msg)

    async def handle_redo(self, user: User) -> None:
        """Redo on the user's private surface."""
        msg = "Redo is not available right now."
        raise GameStateError(msg)

    async def choose_word(self, user: User, word: str, *, custom: bool = False) -> None:
        """Handle the drawer's word pick."""
        msg = "Word selection is not part of this game mode."
        raise GameStateError(msg)

    async def request_hint(self, user: User) -> None:
        """Handle a personal hint request."""
        msg = "Hints are not part of this game mode."
        raise GameStateError(msg)

    async def vote(self, user: User, target_id: str, stars: int) -> None:
        """Handle a creative vote."""
        msg = "Voting is not part of this game mode."
        raise GameStateError(msg)

    async def submit(self, user: User, content: Any) -> None:
        """Handle a creative image or telephone submission."""
        msg = "Submissions are not part of this game mode."
        raise GameStateError(msg)

    async def subscribe(self, spectator: User, target_id: str) -> None:
        """Make a spectator follow one player's private surface."""
        msg = "Following a player is not part of this game mode."
        raise GameStateError(msg)

    def subscribers_of(self, player_id: str) -> list[str]:
        """Get the spectators following ``player_id``."""
        return [spectator for spectator, target in self.subscriptions.items() if target == player_id]

    async def _publish_surface(self, user: User, surface: CanvasHistory) -> None:
        """Send a private surface to its owner and followers, and its undo state to the owner."""
        await self.channel.users([user.id, *self.subscribers_of(user.id)], ServerEvent.CANVAS_STATE, surface.snapshot())
        await self.channel.user(user.id, ServerEvent.UNDO_REDO_STATE, surface.availability(user.id))

    async def _end_game(self, payload: dict[str, Any]) -> None:
        """Announce the end of the game and return the room to the lobby."""
        if self.finished:
            return
        self.finished = True
        await self.channel.room(ServerEvent.GAME_ENDED, payload)
        await self.session.return_to_lobby()
