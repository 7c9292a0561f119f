"""Telephone engine: sentences and drawings passed along chains.

Every player owns one chain. Rounds alternate between WRITING (odd rounds)
and DRAWING (even rounds); in each round every player adds one step to the
chain of someone else, looking only at that chain's previous step. After as
many rounds as players, every chain holds one step from every player and the
whole history is revealed.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from sketchparty.canvas.history import CanvasHistory
from sketchparty.game.engines.base import ModeEngine
from sketchparty.game.exceptions import GameStateError, InvalidActionError, PermissionDeniedError
from sketchparty.game.types import TelephonePhase
from sketchparty.realtime.messages import ServerEvent

if TYPE_CHECKING:
    from sketchparty.canvas.history import CanvasAction
    from sketchparty.game.models import User
    from sketchparty.game.session import Session

logger = structlog.get_logger(__name__)

SUBMIT_GRACE = 3
NEXT_ROUND_DELAY = 3
MAX_SENTENCE_LENGTH = 200
TEXT_PLACEHOLDER = "…"
DRAWING_PLACEHOLDER = ""


def chain_index(seat: int, round_no: int, size: int) -> int:
    """Index of the chain the player at ``seat`` contributes to in ``round_no``.

    Round 1 starts each player on their own chain; every following round
    shifts everyone one chain back.

    Args:
        seat: Seat of the player in the fixed seating order.
        round_no: 1-based round number.
        size: Number of seats.

    Returns:
        ``(seat - (round_no - 1) + size * round_no) mod size``.
    """
    return (seat - (round_no - 1) + size * round_no) % size


def phase_for(round_no: int) -> TelephonePhase:
    """Odd rounds are written, even rounds are drawn."""
    return TelephonePhase.WRITING if round_no % 2 == 1 else TelephonePhase.DRAWING


@dataclass
class ChainStep:
    """One contribution to a chain."""

    author_id: str
    author_name: str
    kind: TelephonePhase
    content: Any

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "authorId": self.author_id,
            "authorName": self.author_name,
            "type": str(self.kind),
            "content": self.content,
        }


class TelephoneEngine(ModeEngine):
    """Chain game.

    Attributes:
        seats: Player ids in seating order, fixed for the game.
        chains: Steps of each chain, keyed by the id of the chain's owner.
        round_no: 1-based round number; the game has ``len(seats)`` rounds.
        pending: Submissions of the current round, keyed by author id.
        surfaces: Drawing surface of each player during a DRAWING round.
    """

    private_surfaces = True

    def __init__(self, session: Session) -> None:
        """Initialize the engine for a room.

        Args:
            session: The room the engine runs in.
        """
        super().__init__(session)
        self.seats: list[str] = []
        self.names: dict[str, str] = {}
        self.chains: dict[str, list[ChainStep]] = {}
        self.round_no = 0
        self.phase = TelephonePhase.WRITING
        self.pending: dict[str, Any] = {}
        self.surfaces: dict[str, CanvasHistory] = {}
        self.round_complete = False

    @property
    def total_rounds(self) -> int:
        """Get the number of rounds, one per seat."""
        return len(self.seats)

    def chain_owner(self, seat: int, round_no: int | None = None) -> str:
        """Get the owner of the chain the player at ``seat`` works on."""
        return self.seats[chain_index(seat, round_no or self.round_no, len(self.seats))]

    def _duration(self) -> int:
        return self.settings.write_time if self.phase == TelephonePhase.WRITING else self.settings.draw_time

    async def start(self) -> None:
        """Seat the players and start the first writing round."""
        players = self.session.players()
        self.seats = [player.id for player in players]
        random.shuffle(self.seats)
        self.names = {player.id: player.username for player in players}
        self.chains = {player_id: [] for player_id in self.seats}

        logger.info("Telephone game started", room_code=self.session.code, players=len(self.seats))

        await self.channel.room(
            ServerEvent.GAME_STARTED,
            {"mode": str(self.mode), "seats": list(self.seats), "totalRounds": self.total_rounds},
        )
        await self.start_round()

    def _previous_step(self, seat: int) -> dict[str, Any] | None:
        steps = self.chains[self.chain_owner(seat)]
        if self.round_complete:
            # This round's step is already appended; the prompt is the one before it.
            steps = steps[:-1]
        return steps[-1].to_dict() if steps else None

    async def start_round(self) -> None:
        """Open the next round and send every player their prompt."""
        if self.finished:
            return
        self.round_no += 1
        self.phase = phase_for(self.round_no)
        self.pending = {}
        self.round_complete = False
        self.surfaces = {}
        duration = self._duration()
        base = {
            "round": self.round_no,
            "totalRounds": self.total_rounds,
            "phase": str(self.phase),
            "duration": duration,
        }

        for seat, player_id in enumerate(self.seats):
            if self.session.get_user(player_id) is None:
                continue
            if self.phase == TelephonePhase.DRAWING:
                self.surfaces[player_id] = CanvasHistory()
            await self.channel.user(
                player_id,
                ServerEvent.TELEPHONE_ROUND_START,
                {**base, "previousStep": self._previous_step(seat)},
            )
        await self.channel.users(
            [spectator.id for spectator in self.session.spectators()],
            ServerEvent.TELEPHONE_ROUND_START,
            {**base, "previousStep": None},
        )

        logger.info("Telephone round started", room_code=self.session.code, round=self.round_no, phase=str(self.phase))
        self.timers.start("phase", duration + SUBMIT_GRACE, self.complete_round)

    def _surface_for(self, user: User) -> CanvasHistory:
        surface = self.surfaces.get(user.id)
        if self.phase != TelephonePhase.DRAWING or self.round_complete or surface is None:
            msg = "You cannot draw right now."
            raise GameStateError(msg)
        return surface

    async def handle_draw(self, user: User, action: CanvasAction) -> None:
        """Record an action on the player's surface and relay it to followers."""
        surface = self._surface_for(user)
        surface.record(action)
        await self.channel.users(self.subscribers_of(user.id), ServerEvent.DRAW, action.to_dict())
        await self.channel.user(user.id, ServerEvent.UNDO_REDO_STATE, surface.availability(user.id))

    async def handle_undo(self, user: User) -> None:
        """Undo the player's last stroke on their surface."""
        surface = self._surface_for(user)
        if surface.undo(user.id):
            await self._publish_surface(user, surface)

    async def handle_redo(self, user: User) -> None:
        """Redo the player's last undone stroke on their surface."""
        surface = self._surface_for(user)
        if surface.redo(user.id):
            await self._publish_surface(user, surface)

    async def submit(self, user: User, content: Any) -> None:
        """Accept a player's step for this round.

        Writing rounds take a sentence. Drawing rounds take an image string or
        an action list; with no content the player's surface is used.

        Raises:
            GameStateError: If the round is already complete.
            PermissionDeniedError: If the user has no seat.
            InvalidActionError: If the user already submitted or the content is invalid.
        """
        if self.round_complete or self.finished:
            msg = "This round is already over."
            raise GameStateError(msg)
        if user.id not in self.seats:
            msg = "You are not part of this game."
            raise PermissionDeniedError(msg)
        if user.id in self.pending:
            msg = "You already submitted this round."
            raise InvalidActionError(msg)

        if self.phase == TelephonePhase.WRITING:
            if not isinstance(content, str) or not content.strip():
                msg = "Please write a sentence."
                raise InvalidActionError(msg)
            content = content.strip()[:MAX_SENTENCE_LENGTH]
        elif content is None:
            surface = self.surfaces.get(user.id)
            content = surface.snapshot() if surface is not None else DRAWING_PLACEHOLDER
        elif not isinstance(content, str | list):
            msg = "A drawing is required."
            raise InvalidActionError(msg)

        self.pending[user.id] = content
        await self.channel.room(
            ServerEvent.TELEPHONE_SUBMITTED,
            {"userId": user.id, "submitted": len(self.pending), "total": len(self._present_seats())},
        )
        if self._all_submitted():
            await self.complete_round()

    def _present_seats(self) -> list[str]:
        return [player_id for player_id in self.seats if self.session.get_user(player_id) is not None]

    def _all_submitted(self) -> bool:
        return all(player_id in self.pending for player_id in self._present_seats())

    def _backfill(self, player_id: str) -> Any:
        if self.phase == TelephonePhase.WRITING:
            return TEXT_PLACEHOLDER
        surface = self.surfaces.get(player_id)
        if surface is not None and len(surface):
            return surface.snapshot()
        return DRAWING_PLACEHOLDER

    async def complete_round(self) -> None:
        """Append one step to every chain, then advance or reveal the recap.

        Missing submissions are backfilled so every chain grows by exactly one
        step per round.
        """
        if self.round_complete or self.finished:
            return
        self.round_complete = True
        self.timers.cancel("phase")

        for seat, player_id in enumerate(self.seats):
            content = self.pending[player_id] if player_id in self.pending else self._backfill(player_id)
            self.chains[self.chain_owner(seat)].append(
                ChainStep(author_id=player_id, author_name=self.names[player_id], kind=self.phase, content=content)
            )

        logger.info(
            "Telephone round completed",
            room_code=self.session.code,
            round=self.round_no,
            submitted=len(self.pending),
        )

        if self.round_no >= self.total_rounds:
            await self.finish()
        else:
            self.timers.start("next_round", NEXT_ROUND_DELAY, self.start_round)

    def recap(self) -> list[dict[str, Any]]:
        """Every chain with all of its steps, in seating order."""
        return [
            {
                "ownerId": owner_id,
                "ownerName": self.names[owner_id],
                "steps": [step.to_dict() for step in self.chains[owner_id]],
            }
            for owner_id in self.seats
        ]

    async def finish(self) -> None:
        """Reveal the recap and return the room to the lobby."""
        if self.finished:
            return
        self.timers.cancel_all()
        recap = self.recap()
        logger.info("Telephone game ended", room_code=self.session.code, rounds=self.round_no)
        await self.channel.room(ServerEvent.TELEPHONE_GAME_ENDED, {"recap": recap})
        await self._end_game({"recap": recap})

    async def subscribe(self, spectator: User, target_id: str) -> None:
        """Follow a player: show the prompt they answer and their drawing so far.

        Raises:
            PermissionDeniedError: If the follower is not a spectator.
            InvalidActionError: If the target has no seat.
        """
        if not spectator.is_spectator:
            msg = "Only spectators can follow a player."
            raise PermissionDeniedError(msg)
        if target_id not in self.seats:
            msg = "That player is not part of this game."
            raise InvalidActionError(msg)
        self.subscriptions[spectator.id] = target_id
        seat = self.seats.index(target_id)
        await self.channel.user(
            spectator.id,
            ServerEvent.TELEPHONE_SPECTATE,
            {
                "targetId": target_id,
                "round": self.round_no,
                "phase": str(self.phase),
                "previousStep": self._previous_step(seat),
            },
        )
        surface = self.surfaces.get(target_id)
        if surface is not None:
            await self.channel.user(spectator.id, ServerEvent.CANVAS_STATE, surface.snapshot())

    async def handle_disconnect(self, user: User) -> None:
        """End the game below two players; otherwise stop waiting for the player."""
        self.subscriptions.pop(user.id, None)
        if user.is_spectator or self.finished:
            return
        for spectator in self.subscribers_of(user.id):
            del self.subscriptions[spectator]

        if len(self.session.players()) < 2:
            await self.session.system_message("Not enough players left, the game is over.")
            await self.finish()
            return

        if not self.round_complete and self._all_submitted():
            await self.complete_round()

    def state_for(self, user: User) -> dict[str, Any]:
        """Game view for a user joining mid-game."""
        return {
            "mode": str(self.mode),
            "round": self.round_no,
            "totalRounds": self.total_rounds,
            "phase": str(self.phase),
            "seats": list(self.seats),
        }
