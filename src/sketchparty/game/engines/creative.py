"""Creative engine: everyone draws the same prompt, then the room votes.

Round phases: DRAWING -> INTERMISSION -> PRESENTATION -> VOTING -> SCORING,
then the next round or the end of the game. Each player draws on a private
surface; spectators can follow one player's surface live.
"""

from __future__ import annotations

import dataclasses
import random
from typing import TYPE_CHECKING, Any

import structlog

from sketchparty.canvas.history import CanvasHistory
from sketchparty.game.engines.base import ModeEngine
from sketchparty.game.exceptions import GameStateError, InvalidActionError, PermissionDeniedError
from sketchparty.game.scoring import rank
from sketchparty.game.types import CreativePhase
from sketchparty.realtime.messages import ServerEvent

if TYPE_CHECKING:
    from sketchparty.canvas.history import CanvasAction
    from sketchparty.game.models import User
    from sketchparty.game.session import Session

logger = structlog.get_logger(__name__)

INTERMISSION_TIME = 5
VOTE_GRACE_TIME = 5
SCORING_TIME = 15
PODIUM_SIZE = 3
MIN_STARS = 1
MAX_STARS = 5


class CreativeEngine(ModeEngine):
    """Draw-then-vote game.

    Attributes:
        phase: Current phase of the round.
        round_index: 1-based round number.
        word: Prompt every player draws this round.
        surfaces: Private drawing surface per player of the round.
        images: Rendered images submitted by players this round.
        presentation_order: Artist ids in presentation order.
        votes: ``votes[target][voter] = stars`` for the current round.
        scores: Cumulative stars per player, never removed.
    """

    private_surfaces = True

    def __init__(self, session: Session) -> None:
        """Initialize the engine for a room.

        Args:
            session: The room the engine runs in.
        """
        super().__init__(session)
        self.phase = CreativePhase.DRAWING
        self.round_index = 0
        self.total_rounds = self.settings.rounds
        self.word: str | None = None
        self.surfaces: dict[str, CanvasHistory] = {}
        self.images: dict[str, str] = {}
        self.presentation_order: list[str] = []
        self.presentation_cursor = 0
        self.votes: dict[str, dict[str, int]] = {}
        self.scores: dict[str, int] = {}
        self.departed: dict[str, User] = {}
        self.voting_complete = False

    async def start(self) -> None:
        """Reset scores and start the first round."""
        players = self.session.players()
        self.scores = {player.id: 0 for player in players}
        logger.info("Creative game started", room_code=self.session.code, players=len(players))
        await self.channel.room(
            ServerEvent.GAME_STARTED,
            {"mode": str(self.mode), "scores": dict(self.scores), "totalRounds": self.total_rounds},
        )
        await self.start_round()

    async def start_round(self) -> None:
        """Assign a new prompt and open the drawing phase."""
        if self.finished:
            return
        self.round_index += 1
        self.phase = CreativePhase.DRAWING
        self.word = self.session.word_bank.random_word()
        self.surfaces = {player.id: CanvasHistory() for player in self.session.players()}
        self.images = {}
        self.votes = {}
        self.presentation_order = []
        self.presentation_cursor = 0
        self.voting_complete = False

        logger.info("Creative round started", room_code=self.session.code, round=self.round_index)

        await self.channel.room(
            ServerEvent.CREATIVE_ROUND_START,
            {
                "word": self.word,
                "duration": self.settings.draw_time,
                "roundIndex": self.round_index,
                "totalRounds": self.total_rounds,
            },
        )
        self.timers.start("phase", self.settings.draw_time, self._start_intermission)

    def _surface_for(self, user: User) -> CanvasHistory:
        if self.phase != CreativePhase.DRAWING:
            msg = "Drawing time is over."
            raise GameStateError(msg)
        surface = self.surfaces.get(user.id)
        if surface is None:
            msg = "You are not drawing this round."
            raise PermissionDeniedError(msg)
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
        """Store the rendered image of the player's drawing.

        Raises:
            GameStateError: Outside the drawing phase and the intermission.
            PermissionDeniedError: If the user does not draw this round.
            InvalidActionError: If the content is not an image string.
        """
        if self.phase not in (CreativePhase.DRAWING, CreativePhase.INTERMISSION):
            msg = "Drawings can no longer be submitted."
            raise GameStateError(msg)
        if user.id not in self.surfaces:
            msg = "You are not drawing this round."
            raise PermissionDeniedError(msg)
        if not isinstance(content, str) or not content:
            msg = "A drawing image is required."
            raise InvalidActionError(msg)
        self.images[user.id] = content

    async def _start_intermission(self) -> None:
        self.phase = CreativePhase.INTERMISSION
        await self.channel.room(ServerEvent.CREATIVE_INTERMISSION, {"duration": INTERMISSION_TIME})
        self.timers.start("phase", INTERMISSION_TIME, self._start_presentation)

    async def _start_presentation(self) -> None:
        self.phase = CreativePhase.PRESENTATION
        self.presentation_order = list(self.surfaces)
        random.shuffle(self.presentation_order)
        self.presentation_cursor = 0
        await self._present_next()

    async def _present_next(self) -> None:
        if self.presentation_cursor >= len(self.presentation_order):
            await self._start_voting()
            return
        artist_id = self.presentation_order[self.presentation_cursor]
        self.presentation_cursor += 1
        await self.channel.room(
            ServerEvent.CREATIVE_PRESENTATION,
            {
                **self._drawing_entry(artist_id),
                "index": self.presentation_cursor,
                "total": len(self.presentation_order),
                "duration": self.settings.presentation_time,
            },
        )
        self.timers.start("phase", self.settings.presentation_time, self._present_next)

    def _artist_name(self, user_id: str) -> str | None:
        user = self.session.get_user(user_id) or self.departed.get(user_id)
        return user.username if user else None

    def _drawing_entry(self, artist_id: str) -> dict[str, Any]:
        anonymous = self.settings.anonymous_voting
        return {
            "artistId": artist_id,
            "artist": None if anonymous else self._artist_name(artist_id),
            "drawing": self.surfaces[artist_id].snapshot(),
            "image": self.images.get(artist_id),
        }

    async def _start_voting(self) -> None:
        self.phase = CreativePhase.VOTING
        self.votes = {artist_id: {} for artist_id in self.surfaces}
        await self.channel.room(
            ServerEvent.CREATIVE_VOTING_START,
            {
                "drawings": [self._drawing_entry(artist_id) for artist_id in self.presentation_order],
                "anonymous": self.settings.anonymous_voting,
                "duration": self.settings.vote_time,
            },
        )
        self.timers.start("phase", self.settings.vote_time, self._score_round)

    async def vote(self, user: User, target_id: str, stars: int) -> None:
        """Record a 1-5 star vote for another player's drawing.

        Raises:
            GameStateError: Outside the voting phase.
            PermissionDeniedError: If the voter is a spectator.
            InvalidActionError: For a self-vote, an unknown target, a repeat
                vote, or a star count outside 1-5.
        """
        if self.phase != CreativePhase.VOTING:
            msg = "Voting is not open."
            raise GameStateError(msg)
        if user.is_spectator:
            msg = "Spectators cannot vote."
            raise PermissionDeniedError(msg)
        if target_id == user.id:
            msg = "You cannot vote for your own drawing."
            raise InvalidActionError(msg)
        ballots = self.votes.get(target_id)
        if ballots is None:
            msg = "Unknown drawing."
            raise InvalidActionError(msg)
        if not MIN_STARS <= stars <= MAX_STARS:
            msg = f"Votes must be between {MIN_STARS} and {MAX_STARS} stars."
            raise InvalidActionError(msg)
        if user.id in ballots:
            msg = "You already voted for this drawing."
            raise InvalidActionError(msg)

        ballots[user.id] = stars
        await self._check_votes_complete()

    def _voters(self) -> list[str]:
        return [player.id for player in self.session.players() if player.id in self.surfaces]

    async def _check_votes_complete(self) -> None:
        if self.voting_complete:
            return
        voters = self._voters()
        done = [
            voter
            for voter in voters
            if all(voter in self.votes[target] for target in self.votes if target != voter and target in voters)
        ]
        await self.channel.room(ServerEvent.CREATIVE_VOTE_UPDATE, {"votersDone": len(done), "totalVoters": len(voters)})
        if voters and len(done) == len(voters):
            self.voting_complete = True
            self.timers.start("phase", VOTE_GRACE_TIME, self._score_round)

    async def _score_round(self) -> None:
        if self.phase != CreativePhase.VOTING:
            return
        self.phase = CreativePhase.SCORING
        round_totals = {artist_id: sum(ballots.values()) for artist_id, ballots in self.votes.items()}
        for artist_id, total in round_totals.items():
            self.scores[artist_id] = self.scores.get(artist_id, 0) + total

        results = []
        for position, (artist_id, total) in enumerate(rank(round_totals)):
            results.append(
                {
                    "userId": artist_id,
                    "username": self._artist_name(artist_id),
                    "score": total,
                    "votes": len(self.votes[artist_id]),
                    "drawing": self.surfaces[artist_id].snapshot() if position < PODIUM_SIZE else None,
                    "image": self.images.get(artist_id) if position < PODIUM_SIZE else None,
                }
            )

        logger.info("Creative round scored", room_code=self.session.code, round=self.round_index)

        await self.channel.room(
            ServerEvent.CREATIVE_ROUND_END,
            {
                "results": results,
                "scores": dict(self.scores),
                "roundIndex": self.round_index,
                "totalRounds": self.total_rounds,
                "duration": SCORING_TIME,
            },
        )
        self.timers.start("phase", SCORING_TIME, self._after_scoring)

    async def _after_scoring(self) -> None:
        if self.round_index >= self.total_rounds:
            await self.end_game()
        else:
            await self.start_round()

    async def end_game(self) -> None:
        """Publish the final standings and return the room to the lobby."""
        if self.finished:
            return
        self.timers.cancel_all()
        for user in self.session.users:
            if user.id in self.scores:
                user.score = self.scores[user.id]
        results = [
            {
                "userId": user_id,
                "username": self._artist_name(user_id),
                "score": score,
                "isDisconnected": self.session.get_user(user_id) is None,
            }
            for user_id, score in rank(self.scores)
        ]
        logger.info("Creative game ended", room_code=self.session.code, rounds=self.round_index)
        await self._end_game({"scores": dict(self.scores), "results": results})

    async def subscribe(self, spectator: User, target_id: str) -> None:
        """Follow a player's surface and replay what they drew so far.

        Raises:
            PermissionDeniedError: If the follower is not a spectator.
            InvalidActionError: If the target does not draw this round.
        """
        if not spectator.is_spectator:
            msg = "Only spectators can follow a player."
            raise PermissionDeniedError(msg)
        surface = self.surfaces.get(target_id)
        if surface is None:
            msg = "That player is not drawing this round."
            raise InvalidActionError(msg)
        self.subscriptions[spectator.id] = target_id
        await self.channel.user(
            spectator.id,
            ServerEvent.CREATIVE_SPECTATE,
            {"targetId": target_id, "word": self.word, "phase": str(self.phase)},
        )
        await self.channel.user(spectator.id, ServerEvent.CANVAS_STATE, surface.snapshot())

    async def handle_disconnect(self, user: User) -> None:
        """End the game below two players; otherwise keep the drawing but stop waiting for the player."""
        self.subscriptions.pop(user.id, None)
        if user.is_spectator or self.finished:
            return
        self.departed[user.id] = dataclasses.replace(user)
        for spectator in self.subscribers_of(user.id):
            del self.subscriptions[spectator]

        if len(self.session.players()) < 2:
            await self.session.system_message("Not enough players left, the game is over.")
            await self.end_game()
            return

        if self.phase == CreativePhase.VOTING:
            await self._check_votes_complete()

    def state_for(self, user: User) -> dict[str, Any]:
        """Game view for a user joining mid-game."""
        return {
            "mode": str(self.mode),
            "phase": str(self.phase),
            "word": self.word,
            "roundIndex": self.round_index,
            "totalRounds": self.total_rounds,
            "scores": dict(self.scores),
            "players": list(self.surfaces),
        }
