"""Turn engine for the guessing modes (guess-word, custom-word, ai-theme).

Each player draws once per round in a fixed, shuffled order. A turn goes
through word selection (pick from a few words, type a word, or pick from
AI-themed words), then a drawing countdown during which the other players
guess in the chat and letters of the word are revealed as hints.
"""

from __future__ import annotations

import dataclasses
import math
import random
from typing import TYPE_CHECKING, Any

import structlog

from sketchparty.game.engines.base import ModeEngine
from sketchparty.game.exceptions import (
    GameStateError,
    HintUnavailableError,
    InvalidActionError,
    PermissionDeniedError,
)
from sketchparty.game.hints import is_correct_guess, pick_hidden_index, render_hint
from sketchparty.game.scoring import drawer_points, guess_points, rank
from sketchparty.game.types import GameMode, HintFailure, RoundEndReason
from sketchparty.game.wordbank import ThemedWordPool, normalize_word
from sketchparty.realtime.messages import ServerEvent

if TYPE_CHECKING:
    from sketchparty.game.models import User
    from sketchparty.game.session import Session

logger = structlog.get_logger(__name__)

NEXT_TURN_DELAY = 5
HINT_COOLDOWN = 20
HINT_PHASES = 5
THEMED_POOL_FACTOR = 5

_END_MESSAGES = {
    RoundEndReason.TIME_UP: "Time is up!",
    RoundEndReason.ALL_GUESSED: "Everyone found the word!",
    RoundEndReason.DRAWER_LEFT: "The drawer left the game.",
}


class TurnEngine(ModeEngine):
    """Runs turns, rounds, word selection, hints, guesses, and scoring.

    Attributes:
        turn_order: Player ids in drawing order, fixed for the whole game.
        drawer_index: Index of the current drawer in ``turn_order``.
        current_round: 1-based round number.
        total_rounds: Number of rounds in the game.
        scores: Cumulative scores. Entries are never removed, even when a
            player leaves.
        round_scores: Points earned during the current turn.
        personal_hints: Personal hint credits left, per player, for the game.
        current_word: The word being drawn, None until chosen.
        guessed: Ids of players who found the word this turn, in order.
        revealed: Indices revealed to every guesser this turn.
        personal_revealed: Extra indices revealed to one guesser this turn.
        time_left: Seconds left in the drawing countdown.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the engine for a room.

        Args:
            session: The room the engine runs in.
        """
        super().__init__(session)
        self.turn_order: list[str] = []
        self.drawer_index = 0
        self.current_round = 1
        self.total_rounds = self.settings.rounds
        self.scores: dict[str, int] = {}
        self.round_scores: dict[str, int] = {}
        self.personal_hints: dict[str, int] = {}
        self.hint_cooldowns: dict[str, float] = {}
        self.departed: dict[str, User] = {}
        self.word_pool: ThemedWordPool | None = None

        self.current_word: str | None = None
        self.word_options: list[str] = []
        self.guessed: list[str] = []
        self.revealed: set[int] = set()
        self.personal_revealed: dict[str, set[int]] = {}
        self.time_left = 0
        self.hint_step = 0
        self.next_hint_at = 0
        self.hints_given = 0
        self.round_ended = False

    @property
    def drawer_id(self) -> str | None:
        """Get the id of the current drawer."""
        if not self.turn_order:
            return None
        return self.turn_order[self.drawer_index]

    async def start(self) -> None:
        """Shuffle the turn order, reset scores, and start the first turn."""
        players = self.session.players()
        self.turn_order = [player.id for player in players]
        random.shuffle(self.turn_order)
        self.scores = {player.id: 0 for player in players}
        self.personal_hints = {player.id: self.settings.personal_hints for player in players}
        self.drawer_index = 0
        self.current_round = 1

        if self.mode == GameMode.AI_THEME:
            self.word_pool = ThemedWordPool(self.settings.theme, self.session.word_bank, self.session.theme_provider)
            await self.word_pool.prepare(
                len(players) * self.total_rounds * self.settings.word_choices * THEMED_POOL_FACTOR
            )

        logger.info(
            "Guessing game started",
            room_code=self.session.code,
            mode=str(self.mode),
            players=len(players),
            rounds=self.total_rounds,
        )

        await self.channel.room(
            ServerEvent.GAME_STARTED,
            {
                "mode": str(self.mode),
                "turnOrder": self.turn_order,
                "scores": dict(self.scores),
                "currentRound": self.current_round,
                "totalRounds": self.total_rounds,
                "personalHints": self.settings.personal_hints,
            },
        )
        await self.start_turn()

    async def start_turn(self) -> None:
        """Start the turn of the player at ``drawer_index``.

        Players who left are skipped.
        """
        if self.finished:
            return

        drawer = self.session.get_user(self.drawer_id) if self.drawer_id else None
        if drawer is None or drawer.is_spectator:
            await self.next_turn()
            return

        self.timers.cancel("round")
        self.timers.cancel("word_choice")
        self.timers.cancel("next_turn")
        self.current_word = None
        self.word_options = []
        self.guessed = []
        self.revealed = set()
        self.personal_revealed = {}
        self.time_left = 0
        self.round_ended = False
        self.round_scores = {player_id: 0 for player_id in self.scores}

        await self.session.reset_canvas()

        logger.info(
            "Turn started",
            room_code=self.session.code,
            drawer_id=drawer.id,
            round=self.current_round,
            drawer_index=self.drawer_index,
        )

        await self.channel.room(
            ServerEvent.TURN_START,
            {
                "drawerId": drawer.id,
                "drawerName": drawer.username,
                "drawerIndex": self.drawer_index,
                "currentRound": self.current_round,
                "totalRounds": self.total_rounds,
                "timeout": self.settings.word_choice_time,
            },
        )
        await self._request_word(drawer)

    async def _request_word(self, drawer: User) -> None:
        timeout = self.settings.word_choice_time
        if self.mode == GameMode.CUSTOM_WORD:
            await self.channel.user(
                drawer.id,
                ServerEvent.TYPE_WORD,
                {"timeout": timeout, "maxWordLength": self.settings.max_word_length},
            )
        else:
            count = self.settings.word_choices
            if self.word_pool is not None:
                self.word_options = await self.word_pool.take(count)
            else:
                self.word_options = self.session.word_bank.random_words(count)
            await self.channel.user(drawer.id, ServerEvent.CHOOSE_WORD, {"words": self.word_options, "timeout": timeout})

        self.timers.start("word_choice", timeout, self._word_choice_timeout)

    async def _word_choice_timeout(self) -> None:
        if self.current_word is not None or self.round_ended:
            return
        if self.word_options:
            word = random.choice(self.word_options)
        else:
            word = self.session.word_bank.random_word()
        logger.info("Word choice timed out", room_code=self.session.code, drawer_id=self.drawer_id)
        await self._finalize_word(word)

    async def choose_word(self, user: User, word: str, *, custom: bool = False) -> None:
        """Accept the drawer's word.

        Args:
            user: The sender; must be the current drawer.
            word: The picked or typed word.
            custom: Whether the word was typed (custom-word mode).

        Raises:
            PermissionDeniedError: If the sender is not the drawer.
            GameStateError: If the word is already chosen or the turn is over.
            InvalidActionError: If the word is empty, too long, or not offered.
        """
        if user.id != self.drawer_id:
            msg = "Only the drawer can choose the word."
            raise PermissionDeniedError(msg)
        if self.current_word is not None or self.round_ended:
            msg = "The word has already been chosen."
            raise GameStateError(msg)
        if custom != (self.mode == GameMode.CUSTOM_WORD):
            msg = "This word selection does not match the game mode."
            raise GameStateError(msg)

        if custom:
            word = normalize_word(word)
            if not word:
                msg = "The word cannot be empty."
                raise InvalidActionError(msg)
            if len(word) > self.settings.max_word_length:
                msg = f"The word must be at most {self.settings.max_word_length} characters."
                raise InvalidActionError(msg)
        else:
            wanted = normalize_word(word)
            picked = next((option for option in self.word_options if option == wanted), None)
            if picked is None:
                msg = "Invalid word selection."
                raise InvalidActionError(msg)
            word = picked

        await self._finalize_word(word)

    async def _finalize_word(self, word: str) -> None:
        """Lock in the word and start the drawing countdown.

        Runs at most once per turn, whichever of the drawer and the word
        choice timer gets there first.
        """
        if self.current_word is not None or self.round_ended:
            return
        self.timers.cancel("word_choice")

        draw_time = self.settings.draw_time
        self.current_word = normalize_word(word)
        self.time_left = draw_time
        self.hint_step = draw_time // HINT_PHASES
        self.next_hint_at = draw_time - self.hint_step
        self.hints_given = 0

        logger.info("Word chosen", room_code=self.session.code, drawer_id=self.drawer_id, word_length=len(word))

        await self.channel.room(
            ServerEvent.ROUND_START,
            {
                "drawerId": self.drawer_id,
                "duration": draw_time,
                "wordLength": len(self.current_word),
                "hint": render_hint(self.current_word),
            },
        )
        await self.channel.user(self.drawer_id, ServerEvent.YOUR_WORD, {"word": self.current_word})
        self.timers.start("round", 1, self._tick)

    async def _tick(self) -> None:
        if self.round_ended or self.current_word is None:
            return
        self.time_left -= 1

        if (
            self.settings.hints_enabled
            and self.hint_step > 0
            and self.hints_given < HINT_PHASES - 1
            and 0 < self.time_left <= self.next_hint_at
        ):
            await self._reveal_hint()
            self.hints_given += 1
            self.next_hint_at -= self.hint_step

        if self.time_left <= 0:
            await self.end_round(RoundEndReason.TIME_UP)
            return
        self.timers.start("round", 1, self._tick)

    def hint_for(self, user_id: str) -> str | None:
        """Render the hint as seen by ``user_id`` (global plus personal letters)."""
        if self.current_word is None:
            return None
        return render_hint(self.current_word, self.revealed | self.personal_revealed.get(user_id, set()))

    async def _reveal_hint(self) -> None:
        index = pick_hidden_index(self.current_word, self.revealed)
        if index is None:
            return
        self.revealed.add(index)
        for user in self.session.users:
            if user.id != self.drawer_id:
                await self.channel.user(user.id, ServerEvent.UPDATE_HINT, {"hint": self.hint_for(user.id)})

    def reveal_personal_hint(self, user: User) -> str:
        """Spend one of ``user``'s hint credits on an extra letter.

        Args:
            user: The guesser asking for a hint.

        Returns:
            The user's updated hint.

        Raises:
            GameStateError: If the user is the drawer, a spectator, or has
                already found the word.
            HintUnavailableError: With reason ``NO_WORD``, ``NO_CREDITS``,
                ``COOLDOWN`` (and ``retry_after``), or ``NOTHING_LEFT``.
        """
        if self.current_word is None or self.round_ended:
            raise HintUnavailableError(HintFailure.NO_WORD)
        if user.is_spectator or user.id == self.drawer_id or user.id in self.guessed:
            msg = "You cannot ask for a hint right now."
            raise GameStateError(msg)
        if self.personal_hints.get(user.id, 0) <= 0:
            raise HintUnavailableError(HintFailure.NO_CREDITS)

        now = self.timers.now()
        last = self.hint_cooldowns.get(user.id)
        if last is not None and now - last < HINT_COOLDOWN:
            raise HintUnavailableError(HintFailure.COOLDOWN, retry_after=math.ceil(HINT_COOLDOWN - (now - last)))

        personal = self.personal_revealed.setdefault(user.id, set())
        index = pick_hidden_index(self.current_word, self.revealed | personal)
        if index is None:
            raise HintUnavailableError(HintFailure.NOTHING_LEFT)

        personal.add(index)
        self.personal_hints[user.id] -= 1
        self.hint_cooldowns[user.id] = now
        return self.hint_for(user.id)

    async def request_hint(self, user: User) -> None:
        """Reveal a personal hint and send it to the requester only."""
        hint = self.reveal_personal_hint(user)
        await self.channel.user(
            user.id,
            ServerEvent.HINT_REVEALED,
            {"hint": hint, "remainingHints": self.personal_hints[user.id], "cooldown": HINT_COOLDOWN},
        )

    def may_draw(self, user: User) -> bool:
        """Only the current drawer may touch the canvas."""
        return not user.is_spectator and user.id == self.drawer_id

    async def handle_chat(self, user: User, text: str) -> bool:
        """Treat the chat line as a guess when the sender is still guessing.

        Returns:
            True if the line was a correct guess (and must not be broadcast).
        """
        if (
            self.current_word is None
            or self.round_ended
            or user.is_spectator
            or user.id == self.drawer_id
            or user.id in self.guessed
        ):
            return False
        if not is_correct_guess(self.current_word, text, fuzzy=self.settings.allow_fuzzy):
            return False
        await self._award_guess(user)
        return True

    async def _award_guess(self, user: User) -> None:
        points = guess_points(self.time_left, self.settings.draw_time, first=not self.guessed)
        self.guessed.append(user.id)
        self.scores[user.id] = self.scores.get(user.id, 0) + points
        self.round_scores[user.id] = self.round_scores.get(user.id, 0) + points

        active = len(self.session.players())
        bonus = drawer_points(active)
        drawer_id = self.drawer_id
        self.scores[drawer_id] = self.scores.get(drawer_id, 0) + bonus
        self.round_scores[drawer_id] = self.round_scores.get(drawer_id, 0) + bonus

        logger.info(
            "Correct guess",
            room_code=self.session.code,
            user_id=user.id,
            points=points,
            drawer_points=bonus,
        )

        await self.channel.room(ServerEvent.PLAYER_GUESSED, {"userId": user.id, "username": user.username, "points": points})
        await self.channel.room(
            ServerEvent.SCORE_UPDATE,
            {"scores": dict(self.scores), "roundScores": dict(self.round_scores)},
        )
        await self.session.system_message(f"{user.username} guessed the word!")

        if self._everyone_found():
            await self.end_round(RoundEndReason.ALL_GUESSED)

    def _everyone_found(self) -> bool:
        active = len(self.session.players())
        present_guessers = sum(1 for user_id in self.guessed if self.session.get_user(user_id) is not None)
        return present_guessers >= active - 1

    async def end_round(self, reason: RoundEndReason) -> None:
        """End the current turn and schedule the next one.

        Calling it again for the same turn does nothing.

        Args:
            reason: Why the turn ended.
        """
        if self.round_ended or self.finished:
            return
        self.round_ended = True
        self.timers.cancel("round")
        self.timers.cancel("word_choice")

        logger.info("Turn ended", room_code=self.session.code, reason=str(reason), round=self.current_round)

        await self.channel.room(
            ServerEvent.ROUND_END,
            {
                "reason": str(reason),
                "message": _END_MESSAGES[reason],
                "word": self.current_word,
                "scores": dict(self.scores),
                "roundScores": self._round_scores_payload(),
            },
        )
        self.timers.start("next_turn", NEXT_TURN_DELAY, self.next_turn)

    def _round_scores_payload(self) -> dict[str, int]:
        # Players who left stay listed; only current spectators are dropped.
        spectators = {user.id for user in self.session.spectators()}
        return {player_id: points for player_id, points in self.round_scores.items() if player_id not in spectators}

    async def next_turn(self) -> None:
        """Advance to the next drawer, the next round, or the end of the game."""
        if self.finished:
            return
        self.drawer_index += 1
        if self.drawer_index >= len(self.turn_order):
            self.drawer_index = 0
            self.current_round += 1
            if self.current_round > self.total_rounds:
                await self.end_game()
                return
        await self.start_turn()

    def compile_results(self) -> list[dict[str, Any]]:
        """Final ranking, including players who left during the game."""
        results = []
        for user_id, score in rank(self.scores):
            user = self.session.get_user(user_id)
            departed = user is None
            if departed:
                user = self.departed.get(user_id)
            results.append(
                {
                    "userId": user_id,
                    "username": user.username if user else "?",
                    "avatar": user.avatar if user else None,
                    "score": score,
                    "isDisconnected": departed,
                }
            )
        return results

    async def end_game(self) -> None:
        """Publish the final ranking and return the room to the lobby."""
        if self.finished:
            return
        self.timers.cancel_all()
        for user in self.session.users:
            if user.id in self.scores:
                user.score = self.scores[user.id]

        logger.info("Guessing game ended", room_code=self.session.code, rounds=self.total_rounds)
        await self._end_game({"scores": dict(self.scores), "results": self.compile_results()})

    async def handle_join(self, user: User) -> None:
        """Late players can guess (and score) but never draw this game."""
        if user.is_spectator:
            return
        self.scores.setdefault(user.id, 0)
        self.round_scores.setdefault(user.id, 0)
        self.personal_hints.setdefault(user.id, self.settings.personal_hints)

    async def handle_disconnect(self, user: User) -> None:
        """End the game below two players, or the turn if the drawer left."""
        self.subscriptions.pop(user.id, None)
        if user.is_spectator or self.finished:
            return
        self.departed[user.id] = dataclasses.replace(user)

        if len(self.session.players()) < 2:
            await self.session.system_message("Not enough players left, the game is over.")
            await self.end_game()
            return

        if self.round_ended:
            return
        if user.id == self.drawer_id:
            await self.end_round(RoundEndReason.DRAWER_LEFT)
        elif self.current_word is not None and self._everyone_found():
            await self.end_round(RoundEndReason.ALL_GUESSED)

    def state_for(self, user: User) -> dict[str, Any]:
        """Game view for a user joining mid-game."""
        return {
            "mode": str(self.mode),
            "turnOrder": self.turn_order,
            "drawerId": self.drawer_id,
            "currentRound": self.current_round,
            "totalRounds": self.total_rounds,
            "scores": dict(self.scores),
            "guessedPlayers": list(self.guessed),
            "timeLeft": self.time_left,
            "duration": self.settings.draw_time,
            "hint": self.hint_for(user.id) if user.id != self.drawer_id else self.current_word,
            "personalHints": self.personal_hints.get(user.id, 0),
            "roundEnded": self.round_ended,
        }
