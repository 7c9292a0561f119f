"""Game data models: users, room settings, and chat lines."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from sketchparty.canvas.layers import DEFAULT_LAYER_ID
from sketchparty.game.exceptions import InvalidActionError
from sketchparty.game.types import GameMode

MAX_USERNAME_LENGTH = 20
MAX_CHAT_LENGTH = 200
MIN_PLAYERS = 2
MAX_PLAYERS = 8

DEFAULT_WORD_CHOICE_TIME = 20
CUSTOM_WORD_CHOICE_TIME = 45


def sanitize_username(raw: str) -> str:
    """Escape angle brackets, trim, and cut a username to 20 characters.

    Args:
        raw: Username as typed by the client.

    Returns:
        The sanitized username (possibly empty).
    """
    escaped = raw.replace("<", "&lt;").replace(">", "&gt;")
    return escaped.strip()[:MAX_USERNAME_LENGTH]


def clamp_max_players(value: Any) -> int:
    """Clamp a requested room capacity to the supported 2-8 range."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return MAX_PLAYERS
    return max(MIN_PLAYERS, min(MAX_PLAYERS, number))


@dataclass
class User:
    """A connected member of a room.

    Attributes:
        id: Opaque session-scoped identifier.
        username: Display name, unique per room (case-insensitive).
        avatar: Client-defined avatar descriptor.
        is_spectator: Spectators watch but never draw, guess, or vote.
        score: Score carried over from the last finished game.
        active_layer_id: Layer the user is currently drawing on.
    """

    id: str
    username: str
    avatar: Any = None
    is_spectator: bool = False
    score: int = 0
    active_layer_id: str = DEFAULT_LAYER_ID

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "username": self.username,
            "avatar": self.avatar,
            "isSpectator": self.is_spectator,
            "score": self.score,
            "activeLayerId": self.active_layer_id,
        }


# Wire name -> (attribute, minimum, maximum). Bounds only apply to ints.
_SETTING_FIELDS: dict[str, tuple[str, int | None, int | None]] = {
    "mode": ("mode", None, None),
    "drawTime": ("draw_time", 15, 240),
    "wordChoiceTime": ("word_choice_time", 5, 120),
    "wordChoices": ("word_choices", 1, 5),
    "rounds": ("rounds", 1, 10),
    "allowFuzzy": ("allow_fuzzy", None, None),
    "hintsEnabled": ("hints_enabled", None, None),
    "maxWordLength": ("max_word_length", 3, 40),
    "personalHints": ("personal_hints", 0, 10),
    "allowTracing": ("allow_tracing", None, None),
    "theme": ("theme", None, None),
    "presentationTime": ("presentation_time", 3, 60),
    "voteTime": ("vote_time", 10, 180),
    "anonymousVoting": ("anonymous_voting", None, None),
    "writeTime": ("write_time", 10, 180),
    "isPrivate": ("is_private", None, None),
    "allowSpectators": ("allow_spectators", None, None),
    "maxPlayers": ("max_players", MIN_PLAYERS, MAX_PLAYERS),
}

MAX_THEME_LENGTH = 50


@dataclass
class GameSettings:
    """Configurable settings for a room.

    Attributes:
        mode: Game mode played when the game starts.
        draw_time: Seconds per drawing turn (also the telephone drawing phase
            and the creative drawing phase).
        word_choice_time: Seconds the drawer has to pick or type a word.
        word_choices: Number of words offered to the drawer.
        rounds: Rounds per game (guessing and creative modes).
        allow_fuzzy: Accept guesses that only differ in diacritics.
        hints_enabled: Reveal letters automatically during a turn.
        max_word_length: Longest word a drawer may type in custom-word mode.
        personal_hints: Personal hint credits per player per game.
        allow_tracing: Whether clients may show a tracing reference image.
        theme: Theme used for AI-generated words.
        presentation_time: Seconds each creative drawing is presented.
        vote_time: Seconds of the creative voting phase.
        anonymous_voting: Hide artist names during creative presentation/voting.
        write_time: Seconds of a telephone writing phase.
        is_private: Hidden from public room lookups.
        allow_spectators: Whether spectators may join.
        max_players: Capacity for non-spectators (2-8).
    """

    mode: GameMode = GameMode.GUESS_WORD
    draw_time: int = 80
    word_choice_time: int = DEFAULT_WORD_CHOICE_TIME
    word_choices: int = 3
    rounds: int = 3
    allow_fuzzy: bool = False
    hints_enabled: bool = True
    max_word_length: int = 20
    personal_hints: int = 3
    allow_tracing: bool = True
    theme: str = ""
    presentation_time: int = 10
    vote_time: int = 60
    anonymous_voting: bool = False
    write_time: int = 60
    is_private: bool = False
    allow_spectators: bool = True
    max_players: int = MAX_PLAYERS

    def update(self, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply client-provided changes.

        Integers are clamped to their allowed range and unknown keys are
        ignored. Switching the mode resets ``word_choice_time`` to that mode's
        default unless the change also sets it.

        Args:
            changes: Wire-named settings (``drawTime``, ``rounds``...).

        Returns:
            The wire-named settings that were applied.

        Raises:
            InvalidActionError: If a value has the wrong type or the mode is unknown.
        """
        pending: dict[str, tuple[str, Any]] = {}
        for key, value in changes.items():
            field_range = _SETTING_FIELDS.get(key)
            if field_range is None:
                continue
            attribute, low, high = field_range
            current = getattr(self, attribute)
            if attribute == "mode":
                try:
                    value = GameMode(value)
                except ValueError as e:
                    msg = f"Unknown game mode: {value}"
                    raise InvalidActionError(msg) from e
                if value != self.mode and "wordChoiceTime" not in changes:
                    default_time = CUSTOM_WORD_CHOICE_TIME if value == GameMode.CUSTOM_WORD else DEFAULT_WORD_CHOICE_TIME
                    pending["wordChoiceTime"] = ("word_choice_time", default_time)
            elif isinstance(current, bool):
                if not isinstance(value, bool):
                    msg = f"Setting {key} must be a boolean"
                    raise InvalidActionError(msg)
            elif isinstance(current, int):
                if isinstance(value, bool) or not isinstance(value, int | float):
                    msg = f"Setting {key} must be a number"
                    raise InvalidActionError(msg)
                value = max(low, min(high, int(value)))
            else:
                if not isinstance(value, str):
                    msg = f"Setting {key} must be a string"
                    raise InvalidActionError(msg)
                value = value.strip()[:MAX_THEME_LENGTH]
            pending[key] = (attribute, value)

        for attribute, value in pending.values():
            setattr(self, attribute, value)
        return {key: value for key, (_, value) in pending.items()}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary using wire names."""
        return {key: getattr(self, attribute) for key, (attribute, _, _) in _SETTING_FIELDS.items()}


@dataclass
class ChatMessage:
    """A chat line broadcast to the room."""

    message: str
    username: str | None = None
    user_id: str | None = None
    is_system: bool = False
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def system(cls, message: str) -> ChatMessage:
        """Create a system notification line."""
        return cls(message=message, is_system=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "message": self.message,
            "username": self.username,
            "userId": self.user_id,
            "isSystem": self.is_system,
            "timestamp": self.timestamp,
        }
