"""Type definitions for game functionality."""

from __future__ import annotations

from enum import StrEnum


class GameMode(StrEnum):
    """Available game modes."""

    GUESS_WORD = "guess-word"
    CUSTOM_WORD = "custom-word"
    AI_THEME = "ai-theme"
    CREATIVE = "creative"
    TELEPHONE = "telephone"

    @property
    def is_guessing(self) -> bool:
        """Whether the mode is one of the turn-based guessing variants."""
        return self in (GameMode.GUESS_WORD, GameMode.CUSTOM_WORD, GameMode.AI_THEME)


class RoomState(StrEnum):
    """Lifecycle state of a room."""

    LOBBY = "LOBBY"
    READY_CHECK = "READY_CHECK"
    PLAYING = "PLAYING"


class RoundEndReason(StrEnum):
    """Why a guessing turn ended."""

    TIME_UP = "time_up"
    ALL_GUESSED = "all_guessed"
    DRAWER_LEFT = "drawer_left"


class CreativePhase(StrEnum):
    """Phases of a creative round."""

    DRAWING = "DRAWING"
    INTERMISSION = "INTERMISSION"
    PRESENTATION = "PRESENTATION"
    VOTING = "VOTING"
    SCORING = "SCORING"


class TelephonePhase(StrEnum):
    """Phase of a telephone round."""

    WRITING = "WRITING"
    DRAWING = "DRAWING"


class HintFailure(StrEnum):
    """Reasons a personal hint request can be refused."""

    NO_WORD = "no_word"
    NO_CREDITS = "no_credits"
    COOLDOWN = "cooldown"
    NOTHING_LEFT = "nothing_left"
