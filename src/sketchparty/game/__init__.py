"""Game domain: rooms, settings, words, scoring, and the mode engines."""

from sketchparty.game.exceptions import (
    GameError,
    GameStateError,
    HintUnavailableError,
    InvalidActionError,
    JoinRejectedError,
    PermissionDeniedError,
    ThemeProviderError,
    WordBankError,
)
from sketchparty.game.models import ChatMessage, GameSettings, User
from sketchparty.game.registry import RoomRegistry
from sketchparty.game.session import Session
from sketchparty.game.types import GameMode, RoomState
from sketchparty.game.wordbank import ThemedWordPool, WordBank

__all__ = [
    "ChatMessage",
    "GameError",
    "GameMode",
    "GameSettings",
    "GameStateError",
    "HintUnavailableError",
    "InvalidActionError",
    "JoinRejectedError",
    "PermissionDeniedError",
    "RoomRegistry",
    "RoomState",
    "Session",
    "ThemeProviderError",
    "ThemedWordPool",
    "User",
    "WordBank",
    "WordBankError",
]
