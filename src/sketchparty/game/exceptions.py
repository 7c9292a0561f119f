"""Exception classes for game module.

Every :class:`GameError` carries a machine-readable ``code``; the room turns
any of them raised while handling a client message into an ``error`` event
for that client.
"""

from __future__ import annotations

from sketchparty.exceptions import SketchPartyError
from sketchparty.game.types import HintFailure


class GameError(SketchPartyError):
    """Base exception for all game-related errors."""

    code = "game_error"


class GameStateError(GameError):
    """Raised when an action is not valid in the current game state."""

    code = "invalid_state"


class PermissionDeniedError(GameError):
    """Raised when a user attempts an action reserved to someone else."""

    code = "permission_denied"


class InvalidActionError(GameError):
    """Raised when an action carries invalid values (bad word, bad vote)."""

    code = "invalid_action"


class JoinRejectedError(GameError):
    """Raised when a user cannot enter a room."""

    code = "join_rejected"


class HintUnavailableError(GameError):
    """Raised when a personal hint cannot be granted.

    Attributes:
        reason: Why the hint was refused.
        retry_after: Seconds left on the cooldown, for ``COOLDOWN`` only.
    """

    _MESSAGES = {
        HintFailure.NO_WORD: "There is no word to hint at right now.",
        HintFailure.NO_CREDITS: "You have no hints left.",
        HintFailure.COOLDOWN: "Please wait {retry_after}s before asking for another hint.",
        HintFailure.NOTHING_LEFT: "All letters are already revealed.",
    }

    def __init__(self, reason: HintFailure, retry_after: int | None = None) -> None:
        """Initialize the exception.

        Args:
            reason: Why the hint was refused.
            retry_after: Seconds left on the cooldown.
        """
        self.reason = reason
        self.retry_after = retry_after
        self.code = str(reason)
        super().__init__(self._MESSAGES[reason].format(retry_after=retry_after))


class WordBankError(GameError):
    """Raised when word bank operations fail."""

    code = "word_bank_error"


class ThemeProviderError(WordBankError):
    """Raised when the theme-word provider fails or returns too few words."""

    def __init__(self, theme: str, reason: str) -> None:
        """Initialize the exception.

        Args:
            theme: The theme words were requested for.
            reason: What went wrong.
        """
        super().__init__(f"Could not generate words for theme {theme!r}: {reason}")
        self.theme = theme
        self.reason = reason
