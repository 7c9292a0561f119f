"""Mode engines and the factory choosing one for a game mode."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sketchparty.game.engines.base import ModeEngine
from sketchparty.game.engines.creative import CreativeEngine
from sketchparty.game.engines.telephone import TelephoneEngine
from sketchparty.game.engines.turn import TurnEngine
from sketchparty.game.types import GameMode

if TYPE_CHECKING:
    from sketchparty.game.session import Session

ENGINES: dict[GameMode, type[ModeEngine]] = {
    GameMode.CREATIVE: CreativeEngine,
    GameMode.TELEPHONE: TelephoneEngine,
}


def build_engine(session: Session) -> ModeEngine:
    """Create the engine for the room's configured mode.

    Args:
        session: The room starting a game.

    Returns:
        A fresh, not yet started engine.
    """
    mode = session.settings.mode
    if mode.is_guessing:
        return TurnEngine(session)
    return ENGINES[mode](session)


__all__ = [
    "ENGINES",
    "CreativeEngine",
    "ModeEngine",
    "TelephoneEngine",
    "TurnEngine",
    "build_engine",
]
