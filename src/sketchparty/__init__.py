"""Sketchparty: a real-time multiplayer drawing party game server on Litestar.

Rooms are joined over a WebSocket and play one of several modes: classic
guess-the-word turns (with dictionary, custom, or AI-themed words), a creative
mode where everyone draws the same prompt and votes, and a telephone mode
where sentences and drawings travel along chains.

Key Components:
    - Game: Session (one room), RoomRegistry, mode engines, scoring and hints
    - Canvas: CanvasHistory with per-user undo/redo, LayerStack
    - Realtime: message schemas, ConnectionManager, broadcasting
    - Plugin: SketchPartyPlugin for Litestar integration

Quick Start:
    >>> from litestar import Litestar
    >>> from sketchparty import SketchPartyPlugin, SketchPartyConfig
    >>>
    >>> app = Litestar(plugins=[SketchPartyPlugin(SketchPartyConfig())])
"""

from sketchparty.exceptions import InvalidMessageError, RoomNotFoundError, SketchPartyError
from sketchparty.game.registry import RoomRegistry
from sketchparty.game.session import Session
from sketchparty.plugin import SketchPartyConfig, SketchPartyPlugin

__version__ = "0.1.0"

__all__ = [
    "InvalidMessageError",
    "RoomNotFoundError",
    "RoomRegistry",
    "Session",
    "SketchPartyConfig",
    "SketchPartyError",
    "SketchPartyPlugin",
    "__version__",
]
