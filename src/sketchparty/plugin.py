"""Litestar plugin for sketchparty integration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog
from litestar.di import Provide
from litestar.plugins import InitPluginProtocol

from sketchparty.core.scheduler import AsyncioScheduler
from sketchparty.game.registry import RoomRegistry
from sketchparty.game.wordbank import WordBank
from sketchparty.realtime.broadcast import ConnectionBroadcaster
from sketchparty.realtime.manager import ConnectionManager
from sketchparty.web.router import create_router

if TYPE_CHECKING:
    from litestar import Litestar
    from litestar.config.app import AppConfig

    from sketchparty.core.scheduler import Scheduler
    from sketchparty.game.providers import ThemeWordProvider

logger = structlog.get_logger(__name__)


@dataclass
class SketchPartyConfig:
    """Configuration for the SketchParty plugin.

    Attributes:
        enable_api: Whether to mount the lobby HTTP API. Defaults to True.
        enable_websocket: Whether to mount the game WebSocket. Defaults to True.
        api_path: Base path for the HTTP API. Defaults to "/api".
        ws_path: Base path for the WebSocket routes. Defaults to "/ws".
        word_bank: Dictionary shared by every room. The bundled list is used
            when None.
        theme_provider: AI provider for themed games. Themed games use the
            dictionary when None.
        scheduler: Clock for room timers. The asyncio loop is used when None.
        connection_manager: Optional pre-configured ConnectionManager. A new
            one is created when None.

    Example:
        >>> config = SketchPartyConfig(api_path="/api/v1", word_bank=WordBank.from_file("words.txt"))
    """

    enable_api: bool = True
    enable_websocket: bool = True
    api_path: str = "/api"
    ws_path: str = "/ws"
    word_bank: WordBank | None = None
    theme_provider: ThemeWordProvider | None = None
    scheduler: Scheduler | None = None
    connection_manager: ConnectionManager | None = field(default=None)


class SketchPartyPlugin(InitPluginProtocol):
    """Litestar plugin wiring the game rooms into an application.

    On app init it builds the connection manager and the room registry,
    registers both for dependency injection (``connection_manager`` and
    ``room_registry``) and in ``app.state``, and mounts the lobby API and the
    game WebSocket. Every room is destroyed on shutdown.

    Example:
        >>> from litestar import Litestar
        >>> from sketchparty import SketchPartyConfig, SketchPartyPlugin
        >>>
        >>> app = Litestar(plugins=[SketchPartyPlugin(SketchPartyConfig())])
    """

    def __init__(self, config: SketchPartyConfig | None = None) -> None:
        """Initialize the plugin with optional configuration.

        Args:
            config: Plugin configuration. Defaults are used when None.
        """
        self._config = config or SketchPartyConfig()
        self._connection_manager: ConnectionManager | None = None
        self._registry: RoomRegistry | None = None

    @property
    def registry(self) -> RoomRegistry | None:
        """Get the room registry (None until the app is initialized)."""
        return self._registry

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Build the game services and register routes and dependencies.

        Args:
            app_config: The Litestar application configuration object.

        Returns:
            The modified application configuration.
        """
        self._connection_manager = self._config.connection_manager or ConnectionManager()
        self._registry = RoomRegistry(
            ConnectionBroadcaster(self._connection_manager),
            word_bank=self._config.word_bank or WordBank(),
            theme_provider=self._config.theme_provider,
            scheduler=self._config.scheduler,
        )

        def provide_room_registry() -> RoomRegistry:
            """Dependency provider for RoomRegistry.

            Returns:
                The initialized RoomRegistry instance.
            """
            if self._registry is None:
                msg = "Room registry not initialized"
                raise RuntimeError(msg)
            return self._registry

        def provide_connection_manager() -> ConnectionManager:
            """Dependency provider for ConnectionManager.

            Returns:
                The initialized ConnectionManager instance.
            """
            if self._connection_manager is None:
                msg = "Connection manager not initialized"
                raise RuntimeError(msg)
            return self._connection_manager

        app_config.dependencies["room_registry"] = Provide(provide_room_registry, sync_to_thread=False)
        app_config.dependencies["connection_manager"] = Provide(provide_connection_manager, sync_to_thread=False)
        app_config.state["room_registry"] = self._registry
        app_config.state["connection_manager"] = self._connection_manager

        if self._config.enable_api:
            app_config.route_handlers.append(create_router(path=self._config.api_path))

        if self._config.enable_websocket:
            from sketchparty.realtime.handler import create_game_websocket_handler

            game_ws_router, _ = create_game_websocket_handler(
                path=self._config.ws_path,
                registry=self._registry,
                manager=self._connection_manager,
            )
            app_config.route_handlers.append(game_ws_router)

        app_config.on_shutdown.append(self._on_shutdown)
        return app_config

    async def _on_shutdown(self, app: Litestar) -> None:
        if self._registry is not None:
            rooms = len(self._registry)
            await self._registry.close()
            if isinstance(self._registry.scheduler, AsyncioScheduler):
                await self._registry.scheduler.shutdown()
            logger.info("Rooms closed on shutdown", rooms=rooms)
