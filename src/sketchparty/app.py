"""Main Litestar application for sketchparty.

This module provides the application factory and the configured app instance
for running sketchparty as a standalone server.
"""

from __future__ import annotations

from litestar import Litestar
from litestar.openapi import OpenAPIConfig

from sketchparty.cli import SketchPartyCLIPlugin
from sketchparty.core.logging import RequestLoggingMiddleware, configure_logging
from sketchparty.core.settings import AppSettings
from sketchparty.game.providers import OpenAIThemeProvider
from sketchparty.game.wordbank import WordBank
from sketchparty.plugin import SketchPartyConfig, SketchPartyPlugin
from sketchparty.web.health import HealthController


def create_app(settings: AppSettings | None = None) -> Litestar:
    """Create and configure the Litestar application.

    Args:
        settings: Application settings. Read from the environment when None.

    Returns:
        Configured Litestar application instance.
    """
    settings = settings or AppSettings.from_env()
    configure_logging(debug=settings.debug, json_logs=settings.json_logs)

    word_bank = WordBank.from_file(settings.dictionary_path) if settings.dictionary_path else WordBank()
    theme_provider = (
        OpenAIThemeProvider(api_key=settings.openai_api_key, model=settings.ai_model)
        if settings.openai_api_key
        else None
    )

    plugin = SketchPartyPlugin(
        SketchPartyConfig(
            api_path=settings.api_path,
            ws_path=settings.ws_path,
            word_bank=word_bank,
            theme_provider=theme_provider,
        )
    )

    return Litestar(
        route_handlers=[HealthController],
        plugins=[SketchPartyCLIPlugin(), plugin],
        debug=settings.debug,
        middleware=[RequestLoggingMiddleware],
        openapi_config=OpenAPIConfig(
            title="sketchparty API",
            version="0.1.0",
            description="Real-time multiplayer drawing party game server",
            path="/schema",
            use_handler_docstrings=True,
        ),
    )


# Default application instance for uvicorn
app = create_app()
