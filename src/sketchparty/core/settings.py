"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


@dataclass
class AppSettings:
    """Application settings.

    Attributes:
        debug: Enable Litestar debug mode and debug level logging.
        json_logs: Render logs as JSON (for production).
        dictionary_path: Optional path to a one-word-per-line dictionary file.
            The bundled word list is used when unset.
        ai_model: Model name used by the OpenAI theme-word provider.
        openai_api_key: API key for the theme-word provider. Themed games fall
            back to the dictionary when unset.
        ws_path: Mount path for the game WebSocket.
        api_path: Mount path for the HTTP lobby API.
    """

    debug: bool = False
    json_logs: bool = False
    dictionary_path: str | None = None
    ai_model: str = "gpt-4o-mini"
    openai_api_key: str | None = None
    ws_path: str = "/ws"
    api_path: str = "/api"

    @classmethod
    def from_env(cls) -> AppSettings:
        """Create settings from environment variables.

        Environment variables:
            SKETCHPARTY_DEBUG: Enable debug mode (default: false)
            SKETCHPARTY_JSON_LOGS: Output JSON logs (default: false)
            SKETCHPARTY_DICTIONARY: Path to the word dictionary file
            SKETCHPARTY_AI_MODEL: Theme-word model (default: gpt-4o-mini)
            OPENAI_API_KEY: Enables the AI theme-word provider
            SKETCHPARTY_WS_PATH: WebSocket mount path (default: /ws)
            SKETCHPARTY_API_PATH: HTTP API mount path (default: /api)

        Returns:
            AppSettings instance.
        """
        return cls(
            debug=_env_flag("SKETCHPARTY_DEBUG"),
            json_logs=_env_flag("SKETCHPARTY_JSON_LOGS"),
            dictionary_path=os.environ.get("SKETCHPARTY_DICTIONARY") or None,
            ai_model=os.environ.get("SKETCHPARTY_AI_MODEL", "gpt-4o-mini"),
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            ws_path=os.environ.get("SKETCHPARTY_WS_PATH", "/ws"),
            api_path=os.environ.get("SKETCHPARTY_API_PATH", "/api"),
        )
