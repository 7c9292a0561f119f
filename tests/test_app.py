"""Tests for the application factory and settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from litestar.testing import TestClient

from sketchparty.app import create_app
from sketchparty.core.settings import AppSettings

if TYPE_CHECKING:
    from pathlib import Path

    import pytest


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test settings with an empty environment."""
        for name in ("SKETCHPARTY_DEBUG", "SKETCHPARTY_DICTIONARY", "OPENAI_API_KEY", "SKETCHPARTY_WS_PATH"):
            monkeypatch.delenv(name, raising=False)

        settings = AppSettings.from_env()

        assert settings.debug is False
        assert settings.dictionary_path is None
        assert settings.openai_api_key is None
        assert settings.ws_path == "/ws"

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test reading the environment."""
        monkeypatch.setenv("SKETCHPARTY_DEBUG", "yes")
        monkeypatch.setenv("SKETCHPARTY_DICTIONARY", "/tmp/words.txt")
        monkeypatch.setenv("SKETCHPARTY_AI_MODEL", "gpt-4o")
        monkeypatch.setenv("SKETCHPARTY_API_PATH", "/api/v2")

        settings = AppSettings.from_env()

        assert settings.debug is True
        assert settings.dictionary_path == "/tmp/words.txt"
        assert settings.ai_model == "gpt-4o"
        assert settings.api_path == "/api/v2"


class TestCreateApp:
    """Tests for the application factory."""

    def test_app_serves_health_and_api(self, tmp_path: Path) -> None:
        """Test that the factory mounts the health checks and the lobby API."""
        dictionary = tmp_path / "words.txt"
        dictionary.write_text("cat\ndog\n", encoding="utf-8")
        app = create_app(AppSettings(dictionary_path=str(dictionary), api_path="/lobby"))
        client = TestClient(app=app)

        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/ready").json()["ready"] is True
        assert client.get("/lobby/rooms/public-count").json() == {"playable": 0, "observable": 0}
        assert client.get("/lobby/rooms/random").status_code == 404

    def test_websocket_is_mounted(self) -> None:
        """Test that the game WebSocket answers on the configured path."""
        app = create_app(AppSettings(ws_path="/play"))

        with TestClient(app=app) as client, client.websocket_connect("/play/room/ABC") as ws:
            ws.send_json({"type": "join", "username": "Alice"})

            assert ws.receive_json()["type"] == "roomJoined"
