"""Tests for rooms: membership, lobby, ready check, shared canvas, and chat."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from sketchparty.canvas.layers import DEFAULT_LAYER_ID
from sketchparty.game.exceptions import (
    GameStateError,
    InvalidActionError,
    JoinRejectedError,
    PermissionDeniedError,
)
from sketchparty.game.session import READY_CHECK_TIMEOUT
from sketchparty.game.types import GameMode, RoomState
from sketchparty.realtime import messages as msgs
from sketchparty.realtime.messages import ServerEvent

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sketchparty.game.models import User
    from sketchparty.game.session import Session
    from tests.conftest import FakeScheduler, RecordingBroadcaster

    JoinPlayers = Callable[..., Awaitable[list[User]]]


def stroke(stroke_id: str, layer_id: str = DEFAULT_LAYER_ID) -> dict[str, str]:
    return {"strokeId": stroke_id, "layerId": layer_id, "tool": "pen", "color": "#000"}


class TestJoin:
    """Tests for joining a room."""

    async def test_first_player_leads(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that the first player becomes the leader."""
        alice, bob = await join_players(session, "Alice", "Bob")

        assert session.leader_id == alice.id
        assert [user.id for user in session.users] == ["alice", "bob"]

        joined = broadcaster.last(ServerEvent.USER_JOINED)
        assert joined.exclude == bob.id
        assert joined.data["user"]["username"] == "Bob"

        snapshot = broadcaster.last(ServerEvent.ROOM_JOINED)
        assert snapshot.targets == (bob.id,)
        assert snapshot.data["userId"] == bob.id
        assert snapshot.data["leaderId"] == alice.id
        assert snapshot.data["state"] == "LOBBY"
        assert snapshot.data["layers"][0]["id"] == DEFAULT_LAYER_ID
        assert snapshot.data["game"] is None

    async def test_spectator_never_leads(self, session: Session, join_players: JoinPlayers) -> None:
        """Test that a spectator joining first does not become leader."""
        await join_players(session, "Watcher", spectator=True)
        assert session.leader_id is None

        [alice] = await join_players(session, "Alice")
        assert session.leader_id == alice.id

    async def test_username_is_sanitized(self, session: Session) -> None:
        """Test username cleanup."""
        user = await session.join("u1", "  <b>" + "x" * 30)

        assert user.username.startswith("&lt;b&gt;")
        assert len(user.username) == 20

    @pytest.mark.parametrize("name", ["", "   "])
    async def test_empty_username(self, session: Session, name: str) -> None:
        """Test that a username is required."""
        with pytest.raises(JoinRejectedError):
            await session.join("u1", name)

    async def test_username_unique_case_insensitive(self, session: Session, join_players: JoinPlayers) -> None:
        """Test that names are unique per room, ignoring case."""
        await join_players(session, "Alice")

        with pytest.raises(JoinRejectedError, match="taken"):
            await session.join("other", "ALICE")

    async def test_room_full(self, make_session: Callable[..., Session], join_players: JoinPlayers) -> None:
        """Test the player capacity; spectators do not count."""
        session = make_session(max_players=2)
        await join_players(session, "Alice", "Bob")

        with pytest.raises(JoinRejectedError, match="full"):
            await session.join("carol", "Carol")
        spectator = await session.join("watcher", "Watcher", is_spectator=True)
        assert spectator.is_spectator

    async def test_spectators_not_allowed(self, make_session: Callable[..., Session]) -> None:
        """Test rooms closed to spectators."""
        session = make_session(allow_spectators=False)

        with pytest.raises(JoinRejectedError):
            await session.join("watcher", "Watcher", is_spectator=True)

    async def test_closed_room_rejects(self, session: Session) -> None:
        """Test that a closed room accepts nobody."""
        await session.close()

        with pytest.raises(JoinRejectedError):
            await session.join("u1", "Alice")


class TestLeave:
    """Tests for leaving and leadership transfer."""

    async def test_leader_transfer(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that leadership passes to the next player."""
        await join_players(session, "Alice", "Bob", "Carol")

        empty = await session.leave("alice")

        assert empty is False
        assert session.leader_id == "bob"
        left = broadcaster.last(ServerEvent.USER_LEFT).data
        assert left["userId"] == "alice"
        assert left["leaderId"] == "bob"

    async def test_last_player_leaving_dismisses_spectators(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that spectators are let go when no player is left."""
        await join_players(session, "Alice")
        await join_players(session, "Watcher", spectator=True)

        empty = await session.leave("alice")

        assert empty is True
        assert session.leader_id is None
        assert broadcaster.received("watcher", ServerEvent.KICKED)
        assert broadcaster.closed == ["watcher"]

    async def test_unknown_user(self, session: Session) -> None:
        """Test that leaving twice is harmless."""
        assert await session.leave("ghost") is True


class TestKick:
    """Tests for kicking members."""

    async def test_leader_kicks(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that the kicked member is told, removed, and disconnected."""
        alice, _ = await join_players(session, "Alice", "Bob")

        await session.kick(alice, "bob")

        assert broadcaster.received("bob", ServerEvent.KICKED)
        assert session.get_user("bob") is None
        assert broadcaster.closed == ["bob"]
        assert "Bob was kicked." in [line["message"] for line in broadcaster.received("alice", ServerEvent.CHAT_MESSAGE)]

    async def test_only_leader_kicks(self, session: Session, join_players: JoinPlayers) -> None:
        """Test that other members cannot kick."""
        _, bob = await join_players(session, "Alice", "Bob")

        with pytest.raises(PermissionDeniedError):
            await session.kick(bob, "alice")

    async def test_invalid_targets(self, session: Session, join_players: JoinPlayers) -> None:
        """Test kicking oneself or a stranger."""
        [alice] = await join_players(session, "Alice")

        with pytest.raises(InvalidActionError):
            await session.kick(alice, "alice")
        with pytest.raises(InvalidActionError):
            await session.kick(alice, "ghost")


class TestLobby:
    """Tests for settings and roles."""

    async def test_leader_updates_settings(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that settings are clamped and broadcast."""
        [alice] = await join_players(session, "Alice")

        await session.update_settings(alice, {"drawTime": 999, "rounds": 0, "mode": "custom-word", "bogus": 1})

        assert session.settings.draw_time == 240
        assert session.settings.rounds == 1
        assert session.settings.mode == GameMode.CUSTOM_WORD
        assert session.settings.word_choice_time == 45
        assert broadcaster.last(ServerEvent.ROOM_SETTINGS_UPDATED).data["settings"]["drawTime"] == 240

    async def test_invalid_setting_changes_nothing(self, session: Session, join_players: JoinPlayers) -> None:
        """Test that a bad value rejects the whole update."""
        [alice] = await join_players(session, "Alice")

        with pytest.raises(InvalidActionError):
            await session.update_settings(alice, {"drawTime": 30, "mode": "chess"})
        assert session.settings.draw_time == 80

    async def test_only_leader_updates(self, session: Session, join_players: JoinPlayers) -> None:
        """Test that members cannot change settings."""
        _, bob = await join_players(session, "Alice", "Bob")

        with pytest.raises(PermissionDeniedError):
            await session.update_settings(bob, {"rounds": 5})

    async def test_switch_role(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test toggling between player and spectator."""
        alice, bob = await join_players(session, "Alice", "Bob")

        await session.switch_role(alice)
        assert alice.is_spectator
        assert session.leader_id == bob.id
        assert broadcaster.last(ServerEvent.ROLE_CHANGED).data["isSpectator"] is True

        with pytest.raises(GameStateError):
            await session.switch_role(bob)

        await session.switch_role(alice)
        assert not alice.is_spectator
        assert session.leader_id == bob.id


class TestReadyCheck:
    """Tests for the ready check and the start countdown."""

    async def test_all_ready_starts_countdown_then_game(
        self,
        session: Session,
        join_players: JoinPlayers,
        scheduler: FakeScheduler,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        """Test the full path from start request to a running game."""
        alice, bob = await join_players(session, "Alice", "Bob")

        await session.handle(alice.id, msgs.StartGame())
        assert session.state == RoomState.READY_CHECK
        started = broadcaster.last(ServerEvent.READY_CHECK_STARTED).data
        assert started["timeout"] == READY_CHECK_TIMEOUT
        assert started["totalPlayers"] == 2

        await session.handle(alice.id, msgs.PlayerReady())
        assert broadcaster.last(ServerEvent.UPDATE_READY_STATUS).data == {"readyPlayers": ["alice"], "totalPlayers": 2}
        await session.handle(bob.id, msgs.PlayerReady())
        assert broadcaster.last(ServerEvent.GAME_STARTING).data == {"countdown": 5}

        await scheduler.advance(4)
        assert [s.data["countdown"] for s in broadcaster.of(ServerEvent.GAME_STARTING)] == [5, 4, 3, 2, 1]
        assert session.state == RoomState.READY_CHECK

        await scheduler.advance(1)
        assert session.state == RoomState.PLAYING
        assert session.engine is not None
        assert broadcaster.of(ServerEvent.GAME_STARTED)

    async def test_needs_two_players(self, session: Session, join_players: JoinPlayers) -> None:
        """Test that a lone player cannot start."""
        [alice] = await join_players(session, "Alice")

        with pytest.raises(GameStateError):
            await session.start_ready_check(alice)

    async def test_ai_theme_needs_a_theme(
        self, make_session: Callable[..., Session], join_players: JoinPlayers
    ) -> None:
        """Test that an AI-themed game needs a theme."""
        session = make_session(mode=GameMode.AI_THEME)
        alice, _ = await join_players(session, "Alice", "Bob")

        with pytest.raises(InvalidActionError):
            await session.start_ready_check(alice)

    async def test_refusal_cancels(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that one refusal cancels the check."""
        alice, bob = await join_players(session, "Alice", "Bob")
        await session.start_ready_check(alice)

        await session.player_refused(bob)

        assert session.state == RoomState.LOBBY
        assert broadcaster.last(ServerEvent.GAME_CANCELLED).data["reason"] == "Bob is not ready."
        assert broadcaster.last(ServerEvent.GAME_STATE_CHANGED).data == {"state": "LOBBY"}

    async def test_timeout_cancels(
        self,
        session: Session,
        join_players: JoinPlayers,
        scheduler: FakeScheduler,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        """Test that the check expires."""
        alice, _ = await join_players(session, "Alice", "Bob")
        await session.start_ready_check(alice)
        await session.player_ready(alice)

        await scheduler.advance(READY_CHECK_TIMEOUT)

        assert session.state == RoomState.LOBBY
        assert broadcaster.of(ServerEvent.GAME_CANCELLED)

    async def test_leaving_cancels(self, session: Session, join_players: JoinPlayers) -> None:
        """Test that a player leaving cancels the check."""
        alice, _ = await join_players(session, "Alice", "Bob", "Carol")
        await session.start_ready_check(alice)

        await session.leave("carol")

        assert session.state == RoomState.LOBBY

    async def test_kicking_the_holdout_starts_countdown(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that kicking the only unready player starts the countdown."""
        alice, bob, _ = await join_players(session, "Alice", "Bob", "Carol")
        await session.start_ready_check(alice)
        await session.player_ready(alice)
        await session.player_ready(bob)

        await session.kick(alice, "carol")

        assert session.state == RoomState.READY_CHECK
        assert broadcaster.last(ServerEvent.GAME_STARTING).data == {"countdown": 5}

    async def test_settings_frozen_outside_lobby(self, session: Session, join_players: JoinPlayers) -> None:
        """Test that settings cannot change once the check started."""
        alice, _ = await join_players(session, "Alice", "Bob")
        await session.start_ready_check(alice)

        with pytest.raises(GameStateError):
            await session.update_settings(alice, {"rounds": 5})

    async def test_late_player_sees_ready_status(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that a player joining during the check is counted."""
        alice, _ = await join_players(session, "Alice", "Bob")
        await session.start_ready_check(alice)

        await join_players(session, "Carol")

        assert broadcaster.last(ServerEvent.UPDATE_READY_STATUS).data["totalPlayers"] == 3


class TestSharedCanvas:
    """Tests for the lobby canvas."""

    async def test_draw_relays_to_others(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that strokes are recorded and relayed to everyone else."""
        alice, _ = await join_players(session, "Alice", "Bob")

        await session.draw(alice, stroke("s1"))

        assert len(session.canvas) == 1
        draw = broadcaster.last(ServerEvent.DRAW)
        assert draw.exclude == alice.id
        assert draw.reaches("bob")
        assert broadcaster.last(ServerEvent.UNDO_REDO_STATE).data == {"canUndo": True, "canRedo": False}

    async def test_spectators_and_unknown_layers_are_ignored(
        self, session: Session, join_players: JoinPlayers
    ) -> None:
        """Test that invalid strokes are dropped."""
        [alice] = await join_players(session, "Alice")
        [watcher] = await join_players(session, "Watcher", spectator=True)

        await session.draw(watcher, stroke("s1"))
        await session.draw(alice, stroke("s2", layer_id="nope"))

        assert len(session.canvas) == 0

    async def test_undo_redo_broadcast_canvas(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that undo and redo resend the canvas to everyone."""
        alice, _ = await join_players(session, "Alice", "Bob")
        await session.draw(alice, stroke("s1"))

        await session.undo(alice)
        assert broadcaster.last(ServerEvent.CANVAS_STATE).data == []
        assert broadcaster.last(ServerEvent.UNDO_REDO_STATE).data == {"canUndo": False, "canRedo": True}

        await session.redo(alice)
        assert len(broadcaster.last(ServerEvent.CANVAS_STATE).data) == 1

    async def test_spectator_cannot_undo(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that spectators get an error for canvas commands."""
        await join_players(session, "Alice")
        await join_players(session, "Watcher", spectator=True)

        await session.handle("watcher", msgs.Undo())

        assert broadcaster.last(ServerEvent.ERROR).data["code"] == "permission_denied"

    async def test_clear_canvas_resets_stacks(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that clearing wipes every undo stack."""
        alice, bob = await join_players(session, "Alice", "Bob")
        await session.draw(alice, stroke("s1"))
        await session.draw(bob, stroke("s2"))

        await session.clear_canvas(bob)

        assert len(session.canvas) == 0
        assert broadcaster.received("alice", ServerEvent.UNDO_REDO_STATE)[-1] == {"canUndo": False, "canRedo": False}

    async def test_layer_lifecycle(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test adding, renaming, reordering, and deleting a layer."""
        alice, bob = await join_players(session, "Alice", "Bob")

        await session.handle(alice.id, msgs.AddLayer(name="Sky", layer_id="sky"))
        assert broadcaster.last(ServerEvent.LAYER_ADDED).data["layer"]["name"] == "Sky"

        await session.set_active_layer(bob, "sky")
        assert bob.active_layer_id == "sky"
        assert broadcaster.last(ServerEvent.PLAYER_LAYER_CHANGED).exclude == bob.id

        await session.draw(bob, stroke("s1", layer_id="sky"))
        await session.rename_layer(alice, "sky", "Clouds")
        assert broadcaster.last(ServerEvent.LAYER_RENAMED).data == {"layerId": "sky", "name": "Clouds"}

        await session.reorder_layers(alice, ["sky", DEFAULT_LAYER_ID])
        assert [layer["id"] for layer in broadcaster.last(ServerEvent.LAYERS_REORDERED).data["layers"]] == [
            "sky",
            DEFAULT_LAYER_ID,
        ]

        await session.delete_layer(alice, "sky")
        assert len(session.canvas) == 0
        assert bob.active_layer_id == DEFAULT_LAYER_ID
        assert broadcaster.last(ServerEvent.LAYER_DELETED).data["layerId"] == "sky"

    async def test_last_layer_survives(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that deleting the last layer is an error."""
        [alice] = await join_players(session, "Alice")

        await session.handle(alice.id, msgs.DeleteLayer(layer_id=DEFAULT_LAYER_ID))

        assert broadcaster.last(ServerEvent.ERROR).data["code"] == "invalid_action"
        assert len(session.layers) == 1

    async def test_clear_layer(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that clearing a layer keeps other layers' strokes."""
        [alice] = await join_players(session, "Alice")
        await session.add_layer(alice, "Top", "top")
        await session.draw(alice, stroke("s1"))
        await session.draw(alice, stroke("s2", layer_id="top"))

        await session.clear_layer(alice, "top")

        assert [action["strokeId"] for action in session.canvas.snapshot()] == ["s1"]
        assert broadcaster.last(ServerEvent.CLEAR_LAYER).data == {"layerId": "top"}


class TestChat:
    """Tests for chat."""

    async def test_chat_is_trimmed_and_broadcast(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test chat lines."""
        [alice] = await join_players(session, "Alice")

        await session.chat(alice, "  " + "h" * 300)

        line = broadcaster.last(ServerEvent.CHAT_MESSAGE).data
        assert line["message"] == "h" * 200
        assert line["username"] == "Alice"
        assert line["isSystem"] is False

    async def test_spectators_are_muted(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that spectator chat is dropped."""
        await join_players(session, "Alice")
        [watcher] = await join_players(session, "Watcher", spectator=True)
        broadcaster.clear()

        await session.chat(watcher, "hello")
        await session.chat(session.get_user("alice"), "   ")

        assert broadcaster.sent == []


class TestDispatch:
    """Tests for message dispatch."""

    async def test_unknown_sender_is_ignored(self, session: Session, broadcaster: RecordingBroadcaster) -> None:
        """Test that messages from non-members do nothing."""
        await session.handle("ghost", msgs.Chat(message="hi"))

        assert broadcaster.sent == []

    async def test_engine_commands_need_a_game(
        self, session: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that game commands in the lobby are reported as errors."""
        [alice] = await join_players(session, "Alice")

        await session.handle(alice.id, msgs.RequestHint())

        error = broadcaster.last(ServerEvent.ERROR)
        assert error.targets == (alice.id,)
        assert error.data == {"code": "invalid_state", "message": "No game in progress."}
