"""Tests for the creative mode."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from sketchparty.game.engines import CreativeEngine
from sketchparty.game.exceptions import GameStateError, InvalidActionError, PermissionDeniedError
from sketchparty.game.types import CreativePhase, GameMode, RoomState
from sketchparty.realtime import messages as msgs
from sketchparty.realtime.messages import ServerEvent

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sketchparty.game.models import User
    from sketchparty.game.session import Session
    from tests.conftest import FakeScheduler, RecordingBroadcaster

    JoinPlayers = Callable[..., Awaitable[list[User]]]

DRAW_TIME = 20
PRESENTATION_TIME = 3
VOTE_TIME = 10


@pytest.fixture
def creative(make_session: Callable[..., Session]) -> Session:
    """Create a room set up for a short creative game."""
    return make_session(
        mode=GameMode.CREATIVE,
        rounds=1,
        draw_time=DRAW_TIME,
        presentation_time=PRESENTATION_TIME,
        vote_time=VOTE_TIME,
    )


async def start_game(session: Session, join_players: JoinPlayers, *names: str) -> CreativeEngine:
    await join_players(session, *names)
    await session.start_game()
    assert isinstance(session.engine, CreativeEngine)
    return session.engine


async def reach_voting(scheduler: FakeScheduler, engine: CreativeEngine) -> None:
    """Skip the drawing phase, the intermission, and every presentation."""
    await scheduler.advance(DRAW_TIME + 5 + PRESENTATION_TIME * len(engine.surfaces))
    assert engine.phase == CreativePhase.VOTING


def stroke(stroke_id: str = "s1") -> dict[str, str]:
    return {"strokeId": stroke_id, "layerId": "layer-1", "tool": "pen"}


class TestCreativeDrawing:
    """Tests for the drawing phase."""

    async def test_round_start(
        self, creative: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that every player gets the same prompt and a blank surface."""
        engine = await start_game(creative, join_players, "Alice", "Bob")

        start = broadcaster.last(ServerEvent.CREATIVE_ROUND_START).data
        assert start["word"] == engine.word
        assert start["word"] in creative.word_bank.words
        assert start["duration"] == DRAW_TIME
        assert start["roundIndex"] == 1
        assert sorted(engine.surfaces) == ["alice", "bob"]

    async def test_strokes_stay_private(
        self, creative: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that drawing goes to the player's own surface, not the room."""
        engine = await start_game(creative, join_players, "Alice", "Bob")
        alice = creative.get_user("alice")

        await creative.draw(alice, stroke())

        assert len(engine.surfaces["alice"]) == 1
        assert len(engine.surfaces["bob"]) == 0
        assert len(creative.canvas) == 0
        assert all(not sent.reaches("bob") for sent in broadcaster.of(ServerEvent.DRAW))
        assert broadcaster.received("alice", ServerEvent.UNDO_REDO_STATE)[-1] == {"canUndo": True, "canRedo": False}

    async def test_undo_on_private_surface(
        self, creative: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that undo works on the player's own surface."""
        engine = await start_game(creative, join_players, "Alice", "Bob")
        alice = creative.get_user("alice")
        await creative.draw(alice, stroke())

        await creative.undo(alice)

        assert len(engine.surfaces["alice"]) == 0
        canvas = broadcaster.last(ServerEvent.CANVAS_STATE)
        assert canvas.reaches("alice")
        assert not canvas.reaches("bob")

    async def test_shared_canvas_commands_are_refused(
        self, creative: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that room canvas commands are not part of the mode."""
        await start_game(creative, join_players, "Alice", "Bob")

        await creative.handle("alice", msgs.ClearCanvas())

        assert broadcaster.last(ServerEvent.ERROR).data["code"] == "invalid_state"

    async def test_spectator_follows_a_player(
        self, creative: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that a spectator sees one player's drawing live."""
        engine = await start_game(creative, join_players, "Alice", "Bob")
        [watcher] = await join_players(creative, "Watcher", spectator=True)
        alice = creative.get_user("alice")
        await creative.draw(alice, stroke("s1"))

        await creative.handle(watcher.id, msgs.Spectate(target_id="alice"))

        assert broadcaster.received(watcher.id, ServerEvent.CREATIVE_SPECTATE)[-1]["targetId"] == "alice"
        assert len(broadcaster.received(watcher.id, ServerEvent.CANVAS_STATE)[-1]) == 1

        await creative.draw(alice, stroke("s2"))
        assert broadcaster.last(ServerEvent.DRAW).targets == (watcher.id,)
        assert engine.subscribers_of("alice") == [watcher.id]

    async def test_players_cannot_follow(self, creative: Session, join_players: JoinPlayers) -> None:
        """Test that following is for spectators only."""
        engine = await start_game(creative, join_players, "Alice", "Bob")

        with pytest.raises(PermissionDeniedError):
            await engine.subscribe(creative.get_user("alice"), "bob")

    async def test_submit_image(self, creative: Session, join_players: JoinPlayers) -> None:
        """Test image submissions."""
        engine = await start_game(creative, join_players, "Alice", "Bob")
        alice = creative.get_user("alice")

        await engine.submit(alice, "data:image/png;base64,AAAA")
        assert engine.images["alice"] == "data:image/png;base64,AAAA"

        with pytest.raises(InvalidActionError):
            await engine.submit(alice, "")


class TestCreativePhases:
    """Tests for the phase sequence."""

    async def test_phases_follow_each_other(
        self,
        creative: Session,
        join_players: JoinPlayers,
        scheduler: FakeScheduler,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        """Test drawing, intermission, presentation, and voting."""
        engine = await start_game(creative, join_players, "Alice", "Bob", "Carol")

        await scheduler.advance(DRAW_TIME)
        assert engine.phase == CreativePhase.INTERMISSION
        assert broadcaster.last(ServerEvent.CREATIVE_INTERMISSION).data == {"duration": 5}

        await scheduler.advance(5)
        assert engine.phase == CreativePhase.PRESENTATION
        assert sorted(engine.presentation_order) == ["alice", "bob", "carol"]

        await scheduler.advance(PRESENTATION_TIME * 3)
        presentations = broadcaster.of(ServerEvent.CREATIVE_PRESENTATION)
        assert [p.data["artistId"] for p in presentations] == engine.presentation_order
        assert [p.data["index"] for p in presentations] == [1, 2, 3]
        assert engine.phase == CreativePhase.VOTING
        voting = broadcaster.last(ServerEvent.CREATIVE_VOTING_START).data
        assert voting["duration"] == VOTE_TIME
        assert len(voting["drawings"]) == 3

    async def test_drawing_after_time_is_refused(
        self, creative: Session, join_players: JoinPlayers, scheduler: FakeScheduler
    ) -> None:
        """Test that the surface locks once drawing time is over."""
        engine = await start_game(creative, join_players, "Alice", "Bob")
        await scheduler.advance(DRAW_TIME)

        with pytest.raises(GameStateError):
            await engine.handle_draw(creative.get_user("alice"), None)

    async def test_submit_during_intermission(
        self, creative: Session, join_players: JoinPlayers, scheduler: FakeScheduler
    ) -> None:
        """Test that images are still accepted during the intermission."""
        engine = await start_game(creative, join_players, "Alice", "Bob")
        await scheduler.advance(DRAW_TIME)

        await engine.submit(creative.get_user("bob"), "data:image/png;base64,BBBB")

        assert engine.images == {"bob": "data:image/png;base64,BBBB"}

    async def test_anonymous_presentation(
        self,
        make_session: Callable[..., Session],
        join_players: JoinPlayers,
        scheduler: FakeScheduler,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        """Test that anonymous rooms hide artist names."""
        session = make_session(mode=GameMode.CREATIVE, rounds=1, draw_time=DRAW_TIME, anonymous_voting=True)
        await start_game(session, join_players, "Alice", "Bob")

        await scheduler.advance(DRAW_TIME + 5)

        assert broadcaster.last(ServerEvent.CREATIVE_PRESENTATION).data["artist"] is None


class TestCreativeVoting:
    """Tests for votes and scoring."""

    async def test_invalid_votes(
        self, creative: Session, join_players: JoinPlayers, scheduler: FakeScheduler
    ) -> None:
        """Test the vote rules."""
        engine = await start_game(creative, join_players, "Alice", "Bob", "Carol")
        alice = creative.get_user("alice")

        with pytest.raises(GameStateError):
            await engine.vote(alice, "bob", 5)

        await reach_voting(scheduler, engine)

        with pytest.raises(InvalidActionError):
            await engine.vote(alice, "alice", 5)
        with pytest.raises(InvalidActionError):
            await engine.vote(alice, "bob", 6)
        with pytest.raises(InvalidActionError):
            await engine.vote(alice, "nobody", 3)

        await engine.vote(alice, "bob", 4)
        with pytest.raises(InvalidActionError):
            await engine.vote(alice, "bob", 2)

    async def test_spectators_cannot_vote(
        self, creative: Session, join_players: JoinPlayers, scheduler: FakeScheduler
    ) -> None:
        """Test that spectators never vote."""
        engine = await start_game(creative, join_players, "Alice", "Bob")
        [watcher] = await join_players(creative, "Watcher", spectator=True)
        await reach_voting(scheduler, engine)

        with pytest.raises(PermissionDeniedError):
            await engine.vote(watcher, "alice", 5)

    async def test_complete_votes_end_voting_early(
        self,
        creative: Session,
        join_players: JoinPlayers,
        scheduler: FakeScheduler,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        """Test scoring once every voter is done."""
        engine = await start_game(creative, join_players, "Alice", "Bob", "Carol")
        await reach_voting(scheduler, engine)
        alice, bob, carol = (creative.get_user(name) for name in ("alice", "bob", "carol"))

        await engine.vote(alice, "bob", 5)
        await engine.vote(alice, "carol", 2)
        await engine.vote(bob, "alice", 3)
        await engine.vote(bob, "carol", 4)
        await engine.vote(carol, "alice", 1)
        assert broadcaster.last(ServerEvent.CREATIVE_VOTE_UPDATE).data == {"votersDone": 2, "totalVoters": 3}
        await engine.vote(carol, "bob", 5)
        assert broadcaster.last(ServerEvent.CREATIVE_VOTE_UPDATE).data == {"votersDone": 3, "totalVoters": 3}

        await scheduler.advance(5)

        end = broadcaster.last(ServerEvent.CREATIVE_ROUND_END).data
        assert [(r["userId"], r["score"]) for r in end["results"]] == [("bob", 10), ("carol", 6), ("alice", 4)]
        assert end["results"][0]["votes"] == 2
        assert engine.scores == {"alice": 4, "bob": 10, "carol": 6}

    async def test_game_ends_after_last_round(
        self,
        creative: Session,
        join_players: JoinPlayers,
        scheduler: FakeScheduler,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        """Test that the game returns to the lobby after the scoring phase."""
        engine = await start_game(creative, join_players, "Alice", "Bob")
        await reach_voting(scheduler, engine)
        await engine.vote(creative.get_user("alice"), "bob", 5)

        await scheduler.advance(VOTE_TIME)
        assert engine.phase == CreativePhase.SCORING

        await scheduler.advance(15)
        ended = broadcaster.last(ServerEvent.GAME_ENDED).data
        assert ended["results"][0] == {"userId": "bob", "username": "Bob", "score": 5, "isDisconnected": False}
        assert creative.state == RoomState.LOBBY
        assert creative.get_user("bob").score == 5

    async def test_leaver_stops_blocking_votes(
        self,
        creative: Session,
        join_players: JoinPlayers,
        scheduler: FakeScheduler,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        """Test that voting completes without a player who left."""
        engine = await start_game(creative, join_players, "Alice", "Bob", "Carol")
        await reach_voting(scheduler, engine)
        alice, bob = creative.get_user("alice"), creative.get_user("bob")

        await engine.vote(alice, "bob", 5)
        await engine.vote(bob, "alice", 3)
        await creative.leave("carol")

        assert engine.voting_complete
        await scheduler.advance(5)
        assert broadcaster.of(ServerEvent.CREATIVE_ROUND_END)

    async def test_game_ends_below_two_players(
        self, creative: Session, join_players: JoinPlayers, broadcaster: RecordingBroadcaster
    ) -> None:
        """Test that the game stops when one player is left."""
        await start_game(creative, join_players, "Alice", "Bob")

        await creative.leave("bob")

        ended = broadcaster.last(ServerEvent.GAME_ENDED).data
        assert {r["userId"]: r["isDisconnected"] for r in ended["results"]} == {"alice": False, "bob": True}
        assert creative.state == RoomState.LOBBY
