"""Pytest configuration and fixtures for sketchparty tests."""

from __future__ import annotations

import heapq
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import pytest
from litestar import Litestar
from litestar.testing import TestClient

from sketchparty.game.models import GameSettings
from sketchparty.game.registry import RoomRegistry
from sketchparty.game.session import Session
from sketchparty.game.wordbank import WordBank
from sketchparty.plugin import SketchPartyConfig, SketchPartyPlugin
from sketchparty.web.health import HealthController

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from sketchparty.game.models import User

TEST_WORDS = ["APPLE", "HOUSE", "CAT", "DOG", "TREE", "FISH", "MOON", "BOAT"]


# Virtual clock


class FakeHandle:
    """Timer handle of the fake scheduler."""

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler with a manual clock; callbacks only run inside :meth:`advance`."""

    def __init__(self) -> None:
        self.time = 0.0
        self._queue: list[tuple[float, int, FakeHandle, Callable[[], Awaitable[None]]]] = []
        self._seq = 0

    def now(self) -> float:
        return self.time

    def call_later(self, delay: float, callback: Callable[[], Awaitable[None]]) -> FakeHandle:
        handle = FakeHandle()
        heapq.heappush(self._queue, (self.time + delay, self._seq, handle, callback))
        self._seq += 1
        return handle

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every due callback in order."""
        target = self.time + seconds
        while self._queue and self._queue[0][0] <= target:
            when, _, handle, callback = heapq.heappop(self._queue)
            self.time = when
            if not handle.cancelled:
                await callback()
        self.time = target

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)


# Recording transport


@dataclass
class Sent:
    """One event handed to the broadcaster."""

    kind: str
    event: str
    data: Any
    targets: tuple[str, ...] = ()
    exclude: str | None = None

    def reaches(self, user_id: str) -> bool:
        if self.kind == "room":
            return user_id != self.exclude
        return user_id in self.targets


class RecordingBroadcaster:
    """Broadcaster keeping every event in memory."""

    def __init__(self) -> None:
        self.sent: list[Sent] = []
        self.closed: list[str] = []

    async def to_room(self, room_code: str, event: str, data: Any = None, *, exclude: str | None = None) -> None:
        self.sent.append(Sent("room", str(event), data, exclude=exclude))

    async def to_user(self, room_code: str, user_id: str, event: str, data: Any = None) -> None:
        self.sent.append(Sent("user", str(event), data, targets=(user_id,)))

    async def to_users(self, room_code: str, user_ids: Iterable[str], event: str, data: Any = None) -> None:
        self.sent.append(Sent("users", str(event), data, targets=tuple(user_ids)))

    async def close(self, room_code: str, user_id: str) -> None:
        self.closed.append(user_id)

    def of(self, event: str) -> list[Sent]:
        """Get every delivery of ``event``."""
        return [sent for sent in self.sent if sent.event == event]

    def last(self, event: str) -> Sent:
        """Get the most recent delivery of ``event``."""
        matches = self.of(event)
        assert matches, f"no {event!r} event was sent"
        return matches[-1]

    def received(self, user_id: str, event: str) -> list[Any]:
        """Get the payloads of ``event`` that reached ``user_id``."""
        return [sent.data for sent in self.of(event) if sent.reaches(user_id)]

    def events(self) -> list[str]:
        return [sent.event for sent in self.sent]

    def clear(self) -> None:
        self.sent.clear()
        self.closed.clear()


# Game fixtures


@pytest.fixture
def scheduler() -> FakeScheduler:
    """Create a manual clock."""
    return FakeScheduler()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    """Create a recording broadcaster."""
    return RecordingBroadcaster()


@pytest.fixture
def word_bank() -> WordBank:
    """Create a small dictionary."""
    return WordBank(TEST_WORDS)


@pytest.fixture
def make_session(
    scheduler: FakeScheduler, broadcaster: RecordingBroadcaster, word_bank: WordBank
) -> Callable[..., Session]:
    """Build rooms on the fake clock; keyword arguments become settings."""

    def factory(code: str = "ROOM1", *, theme_provider: Any = None, **settings: Any) -> Session:
        return Session(
            code,
            broadcaster,
            scheduler=scheduler,
            word_bank=word_bank,
            theme_provider=theme_provider,
            settings=GameSettings(**settings),
        )

    return factory


@pytest.fixture
def session(make_session: Callable[..., Session]) -> Session:
    """Create a room with default settings."""
    return make_session()


async def add_players(session: Session, *names: str, spectator: bool = False) -> list[User]:
    """Join one member per name; ids are the lowercased names."""
    return [await session.join(name.lower(), name, is_spectator=spectator) for name in names]


@pytest.fixture
def join_players() -> Callable[..., Awaitable[list[User]]]:
    """Join members by name; ids are the lowercased names."""
    return add_players


@pytest.fixture
def registry(scheduler: FakeScheduler, broadcaster: RecordingBroadcaster, word_bank: WordBank) -> RoomRegistry:
    """Create a registry on the fake clock."""
    return RoomRegistry(broadcaster, word_bank=word_bank, scheduler=scheduler)


# App and client fixtures


@pytest.fixture
def plugin() -> SketchPartyPlugin:
    """Create the game plugin."""
    return SketchPartyPlugin(SketchPartyConfig(word_bank=WordBank(TEST_WORDS)))


@pytest.fixture
def app(plugin: SketchPartyPlugin) -> Litestar:
    """Create a Litestar app with SketchPartyPlugin for testing."""
    return Litestar(route_handlers=[HealthController], plugins=[plugin])


@pytest.fixture
def client(app: Litestar) -> TestClient[Litestar]:
    """Create a test client for the app."""
    return TestClient(app=app)
