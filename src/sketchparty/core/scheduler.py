"""Timer scheduling for room phases.

Every room runs its countdowns (ready check, word choice, turn ticks, phase
deadlines, deferred advances) through a :class:`Timers` object. Each timer
lives in a named slot: starting a slot cancels whatever was pending in it, and
a cancelled timer never runs its callback, even if it had already become due
and was waiting for the room lock.

The clock itself is abstracted behind :class:`Scheduler` so the engines can be
driven by a virtual clock in tests.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING, Protocol

import structlog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    TimerCallback = Callable[[], Awaitable[None]]

logger = structlog.get_logger(__name__)


class TimerHandle(Protocol):
    """Handle returned by :meth:`Scheduler.call_later`."""

    def cancel(self) -> None:
        """Prevent the callback from running if it has not started yet."""


class Scheduler(Protocol):
    """Clock and delayed-call provider."""

    def now(self) -> float:
        """Return the current time in seconds (monotonic)."""

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """Run ``callback`` after ``delay`` seconds."""


class _TaskHandle:
    """Handle wrapping the asyncio task that sleeps and then fires."""

    def __init__(self) -> None:
        self.task: asyncio.Task | None = None
        self.started = False
        self.cancelled = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        # A callback that is already running must not be interrupted halfway,
        # it may be the one cancelling itself.
        if self.task is not None and not self.started:
            self.task.cancel()


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self) -> None:
        """Initialize the scheduler."""
        self._tasks: set[asyncio.Task] = set()

    def now(self) -> float:
        """Return the monotonic clock value."""
        return time.monotonic()

    def call_later(self, delay: float, callback: TimerCallback) -> _TaskHandle:
        """Schedule ``callback`` on the running loop.

        Args:
            delay: Seconds to wait before firing.
            callback: Coroutine function invoked once the delay elapses.

        Returns:
            A handle whose ``cancel()`` prevents the callback from starting.
        """
        handle = _TaskHandle()
        task = asyncio.create_task(self._run(delay, callback, handle))
        handle.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return handle

    async def _run(self, delay: float, callback: TimerCallback, handle: _TaskHandle) -> None:
        await asyncio.sleep(delay)
        if handle.cancelled:
            return
        handle.started = True
        try:
            await callback()
        except Exception:
            logger.exception("Timer callback failed")

    async def shutdown(self) -> None:
        """Cancel every pending timer task and wait for them to finish."""
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    @property
    def pending(self) -> int:
        """Get the number of timer tasks still pending."""
        return sum(1 for task in self._tasks if not task.done())


class _Entry:
    __slots__ = ("cancelled", "handle")

    def __init__(self) -> None:
        self.handle: TimerHandle | None = None
        self.cancelled = False


class Timers:
    """Named, cancellable timer slots owned by a single room.

    Callbacks run while holding ``lock`` so that they never interleave with
    inbound message handling for the same room.
    """

    def __init__(self, scheduler: Scheduler, lock: asyncio.Lock | None = None) -> None:
        """Initialize the timer slots.

        Args:
            scheduler: Clock used to schedule callbacks.
            lock: Lock acquired around every callback. No locking when None.
        """
        self.scheduler = scheduler
        self._lock = lock
        self._entries: dict[str, _Entry] = {}

    def start(self, name: str, delay: float, callback: TimerCallback) -> None:
        """Start (or restart) the timer in slot ``name``.

        Args:
            name: Slot name. Any timer already pending in the slot is cancelled.
            delay: Seconds until the callback fires.
            callback: Coroutine function to run.
        """
        self.cancel(name)
        entry = _Entry()

        async def fire() -> None:
            async with self._lock if self._lock is not None else contextlib.nullcontext():
                if entry.cancelled:
                    return
                if self._entries.get(name) is entry:
                    del self._entries[name]
                await callback()

        entry.handle = self.scheduler.call_later(delay, fire)
        self._entries[name] = entry

    def cancel(self, name: str) -> bool:
        """Cancel the timer in slot ``name``.

        Returns:
            True if a pending timer was cancelled.
        """
        entry = self._entries.pop(name, None)
        if entry is None:
            return False
        entry.cancelled = True
        if entry.handle is not None:
            entry.handle.cancel()
        return True

    def cancel_all(self) -> None:
        """Cancel every pending timer."""
        for name in list(self._entries):
            self.cancel(name)

    def is_active(self, name: str) -> bool:
        """Check whether a timer is pending in slot ``name``."""
        return name in self._entries

    def now(self) -> float:
        """Return the scheduler's current time."""
        return self.scheduler.now()

    @property
    def active(self) -> list[str]:
        """Get the names of all pending slots."""
        return list(self._entries)
