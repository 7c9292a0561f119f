"""Core infrastructure for sketchparty: settings, logging, and timers."""

from sketchparty.core.scheduler import AsyncioScheduler, Scheduler, TimerHandle, Timers
from sketchparty.core.settings import AppSettings

__all__ = [
    "AppSettings",
    "AsyncioScheduler",
    "Scheduler",
    "TimerHandle",
    "Timers",
]
