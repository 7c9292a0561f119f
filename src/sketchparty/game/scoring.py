"""Scoring rules for guessing turns."""

from __future__ import annotations

import math

BASE_GUESS_POINTS = 100
TIME_BONUS_POINTS = 200
FIRST_GUESS_BONUS = 50
DRAWER_POOL = 250


def guess_points(time_left: int, draw_time: int, *, first: bool) -> int:
    """Points earned by a correct guess.

    Args:
        time_left: Seconds remaining in the turn.
        draw_time: Total seconds of the turn.
        first: Whether this is the first correct guess of the turn.

    Returns:
        ``100 + ceil(200 * time_left / draw_time)`` plus 50 for the first guess.

    Example:
        >>> guess_points(80, 80, first=True)
        350
        >>> guess_points(0, 80, first=False)
        100
    """
    time_bonus = math.ceil(TIME_BONUS_POINTS * max(0, time_left) / draw_time) if draw_time > 0 else 0
    return BASE_GUESS_POINTS + time_bonus + (FIRST_GUESS_BONUS if first else 0)


def drawer_points(active_players: int) -> int:
    """Points the drawer earns for each correct guess.

    Args:
        active_players: Number of active (non-spectator) players, drawer included.

    Returns:
        ``floor(250 / max(1, active_players - 1))``.
    """
    return DRAWER_POOL // max(1, active_players - 1)


def rank(scores: dict[str, int]) -> list[tuple[str, int]]:
    """Sort a score map from best to worst (stable for ties)."""
    return sorted(scores.items(), key=lambda item: item[1], reverse=True)
