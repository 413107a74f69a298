"""Streak figures recomputed from raw completion logs."""

from __future__ import annotations

import logging
from collections.abc import Collection
from datetime import date, timedelta
from typing import TypedDict

from habitlens.data.dates import DayLog, extract_days
from habitlens.data.schemas import ProgressRecord

logger = logging.getLogger(__name__)

FORMATION_MILESTONES = (21, 66, 254)


class StreakSummary(TypedDict):
    """Recomputed streak state of one progress record."""

    habit_id: str
    current_streak: int
    longest_streak: int
    last_completed: str | None
    days_since_last: int | None
    cached_mismatch: bool


def check_formation_milestone(streak_days: int) -> int | None:
    """Return milestone value if streak_days is exactly a formation milestone, else None."""
    if streak_days in FORMATION_MILESTONES:
        return streak_days
    return None


def _count_back(day_set: Collection[date], start: date) -> int:
    """Count consecutive days backwards from start, stopping at date.min."""
    streak = 0
    cursor = start
    while cursor in day_set:
        streak += 1
        if cursor == date.min:
            break
        cursor -= timedelta(days=1)
    return streak


def current_streak(day_set: Collection[date], reference: date) -> int:
    """Consecutive completed days ending at reference.

    An unfinished reference day does not break the streak: counting then
    starts from the day before.
    """
    if reference in day_set:
        return _count_back(day_set, reference)
    if reference == date.min:
        return 0
    return _count_back(day_set, reference - timedelta(days=1))


def longest_streak(days: tuple[date, ...] | list[date]) -> int:
    """Longest run of consecutive days in an ascending, duplicate-free sequence."""
    best = 0
    run = 0
    previous: date | None = None
    for d in days:
        run = run + 1 if previous is not None and (d - previous).days == 1 else 1
        best = max(best, run)
        previous = d
    return best


def cached_count(progress: ProgressRecord, key: str) -> int:
    """Non-negative integer cached counter, 0 when missing or malformed."""
    value = progress.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    return max(int(value), 0)


def streak_summary(progress: ProgressRecord, reference: date, log: DayLog | None = None) -> StreakSummary:
    """Recompute streaks for a progress record as of reference.

    The cached current streak is ignored. The cached longest streak is kept
    when larger, since a truncated log cannot disprove a historical best.
    """
    day_log = (log or extract_days(progress.get("completions"))).until(reference)

    current = current_streak(day_log.day_set, reference)
    recomputed_longest = max(longest_streak(day_log.days), current)
    cached_current = cached_count(progress, "current_streak")
    cached_longest = cached_count(progress, "longest_streak")
    mismatch = cached_current != current or cached_longest != recomputed_longest
    if mismatch:
        logger.debug(
            "Stale streak cache for %s: cached=%d/%d recomputed=%d/%d",
            progress.get("habit_id", ""),
            cached_current,
            cached_longest,
            current,
            recomputed_longest,
        )

    last = day_log.last
    return StreakSummary(
        habit_id=str(progress.get("habit_id", "")),
        current_streak=current,
        longest_streak=max(recomputed_longest, cached_longest),
        last_completed=last.isoformat() if last else None,
        days_since_last=(reference - last).days if last else None,
        cached_mismatch=mismatch,
    )
