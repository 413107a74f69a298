"""Progress toward advancing a habit to its next level."""

from __future__ import annotations

import logging
from datetime import date, timedelta

from habitlens.data.dates import extract_days, parse_day
from habitlens.data.schemas import LevelCriteria, LevelProgress, ProgressRecord

logger = logging.getLogger(__name__)

CONSISTENCY_WINDOW_DAYS = 30


def _capped_ratio(value: float, target: float) -> float:
    if target <= 0:
        return 100.0
    return min(100.0, 100.0 * max(value, 0.0) / target)


def evaluate_level_progress(
    criteria: LevelCriteria,
    level_started: str | date | None,
    progress: ProgressRecord,
    today: date | None = None,
) -> LevelProgress:
    """Days at the current level, recent consistency, and readiness to advance.

    Consistency is the completion percentage over the last 30 days. Both the
    duration and the consistency criterion must be met to advance;
    progress_to_next is the lesser of the two partial progresses.
    """
    reference = today or date.today()
    started = parse_day(level_started)
    days_at_level = max((reference - started).days, 0) if started else 0

    log = extract_days(progress.get("completions")).until(reference)
    recent = log.count_between(reference - timedelta(days=CONSISTENCY_WINDOW_DAYS - 1), reference)
    consistency = round(100.0 * recent / CONSISTENCY_WINDOW_DAYS, 2)

    minimum_duration = criteria.get("minimum_duration", 0) or 0
    minimum_consistency = criteria.get("minimum_consistency", 0) or 0
    ready = days_at_level >= minimum_duration and consistency >= minimum_consistency
    progress_to_next = min(
        _capped_ratio(days_at_level, minimum_duration),
        _capped_ratio(consistency, minimum_consistency),
    )
    logger.debug(
        "Level progress for %s: days=%d consistency=%.2f ready=%s",
        progress.get("habit_id", ""),
        days_at_level,
        consistency,
        ready,
    )
    return LevelProgress(
        days_at_level=days_at_level,
        consistency=consistency,
        ready_for_advancement=ready,
        progress_to_next=round(progress_to_next, 2),
    )
