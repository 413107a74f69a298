"""Badge requirement evaluation against aggregate user metrics."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date, timedelta

from habitlens.core.config import Settings
from habitlens.core.config import settings as default_settings
from habitlens.data.dates import DayLog, effective_start, extract_days, parse_day
from habitlens.data.schemas import (
    AggregateMetrics,
    Badge,
    BadgeDisplay,
    BadgeProgress,
    BadgeRequirement,
    ProgressRecord,
    RecoveryEvent,
    RequirementType,
    ResearchView,
    Timeframe,
    UserBadge,
)
from habitlens.engine.streaks import streak_summary

logger = logging.getLogger(__name__)

TIMEFRAME_DAYS: dict[str, int] = {
    Timeframe.WEEK: 7,
    Timeframe.MONTH: 30,
}


def _requirement_value(requirement: BadgeRequirement, metrics: AggregateMetrics) -> float:
    kind = requirement.get("type")
    if kind == RequirementType.STREAK:
        value: object = max(metrics.get("current_streak", 0) or 0, metrics.get("longest_streak", 0) or 0)
    elif kind == RequirementType.TOTAL_COMPLETIONS:
        value = metrics.get("total_completions", 0)
    elif kind == RequirementType.CONSISTENCY_RATE:
        value = metrics.get("consistency_rate", 0)
    elif kind == RequirementType.RECOVERY_SUCCESS:
        value = metrics.get("recovery_successes", 0)
    elif kind == RequirementType.RESEARCH_ENGAGEMENT:
        value = metrics.get("research_engagement", 0)
    else:
        logger.debug("Unknown badge requirement type %r", kind)
        value = 0
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    return max(float(value), 0.0)


def evaluate_requirement(requirement: BadgeRequirement, metrics: AggregateMetrics) -> BadgeProgress:
    """Progress toward a single requirement.

    Progress is ``min(100, 100 * value / threshold)``; a non-positive threshold
    is trivially met.
    """
    threshold = requirement.get("threshold", 0) or 0
    value = _requirement_value(requirement, metrics)
    if threshold <= 0:
        return BadgeProgress(progress=100.0, is_earned=True)
    progress = min(100.0, 100.0 * value / threshold)
    return BadgeProgress(progress=round(progress, 2), is_earned=value >= threshold)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _consistency_slots(progress: ProgressRecord, log: DayLog, today: date, timeframe: str) -> tuple[int, int]:
    """(completed, possible) days for one habit over a timeframe ending today."""
    start = effective_start(progress, log)
    if start is None or start > today:
        return 0, 0
    span = TIMEFRAME_DAYS.get(timeframe)
    first = start if span is None else max(start, today - timedelta(days=span - 1))
    possible = (today - first).days + 1
    return log.count_between(first, today), possible


def _recovery_successes(
    events: Iterable[RecoveryEvent],
    logs: dict[str, DayLog],
    today: date,
    within_days: int,
) -> int:
    successes = 0
    for event in events:
        planned = parse_day(event.get("planned_on"))
        log = logs.get(str(event.get("habit_id", "")))
        if planned is None or log is None:
            continue
        # Completions on the plan day itself predate the plan.
        if log.count_between(planned + timedelta(days=1), min(planned + timedelta(days=within_days), today)):
            successes += 1
    return successes


def build_aggregate_metrics(
    progress: Sequence[ProgressRecord],
    today: date | None = None,
    habit_id: str | None = None,
    timeframe: str | None = None,
    recovery_events: Iterable[RecoveryEvent] = (),
    research_views: Iterable[ResearchView] = (),
    within_days: int | None = None,
    config: Settings | None = None,
) -> AggregateMetrics:
    """Figures for one habit (habit_id given) or across all of a user's habits."""
    cfg = config or default_settings
    reference = today or date.today()
    grouped: dict[str, list[ProgressRecord]] = {}
    for p in progress:
        key = str(p.get("habit_id", ""))
        if habit_id is None or key == habit_id:
            grouped.setdefault(key, []).append(p)
    # Records sharing a habit id are merged into one log.
    logs = {
        key: extract_days([c for r in records for c in r.get("completions") or ()]).until(reference)
        for key, records in grouped.items()
    }

    current = 0
    longest = 0
    total = 0
    completed = 0
    possible = 0
    for key, records in grouped.items():
        log = logs[key]
        for record in records:
            summary = streak_summary(record, reference, log)
            current = max(current, summary["current_streak"])
            longest = max(longest, summary["longest_streak"])
        total += len(log.days)
        done, slots = max(
            (_consistency_slots(record, log, reference, timeframe or Timeframe.ALL_TIME) for record in records),
            key=lambda pair: pair[1],
        )
        completed += done
        possible += slots

    events = [e for e in recovery_events if habit_id is None or str(e.get("habit_id", "")) == habit_id]
    window = within_days if within_days and within_days > 0 else cfg.recovery_success_window_days
    viewed = {
        str(v.get("habit_id", ""))
        for v in research_views
        if v.get("habit_id") and (habit_id is None or str(v.get("habit_id")) == habit_id)
    }
    return AggregateMetrics(
        current_streak=current,
        longest_streak=longest,
        total_completions=total,
        consistency_rate=round(100.0 * completed / possible, 2) if possible > 0 else 0.0,
        recovery_successes=_recovery_successes(events, logs, reference, window),
        research_engagement=len(viewed),
    )


# ---------------------------------------------------------------------------
# Catalog evaluation
# ---------------------------------------------------------------------------


def evaluate_badges(
    catalog: Sequence[Badge],
    user_id: str,
    progress: Sequence[ProgressRecord],
    today: date | None = None,
    earned: Iterable[UserBadge] = (),
    recovery_events: Sequence[RecoveryEvent] = (),
    research_views: Sequence[ResearchView] = (),
    config: Settings | None = None,
) -> list[BadgeDisplay]:
    """Evaluate every catalog badge for a user.

    Habit-specific badges yield one display per habit, global ones a single
    display with ``habit_id=None``. Previously earned badges stay earned.
    """
    reference = today or date.today()
    already = {(str(b.get("badge_id", "")), b.get("habit_id") or None) for b in earned}
    habit_ids = list(dict.fromkeys(str(p.get("habit_id", "")) for p in progress))

    displays: list[BadgeDisplay] = []
    for badge in catalog:
        requirement = badge["requirement"]
        scopes: list[str | None] = list(habit_ids) if requirement.get("habit_specific") else [None]
        for scope in scopes:
            if (badge["id"], scope) in already:
                displays.append(
                    BadgeDisplay(
                        badge_id=badge["id"],
                        user_id=user_id,
                        habit_id=scope,
                        progress=100.0,
                        is_earned=True,
                        is_new=False,
                    )
                )
                continue
            metrics = build_aggregate_metrics(
                progress,
                reference,
                habit_id=scope,
                timeframe=requirement.get("timeframe"),
                recovery_events=recovery_events,
                research_views=research_views,
                within_days=requirement.get("within_days"),
                config=config,
            )
            result = evaluate_requirement(requirement, metrics)
            displays.append(
                BadgeDisplay(
                    badge_id=badge["id"],
                    user_id=user_id,
                    habit_id=scope,
                    progress=result["progress"],
                    is_earned=result["is_earned"],
                    is_new=result["is_earned"],
                )
            )

    logger.info(
        "Badges evaluated: user=%s displays=%d new=%d",
        user_id,
        len(displays),
        sum(1 for d in displays if d["is_new"]),
    )
    return displays
