"""Completion, consistency and trend metrics over an explicit date window.

Every figure is derived from the raw completion logs. Logs are deduplicated
and clipped to each habit's effective start before any division, so slot
based rates cannot exceed 100 and degenerate inputs resolve to zero.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date

from habitlens.core.config import Settings
from habitlens.core.config import settings as default_settings
from habitlens.data.dates import (
    DayLog,
    ResolvedWindow,
    effective_start,
    extract_days,
    iso_week_start,
    resolve_window,
)
from habitlens.data.schemas import (
    AnalyticsReport,
    CategoryAnalytics,
    DailyStats,
    DateWindow,
    FormationMilestone,
    HabitAnalytics,
    HabitRecord,
    PeriodStats,
    ProgressRecord,
    StreakBucket,
    TrendDirection,
    TrendSummary,
)
from habitlens.engine.streaks import cached_count, current_streak, longest_streak

logger = logging.getLogger(__name__)

NO_BEST_DAY = "None"

# Population stddev of values confined to [0, 1] peaks at 0.5.
_MAX_DAILY_STDDEV = 0.5
_MILESTONE_DAYS = (21, 66)


@dataclass(frozen=True)
class _Tracked:
    """A progress record with its cleaned log and effective start."""

    progress: ProgressRecord
    habit: HabitRecord | None
    log: DayLog
    start: date | None

    @property
    def habit_id(self) -> str:
        return str(self.progress.get("habit_id", ""))

    def done_on(self, day: date) -> bool:
        """A completed slot: logged and on/after the effective start."""
        return self.start is not None and self.start <= day and day in self.log.day_set


@dataclass(frozen=True)
class _DayRow:
    day: date
    done: int
    active: int


def _track(progress: Iterable[ProgressRecord], habits: Iterable[HabitRecord] = ()) -> list[_Tracked]:
    index = {h.get("id"): h for h in habits}
    tracked: list[_Tracked] = []
    for record in progress:
        log = extract_days(record.get("completions"))
        tracked.append(
            _Tracked(
                progress=record,
                habit=index.get(record.get("habit_id")),
                log=log,
                start=effective_start(record, log),
            )
        )
    return tracked


def _pct(part: float, whole: float) -> float:
    """part / whole as a percentage; 0 when whole is not positive."""
    if whole <= 0:
        return 0.0
    return 100.0 * part / whole


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _slots(tracked: Sequence[_Tracked], window: ResolvedWindow) -> tuple[int, int]:
    """Return (completed, possible) slots in window."""
    completed = 0
    possible = 0
    for t in tracked:
        active = window.clip_from(t.start)
        possible += active.length
        completed += sum(1 for d in t.log.days if d in active)
    return completed, possible


def _day_rows(tracked: Sequence[_Tracked], window: ResolvedWindow) -> list[_DayRow]:
    rows: list[_DayRow] = []
    for day in window.iter_days():
        active = sum(1 for t in tracked if t.start is not None and t.start <= day)
        done = sum(1 for t in tracked if t.done_on(day))
        rows.append(_DayRow(day=day, done=done, active=active))
    return rows


def _consistency_from_rows(rows: Sequence[_DayRow]) -> float:
    fractions = [row.done / row.active for row in rows if row.active > 0]
    if not fractions or not any(fractions):
        return 0.0
    deviation = statistics.pstdev(fractions)
    return _clamp(100.0 * (1.0 - deviation / _MAX_DAILY_STDDEV))


def _best_day_from_rows(rows: Sequence[_DayRow]) -> str:
    best: _DayRow | None = None
    for row in rows:
        # Strict comparison keeps the earliest date on ties.
        if row.done > 0 and (best is None or row.done > best.done):
            best = row
    return best.day.isoformat() if best else NO_BEST_DAY


def compute_trend(current_rate: float, previous_rate: float, config: Settings | None = None) -> TrendSummary:
    """Classify the change between two completion rates (percentage points)."""
    cfg = config or default_settings
    delta = current_rate - previous_rate
    if delta > cfg.trend_threshold_points:
        direction = TrendDirection.UP
    elif delta < -cfg.trend_threshold_points:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.STABLE
    return TrendSummary(
        current_rate=current_rate,
        previous_rate=previous_rate,
        delta=delta,
        direction=direction,
        magnitude=abs(delta),
    )


def _habit_rate(t: _Tracked, window: ResolvedWindow) -> int:
    if window.is_empty:
        return 0
    in_window = sum(1 for d in t.log.days if d in window)
    return int(_clamp(_round_half_up(_pct(in_window, window.length))))


def compute_habit_completion_rate(progress: ProgressRecord, window: DateWindow) -> int:
    """Deduplicated completions inside window / window length, as a rounded percentage."""
    resolved = resolve_window(window)
    return _habit_rate(_track([progress])[0], resolved)


def compute_overall_completion_rate(progress: Sequence[ProgressRecord], window: DateWindow) -> float:
    """Completed slots / possible slots × 100; 0 when there are no possible slots."""
    completed, possible = _slots(_track(progress), resolve_window(window))
    return _pct(completed, possible)


def compute_consistency_score(progress: Sequence[ProgressRecord], window: DateWindow) -> float:
    """100 × (1 − stddev(daily completion fractions) / 0.5), clamped to [0, 100]."""
    tracked = _track(progress)
    resolved = resolve_window(window)
    if not tracked or resolved.is_empty:
        return 0.0
    return _consistency_from_rows(_day_rows(tracked, resolved))


def find_best_day(progress: Sequence[ProgressRecord], window: DateWindow) -> str:
    """Day with most cross-habit completions, earliest on ties; NO_BEST_DAY if none."""
    return _best_day_from_rows(_day_rows(_track(progress), resolve_window(window)))


def _average_gap(days: Sequence[date]) -> float:
    if len(days) < 2:
        return 0.0
    gaps = [(later - earlier).days for earlier, later in zip(days, days[1:], strict=False)]
    return sum(gaps) / len(gaps)


def _habit_analytics(t: _Tracked, window: ResolvedWindow, config: Settings) -> HabitAnalytics:
    active = window.clip_from(t.start)
    in_window = [d for d in t.log.days if d in window]
    cached_longest = cached_count(t.progress, "longest_streak")

    reference = window.last_day
    if reference is None:
        current = 0
        last = None
    else:
        visible = t.log.until(reference)
        current = current_streak(visible.day_set, reference)
        last = visible.last

    previous = window.previous()
    trend = compute_trend(
        _pct(*_slots([t], window)),
        _pct(*_slots([t], previous)),
        config,
    )
    habit = t.habit or {}
    return HabitAnalytics(
        habit_id=t.habit_id,
        habit_title=str(habit.get("title") or "Unknown Habit"),
        habit_category=str(habit.get("category") or "unknown"),
        effective_start=t.start.isoformat() if t.start else None,
        total_completions=len(in_window),
        completion_rate=_habit_rate(t, window),
        days_tracked=active.length,
        current_streak=current,
        longest_streak=max(longest_streak(t.log.days), cached_longest),
        average_gap_days=_average_gap(in_window),
        trend_direction=trend["direction"],
        last_completed=last.isoformat() if last else None,
        skipped_entries=t.log.skipped,
        duplicate_entries=t.log.duplicates,
    )


def _period_stats(
    rows: Sequence[_DayRow],
    key: Callable[[date], date],
    label: Callable[[date], str],
) -> list[PeriodStats]:
    groups: dict[date, list[_DayRow]] = {}
    for row in rows:
        groups.setdefault(key(row.day), []).append(row)
    stats: list[PeriodStats] = []
    for period_key, members in groups.items():
        completions = sum(r.done for r in members)
        possible = sum(r.active for r in members)
        stats.append(
            PeriodStats(
                label=label(period_key),
                period_start=members[0].day.isoformat(),
                period_end=members[-1].day.isoformat(),
                completions=completions,
                total_possible=possible,
                completion_rate=_pct(completions, possible),
                days_active=sum(1 for r in members if r.done > 0),
            )
        )
    return stats


def _week_label(monday: date) -> str:
    year, week, _ = monday.isocalendar()
    return f"{year}-W{week:02d}"


def _category_performance(performance: Sequence[HabitAnalytics]) -> list[CategoryAnalytics]:
    groups: dict[str, list[HabitAnalytics]] = {}
    for item in performance:
        groups.setdefault(item["habit_category"], []).append(item)

    categories: list[CategoryAnalytics] = []
    for category, members in groups.items():
        best = members[0]
        steadiest = members[0]
        for item in members[1:]:
            if item["total_completions"] > best["total_completions"]:
                best = item
            if item["current_streak"] > steadiest["current_streak"]:
                steadiest = item
        categories.append(
            CategoryAnalytics(
                category=category,
                total_habits=len(members),
                total_completions=sum(m["total_completions"] for m in members),
                average_completion_rate=sum(m["completion_rate"] for m in members) / len(members),
                best_performing_habit=best["habit_title"],
                most_consistent_habit=steadiest["habit_title"],
            )
        )
    return categories


def _streak_distribution(streaks: Sequence[int]) -> list[StreakBucket]:
    counts: dict[int, int] = {}
    for streak in streaks:
        counts[streak] = counts.get(streak, 0) + 1
    return [StreakBucket(length=length, count=counts[length]) for length in sorted(counts)]


def _momentum(performance: Sequence[HabitAnalytics], reference: date | None) -> float:
    """Recency-weighted activity, boosted by current streaks, capped at 100."""
    if not performance or reference is None:
        return 0.0
    total = 0.0
    for item in performance:
        if item["last_completed"] is None:
            continue
        since = (reference - date.fromisoformat(item["last_completed"])).days
        if since <= 1:
            score = 100.0
        elif since <= 3:
            score = 75.0
        elif since <= 7:
            score = 50.0
        else:
            score = 25.0
        total += score * (1 + item["current_streak"] * 0.1)
    return min(100.0, total / len(performance))


def _formation_milestones(tracked: Sequence[_Tracked], reference: date | None) -> list[FormationMilestone]:
    milestones: list[FormationMilestone] = []
    for days in _MILESTONE_DAYS:
        reached = 0
        if reference is not None:
            reached = sum(1 for t in tracked if t.start is not None and (reference - t.start).days + 1 >= days)
        milestones.append(
            FormationMilestone(
                milestone_days=days,
                habits_reached=reached,
                percentage=_pct(reached, len(tracked)),
            )
        )
    return milestones


def compute_analytics(
    habits: Sequence[HabitRecord],
    progress: Sequence[ProgressRecord],
    window: DateWindow,
    config: Settings | None = None,
) -> AnalyticsReport:
    """Build the analytics report for one user over window.

    Only progress records are tracked: a habit without a progress record
    contributes no slots. An inverted or malformed window yields an all-zero
    report.
    """
    cfg = config or default_settings
    resolved = resolve_window(window)
    tracked = _track(progress, habits)

    completed, possible = _slots(tracked, resolved)
    overall_rate = _pct(completed, possible)
    previous_completed, previous_possible = _slots(tracked, resolved.previous())
    trend = compute_trend(overall_rate, _pct(previous_completed, previous_possible), cfg)

    rows = _day_rows(tracked, resolved)
    performance = [_habit_analytics(t, resolved, cfg) for t in tracked]
    streaks = [item["current_streak"] for item in performance]

    report = AnalyticsReport(
        window_start=resolved.start.isoformat() if resolved.start and not resolved.is_empty else None,
        window_end=resolved.last_day.isoformat() if resolved.last_day else None,
        total_days_tracked=resolved.length,
        total_completions=sum(item["total_completions"] for item in performance),
        total_possible_slots=possible,
        overall_completion_rate=overall_rate,
        consistency_score=_consistency_from_rows(rows) if tracked else 0.0,
        best_day=_best_day_from_rows(rows),
        active_habits_count=len(tracked),
        current_streaks=streaks,
        longest_overall_streak=max((item["longest_streak"] for item in performance), default=0),
        average_streak=sum(streaks) / len(streaks) if streaks else 0.0,
        streak_distribution=_streak_distribution(streaks),
        momentum_score=_momentum(performance, resolved.last_day),
        trend=trend,
        habit_performance=performance,
        category_performance=_category_performance(performance),
        daily_stats=[
            DailyStats(
                date=row.day.isoformat(),
                day_of_week=row.day.strftime("%A"),
                completions=row.done,
                active_habits=row.active,
                completion_rate=_pct(row.done, row.active),
            )
            for row in rows
        ],
        weekly_stats=_period_stats(rows, iso_week_start, _week_label),
        monthly_stats=_period_stats(rows, lambda d: d.replace(day=1), lambda d: d.strftime("%Y-%m")),
        formation_milestones=_formation_milestones(tracked, resolved.last_day),
        skipped_entries=sum(t.log.skipped for t in tracked),
        duplicate_entries=sum(t.log.duplicates for t in tracked),
    )
    logger.info(
        "Analytics computed: habits=%d days=%d slots=%d/%d rate=%.1f",
        len(tracked),
        resolved.length,
        completed,
        possible,
        overall_rate,
    )
    return report
