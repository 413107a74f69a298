"""Adaptive difficulty: map habit performance onto a fixed five-rung ladder."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from habitlens.core.config import Settings
from habitlens.core.config import settings as default_settings
from habitlens.data.dates import effective_start, extract_days, parse_day
from habitlens.data.schemas import (
    AdaptiveMetrics,
    AdjustmentDirection,
    ChangeField,
    DifficultyAdjustment,
    DifficultyChange,
    DifficultyLevel,
    DifficultyName,
    Frequency,
    HabitProgressEntry,
    HabitRecord,
    IntensityPreference,
    ProgressRecord,
    UserProfile,
)

logger = logging.getLogger(__name__)

_DEFAULT_TIME_MINUTES = 10
_TREND_MIN_SAMPLES = 14
_CONSISTENCY_MIN_SAMPLES = 3
_ENGAGEMENT_DECAY_DAYS = 7
_ENGAGEMENT_FLOOR = 0.1
_IDEAL_COMPLETION_RATE = 0.75

# Sessions per week, for describing frequency changes.
_FREQUENCY_SESSIONS: dict[str, int] = {
    Frequency.DAILY: 7,
    Frequency.WEEKDAYS: 5,
    Frequency.THREE_PER_WEEK: 3,
    Frequency.TWO_PER_WEEK: 2,
    Frequency.WEEKLY: 1,
}


@dataclass(frozen=True)
class DifficultyLadder:
    """Ordered, immutable rung table. Rungs are listed easiest first."""

    levels: tuple[DifficultyLevel, ...]

    def names(self) -> list[str]:
        return [level["name"] for level in self.levels]

    def get(self, name: str) -> DifficultyLevel:
        for level in self.levels:
            if level["name"] == name:
                return level
        msg = f"Unknown difficulty level: {name}"
        raise KeyError(msg)

    def index(self, name: str) -> int:
        return self.names().index(name)

    def step(self, name: str, offset: int) -> str:
        """Move offset rungs from name, bounded at both ends of the ladder."""
        position = max(0, min(len(self.levels) - 1, self.index(name) + offset))
        return self.levels[position]["name"]

    def for_time(self, time_minutes: int) -> DifficultyLevel:
        """Rung matching a declared time cost."""
        if time_minutes <= 3:
            return self.get(DifficultyName.TRIVIAL)
        if time_minutes <= 10:
            return self.get(DifficultyName.EASY)
        if time_minutes <= 20:
            return self.get(DifficultyName.MODERATE)
        if time_minutes <= 40:
            return self.get(DifficultyName.CHALLENGING)
        return self.get(DifficultyName.INTENSE)


DEFAULT_LADDER = DifficultyLadder(
    levels=tuple(
        DifficultyLevel(name=name, time_minutes=minutes, frequency=frequency, complexity=rank, intensity=rank)
        for name, minutes, frequency, rank in (
            (DifficultyName.TRIVIAL, 2, Frequency.DAILY, 1),
            (DifficultyName.EASY, 5, Frequency.DAILY, 2),
            (DifficultyName.MODERATE, 15, Frequency.DAILY, 3),
            (DifficultyName.CHALLENGING, 30, Frequency.WEEKDAYS, 4),
            (DifficultyName.INTENSE, 45, Frequency.THREE_PER_WEEK, 5),
        )
    )
)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


def build_history(progress: ProgressRecord, today: date, days: int | None = None) -> list[HabitProgressEntry]:
    """One entry per day from the effective start (at most `days` back) through today."""
    log = extract_days(progress.get("completions")).until(today)
    start = effective_start(progress, log)
    if start is None or start > today:
        return []
    if days is not None and days > 0:
        start = max(start, today - timedelta(days=days - 1))
    history: list[HabitProgressEntry] = []
    cursor = start
    while cursor <= today:
        history.append(HabitProgressEntry(date=cursor.isoformat(), completed=cursor in log.day_set))
        cursor += timedelta(days=1)
    return history


# ---------------------------------------------------------------------------
# Adaptive metrics
# ---------------------------------------------------------------------------


def _completion_rate(entries: Sequence[HabitProgressEntry]) -> float:
    if not entries:
        return 0.0
    return sum(1 for e in entries if e.get("completed")) / len(entries)


def _run_consistency(entries: Sequence[HabitProgressEntry]) -> float:
    """Average run length plus half the longest run, both relative to sample size."""
    if len(entries) < _CONSISTENCY_MIN_SAMPLES:
        return 0.5
    runs: list[int] = []
    run = 0
    for entry in entries:
        if entry.get("completed"):
            run += 1
        elif run:
            runs.append(run)
            run = 0
    if run:
        runs.append(run)
    if not runs:
        return 0.0
    average = sum(runs) / len(runs)
    return min(1.0, average / len(entries) + (max(runs) / len(entries)) * 0.5)


def _progress_trend(entries: Sequence[HabitProgressEntry]) -> float:
    """Second-half completion rate minus first-half; 0 below two weeks of samples."""
    if len(entries) < _TREND_MIN_SAMPLES:
        return 0.0
    middle = len(entries) // 2
    return _completion_rate(entries[middle:]) - _completion_rate(entries[:middle])


def _engagement(entries: Sequence[HabitProgressEntry], today: date) -> float:
    """Linear decay from 1.0 to the floor over a week since the last completed entry."""
    completed_days = [parse_day(e.get("date")) for e in entries if e.get("completed")]
    dated = [d for d in completed_days if d is not None and d <= today]
    if not dated:
        return _ENGAGEMENT_FLOOR
    days_since = (today - max(dated)).days
    return max(_ENGAGEMENT_FLOOR, 1.0 - days_since / _ENGAGEMENT_DECAY_DAYS)


def _difficulty_match(completion_rate: float, consistency: float) -> float:
    completion_score = 1.0 - abs(completion_rate - _IDEAL_COMPLETION_RATE) / _IDEAL_COMPLETION_RATE
    return max(0.0, min(1.0, completion_score * 0.7 + consistency * 0.3))


def compute_adaptive_metrics(
    history: Sequence[HabitProgressEntry],
    today: date,
    config: Settings | None = None,
) -> AdaptiveMetrics:
    """Derive normalized performance signals from a habit's daily history."""
    cfg = config or default_settings
    if not history:
        return AdaptiveMetrics(
            completion_rate=0.0,
            consistency_score=0.0,
            progress_trend=0.0,
            engagement_level=0.0,
            difficulty_match_score=0.0,
        )
    recent = list(history)[-cfg.difficulty_history_window :]
    completion_rate = _completion_rate(recent)
    consistency = _run_consistency(recent)
    return AdaptiveMetrics(
        completion_rate=completion_rate,
        consistency_score=consistency,
        progress_trend=_progress_trend(history),
        engagement_level=_engagement(history, today),
        difficulty_match_score=_difficulty_match(completion_rate, consistency),
    )


# ---------------------------------------------------------------------------
# Rung selection
# ---------------------------------------------------------------------------


def current_level(habit: HabitRecord, ladder: DifficultyLadder = DEFAULT_LADDER) -> DifficultyLevel:
    """Rung implied by the declared time cost, then the declared tag, then a 10-minute default."""
    time_minutes = habit.get("time_minutes") or 0
    if isinstance(time_minutes, int | float) and time_minutes > 0:
        return ladder.for_time(int(time_minutes))
    tag = str(habit.get("difficulty") or "").lower()
    if tag in ladder.names():
        return ladder.get(tag)
    return ladder.for_time(_DEFAULT_TIME_MINUTES)


def target_level_name(metrics: AdaptiveMetrics, user: UserProfile, ladder: DifficultyLadder = DEFAULT_LADDER) -> str:
    """Apply the threshold table, then the user preference, then the engagement penalty."""
    rate = metrics["completion_rate"]
    consistency = metrics["consistency_score"]

    if rate >= 0.9 and consistency >= 0.8:
        target = DifficultyName.CHALLENGING if metrics["progress_trend"] > 0.2 else DifficultyName.MODERATE
    elif rate >= 0.7 and consistency >= 0.6:
        target = DifficultyName.MODERATE
    elif rate >= 0.5:
        target = DifficultyName.EASY
    else:
        target = DifficultyName.TRIVIAL

    name: str = target
    preference = str(user.get("preferred_intensity") or "").lower()
    if preference == IntensityPreference.LOW:
        name = ladder.step(name, -1)
    elif preference == IntensityPreference.HIGH:
        name = ladder.step(name, 1)

    if metrics["engagement_level"] < 0.5:
        name = ladder.step(name, -1)
    return name


def adjustment_direction(current: DifficultyLevel, recommended: DifficultyLevel) -> AdjustmentDirection:
    current_score = current["complexity"] + current["intensity"]
    recommended_score = recommended["complexity"] + recommended["intensity"]
    if recommended_score > current_score:
        return AdjustmentDirection.INCREASE
    if recommended_score < current_score:
        return AdjustmentDirection.DECREASE
    return AdjustmentDirection.MAINTAIN


def _frequency_impact(current: str, recommended: str) -> str:
    current_sessions = _FREQUENCY_SESSIONS.get(current, 7)
    recommended_sessions = _FREQUENCY_SESSIONS.get(recommended, 7)
    if recommended_sessions > current_sessions:
        return "Increase frequency to build stronger habits"
    return "Reduce frequency to prevent burnout and maintain consistency"


def specific_changes(current: DifficultyLevel, recommended: DifficultyLevel) -> list[DifficultyChange]:
    """Concrete deltas for the fields that differ between two rungs."""
    changes: list[DifficultyChange] = []
    if current["time_minutes"] != recommended["time_minutes"]:
        changes.append(
            DifficultyChange(
                field=ChangeField.TIME,
                current_value=current["time_minutes"],
                suggested_value=recommended["time_minutes"],
                impact=(
                    "Increase time commitment for greater impact"
                    if recommended["time_minutes"] > current["time_minutes"]
                    else "Reduce time to improve consistency"
                ),
            )
        )
    if current["frequency"] != recommended["frequency"]:
        changes.append(
            DifficultyChange(
                field=ChangeField.FREQUENCY,
                current_value=current["frequency"],
                suggested_value=recommended["frequency"],
                impact=_frequency_impact(current["frequency"], recommended["frequency"]),
            )
        )
    if current["complexity"] != recommended["complexity"]:
        changes.append(
            DifficultyChange(
                field=ChangeField.COMPLEXITY,
                current_value=current["complexity"],
                suggested_value=recommended["complexity"],
                impact=(
                    "Add more components to increase effectiveness"
                    if recommended["complexity"] > current["complexity"]
                    else "Simplify to reduce barriers to completion"
                ),
            )
        )
    return changes


def compute_confidence(metrics: AdaptiveMetrics) -> float:
    """Presence-of-signal score in [0, 1]."""
    score = 0.0
    if metrics["completion_rate"] > 0.3:
        score += 0.25
    if metrics["consistency_score"] > 0.2:
        score += 0.25
    if metrics["engagement_level"] > 0.3:
        score += 0.25
    # Stable trends carry less information.
    score += 0.25 if abs(metrics["progress_trend"]) > 0.1 else 0.1
    return score


def explain(metrics: AdaptiveMetrics, direction: AdjustmentDirection) -> str:
    """One-paragraph reasoning for the recommendation."""
    rate = metrics["completion_rate"]
    percent = round(rate * 100)
    if direction == AdjustmentDirection.DECREASE:
        if rate < 0.5:
            return (
                f"Your completion rate is {percent}%. Reducing difficulty can help build consistency and confidence."
            )
        if metrics["consistency_score"] < 0.4:
            return (
                "While you complete this habit sometimes, building a more consistent routine with easier "
                "parameters will create stronger long-term success."
            )
    elif direction == AdjustmentDirection.INCREASE:
        if rate > 0.8 and metrics["progress_trend"] > 0:
            return (
                f"You're crushing this habit with {percent}% completion! "
                "You're ready for a bigger challenge to maximize your growth."
            )
        if metrics["consistency_score"] > 0.7:
            return (
                "Your consistency is excellent. Increasing the challenge will help you get even more "
                "value from this habit."
            )
    else:
        return "Your current difficulty level is working well. Keep up the great work!"
    return "Based on your performance patterns, this adjustment will optimize your success."


def analyze_difficulty(
    habit: HabitRecord,
    history: Sequence[HabitProgressEntry],
    user: UserProfile,
    today: date | None = None,
    ladder: DifficultyLadder = DEFAULT_LADDER,
    config: Settings | None = None,
) -> DifficultyAdjustment:
    """Propose a difficulty transition for habit. The habit itself is never modified.

    A habit without history keeps its current rung with low confidence.
    """
    reference = today or date.today()
    metrics = compute_adaptive_metrics(history, reference, config)
    current = current_level(habit, ladder)

    if not history:
        adjustment = DifficultyAdjustment(
            habit_id=str(habit.get("id", "")),
            current_level=current,
            recommended_level=current,
            direction=AdjustmentDirection.MAINTAIN,
            confidence=compute_confidence(metrics),
            reasoning="Not enough history yet. Keep the current level while we learn how this habit fits you.",
            changes=[],
            metrics=metrics,
        )
        logger.debug("No history for %s, maintaining %s", adjustment["habit_id"], current["name"])
        return adjustment

    recommended = ladder.get(target_level_name(metrics, user, ladder))
    direction = adjustment_direction(current, recommended)
    adjustment = DifficultyAdjustment(
        habit_id=str(habit.get("id", "")),
        current_level=current,
        recommended_level=recommended,
        direction=direction,
        confidence=compute_confidence(metrics),
        reasoning=explain(metrics, direction),
        changes=specific_changes(current, recommended),
        metrics=metrics,
    )
    logger.info(
        "Difficulty analyzed: habit=%s %s -> %s (%s, confidence=%.2f)",
        adjustment["habit_id"],
        current["name"],
        recommended["name"],
        direction,
        adjustment["confidence"],
    )
    return adjustment
