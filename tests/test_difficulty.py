"""Tests for habitlens.engine.difficulty: adaptive metrics and ladder moves."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from habitlens.data.schemas import (
    AdaptiveMetrics,
    AdjustmentDirection,
    ChangeField,
    HabitProgressEntry,
    make_habit_record,
    make_progress_record,
    make_user_profile,
)
from habitlens.engine.difficulty import (
    DEFAULT_LADDER,
    adjustment_direction,
    analyze_difficulty,
    build_history,
    compute_adaptive_metrics,
    compute_confidence,
    current_level,
    target_level_name,
)

TODAY = date(2026, 3, 1)


def _history(flags: list[bool], end: date = TODAY) -> list[HabitProgressEntry]:
    """Daily entries ending at end, oldest first."""
    start = end - timedelta(days=len(flags) - 1)
    return [
        HabitProgressEntry(date=(start + timedelta(days=i)).isoformat(), completed=flag) for i, flag in enumerate(flags)
    ]


def _metrics(**overrides: float) -> AdaptiveMetrics:
    base = AdaptiveMetrics(
        completion_rate=0.0,
        consistency_score=0.0,
        progress_trend=0.0,
        engagement_level=1.0,
        difficulty_match_score=0.0,
    )
    base.update(overrides)  # type: ignore[typeddict-item]
    return base


# ---------------------------------------------------------------------------
# Ladder
# ---------------------------------------------------------------------------


class TestLadder:
    def test_order(self) -> None:
        assert DEFAULT_LADDER.names() == ["trivial", "easy", "moderate", "challenging", "intense"]

    def test_rung_values(self) -> None:
        challenging = DEFAULT_LADDER.get("challenging")
        assert challenging["time_minutes"] == 30
        assert challenging["frequency"] == "weekdays"
        assert challenging["complexity"] == 4

    def test_step_is_bounded(self) -> None:
        assert DEFAULT_LADDER.step("trivial", -1) == "trivial"
        assert DEFAULT_LADDER.step("intense", 1) == "intense"
        assert DEFAULT_LADDER.step("easy", 1) == "moderate"

    def test_unknown_rung(self) -> None:
        with pytest.raises(KeyError):
            DEFAULT_LADDER.get("heroic")

    @pytest.mark.parametrize(
        ("minutes", "expected"),
        [(1, "trivial"), (3, "trivial"), (10, "easy"), (20, "moderate"), (40, "challenging"), (41, "intense")],
    )
    def test_for_time(self, minutes: int, expected: str) -> None:
        assert DEFAULT_LADDER.for_time(minutes)["name"] == expected


class TestCurrentLevel:
    def test_from_time(self) -> None:
        assert current_level(make_habit_record("h1", time_minutes=15))["name"] == "moderate"

    def test_from_tag(self) -> None:
        assert current_level(make_habit_record("h1", difficulty="Intense"))["name"] == "intense"

    def test_default_ten_minutes(self) -> None:
        assert current_level(make_habit_record("h1", difficulty="unknown"))["name"] == "easy"


# ---------------------------------------------------------------------------
# History and metrics
# ---------------------------------------------------------------------------


def test_build_history_from_effective_start() -> None:
    progress = make_progress_record("h1", completions=["2024-01-02", "2024-01-03"], date_started="2024-01-01")
    history = build_history(progress, date(2024, 1, 5))
    assert [e["date"] for e in history] == ["2024-01-01", "2024-01-02", "2024-01-03", "2024-01-04", "2024-01-05"]
    assert [e["completed"] for e in history] == [False, True, True, False, False]


def test_build_history_bounded_by_days() -> None:
    progress = make_progress_record("h1", completions=["2024-01-05"], date_started="2024-01-01")
    history = build_history(progress, date(2024, 1, 5), days=2)
    assert history == [
        {"date": "2024-01-04", "completed": False},
        {"date": "2024-01-05", "completed": True},
    ]


def test_build_history_without_start() -> None:
    assert build_history(make_progress_record("h1"), TODAY) == []


def test_metrics_empty_history_all_zero() -> None:
    metrics = compute_adaptive_metrics([], TODAY)
    assert all(value == 0.0 for value in metrics.values())


def test_metrics_perfect_month() -> None:
    metrics = compute_adaptive_metrics(_history([True] * 30), TODAY)
    assert metrics["completion_rate"] == pytest.approx(1.0)
    assert metrics["consistency_score"] == pytest.approx(1.0)
    assert metrics["progress_trend"] == pytest.approx(0.0)
    assert metrics["engagement_level"] == pytest.approx(1.0)
    # 0.7 * (1 - 0.25 / 0.75) + 0.3 * 1.0
    assert metrics["difficulty_match_score"] == pytest.approx(0.7 * (2 / 3) + 0.3)


def test_metrics_bounded() -> None:
    flags = [i % 3 != 0 for i in range(45)]
    metrics = compute_adaptive_metrics(_history(flags), TODAY)
    for key in ("completion_rate", "consistency_score", "engagement_level", "difficulty_match_score"):
        assert 0.0 <= metrics[key] <= 1.0
    assert -1.0 <= metrics["progress_trend"] <= 1.0


def test_trend_needs_two_weeks() -> None:
    metrics = compute_adaptive_metrics(_history([False] * 6 + [True] * 7), TODAY)
    assert metrics["progress_trend"] == 0.0


def test_trend_rising() -> None:
    metrics = compute_adaptive_metrics(_history([False] * 7 + [True] * 7), TODAY)
    assert metrics["progress_trend"] == pytest.approx(1.0)


def test_engagement_decays_from_last_completion() -> None:
    flags = [True] * 10 + [False] * 3
    metrics = compute_adaptive_metrics(_history(flags), TODAY)
    assert metrics["engagement_level"] == pytest.approx(1.0 - 3 / 7)


def test_engagement_floor() -> None:
    metrics = compute_adaptive_metrics(_history([False] * 10), TODAY)
    assert metrics["engagement_level"] == pytest.approx(0.1)


def test_consistency_short_history_is_neutral() -> None:
    metrics = compute_adaptive_metrics(_history([True, False]), TODAY)
    assert metrics["consistency_score"] == pytest.approx(0.5)


# ---------------------------------------------------------------------------
# Rung selection
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [
        ({"completion_rate": 0.95, "consistency_score": 0.9, "progress_trend": 0.3}, "challenging"),
        ({"completion_rate": 0.95, "consistency_score": 0.9, "progress_trend": 0.2}, "moderate"),
        ({"completion_rate": 0.75, "consistency_score": 0.65}, "moderate"),
        ({"completion_rate": 0.6, "consistency_score": 0.1}, "easy"),
        ({"completion_rate": 0.2}, "trivial"),
    ],
)
def test_target_threshold_table(overrides: dict[str, float], expected: str) -> None:
    assert target_level_name(_metrics(**overrides), make_user_profile("u1")) == expected


def test_target_preference_shifts() -> None:
    metrics = _metrics(completion_rate=0.75, consistency_score=0.65)
    assert target_level_name(metrics, make_user_profile("u1", preferred_intensity="high")) == "challenging"
    assert target_level_name(metrics, make_user_profile("u1", preferred_intensity="low")) == "easy"


def test_target_low_engagement_steps_down() -> None:
    metrics = _metrics(completion_rate=0.75, consistency_score=0.65, engagement_level=0.3)
    assert target_level_name(metrics, make_user_profile("u1")) == "easy"


def test_direction_from_scores() -> None:
    easy = DEFAULT_LADDER.get("easy")
    moderate = DEFAULT_LADDER.get("moderate")
    assert adjustment_direction(easy, moderate) == AdjustmentDirection.INCREASE
    assert adjustment_direction(moderate, easy) == AdjustmentDirection.DECREASE
    assert adjustment_direction(easy, easy) == AdjustmentDirection.MAINTAIN


def test_confidence_signals() -> None:
    assert compute_confidence(_metrics(engagement_level=0.0)) == pytest.approx(0.1)
    full = _metrics(completion_rate=0.8, consistency_score=0.8, progress_trend=0.5)
    assert compute_confidence(full) == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# analyze_difficulty
# ---------------------------------------------------------------------------


def test_analyze_perfect_month_maintains() -> None:
    habit = make_habit_record("h1", time_minutes=15)
    result = analyze_difficulty(habit, _history([True] * 30), make_user_profile("u1"), today=TODAY)
    assert result["current_level"]["name"] == "moderate"
    assert result["recommended_level"]["name"] == "moderate"
    assert result["direction"] == AdjustmentDirection.MAINTAIN
    assert result["changes"] == []
    assert result["confidence"] == pytest.approx(0.85)


def test_analyze_rising_trend_increases() -> None:
    habit = make_habit_record("h1", time_minutes=15)
    history = _history([False] * 30 + [True] * 30)
    result = analyze_difficulty(habit, history, make_user_profile("u1"), today=TODAY)
    assert result["recommended_level"]["name"] == "challenging"
    assert result["direction"] == AdjustmentDirection.INCREASE
    fields = [change["field"] for change in result["changes"]]
    assert fields == [ChangeField.TIME, ChangeField.FREQUENCY, ChangeField.COMPLEXITY]
    time_change = result["changes"][0]
    assert time_change["current_value"] == 15
    assert time_change["suggested_value"] == 30
    assert "crushing" in result["reasoning"]


def test_analyze_struggling_decreases() -> None:
    habit = make_habit_record("h1", time_minutes=15)
    result = analyze_difficulty(habit, _history([False] * 30), make_user_profile("u1"), today=TODAY)
    assert result["recommended_level"]["name"] == "trivial"
    assert result["direction"] == AdjustmentDirection.DECREASE
    assert result["reasoning"].startswith("Your completion rate is 0%")


def test_analyze_without_history() -> None:
    habit = make_habit_record("h1", time_minutes=30)
    result = analyze_difficulty(habit, [], make_user_profile("u1"), today=TODAY)
    assert result["recommended_level"] == result["current_level"]
    assert result["direction"] == AdjustmentDirection.MAINTAIN
    assert result["confidence"] == pytest.approx(0.1)
    assert result["changes"] == []


def test_analyze_does_not_mutate_habit() -> None:
    habit = make_habit_record("h1", time_minutes=15)
    snapshot = dict(habit)
    analyze_difficulty(habit, _history([False] * 30), make_user_profile("u1"), today=TODAY)
    assert habit == snapshot
