"""Tests for habitlens.engine.levels."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from habitlens.data.schemas import LevelCriteria, make_progress_record
from habitlens.engine.levels import evaluate_level_progress

TODAY = date(2026, 3, 1)
CRITERIA = LevelCriteria(minimum_consistency=80.0, minimum_duration=14)


def _run(n: int) -> list[str]:
    return [(TODAY - timedelta(days=i)).isoformat() for i in range(n)]


def test_ready_when_both_criteria_met() -> None:
    progress = make_progress_record("h1", completions=_run(30))
    result = evaluate_level_progress(CRITERIA, "2026-02-01", progress, TODAY)
    assert result["days_at_level"] == 28
    assert result["consistency"] == pytest.approx(100.0)
    assert result["ready_for_advancement"] is True
    assert result["progress_to_next"] == pytest.approx(100.0)


def test_not_ready_when_too_recent() -> None:
    progress = make_progress_record("h1", completions=_run(30))
    result = evaluate_level_progress(CRITERIA, date(2026, 2, 22), progress, TODAY)
    assert result["days_at_level"] == 7
    assert result["ready_for_advancement"] is False
    assert result["progress_to_next"] == pytest.approx(50.0)


def test_progress_is_the_weaker_criterion() -> None:
    # 12 of the last 30 days: 40% consistency, half of the 80% target
    progress = make_progress_record("h1", completions=_run(12))
    result = evaluate_level_progress(CRITERIA, "2026-01-01", progress, TODAY)
    assert result["consistency"] == pytest.approx(40.0)
    assert result["ready_for_advancement"] is False
    assert result["progress_to_next"] == pytest.approx(50.0)


def test_missing_start_date() -> None:
    result = evaluate_level_progress(CRITERIA, None, make_progress_record("h1"), TODAY)
    assert result == {
        "days_at_level": 0,
        "consistency": 0.0,
        "ready_for_advancement": False,
        "progress_to_next": 0.0,
    }


def test_zero_criteria_are_met_immediately() -> None:
    criteria = LevelCriteria(minimum_consistency=0.0, minimum_duration=0)
    result = evaluate_level_progress(criteria, TODAY, make_progress_record("h1"), TODAY)
    assert result["ready_for_advancement"] is True
    assert result["progress_to_next"] == pytest.approx(100.0)
