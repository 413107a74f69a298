"""Tests for habitlens.data.schemas."""

from habitlens.data.schemas import (
    Frequency,
    RequirementType,
    Timeframe,
    TriggerType,
    make_badge,
    make_badge_requirement,
    make_date_window,
    make_habit_record,
    make_progress_record,
    make_user_profile,
)


class TestMakeHabitRecord:
    def test_defaults(self) -> None:
        rec = make_habit_record("h1")
        assert rec["id"] == "h1"
        assert rec["title"] == "h1"
        assert rec["category"] == "general"
        assert rec["frequency"] == Frequency.DAILY
        assert rec["time_minutes"] == 0
        assert rec["is_active"] is True

    def test_explicit_fields(self) -> None:
        rec = make_habit_record(
            "h2",
            title="Morning run",
            category="fitness",
            time_minutes=30,
            frequency=Frequency.WEEKDAYS,
            difficulty="challenging",
            is_active=False,
        )
        assert rec["title"] == "Morning run"
        assert rec["frequency"] == "weekdays"
        assert rec["difficulty"] == "challenging"
        assert rec["is_active"] is False


class TestMakeProgressRecord:
    def test_defaults_are_zero(self) -> None:
        rec = make_progress_record("h1")
        assert rec["completions"] == []
        assert rec["date_started"] is None
        assert rec["current_streak"] == 0
        assert rec["longest_streak"] == 0
        assert rec["total_days"] == 0

    def test_completions_are_copied(self) -> None:
        completions = ["2024-01-01"]
        rec = make_progress_record("h1", completions=completions)
        completions.append("2024-01-02")
        assert rec["completions"] == ["2024-01-01"]


class TestMakeUserProfile:
    def test_defaults(self) -> None:
        user = make_user_profile("u1")
        assert user["id"] == "u1"
        assert user["preferred_intensity"] == ""
        assert user["goals"] == []


class TestMakeDateWindow:
    def test_no_validation(self) -> None:
        window = make_date_window("2024-02-01", "2024-01-01")
        assert window == {"start": "2024-02-01", "end": "2024-01-01"}


class TestMakeBadgeRequirement:
    def test_global_by_default(self) -> None:
        req = make_badge_requirement(RequirementType.STREAK, 7)
        assert req["habit_specific"] is False
        assert req["global_achievement"] is True
        assert req["timeframe"] == Timeframe.ALL_TIME
        assert req["within_days"] == 0

    def test_habit_specific_is_not_global(self) -> None:
        req = make_badge_requirement(RequirementType.STREAK, 7, habit_specific=True)
        assert req["global_achievement"] is False

    def test_make_badge_defaults_name(self) -> None:
        badge = make_badge("week-warrior", make_badge_requirement(RequirementType.STREAK, 7))
        assert badge["name"] == "week-warrior"
        assert badge["requirement"]["threshold"] == 7


def test_enum_values_are_strings() -> None:
    assert TriggerType.STREAK_BROKEN == "streak_broken"
    assert Frequency.THREE_PER_WEEK == "3x_week"
