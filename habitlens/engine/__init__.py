"""Analytics, adaptive difficulty, recovery and badge computations."""

from habitlens.engine.badges import build_aggregate_metrics, evaluate_badges, evaluate_requirement
from habitlens.engine.difficulty import DEFAULT_LADDER, DifficultyLadder, analyze_difficulty, build_history
from habitlens.engine.levels import evaluate_level_progress
from habitlens.engine.metrics import (
    compute_analytics,
    compute_consistency_score,
    compute_habit_completion_rate,
    compute_trend,
    find_best_day,
)
from habitlens.engine.recovery import build_recovery_plan, detect_triggers
from habitlens.engine.streaks import check_formation_milestone, streak_summary

__all__ = [
    "DEFAULT_LADDER",
    "DifficultyLadder",
    "analyze_difficulty",
    "build_aggregate_metrics",
    "build_history",
    "build_recovery_plan",
    "check_formation_milestone",
    "compute_analytics",
    "compute_consistency_score",
    "compute_habit_completion_rate",
    "compute_trend",
    "detect_triggers",
    "evaluate_badges",
    "evaluate_level_progress",
    "evaluate_requirement",
    "find_best_day",
    "streak_summary",
]
