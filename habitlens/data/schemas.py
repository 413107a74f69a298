"""Habit, progress and derived-report schemas shared by the engine."""

from __future__ import annotations

from enum import StrEnum
from typing import TypedDict


class Frequency(StrEnum):
    """Declared frequency pattern of a habit."""

    DAILY = "daily"
    WEEKDAYS = "weekdays"
    THREE_PER_WEEK = "3x_week"
    TWO_PER_WEEK = "2x_week"
    WEEKLY = "weekly"


class DifficultyName(StrEnum):
    """Rungs of the difficulty ladder, easiest first."""

    TRIVIAL = "trivial"
    EASY = "easy"
    MODERATE = "moderate"
    CHALLENGING = "challenging"
    INTENSE = "intense"


class IntensityPreference(StrEnum):
    """User-declared preference for how hard habits should be."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TrendDirection(StrEnum):
    """Direction of a completion-rate trend."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class AdjustmentDirection(StrEnum):
    """Proposed difficulty transition."""

    INCREASE = "increase"
    DECREASE = "decrease"
    MAINTAIN = "maintain"


class ChangeField(StrEnum):
    """Habit field touched by a difficulty change."""

    TIME = "time"
    FREQUENCY = "frequency"
    COMPLEXITY = "complexity"


class TriggerType(StrEnum):
    """Behavioral anomaly that warrants recovery support."""

    STREAK_BROKEN = "streak_broken"
    COMPLETION_DECLINE = "completion_decline"
    LIFE_DISRUPTION = "life_disruption"
    OVERCOMMITMENT = "overcommitment"


class Severity(StrEnum):
    """Trigger severity, mildest first."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecoveryStrategy(StrEnum):
    """Overall remediation strategy of a recovery plan."""

    GRADUAL_REBUILD = "gradual_rebuild"
    ADJUST_EXPECTATIONS = "adjust_expectations"
    TEMPORARY_PAUSE = "temporary_pause"
    RESET_AND_RESTART = "reset_and_restart"


class EmotionalTone(StrEnum):
    """Tone the messaging surface should use for a plan."""

    GENTLE = "gentle"
    ENCOURAGING = "encouraging"
    UNDERSTANDING = "understanding"
    MOTIVATIONAL = "motivational"


class RecommendationType(StrEnum):
    """Remediation template, one per trigger type."""

    MICRO_COMMITMENT = "micro_commitment"
    REDUCE_DIFFICULTY = "reduce_difficulty"
    PAUSE_HABIT = "pause_habit"
    RESTART_FRESH = "restart_fresh"


class Priority(StrEnum):
    """Recommendation priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RequirementType(StrEnum):
    """Kinds of badge requirement."""

    STREAK = "streak"
    TOTAL_COMPLETIONS = "total_completions"
    CONSISTENCY_RATE = "consistency_rate"
    RECOVERY_SUCCESS = "recovery_success"
    RESEARCH_ENGAGEMENT = "research_engagement"


class Timeframe(StrEnum):
    """Lookback used by consistency and completion requirements."""

    WEEK = "week"
    MONTH = "month"
    ALL_TIME = "all_time"


# ---------------------------------------------------------------------------
# Inputs supplied by the persistence layer
# ---------------------------------------------------------------------------


class HabitRecord(TypedDict):
    """A habit definition. Read-only for the engine."""

    id: str
    title: str
    category: str
    time_minutes: int  # declared time cost, 0 = unknown
    frequency: str  # Frequency value
    difficulty: str  # declared difficulty tag, free text
    is_active: bool


class ProgressRecord(TypedDict):
    """Per (user, habit) progress. Cached counters are hints only."""

    habit_id: str
    date_started: str | None  # ISO date; None -> earliest completion
    completions: list[str]  # ISO dates, may hold duplicates or junk
    current_streak: int  # cached
    longest_streak: int  # cached
    total_days: int  # cached


class UserProfile(TypedDict):
    """User preference fields consumed by the engine."""

    id: str
    preferred_intensity: str  # IntensityPreference value, "" = none
    goals: list[str]


class DateWindow(TypedDict):
    """Caller-supplied analysis window; may be inverted or malformed."""

    start: str  # ISO date or datetime
    end: str  # ISO date or datetime


class HabitProgressEntry(TypedDict):
    """One day of a habit's history as seen by the difficulty analyzer."""

    date: str  # ISO date
    completed: bool


# ---------------------------------------------------------------------------
# Metrics calculator output
# ---------------------------------------------------------------------------


class TrendSummary(TypedDict):
    """Current vs. preceding window comparison."""

    current_rate: float
    previous_rate: float
    delta: float  # points, current - previous
    direction: str  # TrendDirection value
    magnitude: float  # abs(delta)


class HabitAnalytics(TypedDict):
    """Per-habit breakdown of an analytics report."""

    habit_id: str
    habit_title: str
    habit_category: str
    effective_start: str | None
    total_completions: int  # deduplicated, inside the window
    completion_rate: int  # 0-100, rounded
    days_tracked: int  # possible slots for this habit
    current_streak: int
    longest_streak: int
    average_gap_days: float
    trend_direction: str  # TrendDirection value
    last_completed: str | None
    skipped_entries: int
    duplicate_entries: int


class DailyStats(TypedDict):
    """Cross-habit completions on one day."""

    date: str
    day_of_week: str
    completions: int
    active_habits: int
    completion_rate: float


class PeriodStats(TypedDict):
    """Aggregated completions for a week or month, clipped to the window."""

    label: str  # "2024-W01" or "2024-01"
    period_start: str
    period_end: str
    completions: int
    total_possible: int
    completion_rate: float
    days_active: int


class CategoryAnalytics(TypedDict):
    """Performance of all tracked habits sharing a category."""

    category: str
    total_habits: int
    total_completions: int
    average_completion_rate: float
    best_performing_habit: str
    most_consistent_habit: str


class StreakBucket(TypedDict):
    """Number of habits sharing a current-streak length."""

    length: int
    count: int


class FormationMilestone(TypedDict):
    """How many habits have been practiced long enough to reach a milestone."""

    milestone_days: int
    habits_reached: int
    percentage: float


class AnalyticsReport(TypedDict):
    """Full analytics report for one user and window."""

    window_start: str | None
    window_end: str | None
    total_days_tracked: int
    total_completions: int
    total_possible_slots: int
    overall_completion_rate: float
    consistency_score: float
    best_day: str
    active_habits_count: int
    current_streaks: list[int]
    longest_overall_streak: int
    average_streak: float
    streak_distribution: list[StreakBucket]
    momentum_score: float
    trend: TrendSummary
    habit_performance: list[HabitAnalytics]
    category_performance: list[CategoryAnalytics]
    daily_stats: list[DailyStats]
    weekly_stats: list[PeriodStats]
    monthly_stats: list[PeriodStats]
    formation_milestones: list[FormationMilestone]
    skipped_entries: int
    duplicate_entries: int


# ---------------------------------------------------------------------------
# Difficulty analyzer output
# ---------------------------------------------------------------------------


class AdaptiveMetrics(TypedDict):
    """Normalized performance signals; trend in [-1, 1], the rest in [0, 1]."""

    completion_rate: float
    consistency_score: float
    progress_trend: float
    engagement_level: float
    difficulty_match_score: float


class DifficultyLevel(TypedDict):
    """One rung of the difficulty ladder."""

    name: str  # DifficultyName value
    time_minutes: int
    frequency: str  # Frequency value
    complexity: int  # 1-5
    intensity: int  # 1-5


class DifficultyChange(TypedDict):
    """A concrete field delta between two rungs."""

    field: str  # ChangeField value
    current_value: int | str
    suggested_value: int | str
    impact: str


class DifficultyAdjustment(TypedDict):
    """Difficulty recommendation for one habit. Never applied by the engine."""

    habit_id: str
    current_level: DifficultyLevel
    recommended_level: DifficultyLevel
    direction: str  # AdjustmentDirection value
    confidence: float
    reasoning: str
    changes: list[DifficultyChange]
    metrics: AdaptiveMetrics


# ---------------------------------------------------------------------------
# Recovery detector output
# ---------------------------------------------------------------------------


class RecoveryTrigger(TypedDict):
    """A detected anomaly. One per habit and type, not deduplicated across habits."""

    type: str  # TriggerType value
    severity: str  # Severity value
    confidence: float
    triggered_at: str  # ISO date of the reference day
    metadata: dict[str, object]


class ResearchBacking(TypedDict):
    """Citation placeholder shown next to a recommendation."""

    principle: str
    source: str


class RecoveryRecommendation(TypedDict):
    """A remediation template instantiated for one trigger."""

    id: str
    habit_id: str  # "all" for cross-habit triggers
    type: str  # RecommendationType value
    trigger_type: str  # TriggerType value
    title: str
    description: str
    action_steps: list[str]
    expected_outcome: str
    research_backing: ResearchBacking
    priority: str  # Priority value
    time_to_complete: int  # minutes


class RecoveryPlan(TypedDict):
    """Prioritized remediation bundle built from one or more triggers."""

    user_id: str
    triggers: list[RecoveryTrigger]
    recommendations: list[RecoveryRecommendation]
    strategy: str  # RecoveryStrategy value
    emotional_tone: str  # EmotionalTone value
    support_message: str
    estimated_recovery_days: int


# ---------------------------------------------------------------------------
# Badge evaluator
# ---------------------------------------------------------------------------


class BadgeRequirement(TypedDict):
    """Requirement predicate from the external badge catalog."""

    type: str  # RequirementType value
    threshold: float
    timeframe: str  # Timeframe value
    habit_specific: bool
    global_achievement: bool
    within_days: int  # recovery_success window, 0 = configured default


class Badge(TypedDict):
    """Catalog entry: only the fields the evaluator needs."""

    id: str
    name: str
    requirement: BadgeRequirement


class UserBadge(TypedDict):
    """A badge already earned and stored by the persistence layer."""

    badge_id: str
    user_id: str
    habit_id: str | None
    earned_at: str


class RecoveryEvent(TypedDict):
    """A recovery plan that was issued for a habit."""

    habit_id: str
    planned_on: str  # ISO date


class ResearchView(TypedDict):
    """The user opened the research explanation of a habit."""

    habit_id: str
    viewed_at: str  # ISO date


class AggregateMetrics(TypedDict):
    """User (or single-habit) figures that badge requirements are measured against."""

    current_streak: int
    longest_streak: int
    total_completions: int
    consistency_rate: float  # 0-100
    recovery_successes: int
    research_engagement: int


class BadgeProgress(TypedDict):
    """Result of evaluating one requirement."""

    progress: float  # 0-100
    is_earned: bool


class BadgeDisplay(TypedDict):
    """Badge state for the achievement UI."""

    badge_id: str
    user_id: str
    habit_id: str | None
    progress: float
    is_earned: bool
    is_new: bool


# ---------------------------------------------------------------------------
# Level progression
# ---------------------------------------------------------------------------


class LevelCriteria(TypedDict):
    """Advancement criteria of a habit level."""

    minimum_consistency: float  # percent
    minimum_duration: int  # days


class LevelProgress(TypedDict):
    """How close a habit is to advancing to the next level."""

    days_at_level: int
    consistency: float  # percent over the last 30 days
    ready_for_advancement: bool
    progress_to_next: float  # 0-100


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_habit_record(
    habit_id: str,
    title: str = "",
    category: str = "general",
    time_minutes: int = 0,
    frequency: str = Frequency.DAILY,
    difficulty: str = "",
    is_active: bool = True,
) -> HabitRecord:
    """Create a habit record."""
    return HabitRecord(
        id=habit_id,
        title=title or habit_id,
        category=category,
        time_minutes=time_minutes,
        frequency=frequency,
        difficulty=difficulty,
        is_active=is_active,
    )


def make_progress_record(
    habit_id: str,
    completions: list[str] | None = None,
    date_started: str | None = None,
    current_streak: int = 0,
    longest_streak: int = 0,
    total_days: int = 0,
) -> ProgressRecord:
    """Create a progress record. Cached counters default to zero."""
    return ProgressRecord(
        habit_id=habit_id,
        date_started=date_started,
        completions=list(completions or []),
        current_streak=current_streak,
        longest_streak=longest_streak,
        total_days=total_days,
    )


def make_user_profile(
    user_id: str,
    preferred_intensity: str = "",
    goals: list[str] | None = None,
) -> UserProfile:
    """Create a user profile."""
    return UserProfile(id=user_id, preferred_intensity=preferred_intensity, goals=list(goals or []))


def make_date_window(start: str, end: str) -> DateWindow:
    """Create a date window. No validation; the engine degrades on bad input."""
    return DateWindow(start=start, end=end)


def make_badge_requirement(
    requirement_type: str,
    threshold: float,
    timeframe: str = Timeframe.ALL_TIME,
    habit_specific: bool = False,
    global_achievement: bool = False,
    within_days: int = 0,
) -> BadgeRequirement:
    """Create a badge requirement.

    A requirement that is neither habit-specific nor global is treated as global.
    """
    return BadgeRequirement(
        type=requirement_type,
        threshold=threshold,
        timeframe=timeframe,
        habit_specific=habit_specific,
        global_achievement=global_achievement or not habit_specific,
        within_days=within_days,
    )


def make_badge(badge_id: str, requirement: BadgeRequirement, name: str = "") -> Badge:
    """Create a catalog badge."""
    return Badge(id=badge_id, name=name or badge_id, requirement=requirement)
