"""Recovery trigger detection and remediation plans."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, timedelta

from habitlens.core.config import Settings
from habitlens.core.config import settings as default_settings
from habitlens.data.dates import extract_days
from habitlens.data.schemas import (
    EmotionalTone,
    HabitRecord,
    Priority,
    ProgressRecord,
    RecommendationType,
    RecoveryPlan,
    RecoveryRecommendation,
    RecoveryStrategy,
    RecoveryTrigger,
    ResearchBacking,
    Severity,
    TriggerType,
    UserProfile,
)
from habitlens.engine.streaks import streak_summary

logger = logging.getLogger(__name__)

_STREAK_BROKEN_MIN_LONGEST = 3
_STREAK_BROKEN_DAYS = 1
_DECLINE_THRESHOLD = 0.3
_DISRUPTION_DAYS = 7
_WEEKLY_STRUGGLE_RATE = 0.5

TRIGGER_CONFIDENCE: dict[str, float] = {
    TriggerType.STREAK_BROKEN: 0.9,
    TriggerType.COMPLETION_DECLINE: 0.8,
    TriggerType.LIFE_DISRUPTION: 0.7,
    TriggerType.OVERCOMMITMENT: 0.85,
}

STRATEGY_BASE_DAYS: dict[str, int] = {
    RecoveryStrategy.GRADUAL_REBUILD: 7,
    RecoveryStrategy.ADJUST_EXPECTATIONS: 14,
    RecoveryStrategy.TEMPORARY_PAUSE: 21,
    RecoveryStrategy.RESET_AND_RESTART: 30,
}

_CRITICAL_MULTIPLIER = 1.5
_MULTIPLE_HIGH_MULTIPLIER = 1.2


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


def _trigger(
    trigger_type: TriggerType,
    severity: Severity,
    today: date,
    metadata: dict[str, object],
) -> RecoveryTrigger:
    return RecoveryTrigger(
        type=trigger_type,
        severity=severity,
        confidence=TRIGGER_CONFIDENCE[trigger_type],
        triggered_at=today.isoformat(),
        metadata=metadata,
    )


def _disruption_severity(days_since: int) -> Severity:
    if days_since >= 30:
        return Severity.CRITICAL
    if days_since >= 14:
        return Severity.HIGH
    return Severity.MEDIUM


def _overcommitment_severity(active_habits: int) -> Severity:
    if active_habits >= 10:
        return Severity.CRITICAL
    if active_habits >= 7:
        return Severity.HIGH
    return Severity.MEDIUM


def detect_habit_triggers(
    progress: ProgressRecord,
    today: date,
    config: Settings | None = None,
) -> list[RecoveryTrigger]:
    """Per-habit triggers: streak broken, completion decline, life disruption."""
    cfg = config or default_settings
    habit_id = str(progress.get("habit_id", ""))
    log = extract_days(progress.get("completions")).until(today)
    summary = streak_summary(progress, today, log)
    days_since = summary["days_since_last"]
    triggers: list[RecoveryTrigger] = []

    if (
        summary["longest_streak"] >= _STREAK_BROKEN_MIN_LONGEST
        and summary["current_streak"] == 0
        and days_since is not None
        and days_since <= _STREAK_BROKEN_DAYS + cfg.recovery_streak_grace_days
    ):
        triggers.append(
            _trigger(
                TriggerType.STREAK_BROKEN,
                Severity.HIGH if summary["longest_streak"] >= 14 else Severity.MEDIUM,
                today,
                {"habit_id": habit_id, "broken_streak": summary["longest_streak"], "days_since_last": days_since},
            )
        )

    span = cfg.decline_window_days
    recent = log.count_between(today - timedelta(days=span - 1), today)
    prior = log.count_between(today - timedelta(days=2 * span - 1), today - timedelta(days=span))
    if recent >= cfg.decline_min_samples and prior >= cfg.decline_min_samples:
        recent_rate = recent / span
        prior_rate = prior / span
        decline = prior_rate - recent_rate
        if decline >= _DECLINE_THRESHOLD:
            triggers.append(
                _trigger(
                    TriggerType.COMPLETION_DECLINE,
                    Severity.HIGH if decline >= 0.5 else Severity.MEDIUM,
                    today,
                    {"habit_id": habit_id, "decline": decline, "recent_rate": recent_rate, "prior_rate": prior_rate},
                )
            )

    if days_since is not None and days_since >= _DISRUPTION_DAYS:
        triggers.append(
            _trigger(
                TriggerType.LIFE_DISRUPTION,
                _disruption_severity(days_since),
                today,
                {"habit_id": habit_id, "days_since_last": days_since},
            )
        )
    return triggers


def _is_struggling(progress: ProgressRecord, today: date) -> bool:
    log = extract_days(progress.get("completions")).until(today)
    summary = streak_summary(progress, today, log)
    weekly_rate = log.count_between(today - timedelta(days=6), today) / 7
    return summary["current_streak"] == 0 or weekly_rate < _WEEKLY_STRUGGLE_RATE


def detect_overcommitment(
    habits: Sequence[HabitRecord],
    progress: Sequence[ProgressRecord],
    today: date,
    config: Settings | None = None,
) -> RecoveryTrigger | None:
    """Cross-habit trigger: too many active habits, most of them struggling."""
    cfg = config or default_settings
    active_ids = {h.get("id") for h in habits if h.get("is_active", True)}
    if len(active_ids) < cfg.overcommitment_min_habits:
        return None
    struggling = len(
        {p.get("habit_id") for p in progress if p.get("habit_id") in active_ids and _is_struggling(p, today)}
    )
    if struggling < len(active_ids) * cfg.overcommitment_struggling_ratio:
        return None
    return _trigger(
        TriggerType.OVERCOMMITMENT,
        _overcommitment_severity(len(active_ids)),
        today,
        {"total_habits": len(active_ids), "struggling_habits": struggling},
    )


def detect_triggers(
    habits: Sequence[HabitRecord],
    progress: Sequence[ProgressRecord],
    today: date | None = None,
    config: Settings | None = None,
) -> list[RecoveryTrigger]:
    """All triggers for a user: per-habit ones in progress order, then overcommitment."""
    reference = today or date.today()
    triggers: list[RecoveryTrigger] = []
    for record in progress:
        triggers.extend(detect_habit_triggers(record, reference, config))
    overcommitment = detect_overcommitment(habits, progress, reference, config)
    if overcommitment is not None:
        triggers.append(overcommitment)
    return triggers


# ---------------------------------------------------------------------------
# Plan composition
# ---------------------------------------------------------------------------


def _count_severity(triggers: Sequence[RecoveryTrigger], severity: Severity) -> int:
    return sum(1 for t in triggers if t["severity"] == severity)


def _has_type(triggers: Sequence[RecoveryTrigger], trigger_type: TriggerType) -> bool:
    return any(t["type"] == trigger_type for t in triggers)


def determine_strategy(triggers: Sequence[RecoveryTrigger]) -> RecoveryStrategy:
    """Deterministic strategy choice, first matching rule wins."""
    if _count_severity(triggers, Severity.CRITICAL) or _has_type(triggers, TriggerType.LIFE_DISRUPTION):
        return RecoveryStrategy.RESET_AND_RESTART
    if _has_type(triggers, TriggerType.OVERCOMMITMENT):
        return RecoveryStrategy.ADJUST_EXPECTATIONS
    if _count_severity(triggers, Severity.HIGH) >= 2:
        return RecoveryStrategy.TEMPORARY_PAUSE
    return RecoveryStrategy.GRADUAL_REBUILD


def select_emotional_tone(triggers: Sequence[RecoveryTrigger]) -> EmotionalTone:
    if _count_severity(triggers, Severity.CRITICAL) or _has_type(triggers, TriggerType.LIFE_DISRUPTION):
        return EmotionalTone.UNDERSTANDING
    if _has_type(triggers, TriggerType.STREAK_BROKEN):
        return EmotionalTone.GENTLE
    if _has_type(triggers, TriggerType.OVERCOMMITMENT):
        return EmotionalTone.ENCOURAGING
    return EmotionalTone.MOTIVATIONAL


def estimate_recovery_days(triggers: Sequence[RecoveryTrigger], strategy: RecoveryStrategy) -> int:
    """Base days per strategy, ×1.5 with a critical trigger, ×1.2 with two or more high ones."""
    days = float(STRATEGY_BASE_DAYS[strategy])
    if _count_severity(triggers, Severity.CRITICAL):
        days *= _CRITICAL_MULTIPLIER
    if _count_severity(triggers, Severity.HIGH) >= 2:
        days *= _MULTIPLE_HIGH_MULTIPLIER
    # Half-up, not banker's rounding: 10.5 -> 11.
    return int(days + 0.5)


_SUPPORT_MESSAGES: tuple[tuple[TriggerType, str], ...] = (
    (
        TriggerType.LIFE_DISRUPTION,
        "Life has a way of disrupting even our best intentions. You're not behind - you're exactly where "
        "you need to be. Let's start fresh with kindness toward yourself.",
    ),
    (
        TriggerType.OVERCOMMITMENT,
        "I can see you're ambitious about building positive habits, which is wonderful! Sometimes the most "
        "productive thing we can do is focus on fewer things and do them really well.",
    ),
    (
        TriggerType.STREAK_BROKEN,
        "Breaking a streak doesn't erase the progress you've made. Every day you practiced that habit "
        "strengthened neural pathways that are still there. You're rebuilding, not starting over.",
    ),
    (
        TriggerType.COMPLETION_DECLINE,
        "I've noticed things have been tougher lately. That's completely normal - habits naturally ebb and "
        "flow. Let's adjust things to make success feel more achievable again.",
    ),
)

_DEFAULT_SUPPORT_MESSAGE = (
    "Every expert was once a beginner. You're doing great by staying aware and wanting to improve. "
    "Let's find what works best for you right now."
)


def support_message_for(triggers: Sequence[RecoveryTrigger]) -> str:
    for trigger_type, message in _SUPPORT_MESSAGES:
        if _has_type(triggers, trigger_type):
            return message
    return _DEFAULT_SUPPORT_MESSAGE


def _recommendation(trigger: RecoveryTrigger) -> RecoveryRecommendation:
    """Instantiate the fixed template that belongs to the trigger's type."""
    meta = trigger["metadata"]
    trigger_type = trigger["type"]
    habit_id = str(meta.get("habit_id", "all"))

    if trigger_type == TriggerType.STREAK_BROKEN:
        return RecoveryRecommendation(
            id=f"recovery-{trigger_type}-{habit_id}",
            habit_id=habit_id,
            type=RecommendationType.MICRO_COMMITMENT,
            trigger_type=trigger_type,
            title="Start with a Micro-Commitment",
            description=(
                f"Your {meta.get('broken_streak', 0)}-day streak was impressive! Let's rebuild with something "
                "so small it feels almost too easy."
            ),
            action_steps=[
                "Choose just 2 minutes of this habit",
                "Commit to doing it at the same time as before",
                "Focus only on showing up, not perfection",
                "Celebrate each small win",
            ],
            expected_outcome="Rebuild momentum without pressure, leading to sustainable restart",
            research_backing=ResearchBacking(
                principle="Starting small reduces activation energy and rebuilds confidence",
                source="BJ Fogg, Tiny Habits research",
            ),
            priority=Priority.HIGH,
            time_to_complete=2,
        )
    if trigger_type == TriggerType.COMPLETION_DECLINE:
        return RecoveryRecommendation(
            id=f"recovery-{trigger_type}-{habit_id}",
            habit_id=habit_id,
            type=RecommendationType.REDUCE_DIFFICULTY,
            trigger_type=trigger_type,
            title="Reduce Difficulty Temporarily",
            description="Your completion rate has dropped. Let's make this habit easier to maintain consistency.",
            action_steps=[
                "Cut the habit time in half",
                "Remove any complex requirements",
                "Focus on the core action only",
                "Increase difficulty only after 2 weeks of consistency",
            ],
            expected_outcome="Higher completion rate and restored confidence",
            research_backing=ResearchBacking(
                principle="Reducing difficulty temporarily maintains habit loop while rebuilding capability",
                source="Atomic Habits, James Clear",
            ),
            priority=Priority.MEDIUM,
            time_to_complete=5,
        )
    if trigger_type == TriggerType.OVERCOMMITMENT:
        return RecoveryRecommendation(
            id=f"recovery-{trigger_type}-all",
            habit_id="all",
            type=RecommendationType.PAUSE_HABIT,
            trigger_type=trigger_type,
            title="Pause and Prioritize",
            description=(
                f"You're managing {meta.get('total_habits', 0)} habits. "
                "Let's pause some to focus on what matters most."
            ),
            action_steps=[
                "Choose your top 3 most important habits",
                "Pause the rest for 2 weeks",
                "Master those 3 habits first",
                "Gradually reintroduce others one at a time",
            ],
            expected_outcome="Higher success rate on priority habits, reduced overwhelm",
            research_backing=ResearchBacking(
                principle="Limited willpower requires strategic focus on fewer behaviors",
                source="Roy Baumeister, willpower research",
            ),
            priority=Priority.HIGH,
            time_to_complete=15,
        )
    return RecoveryRecommendation(
        id=f"recovery-{trigger_type}-{habit_id}",
        habit_id=habit_id,
        type=RecommendationType.RESTART_FRESH,
        trigger_type=trigger_type,
        title="Fresh Start with Self-Compassion",
        description=f"Life happens. You've had {meta.get('days_since_last', 0)} days away - that's okay.",
        action_steps=[
            "Acknowledge this is a fresh beginning, not a failure",
            "Start with 50% of your previous commitment",
            "Choose your most meaningful habit first",
            "Be extra gentle with yourself for the first week",
        ],
        expected_outcome="Renewed motivation and realistic re-engagement",
        research_backing=ResearchBacking(
            principle="Self-compassion improves motivation and reduces perfectionism",
            source="Kristin Neff, self-compassion research",
        ),
        priority=Priority.HIGH,
        time_to_complete=10,
    )


def generate_recommendations(triggers: Sequence[RecoveryTrigger]) -> list[RecoveryRecommendation]:
    """One recommendation per trigger, in trigger order."""
    return [_recommendation(t) for t in triggers]


def build_recovery_plan(
    user: UserProfile,
    habits: Sequence[HabitRecord],
    progress: Sequence[ProgressRecord],
    today: date | None = None,
    config: Settings | None = None,
) -> RecoveryPlan | None:
    """Compose a recovery plan, or None when no trigger fires (the user is doing well)."""
    reference = today or date.today()
    triggers = detect_triggers(habits, progress, reference, config)
    if not triggers:
        logger.debug("No recovery triggers for user %s", user.get("id", ""))
        return None

    strategy = determine_strategy(triggers)
    plan = RecoveryPlan(
        user_id=str(user.get("id", "")),
        triggers=triggers,
        recommendations=generate_recommendations(triggers),
        strategy=strategy,
        emotional_tone=select_emotional_tone(triggers),
        support_message=support_message_for(triggers),
        estimated_recovery_days=estimate_recovery_days(triggers, strategy),
    )
    logger.info(
        "Recovery plan built: user=%s triggers=%d strategy=%s days=%d",
        plan["user_id"],
        len(triggers),
        strategy,
        plan["estimated_recovery_days"],
    )
    return plan
