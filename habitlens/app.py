"""FastAPI entrypoint exposing the engine over HTTP."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, timedelta
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from habitlens.core.config import settings
from habitlens.data.schemas import (
    Badge,
    DateWindow,
    HabitRecord,
    ProgressRecord,
    RecoveryEvent,
    ResearchView,
    UserBadge,
    UserProfile,
)
from habitlens.engine import (
    analyze_difficulty,
    build_history,
    build_recovery_plan,
    compute_analytics,
    evaluate_badges,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging for the server process."""
    logging.basicConfig(level=settings.log_level.upper())
    logger.info("HabitLens API ready")
    yield


app = FastAPI(title="HabitLens", version="0.1.0", lifespan=lifespan)

_bearer_scheme = HTTPBearer()


# ---------------------------------------------------------------------------
# Body models
# ---------------------------------------------------------------------------


class HabitBody(BaseModel):
    id: str
    title: str = ""
    category: str = "general"
    time_minutes: int = 0
    frequency: str = "daily"
    difficulty: str = ""
    is_active: bool = True


class ProgressBody(BaseModel):
    habit_id: str
    date_started: str | None = None
    completions: list[str] = Field(default_factory=list)
    current_streak: int = 0
    longest_streak: int = 0
    total_days: int = 0


class UserBody(BaseModel):
    id: str
    preferred_intensity: str = ""
    goals: list[str] = Field(default_factory=list)


class WindowBody(BaseModel):
    start: str
    end: str


class AnalyticsRequest(BaseModel):
    """Body for the /analytics endpoint. Without a window the last lookback days are used."""

    habits: list[HabitBody] = Field(default_factory=list)
    progress: list[ProgressBody] = Field(default_factory=list)
    window: WindowBody | None = None
    today: date | None = None


class DifficultyRequest(BaseModel):
    """Body for the /difficulty endpoint."""

    habit: HabitBody
    progress: ProgressBody
    user: UserBody
    today: date | None = None


class RecoveryRequest(BaseModel):
    """Body for the /recovery endpoint."""

    user: UserBody
    habits: list[HabitBody] = Field(default_factory=list)
    progress: list[ProgressBody] = Field(default_factory=list)
    today: date | None = None


class RequirementBody(BaseModel):
    type: str
    threshold: float
    timeframe: str = "all_time"
    habit_specific: bool = False
    global_achievement: bool = True
    within_days: int = 0


class BadgeBody(BaseModel):
    id: str
    name: str = ""
    requirement: RequirementBody


class UserBadgeBody(BaseModel):
    badge_id: str
    user_id: str
    habit_id: str | None = None
    earned_at: str = ""


class RecoveryEventBody(BaseModel):
    habit_id: str
    planned_on: str


class ResearchViewBody(BaseModel):
    habit_id: str
    viewed_at: str = ""


class BadgesRequest(BaseModel):
    """Body for the /badges endpoint."""

    user_id: str
    catalog: list[BadgeBody] = Field(default_factory=list)
    progress: list[ProgressBody] = Field(default_factory=list)
    earned: list[UserBadgeBody] = Field(default_factory=list)
    recovery_events: list[RecoveryEventBody] = Field(default_factory=list)
    research_views: list[ResearchViewBody] = Field(default_factory=list)
    today: date | None = None


class HealthResponse(BaseModel):
    """Response for the /health endpoint."""

    status: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


async def _verify_api_key(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),  # noqa: B008
) -> str:
    """Validate the Bearer token against the configured api_key."""
    if not settings.api_key or credentials.credentials != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return credentials.credentials


def _default_window(today: date) -> DateWindow:
    start = today - timedelta(days=settings.default_lookback_days - 1)
    return DateWindow(start=start.isoformat(), end=(today + timedelta(days=1)).isoformat())


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok")


@app.post("/analytics")
async def analytics(body: AnalyticsRequest, _key: str = Depends(_verify_api_key)) -> dict[str, Any]:
    """Analytics report for the given habits over a window. Requires Bearer auth."""
    window = DateWindow(**body.window.model_dump()) if body.window else _default_window(body.today or date.today())
    report = compute_analytics(
        [HabitRecord(**h.model_dump()) for h in body.habits],
        [ProgressRecord(**p.model_dump()) for p in body.progress],
        window,
    )
    return dict(report)


@app.post("/difficulty")
async def difficulty(body: DifficultyRequest, _key: str = Depends(_verify_api_key)) -> dict[str, Any]:
    """Difficulty recommendation for one habit. Requires Bearer auth."""
    today = body.today or date.today()
    progress = ProgressRecord(**body.progress.model_dump())
    adjustment = analyze_difficulty(
        HabitRecord(**body.habit.model_dump()),
        build_history(progress, today, settings.difficulty_history_window),
        UserProfile(**body.user.model_dump()),
        today=today,
    )
    return dict(adjustment)


@app.post("/recovery")
async def recovery(body: RecoveryRequest, _key: str = Depends(_verify_api_key)) -> dict[str, Any]:
    """Recovery plan for a user, or a null plan when none is needed. Requires Bearer auth."""
    plan = build_recovery_plan(
        UserProfile(**body.user.model_dump()),
        [HabitRecord(**h.model_dump()) for h in body.habits],
        [ProgressRecord(**p.model_dump()) for p in body.progress],
        today=body.today,
    )
    return {"plan": plan}


@app.post("/badges")
async def badges(body: BadgesRequest, _key: str = Depends(_verify_api_key)) -> dict[str, Any]:
    """Badge progress for a user against a catalog. Requires Bearer auth."""
    displays = evaluate_badges(
        [Badge(**b.model_dump()) for b in body.catalog],
        body.user_id,
        [ProgressRecord(**p.model_dump()) for p in body.progress],
        today=body.today,
        earned=[UserBadge(**e.model_dump()) for e in body.earned],
        recovery_events=[RecoveryEvent(**e.model_dump()) for e in body.recovery_events],
        research_views=[ResearchView(**v.model_dump()) for v in body.research_views],
    )
    return {"badges": displays}
