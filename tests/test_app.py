"""Tests for habitlens.app FastAPI endpoints."""

from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from habitlens.app import app

TODAY = date(2026, 3, 1)
AUTH = {"Authorization": "Bearer test-key"}


def _run(n: int, end: date = TODAY) -> list[str]:
    return [(end - timedelta(days=i)).isoformat() for i in range(n)]


def _mock_settings(mock_settings: MagicMock) -> None:
    mock_settings.api_key = "test-key"
    mock_settings.default_lookback_days = 90
    mock_settings.difficulty_history_window = 30


async def _post(path: str, body: dict[str, object], headers: dict[str, str] | None = None) -> tuple[int, object]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.post(path, json=body, headers=AUTH if headers is None else headers)
    return resp.status_code, resp.json()


@pytest.mark.asyncio
async def test_health() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_wrong_key_rejected() -> None:
    with patch("habitlens.app.settings") as mock_settings:
        _mock_settings(mock_settings)
        status, _ = await _post("/analytics", {}, headers={"Authorization": "Bearer nope"})
    assert status == 401


@pytest.mark.asyncio
async def test_unconfigured_key_rejects_everything() -> None:
    with patch("habitlens.app.settings") as mock_settings:
        _mock_settings(mock_settings)
        mock_settings.api_key = ""
        status, _ = await _post("/analytics", {})
    assert status == 401


@pytest.mark.asyncio
async def test_missing_required_field() -> None:
    with patch("habitlens.app.settings") as mock_settings:
        _mock_settings(mock_settings)
        status, _ = await _post("/difficulty", {"habit": {"id": "h1"}})
    assert status == 422


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_analytics_with_window() -> None:
    body = {
        "habits": [{"id": "h1", "title": "Meditate"}],
        "progress": [
            {
                "habit_id": "h1",
                "date_started": "2024-01-01",
                "completions": [f"2024-01-0{d}" for d in range(1, 8)],
            }
        ],
        "window": {"start": "2024-01-01", "end": "2024-01-08"},
    }
    with patch("habitlens.app.settings") as mock_settings:
        _mock_settings(mock_settings)
        status, data = await _post("/analytics", body)
    assert status == 200
    assert data["overall_completion_rate"] == pytest.approx(100.0)
    assert data["habit_performance"][0]["habit_title"] == "Meditate"


@pytest.mark.asyncio
async def test_analytics_default_window() -> None:
    body = {
        "progress": [{"habit_id": "h1", "completions": _run(10)}],
        "today": TODAY.isoformat(),
    }
    with patch("habitlens.app.settings") as mock_settings:
        _mock_settings(mock_settings)
        status, data = await _post("/analytics", body)
    assert status == 200
    assert data["window_end"] == TODAY.isoformat()
    assert data["total_days_tracked"] == 90
    assert data["overall_completion_rate"] == pytest.approx(100.0)


@pytest.mark.asyncio
async def test_difficulty() -> None:
    body = {
        "habit": {"id": "h1", "time_minutes": 15},
        "progress": {"habit_id": "h1", "completions": _run(30)},
        "user": {"id": "u1"},
        "today": TODAY.isoformat(),
    }
    with patch("habitlens.app.settings") as mock_settings:
        _mock_settings(mock_settings)
        status, data = await _post("/difficulty", body)
    assert status == 200
    assert data["current_level"]["name"] == "moderate"
    assert data["direction"] == "maintain"


@pytest.mark.asyncio
async def test_recovery_plan() -> None:
    body = {
        "user": {"id": "u1"},
        "habits": [{"id": "h1"}],
        "progress": [{"habit_id": "h1", "completions": _run(14, TODAY - timedelta(days=2))}],
        "today": TODAY.isoformat(),
    }
    with patch("habitlens.app.settings") as mock_settings:
        _mock_settings(mock_settings)
        status, data = await _post("/recovery", body)
    assert status == 200
    assert data["plan"]["strategy"] == "gradual_rebuild"
    assert data["plan"]["triggers"][0]["type"] == "streak_broken"


@pytest.mark.asyncio
async def test_recovery_no_plan_needed() -> None:
    body = {
        "user": {"id": "u1"},
        "habits": [{"id": "h1"}],
        "progress": [{"habit_id": "h1", "completions": _run(5)}],
        "today": TODAY.isoformat(),
    }
    with patch("habitlens.app.settings") as mock_settings:
        _mock_settings(mock_settings)
        status, data = await _post("/recovery", body)
    assert status == 200
    assert data == {"plan": None}


@pytest.mark.asyncio
async def test_badges() -> None:
    body = {
        "user_id": "u1",
        "catalog": [{"id": "week", "requirement": {"type": "streak", "threshold": 7}}],
        "progress": [{"habit_id": "h1", "completions": _run(3)}],
        "today": TODAY.isoformat(),
    }
    with patch("habitlens.app.settings") as mock_settings:
        _mock_settings(mock_settings)
        status, data = await _post("/badges", body)
    assert status == 200
    badge = data["badges"][0]
    assert badge["badge_id"] == "week"
    assert badge["progress"] == pytest.approx(42.86, abs=0.01)
    assert badge["is_earned"] is False
