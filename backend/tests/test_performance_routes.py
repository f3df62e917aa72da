"""Integration tests for the tracker, learner, feedback and dashboard endpoints."""

import logging

import pytest
from httpx import AsyncClient

from lineup_gateway.config import Settings, get_settings
from lineup_gateway.main import app
from tests.conftest import job_json

CREATE_PATH = "/v1/agent-executor-jobs/create/"
JOB_PATH = "/v1/agent-executor-jobs/{}/"


class TestTrackerEndpoint:
    """Tests for POST /api/tracker."""

    async def test_acknowledges(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/tracker", json={"optimizer_job_id": "opt-1", "slate_date": "2026-01-10"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "optimizer_job_id": "opt-1",
            "slate_date": "2026-01-10",
            "message": "Tracker received optimizer job + slate date successfully",
        }

    async def test_missing_slate_date(self, async_client: AsyncClient):
        response = await async_client.post("/api/tracker", json={"optimizer_job_id": "opt-1"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Missing slate_date"}

    async def test_tracked_slate_shows_on_dashboard(self, async_client: AsyncClient):
        tracked = await async_client.post(
            "/api/tracker",
            json={
                "optimizer_job_id": "opt-1",
                "slate_date": "2026-01-10",
                "lineup": [
                    {"name": "Steph Curry", "projection": 40},
                    {"name": "LeBron James", "projection": 45},
                ],
                "actuals": [
                    {"name": "steph curry", "points": 50},
                    {"name": "LeBron James", "points": 43},
                ],
            },
        )

        assert tracked.status_code == 200
        stats = tracked.json()["stats"]
        assert stats["mae"] == 6.0
        assert stats["bias"] == 4.0

        response = await async_client.get("/api/dashboard")

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["total_slates"] == 1
        assert data["avg_mae"] == 6.0
        assert data["performance"][0]["optimizer_job_id"] == "opt-1"
        assert data["top_misses"][0]["name"] == "Steph Curry"

    async def test_logs_outcome(self, async_client: AsyncClient, caplog: pytest.LogCaptureFixture):
        caplog.set_level(logging.INFO, logger="lineup_gateway.api.performance")

        await async_client.post(
            "/api/tracker", json={"optimizer_job_id": "opt-1", "slate_date": "2026-01-10"}
        )

        assert "Tracker for opt-1: Tracker received optimizer job" in caplog.text

    async def test_non_finite_points_do_not_reach_dashboard(self, async_client: AsyncClient):
        """inf/nan rows are treated as missing and the aggregate stays numeric."""
        lineup = [{"name": "A", "projection": 10}, {"name": "B", "projection": 20}]

        only_bad = await async_client.post(
            "/api/tracker",
            json={
                "optimizer_job_id": "opt-1",
                "slate_date": "2026-01-10",
                "lineup": lineup,
                "actuals_csv": "A,inf\nB,nan",
            },
        )
        mixed = await async_client.post(
            "/api/tracker",
            json={
                "optimizer_job_id": "opt-2",
                "slate_date": "2026-01-11",
                "lineup": lineup,
                "actuals_csv": "A,inf\nB,23",
            },
        )

        assert only_bad.status_code == 200
        assert only_bad.json()["stats"] is None
        assert mixed.json()["stats"]["mae"] == 3.0
        assert mixed.json()["unmatched_lineup"] == ["A"]

        dashboard = (await async_client.get("/api/dashboard")).json()

        assert dashboard["total_slates"] == 1
        assert dashboard["avg_mae"] == 3.0
        assert dashboard["accuracy_rate"] == 1.0


class TestLearnerEndpoint:
    """Tests for POST /api/learner."""

    async def test_weights(self, async_client: AsyncClient):
        response = await async_client.post("/api/learner", json={})

        assert response.status_code == 200
        data = response.json()
        assert data["current_weights"]["W_SALARY_PROXY"] == 0.35
        assert data["suggested_weights"]["W_MATCHUP"] == 0.27
        assert data["insights"]["sentiment_weak"] is True

    async def test_get_not_allowed(self, async_client: AsyncClient):
        response = await async_client.get("/api/learner")

        assert response.status_code == 405


class TestFeedbackEndpoint:
    """Tests for POST /api/feedback."""

    async def test_round_trip(self, async_client: AsyncClient, upstream):
        upstream.post(CREATE_PATH).respond(json={"id": "learn-1"})
        upstream.get(JOB_PATH.format("learn-1")).respond(
            json=job_json("learn-1", return_value={"insight": "stack more"})
        )

        response = await async_client.post(
            "/api/feedback",
            json={
                "optimizer_job_id": "opt-1",
                "slate_date": "2026-01-10",
                "my_lineup_csv": "A,30\nB,20",
                "winning_lineup_csv": "A,30\nC,28",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["learner_job_id"] == "learn-1"
        assert data["learner_status"] == "completed"
        assert data["learner_response"] == {"insight": "stack more"}
        assert data["comparison"]["gap"] == 8.0
        assert data["comparison"]["winning_only"] == ["C"]

    async def test_missing_optimizer_job_id(self, async_client: AsyncClient):
        response = await async_client.post("/api/feedback", json={"slate_date": "2026-01-10"})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing optimizer_job_id"

    async def test_learner_not_configured(
        self, async_client: AsyncClient, test_settings: Settings
    ):
        settings = test_settings.model_copy(update={"learner_agent_id": None})
        app.dependency_overrides[get_settings] = lambda: settings

        response = await async_client.post("/api/feedback", json={"optimizer_job_id": "opt-1"})

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "Missing LEARNER_AGENT_ID or SWARMNODE_API_KEY env vars",
        }

    async def test_learner_rejects_job(self, async_client: AsyncClient, upstream):
        upstream.post(CREATE_PATH).respond(status_code=401, json={"message": "Unauthorized"})

        response = await async_client.post("/api/feedback", json={"optimizer_job_id": "opt-1"})

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"


class TestDashboardEndpoint:
    """Tests for GET /api/dashboard."""

    async def test_empty(self, async_client: AsyncClient):
        response = await async_client.get("/api/dashboard")

        assert response.status_code == 200
        data = response.json()
        assert data["total_slates"] == 0
        assert data["performance"] == []
        assert "last_updated" in data
