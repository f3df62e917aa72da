"""Shared pytest fixtures for backend tests."""

import pytest
import respx
from httpx import ASGITransport, AsyncClient

from lineup_gateway.config import Settings, get_settings
from lineup_gateway.main import app
from lineup_gateway.services.performance import get_performance_store
from lineup_gateway.services.swarmnode_client import clear_job_cache

BASE_URL = "https://swarmnode.test"
VALID_CSV = (
    "Position,Name,ID,Salary,TeamAbbrev,AvgPointsPerGame\n"
    "PG,Stephen Curry,1001,9800,GSW,48.2\n"
    "SF,LeBron James,1002,10200,LAL,51.0\n"
)


@pytest.fixture(autouse=True)
def reset_state():
    """Clear process-wide caches between tests."""
    clear_job_cache()
    get_performance_store().clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def test_settings() -> Settings:
    """Fully configured settings pointing at the mocked platform."""
    return Settings(
        _env_file=None,
        swarmnode_base_url=BASE_URL,
        swarmnode_api_key="test-key",
        ingest_agent_id="ingest-agent",
        nfl_ingest_agent_id="nfl-agent",
        optimizer_agent_id="optimizer-agent",
        learner_agent_id="learner-agent",
        chain_max_depth=3,
        learner_poll_attempts=3,
        learner_poll_delay=0,
    )


@pytest.fixture
def upstream():
    """respx router for the SwarmNode API."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as mock:
        yield mock


@pytest.fixture
async def async_client(test_settings: Settings):
    """Async HTTP client for testing the FastAPI app."""
    app.dependency_overrides[get_settings] = lambda: test_settings
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def job_json(job_id: str, status: str = "completed", **extra) -> dict:
    """Build a job object the way the platform returns it."""
    return {"id": job_id, "status": status, "agent_id": "agent", **extra}


def lineup_payload(players: int = 2) -> dict:
    lineup = [
        {
            "slot": f"UTIL{i}",
            "name": f"Player {i}",
            "team": "GSW",
            "salary": f"${5000 + i * 100}",
            "projection": 20.0 + i,
            "value": 4.0,
            "is_locked": i == 0,
        }
        for i in range(players)
    ]
    return {
        "lineup": lineup,
        "stats": {"total_salary": 50000, "total_projection": 250.5},
        "recommendations": ["Stack GSW"],
        "locked_player_used": "Player 0",
    }
