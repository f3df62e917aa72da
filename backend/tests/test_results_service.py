"""Tests for job polling and spawned-job chain following."""

import pytest

from lineup_gateway.config import Settings
from lineup_gateway.errors import JobNotFoundError
from lineup_gateway.services.job_payload import JobStatus, RemoteJob
from lineup_gateway.services.results import (
    EMPTY_LINEUP_ERROR,
    ResultsService,
    evaluate_job,
)
from lineup_gateway.services.swarmnode_client import SwarmNodeClient
from tests.conftest import BASE_URL, job_json, lineup_payload

JOB_PATH = "/v1/agent-executor-jobs/{}/"
LIST_PATH = "/v1/agent-executor-jobs/"


@pytest.fixture
async def service(test_settings: Settings):
    async with SwarmNodeClient(base_url=BASE_URL, api_key="test-key") as client:
        yield ResultsService(client, test_settings)


def _job(**data) -> RemoteJob:
    return RemoteJob.from_api({"id": "j1", **data})


class TestEvaluateJob:
    """Classification of a single job."""

    def test_completed_with_lineup_returned_unchanged(self):
        """A non-empty lineup is returned exactly as the platform sent it."""
        payload = lineup_payload(players=3)
        result = evaluate_job(_job(status="completed", return_value=payload))

        assert result.status == "completed"
        assert result.success is True
        assert result.lineup == payload["lineup"]
        assert result.stats == payload["stats"]
        assert result.recommendations == ["Stack GSW"]
        assert result.locked_player_used == "Player 0"
        assert result.optimizer_job_id == "j1"

    @pytest.mark.parametrize(
        "return_value",
        [None, {}, {"lineup": []}, {"stats": {"total": 1}}],
        ids=["none", "empty", "empty_lineup", "missing_lineup"],
    )
    def test_completed_without_lineup_is_not_success(self, return_value):
        """completed + empty/missing lineup is an explicit error."""
        result = evaluate_job(_job(status="completed", return_value=return_value))

        assert result.status == "error"
        assert result.success is False
        assert result.error == EMPTY_LINEUP_ERROR

    def test_failed_job(self):
        result = evaluate_job(_job(status="error", error="Solver infeasible"))

        assert result.status == "failed"
        assert result.success is False
        assert result.error == "Solver infeasible"

    @pytest.mark.parametrize("status", ["pending", "queued", "running", "processing"])
    def test_active_status_reported(self, status):
        result = evaluate_job(_job(status=status))

        assert result.status == status
        assert result.success is True

    def test_unknown_status_reported_as_processing(self):
        assert evaluate_job(_job(status="sleeping")).status == "processing"


class TestFollowChain:
    """Chain-following from a submitted ingest job."""

    async def test_lineup_on_root_job(self, service: ResultsService, upstream):
        upstream.get(JOB_PATH.format("ingest")).respond(
            json=job_json("ingest", return_value=lineup_payload())
        )

        result = await service.follow_chain("ingest")

        assert result.status == "completed"
        assert result.ingest_job_id == "ingest"
        assert result.optimizer_job_id == "ingest"

    async def test_lineup_two_hops_down(self, service: ResultsService, upstream):
        """ingest -> projections -> optimizer, lineup on the last hop."""
        upstream.get(JOB_PATH.format("ingest")).respond(
            json=job_json("ingest", spawned_jobs=["proj"], return_value={"rows": 120})
        )
        upstream.get(JOB_PATH.format("proj")).respond(
            json=job_json("proj", spawned_jobs=["opt"], output={"projections": 120})
        )
        upstream.get(JOB_PATH.format("opt")).respond(
            json=job_json("opt", output=lineup_payload(players=8))
        )

        result = await service.follow_chain("ingest")

        assert result.status == "completed"
        assert len(result.lineup) == 8
        assert result.optimizer_job_id == "opt"
        assert result.ingest_job_id == "ingest"

    async def test_failed_job_in_chain(self, service: ResultsService, upstream):
        upstream.get(JOB_PATH.format("ingest")).respond(
            json=job_json("ingest", spawned_jobs=["opt"])
        )
        upstream.get(JOB_PATH.format("opt")).respond(
            json=job_json("opt", status="failed", error="Salary cap infeasible")
        )

        result = await service.follow_chain("ingest")

        assert result.status == "failed"
        assert result.success is False
        assert result.error == "Salary cap infeasible"

    async def test_still_running(self, service: ResultsService, upstream):
        upstream.get(JOB_PATH.format("ingest")).respond(
            json=job_json("ingest", spawned_jobs=["opt"])
        )
        upstream.get(JOB_PATH.format("opt")).respond(json=job_json("opt", status="running"))
        upstream.get(LIST_PATH).respond(json={"results": []})

        result = await service.follow_chain("ingest")

        assert result.status == "processing"
        assert result.jobs_checked == 2

    async def test_broken_hop_is_skipped(self, service: ResultsService, upstream):
        """A lookup error on a spawned job does not abort the walk."""
        upstream.get(JOB_PATH.format("ingest")).respond(
            json=job_json("ingest", spawned_jobs=["broken", "opt"])
        )
        upstream.get(JOB_PATH.format("broken")).respond(status_code=500, text="<html>")
        upstream.get(JOB_PATH.format("opt")).respond(
            json=job_json("opt", return_value=lineup_payload())
        )

        result = await service.follow_chain("ingest")

        assert result.status == "completed"
        assert result.optimizer_job_id == "opt"

    async def test_depth_bound_terminates(self, service: ResultsService, upstream):
        """An endless chain without a lineup stops at chain_max_depth (3)."""
        routes = [
            upstream.get(JOB_PATH.format(f"j{i}")).respond(
                json=job_json(f"j{i}", spawned_jobs=[f"j{i + 1}"])
            )
            for i in range(10)
        ]
        upstream.get(LIST_PATH).respond(json={"results": []})

        result = await service.follow_chain("j0")

        assert result.status == "processing"
        # root + 3 levels
        assert result.jobs_checked == 4
        assert routes[3].called
        assert not routes[4].called

    async def test_cycle_visited_once(self, service: ResultsService, upstream):
        route_a = upstream.get(JOB_PATH.format("a")).respond(
            json=job_json("a", status="running", spawned_jobs=["b"])
        )
        upstream.get(JOB_PATH.format("b")).respond(
            json=job_json("b", status="running", spawned_jobs=["a"])
        )
        upstream.get(LIST_PATH).respond(json={"results": []})

        result = await service.follow_chain("a")

        assert result.status == "processing"
        assert route_a.call_count == 1
        assert result.jobs_checked == 2

    async def test_recent_jobs_fallback(self, service: ResultsService, upstream):
        """Without a lineup in the chain, recent optimizer jobs are scanned."""
        upstream.get(JOB_PATH.format("ingest")).respond(
            json=job_json("ingest", spawned_jobs=[], created_at="2026-01-10T18:00:00Z")
        )
        upstream.get(LIST_PATH).respond(
            json={
                "results": [
                    job_json("old", return_value=lineup_payload(), created_at="2026-01-09T18:00:00Z"),
                    job_json("new", return_value=lineup_payload(), created_at="2026-01-10T18:00:30Z"),
                ]
            }
        )

        result = await service.follow_chain("ingest")

        assert result.status == "completed"
        assert result.optimizer_job_id == "new"
        assert result.note == "Found via recent jobs list"

    async def test_completed_root_without_chain_is_error(self, service: ResultsService, upstream):
        """A finished ingest job that spawned nothing and has no lineup is an error."""
        upstream.get(JOB_PATH.format("ingest")).respond(json=job_json("ingest"))
        upstream.get(LIST_PATH).respond(json={"results": []})

        result = await service.follow_chain("ingest")

        assert result.status == "error"
        assert result.error == EMPTY_LINEUP_ERROR

    async def test_root_not_found(self, service: ResultsService, upstream):
        upstream.get(JOB_PATH.format("nope")).respond(status_code=404)

        with pytest.raises(JobNotFoundError):
            await service.follow_chain("nope")


class TestLatestResult:
    """Latest optimizer job when no job id is given."""

    async def test_no_jobs(self, service: ResultsService, upstream):
        upstream.get(LIST_PATH).respond(json={"results": []})

        result = await service.latest_result()

        assert result.status == "no_jobs"

    async def test_latest_with_lineup_in_listing(self, service: ResultsService, upstream):
        upstream.get(LIST_PATH).respond(
            json={"results": [job_json("opt", return_value=lineup_payload())]}
        )

        result = await service.latest_result()

        assert result.status == "completed"

    async def test_latest_fetches_detail(self, service: ResultsService, upstream):
        """List entries without a payload are fetched in full."""
        upstream.get(LIST_PATH).respond(json={"results": [job_json("opt", status="running")]})
        detail = upstream.get(JOB_PATH.format("opt")).respond(
            json=job_json("opt", status="running")
        )

        result = await service.latest_result()

        assert detail.called
        assert result.status == "running"


class TestFetchLineup:
    """Single-job lineup with salary normalisation."""

    async def test_normalised_lineup(self, service: ResultsService, upstream):
        upstream.get(JOB_PATH.format("opt")).respond(
            json=job_json(
                "opt",
                created_at="2026-01-10T18:00:00Z",
                return_value={**lineup_payload(), "slate_type": "classic"},
            )
        )

        detail = await service.fetch_lineup("opt")

        assert detail.ok is True
        assert detail.slate_type == "classic"
        assert detail.lineup[0]["salary"] == "$5000"
        assert detail.lineup[0]["salary_num"] == 5000.0
        assert detail.lineup[1]["salary_num"] == 5100.0

    async def test_processing(self, service: ResultsService, upstream):
        upstream.get(JOB_PATH.format("opt")).respond(json=job_json("opt", status="queued"))

        detail = await service.fetch_lineup("opt")

        assert detail.ok is True
        assert detail.status == JobStatus.QUEUED.value
        assert detail.lineup == []

    async def test_failed_job(self, service: ResultsService, upstream):
        """A failed job is reported as an error, not as still processing."""
        upstream.get(JOB_PATH.format("opt")).respond(
            json=job_json("opt", status="failed", error="Solver infeasible")
        )

        detail = await service.fetch_lineup("opt")

        assert detail.ok is False
        assert detail.status == "failed"
        assert detail.error == "Solver infeasible"
        assert detail.message is None

    async def test_completed_without_lineup(self, service: ResultsService, upstream):
        upstream.get(JOB_PATH.format("opt")).respond(
            json=job_json("opt", return_value={"stats": {}})
        )

        detail = await service.fetch_lineup("opt")

        assert detail.ok is False
        assert detail.error == "No lineup found in return_value"
        assert detail.raw_return_value == {"stats": {}}
