"""Poll-job service - resolves a submitted job to an optimizer lineup.

A slate submitted to the ingest agent does not carry the lineup itself: the
ingest job spawns further jobs (projections, optimizer...) and only the last
one returns a ``lineup``. Resolution therefore walks the spawned-job chain
breadth-first, one level at a time, up to ``chain_max_depth`` levels.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from lineup_gateway.config import Settings
from lineup_gateway.errors import ConfigurationError, GatewayError
from lineup_gateway.services.job_payload import JobStatus, RemoteJob, normalize_lineup_player
from lineup_gateway.services.swarmnode_client import SwarmNodeClient

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Hard cap on lookups per walk, whatever the fan-out
MAX_JOBS_PER_WALK = 50

EMPTY_LINEUP_ERROR = "Job completed without a lineup"
PROCESSING_MESSAGE = "Pipeline still processing... This can take 20-40 seconds."


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class JobResult:
    """Outcome of polling a job, ready for serialization."""

    status: str
    success: bool = True
    lineup: list[Any] | None = None
    stats: dict[str, Any] | None = None
    recommendations: list[Any] | None = None
    locked_player_used: Any = None
    lineup_export: Any = None
    job_id: str | None = None
    optimizer_job_id: str | None = None
    ingest_job_id: str | None = None
    message: str | None = None
    error: str | None = None
    jobs_checked: int | None = None
    note: str | None = None


@dataclass
class LineupDetail:
    """A single job's lineup, normalised for downstream math."""

    ok: bool
    status: str
    job_id: str | None
    created_at: str | None = None
    slate_type: str | None = None
    lineup: list[dict[str, Any]] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)
    recommendations: list[Any] = field(default_factory=list)
    message: str | None = None
    error: str | None = None
    raw_return_value: dict[str, Any] | None = None


# =============================================================================
# Pure Functions
# =============================================================================


def evaluate_job(job: RemoteJob) -> JobResult:
    """Classify a single job.

    A non-empty lineup always wins and is returned unchanged. A completed job
    without one is an explicit error, never a silent success.
    """
    if job.has_lineup:
        payload = job.return_value or {}
        return JobResult(
            status=JobStatus.COMPLETED.value,
            lineup=job.lineup,
            stats=payload.get("stats") or {},
            recommendations=payload.get("recommendations") or [],
            locked_player_used=payload.get("locked_player_used"),
            lineup_export=payload.get("lineup_export"),
            job_id=job.id,
            optimizer_job_id=job.id,
        )

    if job.status == JobStatus.FAILED:
        return JobResult(
            status=JobStatus.FAILED.value,
            success=False,
            job_id=job.id,
            error=job.error or "Pipeline job failed",
        )

    if job.status == JobStatus.COMPLETED:
        return JobResult(
            status="error",
            success=False,
            job_id=job.id,
            error=EMPTY_LINEUP_ERROR,
        )

    status = job.status.value if job.status.is_active else JobStatus.PROCESSING.value
    return JobResult(status=status, job_id=job.id, message="Job still processing")


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _created_after(job: RemoteJob, reference: RemoteJob) -> bool:
    """True unless both timestamps parse and the job predates the reference."""
    created = _parse_timestamp(job.created_at)
    floor = _parse_timestamp(reference.created_at)
    if created is None or floor is None:
        return True
    try:
        return created >= floor
    except TypeError:
        # naive vs aware timestamps
        return True


# =============================================================================
# Service
# =============================================================================


class ResultsService:
    """Resolves job ids to lineups."""

    def __init__(self, client: SwarmNodeClient, config: Settings) -> None:
        self._client = client
        self._config = config

    async def _walk(self, root: RemoteJob) -> tuple[JobResult | None, int]:
        """Breadth-first walk of the spawned-job chain starting at root.

        Returns the first decisive result (lineup found or a failed job) and
        the number of jobs inspected.
        """
        max_depth = max(self._config.chain_max_depth, 0)
        visited: set[str] = {root.id} if root.id else set()
        frontier = [root]
        depth = 0
        checked = 0

        while frontier:
            next_ids: list[str] = []
            for job in frontier:
                checked += 1
                logger.debug(f"Chain depth {depth}: job {job.id} status={job.status.value}")

                if job.has_lineup:
                    logger.info(f"Found lineup with {len(job.lineup)} players in job {job.id}")
                    return evaluate_job(job), checked

                if job.status == JobStatus.FAILED:
                    logger.warning(f"Pipeline job {job.id} failed: {job.error}")
                    return evaluate_job(job), checked

                if depth < max_depth:
                    for spawned_id in job.spawned_jobs:
                        if spawned_id not in visited:
                            visited.add(spawned_id)
                            next_ids.append(spawned_id)

            depth += 1
            frontier = []
            for spawned_id in next_ids:
                if checked + len(frontier) >= MAX_JOBS_PER_WALK:
                    logger.warning(f"Stopping chain walk after {MAX_JOBS_PER_WALK} jobs")
                    break
                try:
                    frontier.append(await self._client.get_job(spawned_id))
                except GatewayError as e:
                    logger.warning(f"Skipping job {spawned_id} in chain: {e.message}")

        return None, checked

    async def _recent_optimizer_result(self, root: RemoteJob) -> JobResult | None:
        agent_id = self._config.optimizer_agent_id
        if not agent_id:
            return None

        try:
            jobs = await self._client.list_agent_jobs(agent_id, limit=self._config.recent_jobs_limit)
        except GatewayError as e:
            logger.warning(f"Could not list recent optimizer jobs: {e.message}")
            return None

        logger.info(f"Scanning {len(jobs)} recent optimizer jobs")
        for job in jobs:
            if job.status == JobStatus.COMPLETED and job.has_lineup and _created_after(job, root):
                result = evaluate_job(job)
                result.note = "Found via recent jobs list"
                return result
        return None

    async def follow_chain(self, job_id: str) -> JobResult:
        """Resolve a submitted (ingest) job id to the optimizer lineup.

        Raises:
            JobNotFoundError: If the root job does not exist.
            UpstreamError / UpstreamResponseError: If the root job lookup fails.
        """
        root = await self._client.get_job(job_id)
        logger.info(
            f"Resolving job {job_id}: status={root.status.value}, "
            f"spawned={len(root.spawned_jobs)}"
        )

        result, checked = await self._walk(root)
        if result is None:
            result = await self._recent_optimizer_result(root)

        if result is not None:
            result.ingest_job_id = job_id
            return result

        if root.status == JobStatus.COMPLETED and not root.spawned_jobs:
            return JobResult(
                status="error",
                success=False,
                job_id=job_id,
                ingest_job_id=job_id,
                error=EMPTY_LINEUP_ERROR,
                jobs_checked=checked,
            )

        return JobResult(
            status=JobStatus.PROCESSING.value,
            job_id=job_id,
            ingest_job_id=job_id,
            message=PROCESSING_MESSAGE,
            jobs_checked=checked,
        )

    async def latest_result(self) -> JobResult:
        """Evaluate the most recent job of the optimizer agent."""
        agent_id = self._config.optimizer_agent_id
        if not agent_id:
            raise ConfigurationError(
                "Server configuration error", details="OPTIMIZER_AGENT_ID not set"
            )

        latest = await self._client.latest_job(agent_id)
        if latest is None:
            return JobResult(status="no_jobs", message="No optimizer jobs found")

        logger.info(f"Latest optimizer job {latest.id}: status={latest.status.value}")
        if not latest.has_lineup and latest.id:
            # list entries may omit the return value
            latest = await self._client.get_job(latest.id)

        return evaluate_job(latest)

    async def fetch_lineup(self, job_id: str) -> LineupDetail:
        """Fetch one optimizer job and normalise its lineup."""
        job = await self._client.get_job(job_id)
        payload = job.return_value or {}

        if job.status == JobStatus.FAILED:
            return LineupDetail(
                ok=False,
                status=job.status.value,
                job_id=job.id,
                error=job.error or "Pipeline job failed",
            )

        if job.status != JobStatus.COMPLETED:
            return LineupDetail(
                ok=True,
                status=job.status.value,
                job_id=job.id,
                message="Job still processing",
            )

        if not job.has_lineup:
            return LineupDetail(
                ok=False,
                status=job.status.value,
                job_id=job.id,
                error="No lineup found in return_value",
                raw_return_value=payload,
            )

        return LineupDetail(
            ok=True,
            status=job.status.value,
            job_id=job.id,
            created_at=job.created_at,
            slate_type=payload.get("slate_type"),
            lineup=[normalize_lineup_player(p) for p in job.lineup],
            stats=payload.get("stats") or {},
            recommendations=payload.get("recommendations") or [],
        )
