"""SwarmNode API client - job submission and job lookup for the DFS pipeline."""

import logging
from typing import Any

import httpx
from cachetools import TTLCache

from lineup_gateway.config import Settings, get_settings
from lineup_gateway.errors import (
    ConfigurationError,
    JobNotFoundError,
    UpstreamError,
    UpstreamResponseError,
    truncate_body,
)
from lineup_gateway.services.job_payload import JobStatus, RemoteJob, extract_job_id

logger = logging.getLogger(__name__)
settings = get_settings()

JOBS_PATH = "/v1/agent-executor-jobs/"
CREATE_JOB_PATH = "/v1/agent-executor-jobs/create/"

JOB_CACHE_SIZE = 256

# Finished jobs (see _is_final) never change upstream and are reused across requests.
# Key: job id -> RemoteJob
_job_cache: TTLCache[str, RemoteJob] = TTLCache(
    maxsize=JOB_CACHE_SIZE,
    ttl=settings.job_cache_ttl,
)


def clear_job_cache() -> None:
    """Drop all cached jobs (used by tests)."""
    _job_cache.clear()


def _is_final(job: RemoteJob) -> bool:
    """Failed, or completed with its return value already attached.

    A completed job can report before its payload lands, so it is not cached
    until the payload is there.
    """
    if job.status == JobStatus.FAILED:
        return True
    return job.status == JobStatus.COMPLETED and job.return_value is not None


def _looks_like_html(text: str) -> bool:
    head = text.lstrip()[:200].lower()
    return head.startswith("<!doctype") or "<html" in head


def _error_message(data: Any, default: str) -> str:
    if isinstance(data, dict):
        for key in ("message", "detail", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return default


def _decode(response: httpx.Response) -> Any:
    """Parse a response body as JSON, refusing HTML error pages."""
    text = response.text
    if _looks_like_html(text):
        raise UpstreamResponseError(
            "SwarmNode API returned HTML instead of JSON",
            details={
                "hint": "This usually means the API endpoint is incorrect or unavailable",
                "raw_response": truncate_body(text),
            },
        )
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamResponseError(
            "Invalid response from SwarmNode",
            details={"reason": str(e), "raw_response": truncate_body(text)},
        ) from e


def _body_for_error(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return truncate_body(response.text)


class SwarmNodeClient:
    """
    Thin async client for the SwarmNode agent-executor API.

    Features:
    - Bearer-token auth on every request
    - HTML / invalid JSON bodies turned into UpstreamResponseError
    - Non-2xx turned into UpstreamError (404 on job lookup -> JobNotFoundError)
    - Finished jobs cached in-process with a TTL

    No call is retried here; callers that need to wait on a job poll explicitly.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 30.0) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "User-Agent": "LineupGateway/1.0",
            },
        )

    async def __aenter__(self) -> "SwarmNodeClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Request error calling SwarmNode {method} {path}: {e}")
            raise UpstreamError("Could not reach SwarmNode", details=str(e)) from e

        logger.info(f"SwarmNode {method} {path} -> {response.status_code}")
        return response

    async def create_job(self, agent_id: str, payload: dict[str, Any]) -> RemoteJob:
        """Create an executor job for an agent and return it.

        Non-2xx replies are raised with the upstream status so the caller
        forwards it to the client.
        """
        response = await self._request(
            "POST", CREATE_JOB_PATH, json={"agent_id": agent_id, "payload": payload}
        )

        if not response.is_success:
            body = _body_for_error(response)
            logger.error(f"SwarmNode rejected job for agent {agent_id}: {response.status_code}")
            raise UpstreamError(
                _error_message(body, "Failed to create job on SwarmNode"),
                upstream_status=response.status_code,
                details=body,
                status_code=response.status_code if response.status_code >= 400 else 502,
            )

        data = _decode(response)
        if extract_job_id(data) is None:
            raise UpstreamResponseError("Missing job ID in SwarmNode response", details=data)

        job = RemoteJob.from_api(data)
        logger.info(f"Created job {job.id} for agent {agent_id}")
        return job

    async def get_job(self, job_id: str) -> RemoteJob:
        """Retrieve a single job, served from cache once it is final."""
        cached = _job_cache.get(job_id)
        if cached is not None:
            logger.debug(f"Job cache hit for {job_id}")
            return cached

        response = await self._request("GET", f"{JOBS_PATH}{job_id}/")

        if response.status_code == 404:
            raise JobNotFoundError(job_id)
        if not response.is_success:
            raise UpstreamError(
                f"Failed to fetch job: status {response.status_code}",
                upstream_status=response.status_code,
                details=_body_for_error(response),
            )

        job = RemoteJob.from_api(_decode(response))
        if job.id is None:
            job.id = job_id
        if _is_final(job):
            _job_cache[job_id] = job
        return job

    async def list_agent_jobs(self, agent_id: str, limit: int = 10) -> list[RemoteJob]:
        """List an agent's jobs, newest first."""
        response = await self._request(
            "GET",
            JOBS_PATH,
            params={"agent_id": agent_id, "ordering": "-created_at", "limit": limit},
        )

        if not response.is_success:
            raise UpstreamError(
                "Failed to list agent jobs",
                upstream_status=response.status_code,
                details=_body_for_error(response),
            )

        data = _decode(response)
        if isinstance(data, dict):
            items = data.get("results") or data.get("jobs") or []
        elif isinstance(data, list):
            items = data
        else:
            items = []

        return [RemoteJob.from_api(item) for item in items[:limit]]

    async def latest_job(self, agent_id: str) -> RemoteJob | None:
        """Most recently created job for an agent, if any."""
        jobs = await self.list_agent_jobs(agent_id, limit=1)
        return jobs[0] if jobs else None


def build_client(config: Settings | None = None) -> SwarmNodeClient:
    """Create a client from settings.

    Raises:
        ConfigurationError: If the API key is not configured.
    """
    config = config or get_settings()
    if not config.swarmnode_api_key:
        logger.error("Missing SWARMNODE_API_KEY")
        raise ConfigurationError(
            "Server configuration error", details="SWARMNODE_API_KEY not set"
        )
    return SwarmNodeClient(
        base_url=config.swarmnode_base_url,
        api_key=config.swarmnode_api_key,
        timeout=config.http_timeout,
    )
