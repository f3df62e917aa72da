"""Poll-job routes - resolve submitted jobs to lineups."""

import logging

from fastapi import APIRouter, Depends

from lineup_gateway.config import Settings, get_settings
from lineup_gateway.dependencies import optional_job_id, required_job_id
from lineup_gateway.schemas.jobs import JobResultResponse, LineupDetailResponse
from lineup_gateway.services.results import ResultsService
from lineup_gateway.services.swarmnode_client import build_client

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["results"])


@router.api_route(
    "/results",
    methods=["GET", "POST"],
    response_model=JobResultResponse,
    response_model_exclude_none=True,
)
async def get_results(
    job_id: str | None = Depends(optional_job_id),
    settings: Settings = Depends(get_settings),
) -> JobResultResponse:
    """
    Poll a submitted job for its lineup.

    With a job_id, the spawned-job chain is followed until a lineup turns up.
    Without one, the latest optimizer job is reported. Non-final states come
    back as 200 with status processing / failed / error so polling clients
    keep going.
    """
    async with build_client(settings) as client:
        service = ResultsService(client, settings)
        if job_id:
            result = await service.follow_chain(job_id)
        else:
            result = await service.latest_result()

    logger.info(f"Results for {job_id or 'latest optimizer job'}: {result.status}")
    return JobResultResponse.model_validate(result, from_attributes=True)


@router.api_route(
    "/fetch-lineup",
    methods=["GET", "POST"],
    response_model=LineupDetailResponse,
    response_model_exclude_none=True,
)
async def fetch_lineup(
    job_id: str = Depends(required_job_id),
    settings: Settings = Depends(get_settings),
) -> LineupDetailResponse:
    """Fetch one optimizer job's lineup with numeric salaries."""
    async with build_client(settings) as client:
        detail = await ResultsService(client, settings).fetch_lineup(job_id)

    return LineupDetailResponse.model_validate(detail, from_attributes=True)
