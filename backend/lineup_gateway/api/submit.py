"""Submit-job routes - hand a salary CSV to the ingest agent."""

import logging

from fastapi import APIRouter, Depends

from lineup_gateway.config import Settings, get_settings
from lineup_gateway.schemas.jobs import NflUploadRequest, OptimizeRequest, SubmitJobResponse
from lineup_gateway.services.constraints import extract_constraints
from lineup_gateway.services.csv_tools import validate_salary_csv
from lineup_gateway.services.submission import SubmissionService
from lineup_gateway.services.swarmnode_client import build_client

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["jobs"])


@router.post("/optimize", response_model=SubmitJobResponse, response_model_exclude_none=True)
async def optimize(
    body: OptimizeRequest,
    settings: Settings = Depends(get_settings),
) -> SubmitJobResponse:
    """Create an ingest job for a salary CSV with optional lock/exclude constraints."""
    # Reject bad CSVs before touching configuration or the platform
    csv_text = validate_salary_csv(body.csv)
    constraints = extract_constraints(body.model_dump())

    async with build_client(settings) as client:
        job = await SubmissionService(client, settings).submit(csv_text, body.sport, constraints)

    return SubmitJobResponse(
        job_id=job.job_id,
        message="Ingest job created successfully",
        sport=job.sport,
        locked_player=job.locked_player,
        excluded_players=job.excluded_players,
    )


@router.post("/upload", response_model=SubmitJobResponse, response_model_exclude_none=True)
async def upload(
    body: OptimizeRequest,
    settings: Settings = Depends(get_settings),
) -> SubmitJobResponse:
    """Same as /optimize, echoing the platform's agent and execution address."""
    csv_text = validate_salary_csv(body.csv)
    constraints = extract_constraints(body.model_dump())

    async with build_client(settings) as client:
        job = await SubmissionService(client, settings).submit(csv_text, body.sport, constraints)

    return SubmitJobResponse(
        job_id=job.job_id,
        message=f"{job.sport.upper()} optimization started",
        sport=job.sport,
        locked_player=job.locked_player,
        excluded_players=job.excluded_players,
        agent_id=job.agent_id,
        execution_address=job.execution_address,
    )


@router.post("/upload-nfl", response_model=SubmitJobResponse, response_model_exclude_none=True)
async def upload_nfl(
    body: NflUploadRequest,
    settings: Settings = Depends(get_settings),
) -> SubmitJobResponse:
    """Create a job on the dedicated NFL ingest agent."""
    csv_text = validate_salary_csv(body.csv_payload)
    constraints = extract_constraints(body.model_dump())

    async with build_client(settings) as client:
        job = await SubmissionService(client, settings).submit_nfl(
            csv_text, constraints, slate_date=body.slate_date
        )

    return SubmitJobResponse(
        job_id=job.job_id,
        message="NFL optimization started",
        sport=job.sport,
        locked_player=job.locked_player,
        excluded_players=job.excluded_players,
    )
