"""Compare/learn routes - tracker, learner, feedback and dashboard."""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from lineup_gateway.config import Settings, get_settings
from lineup_gateway.dependencies import get_store
from lineup_gateway.schemas.performance import FeedbackRequest, LearnerRequest, TrackerRequest
from lineup_gateway.services.performance import PerformanceService, PerformanceStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["performance"])


@router.post("/tracker")
async def track(
    body: TrackerRequest,
    settings: Settings = Depends(get_settings),
    store: PerformanceStore = Depends(get_store),
) -> dict[str, Any]:
    """Record projected vs actual points for an optimizer lineup."""
    service = PerformanceService(settings, store)
    result = await service.track(
        body.optimizer_job_id,
        body.slate_date,
        lineup=body.lineup,
        actuals=body.actuals,
        actuals_csv=body.actuals_csv,
    )
    logger.info(f"Tracker for {result['optimizer_job_id']}: {result['message']}")
    return result


@router.post("/learner")
async def learn(
    body: LearnerRequest,
    settings: Settings = Depends(get_settings),
    store: PerformanceStore = Depends(get_store),
) -> dict[str, Any]:
    """Current and suggested projection weights, with error stats when given actuals."""
    service = PerformanceService(settings, store)
    return await service.learn(
        optimizer_job_id=body.optimizer_job_id,
        lineup=body.lineup,
        actuals=body.actuals,
        actuals_csv=body.actuals_csv,
    )


@router.post("/feedback")
async def feedback(
    body: FeedbackRequest,
    settings: Settings = Depends(get_settings),
    store: PerformanceStore = Depends(get_store),
) -> dict[str, Any]:
    """Send my and the winning lineup's scores to the learner agent."""
    service = PerformanceService(settings, store)
    result = await service.feedback(
        body.optimizer_job_id,
        slate_date=body.slate_date,
        my_lineup_csv=body.my_lineup_csv,
        winning_lineup_csv=body.winning_lineup_csv,
    )
    logger.info(f"Learner job {result['learner_job_id']}: {result['learner_status']}")
    return result


@router.get("/dashboard")
async def dashboard(store: PerformanceStore = Depends(get_store)) -> dict[str, Any]:
    """Aggregate of slates tracked by this process."""
    return {"ok": True, **store.summary()}
