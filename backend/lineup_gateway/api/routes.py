"""API route definitions."""

from fastapi import APIRouter

from lineup_gateway.api import performance, results, submit

router = APIRouter()

router.include_router(submit.router)
router.include_router(results.router)
router.include_router(performance.router)
