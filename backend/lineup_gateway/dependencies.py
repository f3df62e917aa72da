"""Shared FastAPI dependencies for API routes."""

import json
from typing import Any

from fastapi import Query, Request

from lineup_gateway.errors import InvalidRequestError
from lineup_gateway.services.performance import PerformanceStore, get_performance_store


async def read_json_object(request: Request) -> dict[str, Any]:
    """Read the request body as a JSON object.

    An empty body is an empty object. A JSON string holding an object is
    decoded once more.

    Raises:
        InvalidRequestError: If the body is not JSON or not an object.
    """
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
        if isinstance(data, str):
            data = json.loads(data or "{}")
    except ValueError as e:
        raise InvalidRequestError("Invalid JSON body", details=str(e)) from e
    if not isinstance(data, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return data


async def optional_job_id(
    request: Request,
    job_id: str | None = Query(default=None),
) -> str | None:
    """Job id from the query string, or from the JSON body on POST.

    Usage:
        @router.api_route("/results", methods=["GET", "POST"])
        async def endpoint(job_id: str | None = Depends(optional_job_id)):
            ...
    """
    if job_id is None and request.method == "POST":
        value = (await read_json_object(request)).get("job_id")
        job_id = str(value) if value not in (None, "") else None
    if job_id is None:
        return None
    return job_id.strip() or None


async def required_job_id(request: Request, job_id: str | None = Query(default=None)) -> str:
    """Like optional_job_id, but a missing id is a 400."""
    resolved = await optional_job_id(request, job_id)
    if resolved is None:
        raise InvalidRequestError("Missing job_id query parameter")
    return resolved


def get_store() -> PerformanceStore:
    return get_performance_store()
