"""Request and response schemas for job submission and polling.

Response models are populated straight from the service dataclasses using
model_validate(obj, from_attributes=True).
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FlexibleBody(BaseModel):
    """Request body that tolerates unknown keys and JSON-encoded strings.

    Some clients double-encode the body (a JSON string holding the object);
    it is decoded once before validation.
    """

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _decode_string_body(cls, data: Any) -> Any:
        if isinstance(data, (str, bytes)):
            try:
                return json.loads(data or "{}")
            except ValueError as e:
                raise ValueError("Body is not valid JSON") from e
        return data


# =============================================================================
# Requests
# =============================================================================


class OptimizeRequest(FlexibleBody):
    """Salary CSV plus optional lock/exclude constraints.

    Constraint keys (``locked_player``, ``lock``, ``excluded_players``,
    ``exclude``...) are read from the extra fields.
    """

    csv: Any = None
    sport: str = "nba"


class NflUploadRequest(FlexibleBody):
    csv: Any = None
    csv_text: Any = Field(default=None, alias="csvText")
    slate_date: str | None = None

    @property
    def csv_payload(self) -> Any:
        return self.csv or self.csv_text


# =============================================================================
# Responses
# =============================================================================


class SubmitJobResponse(BaseModel):
    """A job accepted by the platform."""

    success: bool = True
    job_id: str
    message: str
    sport: str | None = None
    locked_player: str | None = None
    excluded_players: list[str] = Field(default_factory=list)
    agent_id: str | None = None
    execution_address: str | None = None


class JobResultResponse(BaseModel):
    """Polling outcome: completed with a lineup, or a status to keep polling on."""

    model_config = ConfigDict(from_attributes=True)

    success: bool
    status: str
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


class LineupPlayerResponse(BaseModel):
    slot: Any = None
    name: Any = None
    team: Any = None
    salary: Any = None
    salary_num: float | None = None
    projection: Any = None
    value: Any = None
    is_locked: bool = False


class LineupDetailResponse(BaseModel):
    """A single optimizer job's lineup with numeric salaries."""

    model_config = ConfigDict(from_attributes=True)

    ok: bool
    status: str
    job_id: str | None = None
    created_at: str | None = None
    slate_type: str | None = None
    lineup: list[LineupPlayerResponse] = Field(default_factory=list)
    stats: dict[str, Any] = Field(default_factory=dict)
    recommendations: list[Any] = Field(default_factory=list)
    message: str | None = None
    error: str | None = None
    raw_return_value: dict[str, Any] | None = None
