"""Adapter for job objects returned by the remote agent platform.

The platform's job shape drifted over time. Depending on the revision, the
agent's return value sits under ``return_value``, ``output`` or ``result``,
either at the top level or nested inside ``execution`` / ``latest_execution``.
Everything that reads a job goes through ``RemoteJob.from_api`` so the probing
happens in exactly one place.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Probe order for the agent return value
PAYLOAD_KEYS = ("return_value", "output", "result")
EXECUTION_KEYS = ("execution", "latest_execution")

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


# =============================================================================
# Status
# =============================================================================


class JobStatus(str, Enum):
    """Normalised job status."""

    PENDING = "pending"
    QUEUED = "queued"
    RUNNING = "running"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "JobStatus":
        """Map a raw platform status string onto the enum.

        Synonyms seen in the wild (``success``, ``error``...) are folded in;
        anything unrecognised becomes UNKNOWN.
        """
        if not isinstance(value, str) or not value.strip():
            return cls.UNKNOWN
        raw = value.strip().lower()
        raw = _STATUS_SYNONYMS.get(raw, raw)
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def is_active(self) -> bool:
        return self in (
            JobStatus.PENDING,
            JobStatus.QUEUED,
            JobStatus.RUNNING,
            JobStatus.PROCESSING,
        )


_STATUS_SYNONYMS = {
    "success": "completed",
    "succeeded": "completed",
    "done": "completed",
    "complete": "completed",
    "error": "failed",
    "errored": "failed",
    "failure": "failed",
    "cancelled": "failed",
    "canceled": "failed",
    "in_progress": "running",
    "started": "running",
}


# =============================================================================
# Helpers
# =============================================================================


def safe_float(val: Any, default: float | None = None) -> float | None:
    """Convert a loosely typed number ("$7,400", "31.5", 12) to float."""
    if val is None or val == "" or isinstance(val, bool):
        return default
    if isinstance(val, (int, float)):
        number = float(val)
    elif isinstance(val, str):
        cleaned = _NON_NUMERIC.sub("", val)
        if not cleaned:
            return default
        try:
            number = float(cleaned)
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def _decode_payload(value: Any) -> dict[str, Any] | None:
    """Turn a raw return value into a dict, or None when it is empty."""
    if value is None or value == "" or value == {} or value == []:
        return None
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return {"value": value}
        return _decode_payload(decoded)
    if isinstance(value, dict):
        return value
    return {"value": value}


def _find_payload(data: dict[str, Any]) -> dict[str, Any] | None:
    for key in PAYLOAD_KEYS:
        payload = _decode_payload(data.get(key))
        if payload is not None:
            return payload
    for container_key in EXECUTION_KEYS:
        container = data.get(container_key)
        if not isinstance(container, dict):
            continue
        for key in PAYLOAD_KEYS:
            payload = _decode_payload(container.get(key))
            if payload is not None:
                return payload
    return None


def _find_status(data: dict[str, Any]) -> JobStatus:
    if data.get("status"):
        return JobStatus.parse(data["status"])
    for container_key in EXECUTION_KEYS:
        container = data.get(container_key)
        if isinstance(container, dict) and container.get("status"):
            return JobStatus.parse(container["status"])
    return JobStatus.UNKNOWN


def extract_job_id(data: Any) -> str | None:
    """Pull the job id out of a create/retrieve reply (``id``, ``job_id`` or ``job.id``)."""
    if not isinstance(data, dict):
        return None
    job = data.get("job")
    nested = job.get("id") if isinstance(job, dict) else None
    for candidate in (data.get("id"), data.get("job_id"), nested):
        if candidate not in (None, ""):
            return str(candidate)
    return None


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class RemoteJob:
    """One job on the remote platform, normalised."""

    id: str | None
    status: JobStatus
    return_value: dict[str, Any] | None = None
    spawned_jobs: list[str] = field(default_factory=list)
    agent_id: str | None = None
    created_at: str | None = None
    error: str | None = None
    execution_address: str | None = None

    @classmethod
    def from_api(cls, data: Any) -> "RemoteJob":
        if not isinstance(data, dict):
            logger.warning(f"Unexpected job payload type: {type(data).__name__}")
            return cls(id=None, status=JobStatus.UNKNOWN)

        spawned: list[str] = []
        for entry in data.get("spawned_jobs") or []:
            job_id = extract_job_id(entry) if isinstance(entry, dict) else entry
            if job_id not in (None, ""):
                spawned.append(str(job_id))

        error = data.get("error") or data.get("error_message")

        return cls(
            id=extract_job_id(data),
            status=_find_status(data),
            return_value=_find_payload(data),
            spawned_jobs=spawned,
            agent_id=data.get("agent_id"),
            created_at=data.get("created_at"),
            error=str(error) if error else None,
            execution_address=data.get("execution_address"),
        )

    @property
    def lineup(self) -> list[Any]:
        """The lineup list in the return value, or an empty list."""
        if not self.return_value:
            return []
        lineup = self.return_value.get("lineup")
        return lineup if isinstance(lineup, list) else []

    @property
    def has_lineup(self) -> bool:
        return len(self.lineup) > 0


def normalize_lineup_player(player: Any) -> dict[str, Any]:
    """Shape one lineup entry for clients, adding a numeric salary."""
    if not isinstance(player, dict):
        return {"name": str(player), "salary_num": None, "is_locked": False}

    salary = player.get("salary")
    return {
        "slot": player.get("slot"),
        "name": player.get("name"),
        "team": player.get("team"),
        "salary": salary,
        "salary_num": safe_float(salary),
        "projection": player.get("projection"),
        "value": player.get("value"),
        "is_locked": bool(player.get("is_locked")),
    }
