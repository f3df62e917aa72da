"""CSV helpers: salary-file validation and points parsing."""

import csv
import io
import logging
import math
from dataclasses import dataclass
from typing import Any

from lineup_gateway.errors import InvalidRequestError
from lineup_gateway.services.constraints import normalize_name

logger = logging.getLogger(__name__)

# Columns every salary CSV must carry in its header line
REQUIRED_COLUMNS = ("name", "salary")


@dataclass(slots=True)
class PlayerPoints:
    """A player and the fantasy points they actually scored."""

    name: str
    actual_points: float | None


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line
    return ""


def validate_salary_csv(text: Any) -> str:
    """Check a salary CSV before it is forwarded upstream.

    Returns the CSV text unchanged.

    Raises:
        InvalidRequestError: If the CSV is missing, blank, or its header line
            lacks a Name or Salary column (case-insensitive).
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidRequestError(
            "Missing or empty CSV in request",
            details="Upload a DraftKings/FanDuel salary CSV",
        )

    header = _first_line(text).lower()
    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        logger.warning(f"Rejected CSV, header missing columns: {missing}")
        raise InvalidRequestError(
            "Invalid CSV format",
            details="CSV must contain Name and Salary columns",
        )

    return text


def _parse_points(raw: str) -> float | None:
    try:
        value = float(raw.strip())
    except (ValueError, AttributeError):
        return None
    # "inf" / "nan" parse as floats but are not scores
    return value if math.isfinite(value) else None


def parse_points_csv(text: Any) -> list[PlayerPoints]:
    """Parse ``name,points`` lines as typed by users after a slate.

    A leading header row ("Name,Points") is skipped. Rows whose points are
    not numeric are kept with ``actual_points=None``; rows without a name are
    dropped.
    """
    if not isinstance(text, str) or not text.strip():
        return []

    players: list[PlayerPoints] = []
    reader = csv.reader(io.StringIO(text.strip()))
    for index, row in enumerate(reader):
        if not row:
            continue
        name = normalize_name(row[0])
        points = _parse_points(row[1]) if len(row) > 1 else None
        if index == 0 and points is None and name.lower() in ("name", "player", "player name"):
            continue
        if not name:
            continue
        players.append(PlayerPoints(name=name, actual_points=points))

    return players
