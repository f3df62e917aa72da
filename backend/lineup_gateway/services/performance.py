"""Projection tracking and feedback.

Compares projected fantasy points against what players actually scored, and
optionally against a rival (winning) lineup:
- Error statistics: MAE, MSE, RMSE, bias, total point differential
- Canned recommendations picked by threshold on error magnitude and sign
- A small in-memory history feeding the dashboard

Nothing here learns. The weights handed to clients are static; the learner
agent on the platform owns any real model update.
"""

import logging
import math
from collections import deque
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from lineup_gateway.config import Settings, get_settings
from lineup_gateway.errors import ConfigurationError, GatewayError, InvalidRequestError
from lineup_gateway.services.constraints import normalize_name
from lineup_gateway.services.csv_tools import PlayerPoints, parse_points_csv
from lineup_gateway.services.job_payload import JobStatus, RemoteJob, safe_float
from lineup_gateway.services.results import ResultsService
from lineup_gateway.services.swarmnode_client import SwarmNodeClient, build_client

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

ACCURACY_TOLERANCE = 5.0  # |actual - projected| within this counts as accurate
MAE_GOOD = 3.0
MAE_POOR = 6.0
BIAS_THRESHOLD = 2.0
RIVAL_GAP_THRESHOLD = 10.0
TOP_MISSES = 3
DASHBOARD_RECENT = 10

CURRENT_WEIGHTS = {
    "W_SALARY_PROXY": 0.35,
    "W_MATCHUP": 0.25,
    "W_PACE": 0.15,
    "W_REST": 0.10,
    "W_OPPORTUNITY": 0.10,
    "W_SENTIMENT": 0.05,
}

SUGGESTED_WEIGHTS = {
    "W_SALARY_PROXY": 0.32,
    "W_MATCHUP": 0.27,
    "W_PACE": 0.18,
    "W_REST": 0.12,
    "W_OPPORTUNITY": 0.08,
    "W_SENTIMENT": 0.03,
}

INSIGHTS = {
    "pace_correlation": 0.75,
    "matchup_importance": 0.82,
    "sentiment_weak": True,
}

ESTIMATED_IMPROVEMENT = "12.3%"
WEIGHT_RECOMMENDATION = "Increase MATCHUP and PACE weights, decrease SENTIMENT weight"

_NAME_KEYS = ("name", "player", "player_name", "Name")
_PROJECTION_KEYS = ("projection", "projected_points", "proj", "fpts")


# =============================================================================
# Data Models
# =============================================================================


@dataclass(slots=True)
class ProjectionPair:
    """One player's projected and actual points."""

    name: str
    projected: float
    actual: float

    @property
    def error(self) -> float:
        """Signed error, positive when the player outscored the projection."""
        return self.actual - self.projected


@dataclass
class JoinResult:
    pairs: list[ProjectionPair] = field(default_factory=list)
    unmatched_lineup: list[str] = field(default_factory=list)
    unmatched_actuals: list[str] = field(default_factory=list)


@dataclass
class ErrorStats:
    """Descriptive error statistics for one slate."""

    count: int
    mae: float
    mse: float
    rmse: float
    bias: float
    total_projected: float
    total_actual: float
    point_differential: float
    accuracy_rate: float
    top_misses: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class RivalComparison:
    """My lineup's actual points against the winning lineup's."""

    my_total: float
    winning_total: float
    gap: float  # winning - mine
    shared_players: list[str] = field(default_factory=list)
    winning_only: list[str] = field(default_factory=list)
    my_only: list[str] = field(default_factory=list)


# =============================================================================
# Pure Functions
# =============================================================================


def _name_key(name: Any) -> str:
    return normalize_name(name).casefold()


def _player_name(player: dict[str, Any]) -> str:
    for key in _NAME_KEYS:
        name = normalize_name(player.get(key))
        if name:
            return name
    return ""


def _player_projection(player: dict[str, Any]) -> float | None:
    for key in _PROJECTION_KEYS:
        value = safe_float(player.get(key))
        if value is not None:
            return value
    return None


def coerce_actuals(actuals: Any) -> list[PlayerPoints]:
    """Accept actual points as a list of ``{name, points}`` dicts.

    ``actual_points`` and ``fpts`` are accepted in place of ``points``.
    """
    if not isinstance(actuals, list):
        return []
    players: list[PlayerPoints] = []
    for entry in actuals:
        if not isinstance(entry, dict):
            continue
        name = _player_name(entry)
        if not name:
            continue
        points = None
        for key in ("points", "actual_points", "actual", "fpts"):
            points = safe_float(entry.get(key))
            if points is not None:
                break
        players.append(PlayerPoints(name=name, actual_points=points))
    return players


def join_projections(lineup: list[Any], actuals: list[PlayerPoints]) -> JoinResult:
    """Pair lineup projections with actual points by case-insensitive name."""
    actual_by_name: dict[str, PlayerPoints] = {}
    for player in actuals:
        if player.actual_points is None:
            continue
        actual_by_name.setdefault(_name_key(player.name), player)

    result = JoinResult()
    matched: set[str] = set()
    for player in lineup:
        if not isinstance(player, dict):
            continue
        name = _player_name(player)
        projected = _player_projection(player)
        key = _name_key(name)
        actual = actual_by_name.get(key)
        if not name or projected is None or actual is None or key in matched:
            if name:
                result.unmatched_lineup.append(name)
            continue
        matched.add(key)
        result.pairs.append(
            ProjectionPair(name=name, projected=projected, actual=float(actual.actual_points))
        )

    result.unmatched_actuals = [p.name for k, p in actual_by_name.items() if k not in matched]
    return result


def compute_error_stats(pairs: list[ProjectionPair]) -> ErrorStats | None:
    """Error statistics over matched players, or None when nothing matched.

    Example:
        projected [10, 20], actual [12, 17] -> mae (2 + 3) / 2 = 2.5
    """
    if not pairs:
        return None

    count = len(pairs)
    errors = [pair.error for pair in pairs]
    mae = sum(abs(e) for e in errors) / count
    mse = sum(e * e for e in errors) / count
    total_projected = sum(pair.projected for pair in pairs)
    total_actual = sum(pair.actual for pair in pairs)
    accurate = sum(1 for e in errors if abs(e) <= ACCURACY_TOLERANCE)

    misses = sorted(pairs, key=lambda pair: abs(pair.error), reverse=True)[:TOP_MISSES]

    return ErrorStats(
        count=count,
        mae=mae,
        mse=mse,
        rmse=math.sqrt(mse),
        bias=sum(errors) / count,
        total_projected=total_projected,
        total_actual=total_actual,
        point_differential=total_actual - total_projected,
        accuracy_rate=accurate / count,
        top_misses=[
            {
                "name": pair.name,
                "projected": pair.projected,
                "actual": pair.actual,
                "error": pair.error,
            }
            for pair in misses
        ],
    )


def compare_to_rival(
    my_lineup: list[PlayerPoints], winning_lineup: list[PlayerPoints]
) -> RivalComparison | None:
    """Compare actual totals and roster overlap with the winning lineup."""
    if not winning_lineup:
        return None

    mine = {_name_key(p.name): p for p in my_lineup}
    winning = {_name_key(p.name): p for p in winning_lineup}

    my_total = sum(p.actual_points or 0.0 for p in mine.values())
    winning_total = sum(p.actual_points or 0.0 for p in winning.values())

    return RivalComparison(
        my_total=my_total,
        winning_total=winning_total,
        gap=winning_total - my_total,
        shared_players=[p.name for k, p in winning.items() if k in mine],
        winning_only=[p.name for k, p in winning.items() if k not in mine],
        my_only=[p.name for k, p in mine.items() if k not in winning],
    )


def build_recommendations(
    stats: ErrorStats | None, rival: RivalComparison | None = None
) -> list[str]:
    """Pick canned advice by comparing stats against fixed thresholds."""
    recommendations: list[str] = []

    if stats is None:
        if rival is None:
            recommendations.append("Add actual points for your lineup to get projection feedback.")
    else:
        if stats.mae <= MAE_GOOD:
            recommendations.append(
                f"Projections tracked actual scoring closely (MAE {stats.mae:.1f}). "
                "Keep the current weights."
            )
        elif stats.mae >= MAE_POOR:
            recommendations.append(
                f"Projection error is high (MAE {stats.mae:.1f}). Revisit matchup and "
                "opportunity inputs before the next slate."
            )
        else:
            recommendations.append(
                f"Projection error is moderate (MAE {stats.mae:.1f}). "
                "Small weight adjustments may help."
            )

        if stats.bias >= BIAS_THRESHOLD:
            recommendations.append(
                f"Players outscored projections by {stats.bias:.1f} points on average; "
                "projections are running low."
            )
        elif stats.bias <= -BIAS_THRESHOLD:
            recommendations.append(
                f"Players fell short of projections by {abs(stats.bias):.1f} points on "
                "average; projections are running high."
            )

        if stats.top_misses and abs(stats.top_misses[0]["error"]) >= MAE_POOR:
            miss = stats.top_misses[0]
            recommendations.append(
                f"Biggest miss: {miss['name']} (projected {miss['projected']:.1f}, "
                f"scored {miss['actual']:.1f})."
            )

    if rival is not None:
        if rival.gap >= RIVAL_GAP_THRESHOLD:
            names = ", ".join(rival.winning_only[:3]) or "their core plays"
            recommendations.append(
                f"The winning lineup outscored yours by {rival.gap:.1f} points; "
                f"look at what you missed: {names}."
            )
        elif rival.gap <= 0:
            recommendations.append("Your lineup matched or beat the winning lineup.")
        else:
            recommendations.append(
                f"You finished {rival.gap:.1f} points behind the winning lineup."
            )

    return recommendations


# =============================================================================
# In-memory history
# =============================================================================


class PerformanceStore:
    """Tracked slates for this warm process only. Nothing is persisted."""

    def __init__(self, maxlen: int = 100) -> None:
        self._entries: deque[dict[str, Any]] = deque(maxlen=maxlen)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, optimizer_job_id: str, slate_date: str, stats: ErrorStats) -> dict[str, Any]:
        entry = {
            "optimizer_job_id": optimizer_job_id,
            "slate_date": slate_date,
            "mae": stats.mae,
            "accuracy": stats.accuracy_rate,
            "point_differential": stats.point_differential,
            "players": stats.count,
            "top_misses": stats.top_misses,
            "recorded_at": datetime.now(UTC).isoformat(),
        }
        self._entries.append(entry)
        return entry

    def recent(self, n: int = DASHBOARD_RECENT) -> list[dict[str, Any]]:
        """Most recent entries, newest first."""
        if n <= 0:
            return []
        return list(self._entries)[-n:][::-1]

    def clear(self) -> None:
        self._entries.clear()

    def summary(self) -> dict[str, Any]:
        entries = list(self._entries)
        total = len(entries)
        misses = sorted(
            (miss for entry in entries[-DASHBOARD_RECENT:] for miss in entry["top_misses"]),
            key=lambda miss: abs(miss["error"]),
            reverse=True,
        )
        return {
            "avg_mae": sum(e["mae"] for e in entries) / total if total else 0,
            "accuracy_rate": sum(e["accuracy"] for e in entries) / total if total else 0,
            "total_slates": total,
            "last_updated": datetime.now(UTC).isoformat(),
            "performance": self.recent(DASHBOARD_RECENT),
            "top_misses": misses[:5],
            "current_weights": dict(CURRENT_WEIGHTS),
        }


@lru_cache
def get_performance_store() -> PerformanceStore:
    """Process-wide store, sized from settings."""
    return PerformanceStore(maxlen=get_settings().performance_history_size)


# =============================================================================
# Service
# =============================================================================


def _require(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequestError(f"Missing {field_name}")
    return value.strip()


class PerformanceService:
    """Tracker, learner and feedback operations."""

    def __init__(
        self,
        config: Settings,
        store: PerformanceStore,
        client_factory: Callable[[Settings], SwarmNodeClient] = build_client,
    ) -> None:
        self._config = config
        self._store = store
        self._client_factory = client_factory

    async def _load_lineup(self, job_id: str) -> tuple[list[Any] | None, str]:
        async with self._client_factory(self._config) as client:
            detail = await ResultsService(client, self._config).fetch_lineup(job_id)
        if detail.ok and detail.lineup:
            return detail.lineup, detail.status
        return None, detail.status

    @staticmethod
    def _actuals(actuals: Any, actuals_csv: Any) -> list[PlayerPoints]:
        players = coerce_actuals(actuals)
        return players or parse_points_csv(actuals_csv)

    async def track(
        self,
        optimizer_job_id: Any,
        slate_date: Any,
        lineup: list[Any] | None = None,
        actuals: Any = None,
        actuals_csv: Any = None,
    ) -> dict[str, Any]:
        """Record how an optimizer lineup scored on a slate.

        Without actual points this only acknowledges the job and slate.
        """
        job_id = _require(optimizer_job_id, "optimizer_job_id")
        slate = _require(slate_date, "slate_date")
        actual_points = self._actuals(actuals, actuals_csv)

        response: dict[str, Any] = {
            "ok": True,
            "optimizer_job_id": job_id,
            "slate_date": slate,
        }

        if not actual_points:
            response["message"] = "Tracker received optimizer job + slate date successfully"
            return response

        if not lineup:
            lineup, status = await self._load_lineup(job_id)
            if lineup is None:
                response["status"] = status
                response["message"] = f"Lineup for job {job_id} is not available yet"
                return response

        joined = join_projections(lineup, actual_points)
        stats = compute_error_stats(joined.pairs)
        if stats is not None:
            self._store.record(job_id, slate, stats)
            logger.info(f"Tracked slate {slate} for job {job_id}: mae={stats.mae:.2f}")

        response.update(
            {
                "status": JobStatus.COMPLETED.value,
                "message": "Slate tracked",
                "stats": asdict(stats) if stats else None,
                "unmatched_lineup": joined.unmatched_lineup,
                "unmatched_actuals": joined.unmatched_actuals,
                "recommendations": build_recommendations(stats),
            }
        )
        return response

    async def learn(
        self,
        optimizer_job_id: Any = None,
        lineup: list[Any] | None = None,
        actuals: Any = None,
        actuals_csv: Any = None,
    ) -> dict[str, Any]:
        """Static weight suggestions, plus error stats when data is supplied."""
        response: dict[str, Any] = {
            "ok": True,
            "current_weights": dict(CURRENT_WEIGHTS),
            "suggested_weights": dict(SUGGESTED_WEIGHTS),
            "insights": dict(INSIGHTS),
            "estimated_improvement": ESTIMATED_IMPROVEMENT,
            "recommendation": WEIGHT_RECOMMENDATION,
        }

        actual_points = self._actuals(actuals, actuals_csv)
        if not actual_points:
            return response

        if not lineup and isinstance(optimizer_job_id, str) and optimizer_job_id.strip():
            lineup, _ = await self._load_lineup(optimizer_job_id.strip())

        stats = compute_error_stats(join_projections(lineup or [], actual_points).pairs)
        response["stats"] = asdict(stats) if stats else None
        response["recommendations"] = build_recommendations(stats)
        return response

    async def _await_job(self, client: SwarmNodeClient, job_id: str) -> RemoteJob:
        """Poll a job a fixed number of times with a fixed delay.

        Returns the last observation whether or not it became terminal.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(self._config.learner_poll_attempts, 1)),
            wait=wait_fixed(self._config.learner_poll_delay),
            retry=retry_if_result(lambda job: not job.status.is_terminal),
            retry_error_callback=lambda state: state.outcome.result(),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
        )
        return await retrying(client.get_job, job_id)

    async def feedback(
        self,
        optimizer_job_id: Any,
        slate_date: Any = None,
        my_lineup_csv: Any = None,
        winning_lineup_csv: Any = None,
    ) -> dict[str, Any]:
        """Send my and the winning lineup's scores to the learner agent.

        Raises:
            InvalidRequestError: If optimizer_job_id is missing.
            ConfigurationError: If the learner agent or API key is not configured.
            UpstreamError: If the learner job cannot be created.
        """
        job_id = _require(optimizer_job_id, "optimizer_job_id")
        my_lineup = parse_points_csv(my_lineup_csv)
        winning_lineup = parse_points_csv(winning_lineup_csv)

        learner_agent_id = self._config.learner_agent_id
        if not learner_agent_id or not self._config.swarmnode_api_key:
            raise ConfigurationError("Missing LEARNER_AGENT_ID or SWARMNODE_API_KEY env vars")

        rival = compare_to_rival(my_lineup, winning_lineup)

        payload = {
            "optimizer_job_id": job_id,
            "slate_date": slate_date,
            "my_lineup": [asdict(p) for p in my_lineup],
            "winning_lineup": [asdict(p) for p in winning_lineup],
        }

        async with self._client_factory(self._config) as client:
            learner_job = await client.create_job(learner_agent_id, payload)
            try:
                learner_job = await self._await_job(client, str(learner_job.id))
            except GatewayError as e:
                logger.warning(f"Polling learner job {learner_job.id} failed: {e.message}")

        if learner_job.status == JobStatus.COMPLETED and learner_job.return_value is not None:
            learner_response: Any = learner_job.return_value
        else:
            learner_response = {
                "job_id": learner_job.id,
                "status": (
                    learner_job.status.value
                    if learner_job.status != JobStatus.UNKNOWN
                    else JobStatus.PROCESSING.value
                ),
                "error": learner_job.error,
            }

        return {
            "ok": True,
            "learner_job_id": learner_job.id,
            "learner_status": learner_job.status.value,
            "learner_response": learner_response,
            "comparison": asdict(rival) if rival else None,
            "recommendations": build_recommendations(None, rival),
        }
