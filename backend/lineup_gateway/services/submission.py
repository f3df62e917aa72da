"""Submit-job service - hands a salary CSV to the ingest agent.

The ingest agent is the first stage of the optimization pipeline; it spawns
the optimizer job whose return value carries the lineup.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from lineup_gateway.config import Settings
from lineup_gateway.errors import ConfigurationError
from lineup_gateway.services.constraints import PlayerConstraints
from lineup_gateway.services.csv_tools import validate_salary_csv
from lineup_gateway.services.swarmnode_client import SwarmNodeClient

logger = logging.getLogger(__name__)

DEFAULT_SPORT = "nba"
NFL = "nfl"


@dataclass
class SubmittedJob:
    """A job accepted by the platform."""

    job_id: str
    agent_id: str
    sport: str
    locked_player: str | None = None
    excluded_players: list[str] = field(default_factory=list)
    execution_address: str | None = None


class SubmissionService:
    """Builds ingest payloads and creates jobs on the platform."""

    def __init__(self, client: SwarmNodeClient, config: Settings) -> None:
        self._client = client
        self._config = config

    def _agent_for(self, sport: str) -> str:
        if sport == NFL and self._config.nfl_ingest_agent_id:
            return self._config.nfl_ingest_agent_id
        if not self._config.ingest_agent_id:
            logger.error("Missing INGEST_AGENT_ID")
            raise ConfigurationError("Server configuration error", details="INGEST_AGENT_ID not set")
        return self._config.ingest_agent_id

    async def _create(self, agent_id: str, sport: str, payload: dict[str, Any]) -> SubmittedJob:
        job = await self._client.create_job(agent_id, payload)
        return SubmittedJob(
            job_id=str(job.id),
            agent_id=job.agent_id or agent_id,
            sport=sport,
            execution_address=job.execution_address,
        )

    async def submit(
        self,
        csv_text: Any,
        sport: str = DEFAULT_SPORT,
        constraints: PlayerConstraints | None = None,
    ) -> SubmittedJob:
        """Validate the CSV and create an ingest job.

        Raises:
            InvalidRequestError: If the CSV is empty or lacks Name/Salary columns.
            ConfigurationError: If no ingest agent is configured.
            UpstreamError: If the platform rejects the job.
        """
        csv_text = validate_salary_csv(csv_text)
        sport = (sport or DEFAULT_SPORT).strip().lower()
        constraints = constraints or PlayerConstraints()
        agent_id = self._agent_for(sport)

        logger.info(
            f"Submitting {sport} slate: csv_length={len(csv_text)}, "
            f"locked={constraints.locked_player is not None}, "
            f"excluded={len(constraints.excluded)}"
        )

        submitted = await self._create(
            agent_id,
            sport,
            {
                "csv": csv_text,
                "sport": sport,
                "locked_player": constraints.locked_player,
                "excluded_players": constraints.excluded,
            },
        )
        submitted.locked_player = constraints.locked_player
        submitted.excluded_players = constraints.excluded
        return submitted

    async def submit_nfl(
        self,
        csv_text: Any,
        constraints: PlayerConstraints | None = None,
        slate_date: str | None = None,
    ) -> SubmittedJob:
        """Create a job on the dedicated NFL ingest agent.

        Raises:
            InvalidRequestError: If the CSV is empty or lacks Name/Salary columns.
            ConfigurationError: If NFL_INGEST_AGENT_ID is not configured.
        """
        csv_text = validate_salary_csv(csv_text)
        constraints = constraints or PlayerConstraints()

        agent_id = self._config.nfl_ingest_agent_id
        if not agent_id:
            logger.error("Missing NFL_INGEST_AGENT_ID")
            raise ConfigurationError(
                "Server configuration error", details="NFL_INGEST_AGENT_ID not set"
            )

        slate_date = slate_date or date.today().isoformat()
        logger.info(f"Submitting NFL slate for {slate_date}: csv_length={len(csv_text)}")

        submitted = await self._create(
            agent_id,
            NFL,
            {
                "csv": csv_text,
                "sport": NFL,
                "slate_date": slate_date,
                "locked_players": constraints.locked_player,
                "excluded_players": constraints.excluded or None,
            },
        )
        submitted.locked_player = constraints.locked_player
        submitted.excluded_players = constraints.excluded
        return submitted
