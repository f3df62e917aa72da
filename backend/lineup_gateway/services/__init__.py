"""Service layer for business logic."""

from lineup_gateway.services.performance import PerformanceService
from lineup_gateway.services.results import ResultsService
from lineup_gateway.services.submission import SubmissionService
from lineup_gateway.services.swarmnode_client import SwarmNodeClient

__all__ = ["PerformanceService", "ResultsService", "SubmissionService", "SwarmNodeClient"]
