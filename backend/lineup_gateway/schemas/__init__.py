"""API request and response schemas."""

from lineup_gateway.schemas.jobs import (
    JobResultResponse,
    LineupDetailResponse,
    NflUploadRequest,
    OptimizeRequest,
    SubmitJobResponse,
)
from lineup_gateway.schemas.performance import FeedbackRequest, LearnerRequest, TrackerRequest

__all__ = [
    "FeedbackRequest",
    "JobResultResponse",
    "LearnerRequest",
    "LineupDetailResponse",
    "NflUploadRequest",
    "OptimizeRequest",
    "SubmitJobResponse",
    "TrackerRequest",
]
