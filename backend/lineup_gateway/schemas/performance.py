"""Request schemas for tracker, learner and feedback endpoints.

Required fields are left optional here on purpose: a missing
``optimizer_job_id`` is reported by the service with its own message.
"""

from typing import Any

from lineup_gateway.schemas.jobs import FlexibleBody


class TrackerRequest(FlexibleBody):
    """A produced lineup (or the job that produced it) plus actual points."""

    optimizer_job_id: Any = None
    slate_date: Any = None
    lineup: list[Any] | None = None
    actuals: Any = None  # [{"name": ..., "points": ...}]
    actuals_csv: Any = None  # "name,points" lines


class LearnerRequest(FlexibleBody):
    optimizer_job_id: Any = None
    lineup: list[Any] | None = None
    actuals: Any = None
    actuals_csv: Any = None


class FeedbackRequest(FlexibleBody):
    """My lineup and the winning lineup, each as ``name,points`` lines."""

    optimizer_job_id: Any = None
    slate_date: Any = None
    my_lineup_csv: Any = None
    winning_lineup_csv: Any = None
