"""Exception taxonomy shared by services and routes.

Every error carries the HTTP status the application boundary should answer
with, so services raise and ``main.py`` renders without per-route mapping.
"""

from typing import Any

# Upstream bodies echoed back to clients are cut to this many characters
MAX_ECHOED_BODY = 500


class GatewayError(Exception):
    """Base class for errors rendered as JSON error responses."""

    status_code = 500

    def __init__(self, message: str, details: Any = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class InvalidRequestError(GatewayError):
    """Client sent a malformed body, a missing field or an unusable CSV."""

    status_code = 400


class ConfigurationError(GatewayError):
    """A credential or agent identifier is missing from the environment."""

    status_code = 500


class JobNotFoundError(GatewayError):
    """The platform does not know the requested job id."""

    status_code = 404

    def __init__(self, job_id: str) -> None:
        super().__init__("Job not found", details={"job_id": job_id})
        self.job_id = job_id

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["status"] = "not_found"
        return body


class UpstreamError(GatewayError):
    """The platform answered with a non-2xx status."""

    status_code = 502

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        details: Any = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, details=details, status_code=status_code)
        self.upstream_status = upstream_status

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.upstream_status is not None:
            body["upstream_status"] = self.upstream_status
        return body


class UpstreamResponseError(GatewayError):
    """The platform answered with something that is not usable JSON."""

    status_code = 502


def truncate_body(text: str) -> str:
    """Shorten an upstream body before echoing it to a client."""
    if len(text) <= MAX_ECHOED_BODY:
        return text
    return text[:MAX_ECHOED_BODY]
