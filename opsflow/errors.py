"""Exception hierarchy for opsflow."""

from __future__ import annotations

from typing import Any, Optional

import httpx


class OpsflowError(Exception):
    """Base class for all opsflow errors."""


class APIError(OpsflowError):
    """Typed failure of a logical request, suitable for direct display."""

    def __init__(
        self,
        message: str,
        status: int,
        code: Optional[str] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"status={self.status}, code={self.code!r})"
        )


class NetworkError(APIError):
    """The transport failed before any response was received."""

    def __init__(self, message: str = "Network error", details: Any = None) -> None:
        super().__init__(message, 0, code="NETWORK_ERROR", details=details)


class RequestTimeoutError(APIError):
    """The call did not complete within its deadline."""

    def __init__(self, message: str = "Request timeout") -> None:
        super().__init__(message, 408)


class RequestCancelledError(RequestTimeoutError):
    """The call was aborted through ``cancel_request``/``cancel_all_requests``."""

    def __init__(self, message: str = "Request cancelled") -> None:
        super().__init__(message)
        self.code = "CANCELLED"


class HTTPError(APIError):
    """A response was received with a non-success status."""

    @classmethod
    def from_response(cls, response: httpx.Response, body: Any = None) -> "HTTPError":
        payload = body if isinstance(body, dict) else {}
        message = payload.get("message") or response.reason_phrase or "Request failed"
        return cls(
            str(message),
            response.status_code,
            code=payload.get("code"),
            details=payload.get("details"),
        )


class NotFoundError(OpsflowError):
    """A referenced operation or workflow does not exist."""

    kind = "Resource"

    def __init__(self, identifier: str) -> None:
        super().__init__(f"{self.kind} not found: {identifier}")
        self.identifier = identifier


class OperationNotFoundError(NotFoundError):
    kind = "Operation"


class WorkflowNotFoundError(NotFoundError):
    kind = "Workflow"


__all__ = [
    "OpsflowError",
    "APIError",
    "NetworkError",
    "RequestTimeoutError",
    "RequestCancelledError",
    "HTTPError",
    "NotFoundError",
    "OperationNotFoundError",
    "WorkflowNotFoundError",
]
