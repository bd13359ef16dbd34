"""Error taxonomy surfaced at the HTTP boundary.

Every error knows its HTTP status and JSON body, so the exception
handlers in `main` can convert them without inspecting the type.
"""

from typing import Any, Dict, Optional


class MarketingAIError(Exception):
    """Base class for errors returned to the caller as JSON."""

    status_code = 500

    def __init__(self, error: str, status_code: Optional[int] = None):
        super().__init__(error)
        self.error = error
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.error}

    def to_headers(self) -> Dict[str, str]:
        return {}


class BadRequest(MarketingAIError):
    """Missing or invalid action, payload or prompt."""
    status_code = 400


class InvalidAction(BadRequest):
    """Action outside the recognized set."""

    def __init__(self, action: str):
        super().__init__("Unknown action")
        self.action = action


class MethodNotAllowed(MarketingAIError):
    status_code = 405


class ServerMisconfigured(MarketingAIError):
    """Required server configuration (the API credential) is absent."""
    status_code = 500


class RateLimited(MarketingAIError):
    """Local admission control rejected the client."""
    status_code = 429

    def __init__(self, retry_after: int):
        super().__init__("rate_limited")
        self.retry_after = retry_after

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.error, "retryAfter": self.retry_after}

    def to_headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class UpstreamError(MarketingAIError):
    """The completion service answered with a failure after retries.

    401 and 429 are passed through to the caller, anything else
    collapses to 500.
    """

    PASSTHROUGH = (401, 429)

    def __init__(
        self,
        upstream_status: Optional[int],
        details: str = "",
        retry_after: Optional[str] = None,
        error: str = "OpenAI error",
    ):
        status = upstream_status if upstream_status in self.PASSTHROUGH else 500
        super().__init__(error, status)
        self.upstream_status = upstream_status
        self.details = details
        self.retry_after = retry_after

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error, "details": self.details}
        if self.upstream_status is not None:
            body["status"] = self.upstream_status
        if self.retry_after is not None:
            body["retryAfter"] = self.retry_after
        return body
