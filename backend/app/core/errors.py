"""
Domain error hierarchy.

Every error carries the HTTP status it maps to; the handlers registered in
``main.py`` turn them into ``{"error": message, ...}`` JSON bodies.
"""
from typing import Any, Dict, Optional


class TunedUpError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message}


class AuthError(TunedUpError):
    """Caller identity is required but missing or invalid."""

    status_code = 401
    default_message = "Not authenticated"


class InvalidTokenError(AuthError):
    """Token signature is valid but the payload is unusable."""

    status_code = 400
    default_message = "Invalid token payload"


class ForbiddenError(TunedUpError):
    status_code = 403
    default_message = "Forbidden"


class ValidationError(TunedUpError):
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(TunedUpError):
    status_code = 404
    default_message = "Not found"


class ConfigurationError(TunedUpError):
    status_code = 500
    default_message = "Server configuration error"


class UpstreamError(TunedUpError):
    """An external API failed or returned an unexpected shape."""

    status_code = 502
    default_message = "Upstream service failed. Please try again."
    retryable = True

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, "retryable": self.retryable}


class UpstreamTimeoutError(UpstreamError):
    status_code = 504
    default_message = "The AI service took too long to respond. Please try again."


class QuotaExceededError(TunedUpError):
    """Raised by the quota gate; carries what the UI needs for an upgrade prompt."""

    status_code = 403
    default_message = "Quota exceeded"

    def __init__(self, plan: str, used: int, limit: int, tool: str, message: Optional[str] = None):
        self.plan = plan
        self.used = used
        self.limit = limit
        self.tool = tool
        super().__init__(message)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": "Quota exceeded",
            "plan": self.plan,
            "used": self.used,
            "limit": self.limit,
            "toolType": self.tool,
            "message": self.message,
        }
