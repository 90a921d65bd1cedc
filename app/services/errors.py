"""Failure kinds of an analysis run and the HTTP status each one maps to."""
from __future__ import annotations


class AnalysisError(Exception):
    """Base class for failures surfaced to the caller as an error envelope.

    ``message`` is what the caller sees. ``detail`` is only ever logged.
    """

    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None, *, detail: str | None = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(detail or self.message)


class InputError(AnalysisError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AnalysisError):
    status_code = 401
    default_message = "Authentication required"


class ConfigurationError(AnalysisError):
    """Required provider settings are missing. Operator-fixable."""

    status_code = 500
    default_message = "Server configuration error"

    def __init__(self, detail: str | None = None):
        # Never echo which keys are missing back to the caller.
        super().__init__(self.default_message, detail=detail)


class NoDiscussionsFoundError(AnalysisError):
    status_code = 404
    default_message = "No discussions found"


class NotFoundError(AnalysisError):
    status_code = 404
    default_message = "Not found"


class UpstreamAIError(AnalysisError):
    status_code = 500
    default_message = "AI analysis failed"


class RateLimitedError(UpstreamAIError):
    status_code = 429
    default_message = "Rate limit exceeded, please try again in a moment"


class QuotaExhaustedError(UpstreamAIError):
    status_code = 402
    default_message = "AI credits exhausted, please contact the site operator"


class ParseError(AnalysisError):
    status_code = 500
    default_message = "Failed to parse AI response"


class PersistenceError(AnalysisError):
    status_code = 500
    default_message = "Failed to save"
