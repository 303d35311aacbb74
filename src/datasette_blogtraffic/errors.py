"""
Error types for datasette-blogtraffic.

Each error carries the HTTP status it maps to. Route handlers raise these and
the API wrapper in plugin.py turns them into ``{"error": ...}`` responses.
"""

from typing import Any


class BlogTrafficError(Exception):
    """Base class for errors reported to API clients."""

    status = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": self.message}
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(BlogTrafficError):
    """Missing or malformed input."""

    status = 400


class AuthError(BlogTrafficError):
    """Signed-request verification failed."""

    status = 401

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        self.reason = reason


class NotFoundError(BlogTrafficError):
    """No record with the requested identifier or slug."""

    status = 404


class MethodNotAllowedError(BlogTrafficError):
    status = 405


class ConflictError(BlogTrafficError):
    """A record with this identifier already exists."""

    status = 409


class InternalError(BlogTrafficError):
    """Server-side failure (misconfiguration, storage)."""

    status = 500
