"""Zyphon error types.

Every error renders as the response envelope ``{"ok": false, "error": ...}``.
Messages are safe to show to unauthenticated callers: no secrets, hashes,
stack traces or internal identifiers.
"""

from __future__ import annotations

import math
from typing import Any


class ZyphonError(Exception):
    """Base error for all Zyphon API failures."""

    code: str = "internal_error"
    message: str = "Internal server error"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Render the error envelope."""
        body: dict[str, Any] = {"ok": False, "error": self.message}
        body.update(self.details)
        return body

    def headers(self) -> dict[str, str]:
        """Extra response headers for this error."""
        return {}


class UnauthorizedError(ZyphonError):
    """Missing, invalid or revoked credential (401)."""

    code = "unauthorized"
    message = "Unauthorized"
    status_code = 401


class ForbiddenError(ZyphonError):
    """Valid credential without the required permission (403)."""

    code = "forbidden"
    message = "Forbidden"
    status_code = 403


class NotFoundError(ZyphonError):
    """Resource not found (404)."""

    code = "not_found"
    message = "Resource not found"
    status_code = 404


class ConflictError(ZyphonError):
    """Lifecycle operation on a key in the wrong state (409)."""

    code = "conflict"
    message = "Conflict"
    status_code = 409


class ValidationError(ZyphonError):
    """Malformed request payload (400)."""

    code = "validation_error"
    message = "Validation error"
    status_code = 400


class RateLimitedError(ZyphonError):
    """Quota exceeded for the current window (429)."""

    code = "rate_limited"
    message = "Rate limit exceeded"
    status_code = 429

    def __init__(
        self,
        message: str | None = None,
        *,
        limit: int,
        reset_at: float,
        retry_after: float,
    ) -> None:
        self.limit = limit
        self.reset_at = reset_at
        self.retry_after = max(0, math.ceil(retry_after))
        super().__init__(message, details={"retry_after": self.retry_after})

    def headers(self) -> dict[str, str]:
        return {
            "Retry-After": str(self.retry_after),
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }


class UpstreamError(ZyphonError):
    """Generation capability or storage failed (502)."""

    code = "upstream_error"
    message = "Upstream service failed"
    status_code = 502


class ServiceUnavailableError(ZyphonError):
    """Gateway disabled or capability not configured (503)."""

    code = "service_unavailable"
    message = "Service unavailable"
    status_code = 503


def first_validation_message(errors: list[dict[str, Any]]) -> str:
    """Render the first pydantic error as ``"field.path: message"``."""
    if not errors:
        return ValidationError.message
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    msg = first.get("msg", ValidationError.message)
    return f"{loc}: {msg}" if loc else msg
