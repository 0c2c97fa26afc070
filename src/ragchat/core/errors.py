"""Error taxonomy shared by the gateway and the storage tier.

Every error carries the HTTP status it surfaces as, a short ``error``
title and a caller-safe ``message``.  ``details`` holds per-field
information for validation failures only.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


class RagChatError(Exception):
    """Base class for all typed failures."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(
        self, message: str, *, details: dict[str, str] | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationFailure(RagChatError):
    """Malformed or out-of-bound input."""

    status_code = 400
    error = "Validation Failed"


class NotFound(RagChatError):
    """A referenced session does not exist."""

    status_code = 404
    error = "Not Found"

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(f"{resource} not found with id: {identifier}")
        self.resource = resource
        self.identifier = identifier


class AuthorizationFailure(RagChatError):
    """Missing or incorrect credential at either tier."""

    status_code = 403
    error = "Forbidden"


class IntegrityViolation(RagChatError):
    """A persistence-layer constraint was violated."""

    status_code = 409
    error = "Data Integrity Violation"


class InternalFailure(RagChatError):
    """Any unanticipated fault.  The message is always generic."""

    status_code = 500
    error = "Internal Server Error"


def error_body(
    status: int,
    error: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the JSON error envelope returned by both tiers."""
    return {
        "status": status,
        "error": error,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "details": details,
    }


def error_body_for(exc: RagChatError) -> dict[str, Any]:
    return error_body(exc.status_code, exc.error, exc.message, exc.details)
