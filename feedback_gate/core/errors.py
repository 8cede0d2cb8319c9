"""Application-level exception types.

Domain errors raised by services and utilities, rendered into a consistent
JSON shape by the global exception handlers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    field: str
    survey_id: str
    submission_id: str
    matched_submission_id: str
    match_type: str
    similarity: float
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when request input is missing or malformed."""


class NotFoundAppError(AppError):
    """Raised when a referenced submission does not exist."""


class DuplicateSubmissionAppError(AppError):
    """Raised when a submission duplicates an existing one."""


class IntegrityAppError(AppError):
    """Raised when integrity metadata is missing or does not match."""
