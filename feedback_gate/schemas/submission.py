"""Pydantic schemas for submissions, integrity checks and duplicate checks."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Union

from pydantic import BaseModel, Field

JSONScalar = Union[str, int, float, bool, None]
JSONValue = Union[JSONScalar, List[Any], Dict[str, Any]]
Submission = Dict[str, Any]

INTEGRITY_FIELD = "_integrity"
INTEGRITY_VERSION = "1.0"


class IntegrityMetadata(BaseModel):
    """Tamper-evidence fingerprint attached to a stored submission."""

    hash: str = Field(..., description="SHA-256 hex digest of the submission without this field.")
    timestamp: str = Field(..., description="ISO-8601 UTC time the fingerprint was taken.")
    version: str = Field(INTEGRITY_VERSION, description="Metadata schema version.")


class IntegrityCheckResult(BaseModel):
    """Outcome of verifying a submission against its integrity metadata."""

    valid: bool
    error: str | None = Field(
        default=None,
        description="Why verification failed; absent when valid.",
    )


class DuplicateCheckResult(BaseModel):
    """Outcome of comparing a submission with earlier ones."""

    is_duplicate: bool
    matched_submission: Submission | None = Field(
        default=None,
        description="First earlier submission that matched.",
    )
    match_type: Literal["hash", "similarity"] | None = None
    similarity: float | None = Field(
        default=None,
        description="Field-wise similarity score of the match (1.0 for hash matches).",
    )


class HashRequest(BaseModel):
    data: Dict[str, Any]


class HashResponse(BaseModel):
    hash: str


class VerifyDataRequest(BaseModel):
    data: Dict[str, Any]
    hash: str


class VerifyDataResponse(BaseModel):
    valid: bool


class SubmissionIntegrityRequest(BaseModel):
    submission: Submission


class DuplicateCheckRequest(BaseModel):
    """Compare ``submission`` against ``existing`` in order; first match wins."""

    submission: Submission
    existing: List[Submission] = Field(default_factory=list)
    similarity_threshold: float = Field(0.9, gt=0.0, le=1.0)


class FeedbackSubmitResponse(BaseModel):
    success: bool = True
    message: str = "Feedback submitted successfully"
    submission_id: str
    integrity: IntegrityMetadata
