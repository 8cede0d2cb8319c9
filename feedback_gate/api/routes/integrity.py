"""Integrity and duplicate-check endpoints for arbitrary records.

These operate on records supplied in the request body and never touch the
submission store.
"""

from __future__ import annotations

from fastapi import APIRouter

from feedback_gate.schemas.submission import (
    DuplicateCheckRequest,
    DuplicateCheckResult,
    HashRequest,
    HashResponse,
    IntegrityCheckResult,
    SubmissionIntegrityRequest,
    VerifyDataRequest,
    VerifyDataResponse,
)
from feedback_gate.utils.data_integrity import (
    generate_data_hash,
    verify_data_integrity,
    verify_submission_integrity,
)
from feedback_gate.utils.duplicate_detection import detect_duplicate_submission

router = APIRouter(tags=["Integrity"])


@router.post("/integrity/hash", response_model=HashResponse)
def hash_record(body: HashRequest) -> HashResponse:
    """Return the SHA-256 fingerprint of a record."""
    return HashResponse(hash=generate_data_hash(body.data))


@router.post("/integrity/verify", response_model=VerifyDataResponse)
def verify_record(body: VerifyDataRequest) -> VerifyDataResponse:
    return VerifyDataResponse(valid=verify_data_integrity(body.data, body.hash))


@router.post("/integrity/submission", response_model=IntegrityCheckResult)
def verify_submission(body: SubmissionIntegrityRequest) -> IntegrityCheckResult:
    """Check a submission against its embedded ``_integrity`` metadata.

    Failures come back as ``valid: false`` with an error message, not as
    an error status.
    """
    return verify_submission_integrity(body.submission)


@router.post("/duplicates/check", response_model=DuplicateCheckResult)
def check_duplicates(body: DuplicateCheckRequest) -> DuplicateCheckResult:
    """Report the first existing record that duplicates the submission."""
    return detect_duplicate_submission(
        body.submission,
        body.existing,
        body.similarity_threshold,
    )
