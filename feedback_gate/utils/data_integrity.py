"""Tamper-evident fingerprints for submissions.

A submission's fingerprint is the SHA-256 digest of its key-sorted, compact
JSON text. The fingerprint is stored next to the data under ``_integrity``
and is never part of the hashed content itself.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from hashlib import sha256
from typing import Any, Mapping

from feedback_gate.core.errors import IntegrityAppError
from feedback_gate.schemas.submission import (
    INTEGRITY_FIELD,
    INTEGRITY_VERSION,
    IntegrityCheckResult,
    IntegrityMetadata,
    Submission,
)

logger = logging.getLogger(__name__)

MISSING_METADATA_ERROR = "No integrity metadata found"
TAMPERED_ERROR = "Data integrity check failed - data may have been tampered with"


def canonical_json(data: Any) -> str:
    """Serialize data with sorted keys and no insignificant whitespace."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def _utf8_bytes(text: str) -> bytes:
    """Encode text as UTF-8, replacing unpaired surrogates with U+FFFD.

    JSON permits escapes such as ``"\\ud800"`` that decode to a lone surrogate,
    which strict UTF-8 encoding rejects. Round-tripping through UTF-16 joins
    valid surrogate pairs and substitutes the replacement character for the
    rest, the same bytes a JavaScript runtime hashes for such a string.
    """
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError:
        well_formed = text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "replace")
        return well_formed.encode("utf-8")


def generate_data_hash(data: Mapping[str, Any]) -> str:
    """Build a stable SHA-256 fingerprint for a record.

    Keys are sorted at every nesting level, so two records with the same
    logical content hash identically regardless of key order. Strings holding
    unpaired surrogates hash as if each were U+FFFD.

    Args:
        data: JSON-serializable mapping.

    Returns:
        Hex-encoded SHA-256 digest string (64 characters).
    """
    return sha256(_utf8_bytes(canonical_json(data))).hexdigest()


def verify_data_integrity(data: Mapping[str, Any], hash: str) -> bool:
    """Recompute the fingerprint of data and compare it with hash."""
    return generate_data_hash(data) == hash


def _without_metadata(submission: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in submission.items() if key != INTEGRITY_FIELD}


def _utc_timestamp(now: datetime | None = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def add_integrity_metadata(
    submission: Mapping[str, Any], *, now: datetime | None = None
) -> Submission:
    """Return a copy of submission with a fresh ``_integrity`` field.

    Any existing ``_integrity`` field is excluded from the hash and replaced.
    The input mapping is left untouched.

    Args:
        submission: Record to fingerprint.
        now: Timestamp to record; current UTC time when omitted.

    Returns:
        New record holding the original fields plus integrity metadata.
    """
    metadata = IntegrityMetadata(
        hash=generate_data_hash(_without_metadata(submission)),
        timestamp=_utc_timestamp(now),
        version=INTEGRITY_VERSION,
    )
    return {**submission, INTEGRITY_FIELD: metadata.model_dump()}


def verify_submission_integrity(submission: Mapping[str, Any]) -> IntegrityCheckResult:
    """Check a submission against its stored fingerprint.

    Failures are reported in the result rather than raised, so callers can
    quarantine or reject the record as they see fit.

    Args:
        submission: Record carrying an ``_integrity`` field.

    Returns:
        IntegrityCheckResult; ``error`` explains any failure.
    """
    metadata = submission.get(INTEGRITY_FIELD)
    # Empty objects and arrays count as present metadata that fails to match
    if metadata is None or (not metadata and not isinstance(metadata, (Mapping, list))):
        return IntegrityCheckResult(valid=False, error=MISSING_METADATA_ERROR)

    expected = metadata.get("hash") if isinstance(metadata, Mapping) else None
    if not isinstance(expected, str) or not verify_data_integrity(
        _without_metadata(submission), expected
    ):
        logger.warning(
            "integrity.mismatch",
            extra={"submission_id": submission.get("id")},
        )
        return IntegrityCheckResult(valid=False, error=TAMPERED_ERROR)

    return IntegrityCheckResult(valid=True)


def ensure_submission_integrity(submission: Mapping[str, Any]) -> None:
    """Raise when a submission fails integrity verification.

    Raises:
        IntegrityAppError: If metadata is missing or the hash does not match.
    """
    result = verify_submission_integrity(submission)
    if result.valid:
        return

    code = "integrity_metadata_missing" if result.error == MISSING_METADATA_ERROR else "integrity_mismatch"
    details = {"submission_id": str(submission["id"])} if submission.get("id") is not None else None
    raise IntegrityAppError(code=code, message=result.error or TAMPERED_ERROR, details=details)
