"""Feedback intake: duplicate screening, fingerprinting and storage.

The service turns a survey id plus raw form data into a stored submission:
- builds the record with system fields (id, surveyId, submittedAt)
- rejects it when it duplicates an earlier submission to the same survey
- attaches integrity metadata before handing it to the store
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from feedback_gate.adapters.submissions.base import AbstractSubmissionStore
from feedback_gate.core.errors import (
    DuplicateSubmissionAppError,
    NotFoundAppError,
    ValidationAppError,
)
from feedback_gate.schemas.submission import (
    INTEGRITY_FIELD,
    IntegrityCheckResult,
    Submission,
)
from feedback_gate.utils.data_integrity import add_integrity_metadata, verify_submission_integrity
from feedback_gate.utils.duplicate_detection import (
    DEFAULT_SIMILARITY_THRESHOLD,
    detect_duplicate_submission,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_submission_id() -> str:
    return uuid.uuid4().hex


class SubmissionService:
    """Accepts feedback submissions and checks stored ones."""

    def __init__(
        self,
        store: AbstractSubmissionStore,
        *,
        duplicate_detection_enabled: bool = True,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = _new_submission_id,
    ) -> None:
        self._store = store
        self._duplicate_detection_enabled = duplicate_detection_enabled
        self._similarity_threshold = similarity_threshold
        self._clock = clock
        self._id_factory = id_factory
        # Screening and storing must be atomic or two concurrent copies both pass
        self._intake_lock = threading.Lock()

    def _build_record(self, survey_id: str, form_data: Mapping[str, Any], now: datetime) -> Submission:
        fields = {key: value for key, value in form_data.items() if key != INTEGRITY_FIELD}
        return {
            **fields,
            "id": self._id_factory(),
            "surveyId": survey_id,
            "submittedAt": now.isoformat(),
        }

    def submit(self, survey_id: str, form_data: Mapping[str, Any]) -> Submission:
        """Screen, fingerprint and store a new submission.

        Args:
            survey_id: Survey the feedback answers.
            form_data: Answers keyed by field name.

        Returns:
            The stored record, including its ``_integrity`` metadata.

        Raises:
            ValidationAppError: If survey_id or form_data is malformed.
            DuplicateSubmissionAppError: If an earlier submission matches.
        """
        if not isinstance(survey_id, str) or not survey_id.strip():
            raise ValidationAppError(
                code="invalid_survey_id",
                message="surveyId must be a non-empty string",
                details={"field": "surveyId"},
            )
        if not isinstance(form_data, Mapping):
            raise ValidationAppError(
                code="invalid_form_data",
                message="formData must be an object",
                details={"field": "formData"},
            )

        now = self._clock()
        record = self._build_record(survey_id, form_data, now)

        with self._intake_lock:
            stored = self._screen_and_store(survey_id, record, now)

        logger.info(
            "submission.accepted",
            extra={
                "survey_id": survey_id,
                "submission_id": stored["id"],
                "field_count": len(form_data),
            },
        )
        return stored

    def _screen_and_store(self, survey_id: str, record: Submission, now: datetime) -> Submission:
        if self._duplicate_detection_enabled:
            existing = self._store.list_by_survey(survey_id)
            result = detect_duplicate_submission(record, existing, self._similarity_threshold)
            if result.is_duplicate and result.matched_submission is not None:
                matched_id = str(result.matched_submission.get("id"))
                logger.info(
                    "submission.duplicate",
                    extra={
                        "survey_id": survey_id,
                        "matched_submission_id": matched_id,
                        "match_type": result.match_type,
                        "similarity": result.similarity,
                    },
                )
                raise DuplicateSubmissionAppError(
                    code="duplicate_submission",
                    message="This feedback appears to have been submitted already.",
                    details={
                        "survey_id": survey_id,
                        "matched_submission_id": matched_id,
                        "match_type": result.match_type or "",
                        "similarity": result.similarity or 0.0,
                    },
                )

        stored = add_integrity_metadata(record, now=now)
        self._store.add(stored)
        return stored

    def get(self, submission_id: str) -> Submission:
        """Fetch a stored submission.

        Raises:
            NotFoundAppError: If no submission has this id.
        """
        submission = self._store.get(submission_id)
        if submission is None:
            raise NotFoundAppError(
                code="submission_not_found",
                message="Submission not found",
                details={"submission_id": submission_id},
            )
        return submission

    def verify(self, submission_id: str) -> IntegrityCheckResult:
        """Verify a stored submission against its integrity metadata."""
        result = verify_submission_integrity(self.get(submission_id))
        if not result.valid:
            logger.warning(
                "submission.integrity_failed",
                extra={"submission_id": submission_id, "reason": result.error},
            )
        return result
