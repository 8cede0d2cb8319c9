import asyncio
import contextvars
import functools
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from feedback_gate.core.errors import ValidationAppError
from feedback_gate.core.rate_limit import enforce_rate_limit
from feedback_gate.schemas.submission import (
    INTEGRITY_FIELD,
    FeedbackSubmitResponse,
    IntegrityCheckResult,
    IntegrityMetadata,
)
from feedback_gate.services.submission_service import SubmissionService

router = APIRouter(tags=["Feedback"])


def get_submission_service(request: Request) -> SubmissionService:
    """Return the submission service owned by the running application."""
    return request.app.state.submission_service


SUBMIT_BODY_SCHEMA = {
    "type": "object",
    "description": "Object with surveyId (string) and formData (answers keyed by field name).",
    "properties": {
        "surveyId": {"type": "string"},
        "formData": {"type": "object", "additionalProperties": True},
    },
    "required": ["surveyId", "formData"],
}


async def _read_json_object(request: Request) -> Dict[str, Any]:
    """Parse the request body as a JSON object.

    Raises:
        ValidationAppError: 400 when the body is not valid JSON or not an object.
    """
    try:
        payload = await request.json()
    except ValueError as exc:
        raise ValidationAppError(
            code="invalid_json",
            message="Request body must be valid JSON",
        ) from exc

    if not isinstance(payload, dict):
        raise ValidationAppError(
            code="invalid_body",
            message="Request body must be a JSON object",
        )
    return payload


# The body is read inside the handler so the rate limit counts every request,
# including ones whose body fails to parse.
@router.post(
    "/feedback",
    response_model=FeedbackSubmitResponse,
    dependencies=[Depends(enforce_rate_limit)],
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": SUBMIT_BODY_SCHEMA}},
        }
    },
)
async def submit_feedback(
    request: Request,
    service: SubmissionService = Depends(get_submission_service),
) -> FeedbackSubmitResponse:
    """Accept a patient feedback submission.

    Rate-limited per client. The submission is rejected when it duplicates
    an earlier one for the same survey; otherwise it is fingerprinted and
    stored.

    Raises:
        HTTPException: 429 when the client's window is exhausted.
        ValidationAppError: 400 when surveyId or formData is missing
            or the body is not a JSON object.
        DuplicateSubmissionAppError: 409 for duplicate submissions.
    """
    payload = await _read_json_object(request)
    survey_id = payload.get("surveyId")
    form_data = payload.get("formData")
    if not survey_id or form_data is None:
        raise ValidationAppError(
            code="missing_required_fields",
            message="Missing required fields",
            details={"hint": "Provide surveyId and formData"},
        )

    # Duplicate screening is CPU-bound; keep it off the event loop
    loop = asyncio.get_running_loop()
    context = contextvars.copy_context()
    stored = await loop.run_in_executor(
        None, functools.partial(context.run, service.submit, survey_id, form_data)
    )
    return FeedbackSubmitResponse(
        submission_id=stored["id"],
        integrity=IntegrityMetadata(**stored[INTEGRITY_FIELD]),
    )


@router.get("/feedback/{submission_id}/integrity", response_model=IntegrityCheckResult)
async def verify_feedback_integrity(
    submission_id: str,
    service: SubmissionService = Depends(get_submission_service),
) -> IntegrityCheckResult:
    """Verify a stored submission against its integrity metadata."""
    return service.verify(submission_id)
