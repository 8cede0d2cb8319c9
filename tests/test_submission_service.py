"""Unit tests for SubmissionService."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from itertools import count

import pytest

from feedback_gate.adapters.submissions.in_memory import InMemorySubmissionStore
from feedback_gate.core.errors import (
    DuplicateSubmissionAppError,
    NotFoundAppError,
    ValidationAppError,
)
from feedback_gate.services.submission_service import SubmissionService
from feedback_gate.utils.data_integrity import MISSING_METADATA_ERROR, TAMPERED_ERROR

FIXED_NOW = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)


@pytest.fixture
def service(store: InMemorySubmissionStore) -> SubmissionService:
    ids = count(1)
    return SubmissionService(
        store,
        clock=lambda: FIXED_NOW,
        id_factory=lambda: f"sub-{next(ids)}",
    )


def test_submit_stores_record_with_system_fields(
    service: SubmissionService, store: InMemorySubmissionStore
) -> None:
    stored = service.submit("survey-1", {"rating": 5, "comment": "Great"})

    assert stored["id"] == "sub-1"
    assert stored["surveyId"] == "survey-1"
    assert stored["submittedAt"] == FIXED_NOW.isoformat()
    assert stored["rating"] == 5
    assert stored["_integrity"]["version"] == "1.0"
    assert stored["_integrity"]["timestamp"] == "2024-05-06T07:08:09.000Z"
    assert store.get("sub-1") == stored


def test_stored_submission_verifies(service: SubmissionService) -> None:
    stored = service.submit("survey-1", {"rating": 5})

    result = service.verify(stored["id"])

    assert result.valid is True


def test_system_fields_override_form_fields(service: SubmissionService) -> None:
    stored = service.submit(
        "survey-1",
        {"id": "forged", "surveyId": "other", "_integrity": {"hash": "forged"}, "rating": 1},
    )

    assert stored["id"] == "sub-1"
    assert stored["surveyId"] == "survey-1"
    assert stored["_integrity"]["hash"] != "forged"
    assert service.verify("sub-1").valid is True


def test_duplicate_submission_is_rejected(service: SubmissionService) -> None:
    service.submit("survey-1", {"rating": 5, "comment": "The nurses were wonderful"})

    with pytest.raises(DuplicateSubmissionAppError) as exc_info:
        service.submit("survey-1", {"rating": 5, "comment": "The nurses were wonderfull"})

    details = exc_info.value.details
    assert exc_info.value.code == "duplicate_submission"
    assert details["matched_submission_id"] == "sub-1"
    assert details["match_type"] == "similarity"


def test_same_answers_to_another_survey_are_accepted(service: SubmissionService) -> None:
    service.submit("survey-1", {"rating": 5})

    stored = service.submit("survey-2", {"rating": 5})

    assert stored["surveyId"] == "survey-2"


def test_distinct_answers_are_accepted(service: SubmissionService, store: InMemorySubmissionStore) -> None:
    service.submit("survey-1", {"rating": 5, "comment": "Short wait"})
    service.submit("survey-1", {"rating": 2, "comment": "Parking was impossible"})

    assert len(store.list_by_survey("survey-1")) == 2


def test_duplicate_detection_can_be_disabled(store: InMemorySubmissionStore) -> None:
    service = SubmissionService(store, duplicate_detection_enabled=False)

    service.submit("survey-1", {"rating": 5})
    service.submit("survey-1", {"rating": 5})

    assert len(store.list_by_survey("survey-1")) == 2


def test_tampered_submission_fails_verification(
    service: SubmissionService, store: InMemorySubmissionStore
) -> None:
    service.submit("survey-1", {"rating": 5})
    store._by_id["sub-1"]["rating"] = 1

    result = service.verify("sub-1")

    assert result.valid is False
    assert result.error == TAMPERED_ERROR


def test_submission_without_metadata_fails_verification(
    service: SubmissionService, store: InMemorySubmissionStore
) -> None:
    store.add({"id": "legacy", "surveyId": "survey-1", "rating": 3})

    result = service.verify("legacy")

    assert result.valid is False
    assert result.error == MISSING_METADATA_ERROR


def test_unknown_submission_raises_not_found(service: SubmissionService) -> None:
    with pytest.raises(NotFoundAppError):
        service.verify("missing")


@pytest.mark.parametrize("survey_id", ["", "   ", 42, None])
def test_invalid_survey_id(service: SubmissionService, survey_id) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        service.submit(survey_id, {"rating": 1})

    assert exc_info.value.code == "invalid_survey_id"


def test_form_data_must_be_a_mapping(service: SubmissionService) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        service.submit("survey-1", ["not", "a", "mapping"])

    assert exc_info.value.code == "invalid_form_data"


def test_concurrent_identical_submissions_store_only_one(store: InMemorySubmissionStore) -> None:
    service = SubmissionService(store)
    form = {"comment": "The waiting room was cold", "rating": 2}
    start = threading.Barrier(8)

    def submit() -> str:
        start.wait()
        try:
            service.submit("survey-1", dict(form))
        except DuplicateSubmissionAppError:
            return "duplicate"
        return "accepted"

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(lambda _: submit(), range(8)))

    assert outcomes.count("accepted") == 1
    assert outcomes.count("duplicate") == 7
    assert len(store.list_by_survey("survey-1")) == 1
