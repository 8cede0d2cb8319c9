"""In-memory submission store.

Per-process and non-persistent; suitable for development and tests.
"""

from __future__ import annotations

import copy
import threading

from feedback_gate.adapters.submissions.base import AbstractSubmissionStore
from feedback_gate.schemas.submission import Submission


class InMemorySubmissionStore(AbstractSubmissionStore):
    """Thread-safe dict of submissions keyed by id.

    Records are deep-copied in and out so callers cannot alter stored data
    behind the store's back.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_id: dict[str, Submission] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def add(self, submission: Submission) -> None:
        submission_id = submission.get("id")
        if not submission_id:
            raise ValueError("submission must have a non-empty id")

        with self._lock:
            if submission_id in self._by_id:
                raise ValueError(f"submission {submission_id!r} already exists")
            self._by_id[str(submission_id)] = copy.deepcopy(submission)

    def get(self, submission_id: str) -> Submission | None:
        with self._lock:
            stored = self._by_id.get(submission_id)
            return copy.deepcopy(stored) if stored is not None else None

    def list_by_survey(self, survey_id: str) -> list[Submission]:
        with self._lock:
            return [
                copy.deepcopy(submission)
                for submission in self._by_id.values()
                if submission.get("surveyId") == survey_id
            ]

    def clear(self) -> None:
        with self._lock:
            self._by_id.clear()
