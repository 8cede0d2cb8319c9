"""Submission store interface.

Services depend on this abstraction so the in-memory store can be replaced
by a document database without touching the intake logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from feedback_gate.schemas.submission import Submission


class AbstractSubmissionStore(ABC):
    """Interface for persisting accepted submissions."""

    @abstractmethod
    def add(self, submission: Submission) -> None:
        """Persist a submission keyed by its ``id`` field.

        Raises:
            ValueError: If the submission has no id or the id is taken.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, submission_id: str) -> Submission | None:
        """Return a copy of the stored submission, or None."""
        raise NotImplementedError

    @abstractmethod
    def list_by_survey(self, survey_id: str) -> list[Submission]:
        """Return the survey's submissions in insertion order."""
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError
