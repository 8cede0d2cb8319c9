"""Submission storage adapters."""

from feedback_gate.adapters.submissions.base import AbstractSubmissionStore
from feedback_gate.adapters.submissions.in_memory import InMemorySubmissionStore

__all__ = ["AbstractSubmissionStore", "InMemorySubmissionStore"]
