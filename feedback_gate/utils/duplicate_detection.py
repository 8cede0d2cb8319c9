"""Near-duplicate detection for form submissions.

Two submissions are duplicates when they hash identically or when their
field-wise similarity reaches a threshold. Earlier submissions are scanned in
the order given and the first match wins, even if a later one is closer.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from feedback_gate.schemas.submission import DuplicateCheckResult
from feedback_gate.utils.data_integrity import generate_data_hash
from feedback_gate.utils.text_similarity import string_similarity

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.9
# A differing string field only counts when it is closer than this.
STRING_MATCH_FLOOR = 0.8
EXCLUDED_FIELDS = frozenset({"id", "submittedAt"})

_MISSING = object()


def _is_compared_field(key: str) -> bool:
    return not key.startswith("_") and key not in EXCLUDED_FIELDS


def _values_equal(first: Any, second: Any) -> bool:
    # True == 1 in Python, but a checkbox answer is not a numeric answer.
    if isinstance(first, bool) != isinstance(second, bool):
        return False
    return first == second


def calculate_similarity(first: Mapping[str, Any], second: Mapping[str, Any]) -> float:
    """Score how alike two submissions are, from 0 to 1.

    Every field present in either record is compared, except ``_``-prefixed
    metadata, ``id`` and ``submittedAt``. Equal values score 1; two differing
    strings score their edit-distance similarity when it is above 0.8 and 0
    otherwise; anything else scores 0. The result is the mean over the
    compared fields, or 0 when there is nothing to compare.

    Args:
        first: A submission.
        second: Another submission.

    Returns:
        float: Similarity score.
    """
    keys = list(dict.fromkeys([*first.keys(), *second.keys()]))
    matches = 0.0
    total = 0

    for key in keys:
        if not _is_compared_field(key):
            continue
        total += 1

        value_a = first.get(key, _MISSING)
        value_b = second.get(key, _MISSING)

        if value_a is not _MISSING and value_b is not _MISSING and _values_equal(value_a, value_b):
            matches += 1
        elif isinstance(value_a, str) and isinstance(value_b, str):
            similarity = string_similarity(value_a, value_b)
            if similarity > STRING_MATCH_FLOOR:
                matches += similarity

    return matches / total if total > 0 else 0


def detect_duplicate_submission(
    new_submission: Mapping[str, Any],
    existing_submissions: Iterable[Mapping[str, Any]],
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> DuplicateCheckResult:
    """Find the first earlier submission that duplicates new_submission.

    Each candidate is tried by exact hash first, then by field-wise
    similarity (``>= similarity_threshold``).

    Args:
        new_submission: Incoming record.
        existing_submissions: Earlier records, in the order to scan them.
        similarity_threshold: Minimum similarity counting as a duplicate.

    Returns:
        DuplicateCheckResult; ``is_duplicate`` is False when nothing matched.
    """
    new_hash = generate_data_hash(new_submission)

    for existing in existing_submissions:
        if generate_data_hash(existing) == new_hash:
            logger.debug("duplicate.hash_match", extra={"matched_id": existing.get("id")})
            return DuplicateCheckResult(
                is_duplicate=True,
                matched_submission=dict(existing),
                match_type="hash",
                similarity=1.0,
            )

        similarity = calculate_similarity(new_submission, existing)
        if similarity >= similarity_threshold:
            logger.debug(
                "duplicate.similarity_match",
                extra={"matched_id": existing.get("id"), "similarity": similarity},
            )
            return DuplicateCheckResult(
                is_duplicate=True,
                matched_submission=dict(existing),
                match_type="similarity",
                similarity=similarity,
            )

    return DuplicateCheckResult(is_duplicate=False)
