"""Edit-distance similarity for free-text answers.

Lengths and edits are counted in UTF-16 code units, so a character outside
the Basic Multilingual Plane (most emoji) counts as two units. Scores
therefore agree with browser-side JavaScript string handling.
"""

from __future__ import annotations

from array import array
from typing import Sequence


def utf16_units(text: str) -> Sequence[int]:
    """Split text into UTF-16 code units.

    Units are only compared for equality, so native byte order is fine.
    """
    return array("H", text.encode("utf-16-le", "surrogatepass"))


def _distance(first: Sequence[int], second: Sequence[int]) -> int:
    if len(first) < len(second):
        first, second = second, first
    if not second:
        return len(first)

    previous = list(range(len(second) + 1))
    for i, unit_a in enumerate(first, start=1):
        current = [i]
        for j, unit_b in enumerate(second, start=1):
            if unit_a == unit_b:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], previous[j], current[j - 1]) + 1)
        previous = current
    return previous[-1]


def levenshtein_distance(first: str, second: str) -> int:
    """Compute the edit distance between two strings.

    Counts the minimum number of single-unit insertions, deletions and
    substitutions turning one string into the other. Comparison is exact:
    case and whitespace are significant.

    Args:
        first: Source string.
        second: Target string.

    Returns:
        int: Number of edits, in UTF-16 code units.
    """
    return _distance(utf16_units(first), utf16_units(second))


def string_similarity(first: str, second: str) -> float:
    """Similarity in [0, 1] derived from edit distance.

    Two empty strings are fully similar.
    """
    units_a = utf16_units(first)
    units_b = utf16_units(second)
    longest = max(len(units_a), len(units_b))
    if longest == 0:
        return 1.0
    return (longest - _distance(units_a, units_b)) / longest
