"""Bounded Levenshtein edit distance.

Rows are allocated per call, so the function holds no state between
invocations and is safe to call from concurrent searches.
"""

from typing import List


def distance(a: str, b: str) -> int:
    """Classic Levenshtein distance (unit-cost insert, delete, substitute).

    Runs in O(len(a) * len(b)) time and O(min(len(a), len(b))) space using
    two rolling rows over the shorter string.
    """
    if a == b:
        return 0
    # Keep the shorter string along the row.
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous: List[int] = list(range(len(b) + 1))
    current: List[int] = [0] * (len(b) + 1)

    for i, ca in enumerate(a, start=1):
        current[0] = i
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current[j] = min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            )
        previous, current = current, previous

    return previous[len(b)]


def max_distance(term: str) -> int:
    """Fuzzy-match tolerance for a term: 2 up to 3 chars, 3 up to 6, else 4."""
    length = len(term)
    if length <= 3:
        return 2
    if length <= 6:
        return 3
    return 4
