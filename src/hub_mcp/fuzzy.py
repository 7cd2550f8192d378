# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Edit-distance ranking for "did you mean" suggestions."""

from typing import Iterable, List, Tuple

MAX_DISTANCE = 3
MAX_SUGGESTIONS = 5


def levenshtein_distance(s1: str, s2: str) -> int:
    """Classic Levenshtein distance (insert, delete, substitute each cost 1).

    Two-row dynamic programme; no early exit.
    """
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            cost = 0 if c1 == c2 else 1
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + cost,  # substitution
                )
            )
        previous = current
    return previous[-1]


def find_similar_names(
    candidate: str,
    pool: Iterable[str],
    max_distance: int = MAX_DISTANCE,
    limit: int = MAX_SUGGESTIONS,
) -> List[str]:
    """Return names from pool within max_distance of candidate, case-insensitively.

    Ordered by ascending distance; ties keep pool iteration order.
    """
    needle = candidate.lower()
    scored: List[Tuple[int, str]] = []
    for name in pool:
        if not name:
            continue
        distance = levenshtein_distance(needle, name.lower())
        if distance <= max_distance:
            scored.append((distance, name))

    # sort is stable, so equal distances stay in pool order
    scored.sort(key=lambda item: item[0])
    return [name for _, name in scored[:limit]]
