"""Score → grade mapping.

Bands are inclusive at the lower bound.  A fractional score belongs to
the band of the bound it has reached, so 94.9 is still a 3.5.
"""

from __future__ import annotations

import math

MIN_SCORE = 0.0
MAX_SCORE = 100.0

# (lower bound, GPA-scale value, letter), highest first
_BANDS: tuple[tuple[float, float, str], ...] = (
    (95.0, 4.0, "A"),
    (89.0, 3.5, "A-"),
    (83.0, 3.0, "B+"),
    (78.0, 2.5, "B"),
    (72.0, 2.0, "B-"),
    (66.0, 1.5, "C+"),
    (60.0, 1.0, "C"),
)
_FAILING = (0.0, "F")


def is_valid_score(score: object) -> bool:
    if isinstance(score, bool) or not isinstance(score, int | float):
        return False
    # Ints compare exactly at any size; math.isfinite would overflow on them.
    if isinstance(score, int):
        return MIN_SCORE <= score <= MAX_SCORE
    return math.isfinite(score) and MIN_SCORE <= score <= MAX_SCORE


def _band(score: float) -> tuple[float, str]:
    if not is_valid_score(score):
        raise ValueError(f"score must be a number in [0, 100] (got {score!r})")
    for lower, value, letter in _BANDS:
        if score >= lower:
            return value, letter
    return _FAILING


def derived_grade(score: float) -> float:
    """GPA-scale value for a score in [0, 100]."""
    return _band(score)[0]


def letter_grade(score: float) -> str:
    return _band(score)[1]
