"""Leitner-style mastery levels derived from a word's answer counters.

A word's mastery level is a pure function of how often it was answered and
how accurately. Levels are evaluated from the top down and the first level
whose minimum attempt count and minimum accuracy are both met wins. Any word
with at least one attempt is at least level 1; untouched words are level 0.
"""
from __future__ import annotations

MIN_MASTERY_LEVEL = 0
MAX_MASTERY_LEVEL = 5

# (level, minimum attempts, minimum accuracy in percent)
MASTERY_THRESHOLDS: tuple[tuple[int, int, int], ...] = (
    (5, 5, 90),
    (4, 4, 80),
    (3, 3, 70),
    (2, 2, 60),
)


def accuracy(correct_count: int, wrong_count: int) -> float:
    """Return the share of correct answers, 0.0 when nothing was answered."""

    correct = max(0, correct_count)
    attempts = correct + max(0, wrong_count)
    if attempts == 0:
        return 0.0
    return correct / attempts


def compute_mastery_level(correct_count: int, wrong_count: int) -> int:
    """Return the mastery level (0-5) for the given answer counters."""

    correct = max(0, correct_count)
    attempts = correct + max(0, wrong_count)
    if attempts == 0:
        return MIN_MASTERY_LEVEL

    for level, min_attempts, min_percent in MASTERY_THRESHOLDS:
        if attempts >= min_attempts and correct * 100 >= min_percent * attempts:
            return min(MAX_MASTERY_LEVEL, level)
    return 1


__all__ = [
    "MASTERY_THRESHOLDS",
    "MAX_MASTERY_LEVEL",
    "MIN_MASTERY_LEVEL",
    "accuracy",
    "compute_mastery_level",
]
