"""
Mastery evaluation over a single (card, direction) history.

Pure, total functions: no I/O and no error conditions.
"""

from collections.abc import Sequence

from .constants import DEFAULT_MASTERY_THRESHOLD


def is_mastered(history: Sequence[bool], threshold: int = DEFAULT_MASTERY_THRESHOLD) -> bool:
    """
    A unit is mastered when its last `threshold` outcomes are all correct.

    Histories shorter than the threshold are never mastered.
    """
    if len(history) < threshold:
        return False
    return all(outcome is True for outcome in history[-threshold:])


def success_rate(history: Sequence[bool]) -> float:
    """Fraction of correct outcomes (0.0-1.0); 0.0 for an empty history."""
    if not history:
        return 0.0
    correct = sum(1 for outcome in history if outcome is True)
    return correct / len(history)
