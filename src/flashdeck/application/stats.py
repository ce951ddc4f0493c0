"""
Progress aggregation for deck-level statistics.

This is a pure computation module with no I/O.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from flashdeck.domain.constants import DEFAULT_MASTERY_THRESHOLD, DIRECTION_COUNT
from flashdeck.domain.mastery import is_mastered


@dataclass(frozen=True)
class DeckStats:
    """
    Raw outcome counts for one deck (or several, summed).

    Rates are derived from the counts, so combining decks sums counts
    rather than averaging per-deck rates.
    """

    card_count: int
    total_outcomes: int
    correct_outcomes: int
    mastered_units: int
    threshold: int = DEFAULT_MASTERY_THRESHOLD

    @property
    def success_rate(self) -> int:
        """Percentage of correct outcomes, rounded half up; 0 with no outcomes."""
        if self.total_outcomes == 0:
            return 0
        return math.floor(100 * self.correct_outcomes / self.total_outcomes + 0.5)

    @property
    def mastered_units_equivalent(self) -> int:
        # Each retained correct outcome is one step towards mastery.
        return self.correct_outcomes

    @property
    def total_possible_outcomes(self) -> int:
        return self.card_count * DIRECTION_COUNT * self.threshold

    @property
    def remaining_units(self) -> int:
        return max(0, self.card_count * DIRECTION_COUNT - self.mastered_units)

    def to_dict(self) -> dict[str, Any]:
        return {
            "successRate": self.success_rate,
            "progress": self.mastered_units_equivalent,
            "total": self.total_possible_outcomes,
            "cardCount": self.card_count,
            "totalOutcomes": self.total_outcomes,
            "correctOutcomes": self.correct_outcomes,
            "masteredUnits": self.mastered_units,
            "remainingUnits": self.remaining_units,
        }


def deck_stats(
    card_count: int,
    histories: Iterable[Sequence[bool]],
    threshold: int = DEFAULT_MASTERY_THRESHOLD,
) -> DeckStats:
    """Tally every history of a Progress Record."""
    total = 0
    correct = 0
    mastered = 0
    for history in histories:
        total += len(history)
        correct += sum(1 for outcome in history if outcome is True)
        if is_mastered(history, threshold):
            mastered += 1
    return DeckStats(
        card_count=card_count,
        total_outcomes=total,
        correct_outcomes=correct,
        mastered_units=mastered,
        threshold=threshold,
    )


def combine_stats(
    stats: Iterable[DeckStats], threshold: int = DEFAULT_MASTERY_THRESHOLD
) -> DeckStats:
    """Sum raw counts across decks (the "all decks" view)."""
    combined = DeckStats(0, 0, 0, 0, threshold=threshold)
    for item in stats:
        combined = DeckStats(
            card_count=combined.card_count + item.card_count,
            total_outcomes=combined.total_outcomes + item.total_outcomes,
            correct_outcomes=combined.correct_outcomes + item.correct_outcomes,
            mastered_units=combined.mastered_units + item.mastered_units,
            threshold=threshold,
        )
    return combined


def format_history(history: Sequence[bool]) -> str:
    """Compact display such as '✓ ✗ ✓ (2/3)'."""
    if not history:
        return "No attempts yet"
    icons = " ".join("✓" if knew else "✗" for knew in history)
    correct = sum(1 for knew in history if knew)
    return f"{icons} ({correct}/{len(history)})"
