"""
Priority scheduler for study sessions.

Orders active units so that never-attempted units come first, then units
by ascending success rate. Order inside a group of equal priority is
randomized on every call so repeated sessions do not go stale; callers
must not rely on it. Pass a seeded random.Random for reproducible runs.
"""

import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from flashdeck.domain.constants import NO_PROGRESS_PRIORITY
from flashdeck.domain.history import HistoryStore
from flashdeck.domain.mastery import success_rate
from flashdeck.domain.models import StudyUnit


@dataclass(frozen=True)
class ScheduledUnit:
    """A study unit with the figures it was ordered by."""

    unit: StudyUnit
    priority: float
    success_rate: float
    attempt_count: int


class SessionStatus(str, Enum):
    READY = "ready"
    ALL_MASTERED = "all_mastered"
    EMPTY_DECK = "empty_deck"


def classify_session(card_count: int, active_units: int) -> SessionStatus:
    """
    Tell an empty deck apart from a fully mastered one.

    The scheduler output alone cannot do this; the deck card count is
    needed.
    """
    if active_units > 0:
        return SessionStatus.READY
    if card_count > 0:
        return SessionStatus.ALL_MASTERED
    return SessionStatus.EMPTY_DECK


class PriorityScheduler:
    """
    Stateless apart from its random source.
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    def score(self, unit: StudyUnit, store: HistoryStore) -> ScheduledUnit:
        history = store.get(unit.card_id, unit.direction)
        rate = success_rate(history)
        priority = rate if history else NO_PROGRESS_PRIORITY
        return ScheduledUnit(
            unit=unit, priority=priority, success_rate=rate, attempt_count=len(history)
        )

    def order(
        self, units: Iterable[StudyUnit], stores: Mapping[str, HistoryStore]
    ) -> list[ScheduledUnit]:
        """
        Sort units by ascending priority.

        `stores` maps deck id to that deck's HistoryStore; each unit is
        scored against the store of its own deck.
        """
        scored = [self.score(unit, stores[unit.deck_id]) for unit in units]
        # Shuffle first; the stable sort then leaves ties in random order.
        self._rng.shuffle(scored)
        scored.sort(key=lambda item: item.priority)
        return scored

    def shuffle(self, scheduled: Iterable[ScheduledUnit]) -> list[ScheduledUnit]:
        """
        Uniformly shuffle an already ordered sequence.

        Used for the all-decks session, which trades priority order for
        variety across decks.
        """
        shuffled = list(scheduled)
        self._rng.shuffle(shuffled)
        return shuffled
