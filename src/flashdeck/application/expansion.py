"""
Bidirectional expansion of cards into study units.

Each card yields a forward and a reverse unit; units whose history is
already mastered are left out.
"""

from collections.abc import Iterable

from flashdeck.domain.history import HistoryStore
from flashdeck.domain.mastery import is_mastered
from flashdeck.domain.models import Card, Direction, StudyUnit


def expand_cards(cards: Iterable[Card], store: HistoryStore, deck_id: str) -> list[StudyUnit]:
    """
    Return the active (not mastered) units for the given cards.

    Emission order is forward-then-reverse per card; the scheduler decides
    the study order.
    """
    units: list[StudyUnit] = []
    for card in cards:
        for direction in (Direction.FORWARD, Direction.REVERSE):
            if not is_mastered(store.get(card.id, direction), store.threshold):
                units.append(StudyUnit.from_card(card, direction, deck_id))
    return units
