# Domain Package
from .history import HistoryStore
from .identity import generate_card_id
from .mastery import is_mastered, success_rate
from .models import Card, Deck, Direction, Example, StudyUnit, User
from .ports import FlashcardRepository

__all__ = [
    "Card",
    "Deck",
    "Direction",
    "Example",
    "FlashcardRepository",
    "HistoryStore",
    "StudyUnit",
    "User",
    "generate_card_id",
    "is_mastered",
    "success_rate",
]
