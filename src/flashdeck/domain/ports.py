"""
Ports (interfaces) for persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on this abstraction, not on a concrete store.
"""

from abc import ABC, abstractmethod

from .history import ProgressRecord
from .models import Card, Deck, User


class FlashcardRepository(ABC):
    """
    Port for decks, cards, users, and per-user-per-deck progress.

    Implementations:
        - JsonFileRepository: JSON files under a data directory.
    """

    # ---------- Decks ----------

    @abstractmethod
    async def list_decks(self) -> list[Deck]:
        pass

    @abstractmethod
    async def get_deck(self, deck_id: str) -> Deck:
        """Raises DeckNotFoundError if the deck is not in the index."""
        pass

    @abstractmethod
    async def create_deck(self, name: str) -> Deck:
        pass

    @abstractmethod
    async def delete_deck(self, deck_id: str) -> None:
        pass

    # ---------- Cards ----------

    @abstractmethod
    async def load_cards(self, deck_id: str) -> list[Card]:
        pass

    @abstractmethod
    async def add_card(
        self,
        deck_id: str,
        question: str,
        answer: str,
        example: str | None = None,
        example_translation: str | None = None,
    ) -> Card:
        pass

    @abstractmethod
    async def replace_cards(self, deck_id: str, cards: list[Card]) -> None:
        pass

    @abstractmethod
    async def delete_card(self, deck_id: str, index: int) -> Card:
        pass

    # ---------- Users ----------

    @abstractmethod
    async def list_users(self) -> list[User]:
        pass

    @abstractmethod
    async def get_or_create_user(self, username: str) -> tuple[User, bool]:
        """
        Return (user, created). Usernames are matched trimmed and lower-cased.
        """
        pass

    # ---------- Progress ----------

    @abstractmethod
    async def load_progress(self, username: str, deck_id: str) -> ProgressRecord:
        """
        Return the stored Progress Record, or an empty one if none exists.

        Raises ProgressValidationError if the stored record is malformed.
        """
        pass

    @abstractmethod
    async def save_progress(self, username: str, deck_id: str, record: ProgressRecord) -> None:
        """Raises PersistenceError if the record could not be written."""
        pass

    @abstractmethod
    async def delete_progress(self, username: str, deck_id: str) -> bool:
        pass

    @abstractmethod
    async def delete_all_progress(self, username: str) -> int:
        pass
