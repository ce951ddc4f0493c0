"""
Domain models for decks, cards, and study units.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Direction(str, Enum):
    """Which side of a card is shown as the prompt."""

    FORWARD = "forward"  # question -> answer
    REVERSE = "reverse"  # answer -> question


@dataclass(frozen=True)
class Card:
    """
    One stored flashcard.

    Attributes:
        id: Content-derived identifier (see application.id_service).
        question: Front text.
        answer: Back text.
        example: Optional example sentence.
        example_translation: Optional translation of the example.
    """

    id: str
    question: str
    answer: str
    example: str | None = None
    example_translation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the on-disk field names."""
        data: dict[str, Any] = {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
        }
        if self.example is not None:
            data["example"] = self.example
        if self.example_translation is not None:
            data["exampleTranslation"] = self.example_translation
        return data


@dataclass(frozen=True)
class Example:
    """Example sentence shown alongside a revealed response."""

    text: str
    translation: str


@dataclass(frozen=True)
class StudyUnit:
    """
    One directional presentation of a card.

    For a reverse unit, prompt and response are the card's answer and
    question respectively. deck_id is always set to the deck the card
    (and therefore its history) belongs to.
    """

    card_id: str
    direction: Direction
    prompt: str
    response: str
    deck_id: str
    example: str | None = None
    example_translation: str | None = None

    @classmethod
    def from_card(cls, card: Card, direction: Direction, deck_id: str) -> "StudyUnit":
        if direction is Direction.FORWARD:
            prompt, response = card.question, card.answer
        else:
            prompt, response = card.answer, card.question
        return cls(
            card_id=card.id,
            direction=direction,
            prompt=prompt,
            response=response,
            deck_id=deck_id,
            example=card.example,
            example_translation=card.example_translation,
        )

    @property
    def example_pair(self) -> Example | None:
        """The example, only when both text and translation are present."""
        if self.example and self.example_translation:
            return Example(text=self.example, translation=self.example_translation)
        return None


@dataclass(frozen=True)
class Deck:
    """Entry of the deck index."""

    id: str
    name: str
    file: str
    virtual: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "name": self.name, "file": self.file}
        if self.virtual:
            data["virtual"] = True
        return data


@dataclass(frozen=True)
class User:
    """A learner whose progress is tracked per deck."""

    username: str
    display_name: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "displayName": self.display_name,
            "createdAt": self.created_at,
        }
