"""
Error taxonomy for flashdeck.

Empty-state conditions (nothing to study, empty deck) are not errors and
are reported through SessionStatus instead.
"""


class FlashdeckError(Exception):
    """Base class for all flashdeck errors."""


class ProgressValidationError(FlashdeckError, ValueError):
    """A progress payload is malformed and was rejected before being applied."""


class PersistenceError(FlashdeckError):
    """Reading or writing the backing store failed."""


class InvalidInputError(FlashdeckError, ValueError):
    """A required field (deck name, question, answer, username) is missing."""


class DeckNotFoundError(FlashdeckError, KeyError):
    def __init__(self, deck_id: str):
        super().__init__(deck_id)
        self.deck_id = deck_id

    def __str__(self) -> str:
        return f"Deck not found: {self.deck_id}"


class DeckExistsError(FlashdeckError):
    def __init__(self, deck_id: str):
        super().__init__(f"Deck already exists: {deck_id}")
        self.deck_id = deck_id


class CardNotFoundError(FlashdeckError, IndexError):
    def __init__(self, deck_id: str, index: int):
        super().__init__(f"Card not found: {deck_id}[{index}]")
        self.deck_id = deck_id
        self.index = index


class SessionError(FlashdeckError):
    """The session cursor was driven in an invalid order."""


class OutcomeBeforeRevealError(SessionError):
    """An outcome was recorded before the response side was shown."""


class SessionCompleteError(SessionError):
    """The session has already reached its end."""
