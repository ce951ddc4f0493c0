"""
History Store: per (card, direction) outcome sequences for one user and deck.

A Progress Record is the persisted form: a mapping of
"<cardId>_<direction>" to a list of booleans, oldest first.
"""

from collections.abc import Iterator, Mapping
from typing import Any

from .constants import DEFAULT_MASTERY_THRESHOLD
from .exceptions import ProgressValidationError
from .models import Direction

ProgressRecord = dict[str, list[bool]]

_DIRECTIONS = {d.value: d for d in Direction}


def progress_key(card_id: str, direction: Direction) -> str:
    return f"{card_id}_{Direction(direction).value}"


def parse_progress_key(key: str) -> tuple[str, Direction]:
    """
    Split a progress key into (card_id, direction).

    Splits on the last underscore so card ids may themselves contain one.
    """
    card_id, sep, suffix = key.rpartition("_")
    if not sep or not card_id or suffix not in _DIRECTIONS:
        raise ProgressValidationError(f"Invalid progress key: {key!r}")
    return card_id, _DIRECTIONS[suffix]


def validate_progress_record(raw: Any) -> ProgressRecord:
    """
    Check that a decoded JSON payload is a well-formed Progress Record.

    Returns a fresh copy. Raises ProgressValidationError on the first
    problem found; nothing is applied anywhere on failure.
    """
    if not isinstance(raw, Mapping):
        raise ProgressValidationError(
            f"Progress record must be an object, got {type(raw).__name__}"
        )

    record: ProgressRecord = {}
    for key, history in raw.items():
        if not isinstance(key, str):
            raise ProgressValidationError(f"Progress key must be a string: {key!r}")
        parse_progress_key(key)
        if not isinstance(history, list):
            raise ProgressValidationError(f"History for {key!r} must be a list")
        # bool is checked by type so 0/1 are rejected too.
        if any(type(outcome) is not bool for outcome in history):
            raise ProgressValidationError(f"History for {key!r} must contain only booleans")
        record[key] = list(history)
    return record


class HistoryStore:
    """
    In-memory outcome histories for one (user, deck) pair.

    Each history keeps at most `threshold` entries; older ones are dropped
    when a new outcome is appended. Callers are responsible for persisting
    the store (via to_record) after each append.
    """

    def __init__(
        self,
        record: Mapping[str, list[bool]] | None = None,
        threshold: int = DEFAULT_MASTERY_THRESHOLD,
    ):
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self._histories: ProgressRecord = {}
        for key, history in (record or {}).items():
            self._histories[key] = list(history)[-threshold:]

    @classmethod
    def from_record(cls, raw: Any, threshold: int = DEFAULT_MASTERY_THRESHOLD) -> "HistoryStore":
        """Build a store from an unvalidated payload (e.g. decoded JSON)."""
        return cls(validate_progress_record(raw), threshold=threshold)

    def get(self, card_id: str, direction: Direction) -> tuple[bool, ...]:
        """Return the history for a unit, empty if none was recorded."""
        return tuple(self._histories.get(progress_key(card_id, direction), ()))

    def append(self, card_id: str, direction: Direction, outcome: bool) -> tuple[bool, ...]:
        """Record one outcome and return the updated (truncated) history."""
        if type(outcome) is not bool:
            raise ProgressValidationError(f"Outcome must be a boolean, got {outcome!r}")
        history = self._histories.setdefault(progress_key(card_id, direction), [])
        history.append(outcome)
        if len(history) > self.threshold:
            del history[: len(history) - self.threshold]
        return tuple(history)

    def histories(self) -> Iterator[tuple[bool, ...]]:
        for history in self._histories.values():
            yield tuple(history)

    def to_record(self) -> ProgressRecord:
        """JSON-ready copy of every stored history."""
        return {key: list(history) for key, history in self._histories.items()}

    def __len__(self) -> int:
        return len(self._histories)

    def __contains__(self, key: object) -> bool:
        return key in self._histories
