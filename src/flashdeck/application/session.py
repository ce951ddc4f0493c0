"""
Session cursor: a linear walk over scheduled study units.

The cursor tracks which unit is shown and whether its response side is
revealed. Recording an outcome appends to the unit's history, waits for
the persistence request to finish, then advances.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from flashdeck.domain.exceptions import (
    OutcomeBeforeRevealError,
    PersistenceError,
    SessionCompleteError,
    SessionError,
)
from flashdeck.domain.history import HistoryStore
from flashdeck.domain.models import Example, StudyUnit

from .scheduler import ScheduledUnit

logger = logging.getLogger(__name__)

PersistFn = Callable[[str], Awaitable[None]]


class CursorMove(str, Enum):
    MOVED = "moved"
    COMPLETE = "complete"


@dataclass(frozen=True)
class OutcomeResult:
    """
    What happened when an outcome was recorded.

    saved is False when every save attempt failed; the outcome is still
    kept in memory and the deck stays in SessionCursor.pending_saves.
    """

    unit: StudyUnit
    knew_it: bool
    saved: bool
    completed: bool
    error: str | None = None


class SessionCursor:
    def __init__(
        self,
        units: Sequence[ScheduledUnit],
        stores: Mapping[str, HistoryStore],
        persist: PersistFn,
    ):
        """
        Args:
            units: Units in study order.
            stores: Deck id -> HistoryStore for every deck a unit belongs to.
            persist: Async callable saving one deck's store; raises
                PersistenceError on failure.
        """
        self._units = list(units)
        self._stores = stores
        self._persist = persist
        self._position = 0
        self._revealed = False
        self._started = False
        self._completed = False
        self._pending: set[str] = set()

    # ---------- State ----------

    @property
    def position(self) -> int:
        return self._position

    @property
    def revealed(self) -> bool:
        return self._revealed

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def pending_saves(self) -> frozenset[str]:
        """Deck ids holding outcomes that have not been saved yet."""
        return frozenset(self._pending)

    def __len__(self) -> int:
        return len(self._units)

    def ordered_units(self) -> list[StudyUnit]:
        return [item.unit for item in self._units]

    def scheduled_units(self) -> list[ScheduledUnit]:
        return list(self._units)

    def current(self) -> StudyUnit | None:
        if not self._started or not self._units:
            return None
        return self._units[self._position].unit

    def history(self) -> tuple[bool, ...]:
        """Live history of the current unit."""
        unit = self.current()
        if unit is None:
            return ()
        return self._stores[unit.deck_id].get(unit.card_id, unit.direction)

    # ---------- Navigation ----------

    def start(self) -> bool:
        """Reset to the first unit. Returns False when there is nothing to study."""
        if not self._units:
            logger.debug("Session has no units to study")
            return False
        self._position = 0
        self._revealed = False
        self._started = True
        self._completed = False
        return True

    def reveal(self) -> bool:
        """Show the response side. Returns whether the state changed."""
        if self.current() is None or self._revealed:
            return False
        self._revealed = True
        return True

    def conceal(self) -> bool:
        """Hide the response side. Returns whether the state changed."""
        if not self._revealed:
            return False
        self._revealed = False
        return True

    def flip(self) -> bool:
        """Toggle the response side; returns the new revealed state."""
        if self._revealed:
            self.conceal()
        else:
            self.reveal()
        return self._revealed

    def example(self) -> Example | None:
        """Example to display: only while revealed and when both fields are set."""
        unit = self.current()
        if unit is None or not self._revealed:
            return None
        return unit.example_pair

    def advance(self) -> CursorMove:
        self._require_started()
        if self._position < len(self._units) - 1:
            self._position += 1
            self._revealed = False
            return CursorMove.MOVED
        self._completed = True
        return CursorMove.COMPLETE

    def retreat(self) -> bool:
        """Step back one unit; ignored at the first unit."""
        self._require_started()
        if self._position == 0:
            return False
        self._position -= 1
        self._revealed = False
        self._completed = False
        return True

    # ---------- Grading ----------

    async def record_outcome(self, knew_it: bool) -> OutcomeResult:
        """
        Append the outcome for the current unit, persist it, then advance.

        Raises:
            OutcomeBeforeRevealError: the response was not revealed yet.
            SessionCompleteError: the last unit was already graded.
        """
        if self._completed:
            raise SessionCompleteError("Session is already complete")
        self._require_started()
        if not self._revealed:
            raise OutcomeBeforeRevealError("Reveal the response before recording an outcome")

        unit = self._units[self._position].unit
        history = self._stores[unit.deck_id].append(unit.card_id, unit.direction, knew_it)
        logger.info(
            f"Recorded {'knew' if knew_it else 'missed'} for {unit.card_id} "
            f"({unit.direction.value}, deck {unit.deck_id}): {len(history)} in history"
        )

        saved, error = await self._save(unit.deck_id)
        move = self.advance()
        return OutcomeResult(
            unit=unit,
            knew_it=knew_it,
            saved=saved,
            completed=move is CursorMove.COMPLETE,
            error=error,
        )

    async def flush(self) -> bool:
        """Retry saving every deck with unsaved outcomes. Returns True when none remain."""
        for deck_id in sorted(self._pending):
            await self._save(deck_id)
        return not self._pending

    async def _save(self, deck_id: str) -> tuple[bool, str | None]:
        try:
            await self._persist(deck_id)
        except PersistenceError as e:
            self._pending.add(deck_id)
            logger.error(f"Progress for deck {deck_id} is unsaved: {e}")
            return False, str(e)
        self._pending.discard(deck_id)
        return True, None

    def _require_started(self) -> None:
        if not self._started:
            raise SessionError("Session has not been started")
