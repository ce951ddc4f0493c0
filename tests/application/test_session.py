from unittest.mock import AsyncMock

import pytest

from flashdeck.application.scheduler import ScheduledUnit
from flashdeck.application.session import CursorMove, SessionCursor
from flashdeck.domain.exceptions import (
    OutcomeBeforeRevealError,
    PersistenceError,
    SessionCompleteError,
    SessionError,
)
from flashdeck.domain.history import HistoryStore
from flashdeck.domain.models import Direction, StudyUnit


def _scheduled(cards):
    return [
        ScheduledUnit(
            unit=StudyUnit.from_card(card, Direction.FORWARD, "d"),
            priority=-1.0,
            success_rate=0.0,
            attempt_count=0,
        )
        for card in cards
    ]


@pytest.fixture
def store():
    return HistoryStore()


@pytest.fixture
def persist():
    return AsyncMock()


@pytest.fixture
def cursor(sample_cards, store, persist):
    c = SessionCursor(_scheduled(sample_cards), {"d": store}, persist)
    assert c.start() is True
    return c


def test_start_on_empty_session_signals_failure(store, persist):
    cursor = SessionCursor([], {"d": store}, persist)
    assert cursor.start() is False
    assert cursor.current() is None


def test_navigation_before_start_is_rejected(sample_cards, store, persist):
    cursor = SessionCursor(_scheduled(sample_cards), {"d": store}, persist)
    with pytest.raises(SessionError):
        cursor.advance()


def test_advance_and_complete(cursor):
    assert cursor.advance() is CursorMove.MOVED
    assert cursor.advance() is CursorMove.MOVED
    assert cursor.position == 2
    assert cursor.advance() is CursorMove.COMPLETE
    assert cursor.completed is True
    assert cursor.position == 2


def test_retreat_at_start_is_ignored(cursor):
    assert cursor.retreat() is False
    assert cursor.position == 0
    cursor.advance()
    assert cursor.retreat() is True
    assert cursor.position == 0


def test_moving_conceals_the_response(cursor):
    cursor.reveal()
    cursor.advance()
    assert cursor.revealed is False


def test_conceal_twice_is_idempotent(cursor):
    cursor.reveal()
    assert cursor.conceal() is True
    assert cursor.conceal() is False
    assert cursor.revealed is False


def test_example_only_when_revealed_and_complete(cursor):
    cursor.advance()  # c2 has both example fields
    assert cursor.example() is None
    cursor.reveal()
    assert cursor.example().text == "De kat slaapt."
    cursor.advance()  # c3 has none
    cursor.reveal()
    assert cursor.example() is None


def test_flip_toggles(cursor):
    assert cursor.flip() is True
    assert cursor.flip() is False


@pytest.mark.asyncio
async def test_record_before_reveal_is_rejected(cursor, store, persist):
    with pytest.raises(OutcomeBeforeRevealError):
        await cursor.record_outcome(True)
    assert len(store) == 0
    persist.assert_not_awaited()


@pytest.mark.asyncio
async def test_record_appends_once_saves_and_advances(cursor, store, persist):
    cursor.reveal()
    result = await cursor.record_outcome(True)

    assert result.saved is True
    assert result.completed is False
    assert result.unit.card_id == "c1"
    assert store.get("c1", Direction.FORWARD) == (True,)
    assert cursor.position == 1
    assert cursor.revealed is False
    persist.assert_awaited_once_with("d")


@pytest.mark.asyncio
async def test_record_on_last_unit_signals_completion(cursor):
    cursor.advance()
    cursor.advance()
    cursor.reveal()
    result = await cursor.record_outcome(False)

    assert result.completed is True
    assert cursor.position == 2
    with pytest.raises(SessionCompleteError):
        await cursor.record_outcome(True)


@pytest.mark.asyncio
async def test_failed_save_keeps_outcome_and_reports_unsaved(cursor, store, persist):
    persist.side_effect = PersistenceError("disk full")
    cursor.reveal()
    result = await cursor.record_outcome(True)

    assert result.saved is False
    assert "disk full" in result.error
    assert store.get("c1", Direction.FORWARD) == (True,)
    assert cursor.pending_saves == {"d"}

    persist.side_effect = None
    assert await cursor.flush() is True
    assert cursor.pending_saves == frozenset()


@pytest.mark.asyncio
async def test_history_reflects_recorded_outcomes(cursor):
    cursor.reveal()
    await cursor.record_outcome(False)
    cursor.retreat()
    assert cursor.history() == (False,)
