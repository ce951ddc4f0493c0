import json
import random
from unittest.mock import AsyncMock

import pytest

from flashdeck.application.scheduler import SessionStatus
from flashdeck.application.study_service import StudyService
from flashdeck.domain.constants import ALL_DECKS_ID
from flashdeck.domain.exceptions import PersistenceError, ProgressValidationError
from flashdeck.domain.models import Card, Deck, Direction


@pytest.fixture
def service(repo):
    return StudyService(repo, threshold=5, rng=random.Random(42))


async def _study_forward_once(service, username, deck_id):
    plan = await service.open_session(username, deck_id)
    cursor = plan.cursor
    assert cursor.start()
    while cursor.current().direction is not Direction.FORWARD:
        cursor.advance()
    cursor.reveal()
    result = await cursor.record_outcome(True)
    assert result.saved is True


@pytest.mark.asyncio
async def test_forward_unit_retires_after_five_correct(service, write_deck, data_dir):
    write_deck("solo", [Card(id="c1", question="hond", answer="dog")])

    for _ in range(5):
        await _study_forward_once(service, "ann", "solo")

    plan = await service.open_session("ann", "solo")
    assert [(u.card_id, u.direction) for u in plan.cursor.ordered_units()] == [
        ("c1", Direction.REVERSE)
    ]
    saved = json.loads((data_dir / "progress" / "ann" / "solo.json").read_text())
    assert saved == {"c1_forward": [True] * 5}

    stats = await service.deck_stats("ann", "solo")
    assert stats.total_outcomes == 5
    assert stats.mastered_units == 1


@pytest.mark.asyncio
async def test_untried_units_lead_a_fresh_session(service, write_deck, write_progress):
    write_deck(
        "dutch",
        [Card(id="c1", question="a", answer="b"), Card(id="c2", question="c", answer="d")],
    )
    write_progress("ann", "dutch", {"c1_forward": [True, False]})

    plan = await service.open_session("ann", "dutch")
    units = plan.cursor.ordered_units()

    assert plan.status is SessionStatus.READY
    assert len(units) == 4
    assert (units[-1].card_id, units[-1].direction) == ("c1", Direction.FORWARD)


@pytest.mark.asyncio
async def test_empty_deck_and_all_mastered_are_distinguished(service, write_deck, write_progress):
    write_deck("empty", [])
    write_deck("done", [Card(id="c1", question="a", answer="b")])
    write_progress("ann", "done", {"c1_forward": [True] * 5, "c1_reverse": [True] * 5})

    empty = await service.open_session("ann", "empty")
    done = await service.open_session("ann", "done")

    assert empty.status is SessionStatus.EMPTY_DECK
    assert done.status is SessionStatus.ALL_MASTERED
    assert done.mastered_units == 2
    assert done.cursor.start() is False


@pytest.mark.asyncio
async def test_all_decks_session_saves_to_owning_deck(service, write_deck, data_dir):
    write_deck("a", [Card(id="a1", question="x", answer="y")])
    write_deck("b", [Card(id="b1", question="p", answer="q")])

    plan = await service.open_session("ann", ALL_DECKS_ID)
    cursor = plan.cursor
    assert plan.card_count == 2
    assert {u.deck_id for u in cursor.ordered_units()} == {"a", "b"}

    cursor.start()
    unit = cursor.current()
    cursor.reveal()
    await cursor.record_outcome(True)

    other = "b" if unit.deck_id == "a" else "a"
    owner_file = data_dir / "progress" / "ann" / f"{unit.deck_id}.json"
    key = f"{unit.card_id}_{unit.direction.value}"
    assert json.loads(owner_file.read_text()) == {key: [True]}
    assert not (data_dir / "progress" / "ann" / f"{other}.json").exists()


@pytest.mark.asyncio
async def test_all_decks_stats_sum_counts(service, write_deck, write_progress):
    write_deck("a", [Card(id="a1", question="x", answer="y")])
    write_deck("b", [Card(id="b1", question="p", answer="q")])
    write_progress("ann", "a", {"a1_forward": [True]})
    write_progress("ann", "b", {"b1_forward": [False, False, False]})

    stats = await service.deck_stats("ann", ALL_DECKS_ID)

    assert stats.success_rate == 25
    assert stats.total_possible_outcomes == 20


@pytest.mark.asyncio
async def test_malformed_stored_progress_is_rejected(service, write_deck, write_progress):
    write_deck("dutch", [Card(id="c1", question="a", answer="b")])
    write_progress("ann", "dutch", {"c1_forward": ["yes"]})

    with pytest.raises(ProgressValidationError):
        await service.open_session("ann", "dutch")


@pytest.mark.asyncio
async def test_resets(service, write_deck, write_progress):
    write_deck("a", [])
    write_progress("ann", "a", {"x_forward": [True]})
    write_progress("ann", "b", {"y_forward": [True]})

    assert await service.reset_deck("ann", "a") is True
    assert await service.reset_deck("ann", "a") is False
    assert await service.reset_all("ann") == 1


def _mock_repo():
    repo = AsyncMock()
    repo.list_decks.return_value = [Deck(id="d", name="D", file="decks/d.json")]
    repo.load_cards.return_value = [Card(id="c1", question="a", answer="b")]
    repo.load_progress.return_value = {}
    return repo


@pytest.mark.asyncio
async def test_save_is_retried_before_giving_up():
    repo = _mock_repo()
    repo.save_progress.side_effect = [PersistenceError("busy"), None]
    service = StudyService(repo, save_retries=2)

    plan = await service.open_session("ann", "d")
    plan.cursor.start()
    plan.cursor.reveal()
    result = await plan.cursor.record_outcome(True)

    assert result.saved is True
    assert repo.save_progress.await_count == 2


@pytest.mark.asyncio
async def test_exhausted_retries_report_unsaved():
    repo = _mock_repo()
    repo.save_progress.side_effect = PersistenceError("read-only")
    service = StudyService(repo, save_retries=1)

    plan = await service.open_session("ann", "d")
    plan.cursor.start()
    plan.cursor.reveal()
    result = await plan.cursor.record_outcome(False)

    assert result.saved is False
    assert repo.save_progress.await_count == 2
    assert plan.cursor.pending_saves == {"d"}
    # The outcome is still in memory and goes out with the next successful save.
    repo.save_progress.side_effect = None
    assert await plan.cursor.flush() is True
    key = f"c1_{result.unit.direction.value}"
    repo.save_progress.assert_awaited_with("ann", "d", {key: [False]})


@pytest.mark.asyncio
async def test_last_failed_attempt_is_the_reported_error():
    repo = _mock_repo()
    repo.save_progress.side_effect = [PersistenceError("disk busy"), PersistenceError("disk full")]
    service = StudyService(repo, save_retries=1)

    plan = await service.open_session("ann", "d")
    plan.cursor.start()
    plan.cursor.reveal()
    result = await plan.cursor.record_outcome(True)

    assert result.saved is False
    assert result.error == "disk full"
    assert repo.save_progress.await_count == 2


@pytest.mark.asyncio
async def test_zero_retries_means_a_single_attempt():
    repo = _mock_repo()
    repo.save_progress.side_effect = PersistenceError("read-only")
    service = StudyService(repo, save_retries=0)

    plan = await service.open_session("ann", "d")
    plan.cursor.start()
    plan.cursor.reveal()
    result = await plan.cursor.record_outcome(True)

    assert result.saved is False
    assert result.error == "read-only"
    assert repo.save_progress.await_count == 1
