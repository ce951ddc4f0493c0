"""
Study Service: Application layer orchestrator.

Loads cards and progress through the repository, expands and schedules
study units, and hands out a SessionCursor whose outcomes are saved back
to the owning deck.
"""

import logging
import random
from dataclasses import dataclass

from flashdeck.domain.constants import (
    ALL_DECKS_ID,
    DEFAULT_MASTERY_THRESHOLD,
    DEFAULT_SAVE_RETRIES,
    DIRECTION_COUNT,
)
from flashdeck.domain.exceptions import PersistenceError
from flashdeck.domain.history import HistoryStore
from flashdeck.domain.models import Card, StudyUnit
from flashdeck.domain.ports import FlashcardRepository

from .expansion import expand_cards
from .scheduler import PriorityScheduler, ScheduledUnit, SessionStatus, classify_session
from .session import SessionCursor
from .stats import DeckStats, combine_stats, deck_stats

logger = logging.getLogger(__name__)


@dataclass
class SessionPlan:
    """A ready-to-start session plus what the caller needs for messaging."""

    deck_id: str
    status: SessionStatus
    cursor: SessionCursor
    card_count: int

    @property
    def active_units(self) -> int:
        return len(self.cursor)

    @property
    def mastered_units(self) -> int:
        return max(0, self.card_count * DIRECTION_COUNT - self.active_units)


class StudyService:
    """
    Application service for study sessions, statistics and resets.

    Depends on the FlashcardRepository abstraction, not a concrete store.
    """

    def __init__(
        self,
        repository: FlashcardRepository,
        threshold: int = DEFAULT_MASTERY_THRESHOLD,
        rng: random.Random | None = None,
        save_retries: int = DEFAULT_SAVE_RETRIES,
    ):
        """
        Args:
            repository: The persistence port.
            threshold: Mastery threshold M.
            rng: Random source for tie-breaking and the all-decks shuffle.
            save_retries: Extra save attempts after a failed save.
        """
        self._repo = repository
        self.threshold = threshold
        self._scheduler = PriorityScheduler(rng)
        self._save_retries = save_retries

    # ---------- Sessions ----------

    async def open_session(self, username: str, deck_id: str) -> SessionPlan:
        """
        Build a session for one deck, or for every deck when deck_id is
        ALL_DECKS_ID.
        """
        if deck_id == ALL_DECKS_ID:
            return await self._open_all_decks(username)

        cards, store = await self._load_deck(username, deck_id)
        stores = {deck_id: store}
        ordered = self._scheduler.order(expand_cards(cards, store, deck_id), stores)
        return self._plan(username, deck_id, ordered, stores, len(cards))

    async def _open_all_decks(self, username: str) -> SessionPlan:
        stores: dict[str, HistoryStore] = {}
        units: list[StudyUnit] = []
        card_count = 0
        for deck in await self._repo.list_decks():
            if deck.virtual:
                continue
            cards, store = await self._load_deck(username, deck.id)
            stores[deck.id] = store
            units.extend(expand_cards(cards, store, deck.id))
            card_count += len(cards)

        # Priority order is deliberately discarded here for variety across decks.
        ordered = self._scheduler.shuffle(self._scheduler.order(units, stores))
        return self._plan(username, ALL_DECKS_ID, ordered, stores, card_count)

    def _plan(
        self,
        username: str,
        deck_id: str,
        ordered: list[ScheduledUnit],
        stores: dict[str, HistoryStore],
        card_count: int,
    ) -> SessionPlan:
        async def persist(target_deck_id: str) -> None:
            await self._save_with_retry(username, target_deck_id, stores[target_deck_id])

        status = classify_session(card_count, len(ordered))
        logger.debug(
            f"Session for {username}/{deck_id}: {len(ordered)} active units "
            f"from {card_count} cards ({status.value})"
        )
        return SessionPlan(
            deck_id=deck_id,
            status=status,
            cursor=SessionCursor(ordered, stores, persist),
            card_count=card_count,
        )

    async def _load_deck(self, username: str, deck_id: str) -> tuple[list[Card], HistoryStore]:
        cards = await self._repo.load_cards(deck_id)
        raw = await self._repo.load_progress(username, deck_id)
        return cards, HistoryStore.from_record(raw, threshold=self.threshold)

    async def _save_with_retry(self, username: str, deck_id: str, store: HistoryStore) -> None:
        record = store.to_record()
        attempts = self._save_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                await self._repo.save_progress(username, deck_id, record)
            except PersistenceError as e:
                logger.warning(
                    f"Saving progress for {username}/{deck_id} failed "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
                if attempt == attempts:
                    raise
                continue
            logger.debug(f"Saved progress for {username}/{deck_id} ({len(record)} histories)")
            return

    # ---------- Stats ----------

    async def deck_stats(self, username: str, deck_id: str) -> DeckStats:
        if deck_id == ALL_DECKS_ID:
            return await self.all_decks_stats(username)
        cards, store = await self._load_deck(username, deck_id)
        return deck_stats(len(cards), store.histories(), self.threshold)

    async def all_decks_stats(self, username: str) -> DeckStats:
        per_deck = []
        for deck in await self._repo.list_decks():
            if deck.virtual:
                continue
            per_deck.append(await self.deck_stats(username, deck.id))
        return combine_stats(per_deck, threshold=self.threshold)

    # ---------- Resets ----------

    async def reset_deck(self, username: str, deck_id: str) -> bool:
        deleted = await self._repo.delete_progress(username, deck_id)
        logger.info(f"Reset progress for {username}/{deck_id} (existed: {deleted})")
        return deleted

    async def reset_all(self, username: str) -> int:
        count = await self._repo.delete_all_progress(username)
        logger.info(f"Reset all progress for {username} ({count} decks)")
        return count
