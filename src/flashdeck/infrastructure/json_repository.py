"""
JSON File Repository: Infrastructure adapter for on-disk storage.

Implements FlashcardRepository with this layout under the data directory:

    decks/index.json                  deck index
    decks/<deckId>.json               cards of one deck
    progress/users.json               known users
    progress/<username>/<deckId>.json Progress Record
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from flashdeck.domain.constants import JSON_INDENT
from flashdeck.domain.exceptions import (
    CardNotFoundError,
    DeckExistsError,
    DeckNotFoundError,
    InvalidInputError,
    PersistenceError,
)
from flashdeck.domain.history import ProgressRecord, validate_progress_record
from flashdeck.domain.identity import generate_card_id
from flashdeck.domain.models import Card, Deck, User
from flashdeck.domain.ports import FlashcardRepository

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify_deck_name(name: str) -> str:
    return _SLUG_RE.sub("-", name.strip().lower()).strip("-")


def normalize_username(username: str) -> str:
    return username.strip().lower()


class JsonFileRepository(FlashcardRepository):
    """
    Stores decks, cards, users and progress as pretty-printed JSON files.

    File access is synchronous inside the async methods; every call runs
    to completion before returning.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.decks_dir = self.data_dir / "decks"
        self.progress_dir = self.data_dir / "progress"
        self.index_file = self.decks_dir / "index.json"
        self.users_file = self.progress_dir / "users.json"
        self.logger = logging.getLogger(__name__)
        self.ensure_layout()

    def ensure_layout(self) -> None:
        """Create the directories and seed empty index files if missing."""
        try:
            self.decks_dir.mkdir(parents=True, exist_ok=True)
            self.progress_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not create data directory {self.data_dir}: {e}") from e
        if not self.index_file.exists():
            self._write_json(self.index_file, [])
        if not self.users_file.exists():
            self._write_json(self.users_file, [])

    # ---------- Decks ----------

    async def list_decks(self) -> list[Deck]:
        return [self._deck_from_dict(d) for d in self._read_json(self.index_file, [])]

    async def get_deck(self, deck_id: str) -> Deck:
        for deck in await self.list_decks():
            if deck.id == deck_id:
                return deck
        raise DeckNotFoundError(deck_id)

    async def create_deck(self, name: str) -> Deck:
        if not name or not name.strip():
            raise InvalidInputError("Deck name is required")
        deck_id = slugify_deck_name(name)
        if not deck_id:
            raise InvalidInputError(f"Deck name has no usable characters: {name!r}")

        decks = self._read_json(self.index_file, [])
        if any(d.get("id") == deck_id for d in decks):
            raise DeckExistsError(deck_id)

        deck = Deck(id=deck_id, name=name.strip(), file=f"decks/{deck_id}.json")
        decks.append(deck.to_dict())
        self._write_json(self.index_file, decks)
        self._write_json(self._deck_file(deck_id), [])
        self.logger.info(f"Created deck {deck_id}")
        return deck

    async def delete_deck(self, deck_id: str) -> None:
        decks = self._read_json(self.index_file, [])
        remaining = [d for d in decks if d.get("id") != deck_id]
        self._write_json(self.index_file, remaining)
        try:
            self._deck_file(deck_id).unlink()
        except FileNotFoundError:
            self.logger.debug(f"Deck file for {deck_id} not found, continuing")
        except OSError as e:
            raise PersistenceError(f"Could not delete deck file for {deck_id}: {e}") from e
        self.logger.info(f"Deleted deck {deck_id}")

    # ---------- Cards ----------

    async def load_cards(self, deck_id: str) -> list[Card]:
        path = self._deck_file(deck_id)
        if not path.exists():
            raise DeckNotFoundError(deck_id)
        raw = self._read_json(path, [])
        if not isinstance(raw, list):
            raise PersistenceError(f"Deck file {path} must contain a list of cards")
        cards = [self._card_from_dict(item, path) for item in raw]
        self.logger.debug(f"Loaded {len(cards)} cards from {deck_id}")
        return cards

    async def add_card(
        self,
        deck_id: str,
        question: str,
        answer: str,
        example: str | None = None,
        example_translation: str | None = None,
    ) -> Card:
        question = (question or "").strip()
        answer = (answer or "").strip()
        if not question or not answer:
            raise InvalidInputError("Question and answer are required")

        cards = await self.load_cards(deck_id)
        card = Card(
            id=generate_card_id(question, answer),
            question=question,
            answer=answer,
            example=example or None,
            example_translation=example_translation or None,
        )
        cards.append(card)
        await self.replace_cards(deck_id, cards)
        return card

    async def replace_cards(self, deck_id: str, cards: list[Card]) -> None:
        path = self._deck_file(deck_id)
        if not path.exists():
            raise DeckNotFoundError(deck_id)
        self._write_json(path, [card.to_dict() for card in cards])

    async def delete_card(self, deck_id: str, index: int) -> Card:
        cards = await self.load_cards(deck_id)
        if not 0 <= index < len(cards):
            raise CardNotFoundError(deck_id, index)
        removed = cards.pop(index)
        await self.replace_cards(deck_id, cards)
        return removed

    # ---------- Users ----------

    async def list_users(self) -> list[User]:
        return [
            User(
                username=u["username"],
                display_name=u.get("displayName", u["username"]),
                created_at=u.get("createdAt", ""),
            )
            for u in self._read_json(self.users_file, [])
        ]

    async def get_or_create_user(self, username: str) -> tuple[User, bool]:
        clean = normalize_username(username or "")
        if not clean:
            raise InvalidInputError("Username is required")
        self._safe_segment(clean)

        for user in await self.list_users():
            if user.username == clean:
                return user, False

        user = User(
            username=clean,
            display_name=username.strip(),
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        users = self._read_json(self.users_file, [])
        users.append(user.to_dict())
        self._write_json(self.users_file, users)
        self._mkdir(self.progress_dir / clean)
        self.logger.info(f"Created user {clean}")
        return user, True

    # ---------- Progress ----------

    async def load_progress(self, username: str, deck_id: str) -> ProgressRecord:
        path = self._progress_file(username, deck_id)
        if not path.exists():
            return {}
        return validate_progress_record(self._read_json(path, {}))

    async def save_progress(self, username: str, deck_id: str, record: ProgressRecord) -> None:
        validated = validate_progress_record(record)
        path = self._progress_file(username, deck_id)
        self._mkdir(path.parent)
        self._write_json(path, validated)

    async def delete_progress(self, username: str, deck_id: str) -> bool:
        path = self._progress_file(username, deck_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(f"Could not delete {path}: {e}") from e
        return True

    async def delete_all_progress(self, username: str) -> int:
        user_dir = self.progress_dir / self._safe_segment(normalize_username(username))
        if not user_dir.is_dir():
            return 0
        deleted = 0
        for path in sorted(user_dir.glob("*.json")):
            try:
                path.unlink()
            except OSError as e:
                raise PersistenceError(f"Could not delete {path}: {e}") from e
            deleted += 1
        return deleted

    # ---------- Helpers ----------

    def _deck_file(self, deck_id: str) -> Path:
        return self.decks_dir / f"{self._safe_segment(deck_id)}.json"

    def _progress_file(self, username: str, deck_id: str) -> Path:
        user = self._safe_segment(normalize_username(username))
        return self.progress_dir / user / f"{self._safe_segment(deck_id)}.json"

    @staticmethod
    def _safe_segment(value: str) -> str:
        if not value or value in (".", "..") or "/" in value or "\\" in value:
            raise InvalidInputError(f"Invalid identifier: {value!r}")
        return value

    @staticmethod
    def _deck_from_dict(data: dict[str, Any]) -> Deck:
        return Deck(
            id=data["id"],
            name=data.get("name", data["id"]),
            file=data.get("file", f"decks/{data['id']}.json"),
            virtual=bool(data.get("virtual", False)),
        )

    @staticmethod
    def _card_from_dict(data: Any, source: Path) -> Card:
        if (
            not isinstance(data, dict)
            or not isinstance(data.get("question"), str)
            or not isinstance(data.get("answer"), str)
        ):
            raise PersistenceError(f"Malformed card in {source}: {data!r}")
        return Card(
            id=data.get("id") or generate_card_id(data["question"], data["answer"]),
            question=data["question"],
            answer=data["answer"],
            example=data.get("example"),
            example_translation=data.get("exampleTranslation"),
        )

    def _mkdir(self, path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not create {path}: {e}") from e

    def _read_json(self, path: Path, default: Any) -> Any:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return default
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e

    def _write_json(self, path: Path, data: Any) -> None:
        try:
            path.write_text(
                json.dumps(data, indent=JSON_INDENT, ensure_ascii=False), encoding="utf-8"
            )
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}") from e
