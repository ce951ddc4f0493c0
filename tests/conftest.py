import json
import logging

import pytest

from flashdeck.domain.models import Card
from flashdeck.infrastructure.json_repository import JsonFileRepository


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Isolate config lookups from the real home directory
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "data"
    d.mkdir()
    return d


@pytest.fixture
def repo(data_dir):
    return JsonFileRepository(data_dir)


@pytest.fixture
def sample_cards():
    return [
        Card(id="c1", question="hond", answer="dog"),
        Card(
            id="c2",
            question="kat",
            answer="cat",
            example="De kat slaapt.",
            example_translation="The cat sleeps.",
        ),
        Card(id="c3", question="huis", answer="house"),
    ]


@pytest.fixture
def write_deck(data_dir):
    """Write a deck straight to disk and register it in the index."""

    def _write(deck_id, cards, name=None):
        decks_dir = data_dir / "decks"
        decks_dir.mkdir(parents=True, exist_ok=True)
        index_file = decks_dir / "index.json"
        index = json.loads(index_file.read_text()) if index_file.exists() else []
        index.append({"id": deck_id, "name": name or deck_id, "file": f"decks/{deck_id}.json"})
        index_file.write_text(json.dumps(index))
        (decks_dir / f"{deck_id}.json").write_text(
            json.dumps([c.to_dict() if isinstance(c, Card) else c for c in cards])
        )

    return _write


@pytest.fixture
def write_progress(data_dir):
    def _write(username, deck_id, record):
        user_dir = data_dir / "progress" / username
        user_dir.mkdir(parents=True, exist_ok=True)
        (user_dir / f"{deck_id}.json").write_text(json.dumps(record))

    return _write


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo root logger changes made by the CLI callback or server startup."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if getattr(handler, "flashdeck_file_handler", False):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
