import json

import pytest
from fastapi.testclient import TestClient

from flashdeck.application.config import AppConfig
from flashdeck.consts import VERSION
from flashdeck.domain.models import Card
from flashdeck.server import app, get_config


@pytest.fixture
def client(data_dir, mock_home):
    config = AppConfig(data_dir=data_dir, mastery_threshold=5)
    app.dependency_overrides[get_config] = lambda: config
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_deck_lifecycle(client):
    response = client.post("/api/decks", json={"name": "Dutch Unit 1"})
    assert response.status_code == 201
    assert response.json() == {
        "id": "dutch-unit-1",
        "name": "Dutch Unit 1",
        "file": "decks/dutch-unit-1.json",
    }

    assert client.post("/api/decks", json={"name": "dutch unit 1"}).status_code == 400
    assert client.post("/api/decks", json={}).status_code == 400
    assert [d["id"] for d in client.get("/api/decks").json()] == ["dutch-unit-1"]

    response = client.delete("/api/decks/dutch-unit-1")
    assert response.json() == {"message": "Deck deleted successfully"}
    assert client.get("/api/decks").json() == []


def test_card_routes(client):
    client.post("/api/decks", json={"name": "dutch"})

    response = client.post(
        "/api/decks/dutch/cards",
        json={"question": "hond", "answer": "dog", "exampleTranslation": "The dog."},
    )
    assert response.status_code == 201
    assert response.json()["exampleTranslation"] == "The dog."
    assert len(response.json()["id"]) == 12

    assert client.post("/api/decks/dutch/cards", json={"question": "kat"}).status_code == 400

    response = client.put(
        "/api/decks/dutch/cards",
        json={
            "cards": [
                {"question": "a", "answer": "b"},
                {"id": "x", "question": "c", "answer": "d"},
            ]
        },
    )
    assert response.status_code == 200
    cards = client.get("/api/decks/dutch/cards").json()
    assert [c["id"] for c in cards][1] == "x"

    assert client.delete("/api/decks/dutch/cards/0").status_code == 200
    assert client.delete("/api/decks/dutch/cards/9").status_code == 404
    assert client.get("/api/decks/ghost/cards").status_code == 404


def test_user_routes(client):
    response = client.post("/api/users", json={"username": " Ann "})
    assert response.status_code == 201
    assert response.json()["username"] == "ann"

    response = client.post("/api/users", json={"username": "ann"})
    assert response.status_code == 200
    assert client.post("/api/users", json={"username": ""}).status_code == 400
    assert [u["displayName"] for u in client.get("/api/users").json()] == ["Ann"]


def test_progress_routes(client, data_dir):
    assert client.get("/api/progress/ann/dutch").json() == {}

    response = client.put(
        "/api/progress/ann/dutch",
        json={"progress": {"c1_forward": [False, True, True, True, True, True]}},
    )
    assert response.status_code == 200
    stored = json.loads((data_dir / "progress" / "ann" / "dutch.json").read_text())
    assert stored == {"c1_forward": [True] * 5}

    assert client.get("/api/progress/ann/dutch").json() == stored
    assert client.delete("/api/progress/ann/dutch").json() == {
        "message": "Progress reset successfully"
    }
    assert client.delete("/api/progress/ann/dutch").json() == {
        "message": "Progress already empty"
    }
    assert client.delete("/api/progress/ann").json() == {"message": "Progress already empty"}


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"progress": "nope"},
        {"progress": {"c1_forward": [1]}},
        {"progress": {"c1": [True]}},
    ],
)
def test_malformed_progress_is_rejected(client, data_dir, payload):
    response = client.put("/api/progress/ann/dutch", json=payload)
    assert response.status_code == 400
    assert not (data_dir / "progress" / "ann" / "dutch.json").exists()


def test_stats_route(client, write_deck, write_progress):
    write_deck("dutch", [Card(id="c1", question="a", answer="b")])
    write_progress("ann", "dutch", {"c1_forward": [True, True, False], "c1_reverse": [True]})

    data = client.get("/api/stats/ann/dutch").json()
    assert data["successRate"] == 75
    assert data["total"] == 10

    data = client.get("/api/stats/ann/all-decks").json()
    assert data["successRate"] == 75


def test_startup_configures_file_logging(data_dir, mock_home, tmp_path):
    config = AppConfig(data_dir=data_dir, log_dir=tmp_path / "server-logs")
    app.dependency_overrides[get_config] = lambda: config
    try:
        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
    finally:
        app.dependency_overrides.clear()

    log_file = tmp_path / "server-logs" / "flashdeck.log"
    assert "starting up" in log_file.read_text()
