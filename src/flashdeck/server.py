import logging
import time
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from flashdeck.application.config import AppConfig, resolve_config
from flashdeck.application.study_service import StudyService
from flashdeck.consts import VERSION
from flashdeck.domain.exceptions import (
    CardNotFoundError,
    DeckExistsError,
    DeckNotFoundError,
    FlashdeckError,
    InvalidInputError,
    PersistenceError,
    ProgressValidationError,
)
from flashdeck.domain.history import HistoryStore
from flashdeck.domain.identity import generate_card_id
from flashdeck.domain.models import Card
from flashdeck.infrastructure.json_repository import JsonFileRepository
from flashdeck.infrastructure.logging_config import setup_logging

# Setup logging
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
logger = logging.getLogger("flashdeck.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    config = app.dependency_overrides.get(get_config, get_config)()
    # The server logs requests at INFO unless configured louder.
    log_file = setup_logging(config.log_dir, max(config.verbose, 1))
    logger.info(f"Flashdeck Server v{VERSION} starting up (logging to {log_file})...")
    yield
    # Shutdown
    logger.info("Flashdeck Server shutting down...")


app = FastAPI(
    title="Flashdeck Server",
    description="Decks, cards, users and study progress stored as JSON files.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_config() -> AppConfig:
    return resolve_config()


def get_repository(config: Annotated[AppConfig, Depends(get_config)]) -> JsonFileRepository:
    return JsonFileRepository(config.data_dir)


def get_study_service(
    config: Annotated[AppConfig, Depends(get_config)],
    repo: Annotated[JsonFileRepository, Depends(get_repository)],
) -> StudyService:
    return StudyService(
        repo, threshold=config.mastery_threshold, save_retries=config.save_retries
    )


Repo = Annotated[JsonFileRepository, Depends(get_repository)]
Config = Annotated[AppConfig, Depends(get_config)]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR: list[tuple[type[FlashdeckError], int]] = [
    (ProgressValidationError, 400),
    (InvalidInputError, 400),
    (DeckExistsError, 400),
    (DeckNotFoundError, 404),
    (CardNotFoundError, 404),
    (PersistenceError, 500),
]


@app.exception_handler(FlashdeckError)
async def flashdeck_error_handler(request: Request, exc: FlashdeckError) -> JSONResponse:
    status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=status, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class DeckRequest(BaseModel):
    name: str = ""


class CardPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    question: str
    answer: str
    example: str | None = None
    example_translation: str | None = Field(default=None, alias="exampleTranslation")

    def to_card(self) -> Card:
        return Card(
            id=self.id or generate_card_id(self.question, self.answer),
            question=self.question,
            answer=self.answer,
            example=self.example,
            example_translation=self.example_translation,
        )


class NewCardRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str = ""
    answer: str = ""
    example: str | None = None
    example_translation: str | None = Field(default=None, alias="exampleTranslation")


class CardsRequest(BaseModel):
    cards: list[CardPayload]


class UserRequest(BaseModel):
    username: str = ""


class ProgressRequest(BaseModel):
    # Validated by the domain so malformed payloads get a 400 like other input errors.
    progress: Any = None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/api/decks")
async def list_decks(repo: Repo):
    return [deck.to_dict() for deck in await repo.list_decks()]


@app.post("/api/decks", status_code=201)
async def create_deck(req: DeckRequest, repo: Repo):
    deck = await repo.create_deck(req.name)
    return deck.to_dict()


@app.delete("/api/decks/{deck_id}")
async def delete_deck(deck_id: str, repo: Repo):
    await repo.delete_deck(deck_id)
    return {"message": "Deck deleted successfully"}


@app.get("/api/decks/{deck_id}/cards")
async def list_cards(deck_id: str, repo: Repo):
    return [card.to_dict() for card in await repo.load_cards(deck_id)]


@app.post("/api/decks/{deck_id}/cards", status_code=201)
async def add_card(deck_id: str, req: NewCardRequest, repo: Repo):
    card = await repo.add_card(
        deck_id,
        req.question,
        req.answer,
        example=req.example,
        example_translation=req.example_translation,
    )
    return card.to_dict()


@app.put("/api/decks/{deck_id}/cards")
async def replace_cards(deck_id: str, req: CardsRequest, repo: Repo):
    await repo.replace_cards(deck_id, [payload.to_card() for payload in req.cards])
    return {"message": "Cards updated successfully"}


@app.delete("/api/decks/{deck_id}/cards/{index}")
async def delete_card(deck_id: str, index: int, repo: Repo):
    await repo.delete_card(deck_id, index)
    return {"message": "Card deleted successfully"}


@app.get("/api/users")
async def list_users(repo: Repo):
    return [user.to_dict() for user in await repo.list_users()]


@app.post("/api/users")
async def select_user(req: UserRequest, repo: Repo):
    user, created = await repo.get_or_create_user(req.username)
    return JSONResponse(status_code=201 if created else 200, content=user.to_dict())


@app.get("/api/progress/{username}/{deck_id}")
async def get_progress(username: str, deck_id: str, repo: Repo):
    return await repo.load_progress(username, deck_id)


@app.put("/api/progress/{username}/{deck_id}")
async def save_progress(
    username: str, deck_id: str, req: ProgressRequest, repo: Repo, config: Config
):
    if req.progress is None:
        raise ProgressValidationError("Progress data is required")
    store = HistoryStore.from_record(req.progress, threshold=config.mastery_threshold)
    await repo.save_progress(username, deck_id, store.to_record())
    return {"message": "Progress saved successfully"}


@app.delete("/api/progress/{username}/{deck_id}")
async def reset_progress(
    username: str,
    deck_id: str,
    service: Annotated[StudyService, Depends(get_study_service)],
):
    if await service.reset_deck(username, deck_id):
        return {"message": "Progress reset successfully"}
    return {"message": "Progress already empty"}


@app.delete("/api/progress/{username}")
async def reset_all_progress(
    username: str, service: Annotated[StudyService, Depends(get_study_service)]
):
    if await service.reset_all(username):
        return {"message": "All progress reset successfully"}
    return {"message": "Progress already empty"}


@app.get("/api/stats/{username}/{deck_id}")
async def get_stats(
    username: str, deck_id: str, service: Annotated[StudyService, Depends(get_study_service)]
):
    stats = await service.deck_stats(username, deck_id)
    return stats.to_dict()
