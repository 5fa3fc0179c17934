import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, ValidationError

from cardwise.application.config import AppConfig, StudySettings, resolve_config
from cardwise.application.factory import get_stats_service, get_study_service
from cardwise.consts import VERSION
from cardwise.domain.errors import SchedulerDisabledError
from cardwise.domain.models import CardSet, Rating, ScheduledCard, ScheduleState
from cardwise.infrastructure.logging_config import setup_logging
from cardwise.infrastructure.serialization import card_to_dict, state_to_dict

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cardwise.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging(resolve_config())
    logger.info(f"cardwise server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("cardwise server shutting down...")


app = FastAPI(
    title="cardwise",
    description="Spaced-repetition flashcard API.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


def get_config() -> AppConfig:
    return resolve_config()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, LookupError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, SchedulerDisabledError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Request failed: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class SetSummary(BaseModel):
    file_name: str
    name: str
    description: str | None = None
    card_count: int


class QueueResponse(BaseModel):
    new_cards: list[dict[str, Any]]
    review_cards: list[dict[str, Any]]
    total_due: int


class ReviewRequest(BaseModel):
    rating: Rating


class CardRequest(BaseModel):
    front: str
    back: str


class CardUpdateRequest(BaseModel):
    front: str | None = None
    back: str | None = None


def _set_dict(card_set: CardSet) -> dict[str, Any]:
    return {
        "file_name": card_set.file_name,
        "name": card_set.name,
        "description": card_set.description,
        "cards": [card_to_dict(c) for c in card_set.cards],
    }


def _scheduled_dict(item: ScheduledCard) -> dict[str, Any]:
    card, state = item
    return {**card_to_dict(card), "fsrs": state_to_dict(state) if state else None}


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.get("/sets", response_model=list[SetSummary])
async def list_sets(config: AppConfig = Depends(get_config)):
    try:
        sets = await get_study_service(config).list_sets()
    except Exception as e:
        raise _http_error(e) from e
    return [
        SetSummary(
            file_name=s.file_name,
            name=s.name,
            description=s.description,
            card_count=len(s.cards),
        )
        for s in sets
    ]


@app.get("/sets/{set_name}")
async def get_set(set_name: str, config: AppConfig = Depends(get_config)):
    try:
        card_set = await get_study_service(config).get_set(set_name)
    except Exception as e:
        raise _http_error(e) from e
    return _set_dict(card_set)


@app.get("/sets/{set_name}/queue", response_model=QueueResponse)
async def get_queue(set_name: str, config: AppConfig = Depends(get_config)):
    """Cards to study now, honoring the daily limits."""
    try:
        queue = await get_study_service(config).get_queue(set_name, _now())
    except Exception as e:
        raise _http_error(e) from e
    return QueueResponse(
        new_cards=[_scheduled_dict(i) for i in queue.new_cards],
        review_cards=[_scheduled_dict(i) for i in queue.review_cards],
        total_due=queue.total_due,
    )


@app.post("/sets/{set_name}/cards/{card_id}/review")
async def review_card(
    set_name: str,
    card_id: str,
    req: ReviewRequest,
    config: AppConfig = Depends(get_config),
):
    """Record a review and return the card's new schedule state."""
    logger.info(f"Review requested via API: {set_name}/{card_id} {req.rating.value}")
    try:
        state: ScheduleState = await get_study_service(config).review_card(
            set_name, card_id, req.rating, _now()
        )
    except Exception as e:
        raise _http_error(e) from e
    return state_to_dict(state)


@app.get("/sets/{set_name}/stats")
async def get_stats(set_name: str, config: AppConfig = Depends(get_config)):
    try:
        settings = await get_study_service(config).load_settings()
        stats = await get_stats_service(config).get_stats(set_name, _now(), settings)
    except Exception as e:
        raise _http_error(e) from e
    return asdict(stats)


@app.post("/sets/{set_name}/cards", status_code=201)
async def add_card(set_name: str, req: CardRequest, config: AppConfig = Depends(get_config)):
    try:
        card = await get_study_service(config).add_card(set_name, req.front, req.back)
    except Exception as e:
        raise _http_error(e) from e
    return card_to_dict(card)


@app.put("/sets/{set_name}/cards/{card_id}")
async def update_card(
    set_name: str,
    card_id: str,
    req: CardUpdateRequest,
    config: AppConfig = Depends(get_config),
):
    try:
        card = await get_study_service(config).update_card(
            set_name, card_id, front=req.front, back=req.back
        )
    except Exception as e:
        raise _http_error(e) from e
    return card_to_dict(card)


@app.delete("/sets/{set_name}/cards/{card_id}")
async def delete_card(set_name: str, card_id: str, config: AppConfig = Depends(get_config)):
    try:
        await get_study_service(config).delete_card(set_name, card_id)
    except Exception as e:
        raise _http_error(e) from e
    return {"ok": True}


@app.get("/settings")
async def get_settings(config: AppConfig = Depends(get_config)):
    try:
        settings = await get_study_service(config).load_settings()
    except Exception as e:
        raise _http_error(e) from e
    return settings.to_record()


@app.put("/settings")
async def update_settings(changes: dict[str, Any], config: AppConfig = Depends(get_config)):
    """Partial update; keys may be camelCase or snake_case."""
    try:
        settings: StudySettings = await get_study_service(config).update_settings(changes)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    return settings.to_record()
