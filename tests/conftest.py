import json
import logging
import os
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

import pytest

from cardwise.application.config import StudySettings
from cardwise.application.scheduler import apply_review
from cardwise.domain.models import Rating, ReviewRecord, ScheduleState


@pytest.fixture(autouse=True)
def mock_home(tmp_path, monkeypatch):
    """Points HOME at a temp dir and clears CARDWISE_* variables."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/logs
    monkeypatch.setenv("HOME", str(home))
    for key in [k for k in os.environ if k.startswith("CARDWISE_")]:
        monkeypatch.delenv(key)
    return home


@pytest.fixture(autouse=True)
def reset_logging():
    """Detaches the CLI log file handler and level after each test."""
    yield
    logger = logging.getLogger("cardwise")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def now():
    return datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    return StudySettings(scheduler_enabled=True)


def _review_many(
    card_id: str,
    reviews: Sequence[tuple[datetime, Rating]],
    settings: StudySettings,
) -> ScheduleState:
    """Replays reviews on a fresh state."""
    state = None
    for when, rating in reviews:
        state = apply_review(state, rating, when, settings, card_id=card_id)
    return state


def _reviewed_state(
    card_id: str,
    stability: float,
    difficulty: float,
    last_reviewed: datetime,
    next_review: datetime | None = None,
    ratings: Sequence[Rating] = (Rating.GOOD,),
) -> ScheduleState:
    """Builds a reviewed state directly, with one history entry per rating."""
    history = tuple(
        ReviewRecord(
            date=last_reviewed - timedelta(days=len(ratings) - 1 - i),
            rating=r,
            previous_interval=0,
            new_stability=stability,
            new_difficulty=difficulty,
        )
        for i, r in enumerate(ratings)
    )
    return ScheduleState(
        card_id=card_id,
        difficulty=difficulty,
        stability=stability,
        retrievability=1.0,
        last_reviewed=last_reviewed,
        review_count=len(history),
        next_review=next_review or last_reviewed + timedelta(days=stability),
        review_history=history,
    )


@pytest.fixture
def data_dir(tmp_path):
    """Data directory with one three-card set and no schedule states."""
    d = tmp_path / "flashcards"
    d.mkdir()
    (d / "manifest.json").write_text(json.dumps({"files": ["spanish"]}))
    (d / "spanish.json").write_text(
        json.dumps(
            {
                "name": "Spanish",
                "description": "Basics",
                "cards": [
                    {"id": "es-1", "front": "hola", "back": "hello"},
                    {"id": "es-2", "front": "gato", "back": "cat"},
                    {"id": "es-3", "front": "perro", "back": "dog", "tags": ["animal"]},
                ],
            }
        )
    )
    return d


@pytest.fixture
def replay():
    return _review_many


@pytest.fixture
def make_state():
    return _reviewed_state
