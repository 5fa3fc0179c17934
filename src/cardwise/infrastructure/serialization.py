"""
Conversion between domain models and the stored JSON records.

Stored records use camelCase keys and ISO-8601 timestamps.
"""

from datetime import datetime, timezone
from typing import Any

from cardwise.domain.models import Card, CardSet, Rating, ReviewRecord, ScheduleState


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(dt: datetime) -> str:
    return dt.isoformat()


def card_from_dict(data: dict[str, Any]) -> Card:
    # Extra keys are dropped; only id/front/back belong to a card
    return Card(id=str(data["id"]), front=data.get("front", ""), back=data.get("back", ""))


def card_to_dict(card: Card) -> dict[str, Any]:
    return {"id": card.id, "front": card.front, "back": card.back}


def card_set_from_dict(file_name: str, data: dict[str, Any]) -> CardSet:
    return CardSet(
        file_name=file_name,
        name=data.get("name") or file_name,
        description=data.get("description"),
        cards=[card_from_dict(c) for c in data.get("cards", [])],
    )


def card_set_to_dict(card_set: CardSet) -> dict[str, Any]:
    data: dict[str, Any] = {"name": card_set.name}
    if card_set.description is not None:
        data["description"] = card_set.description
    data["cards"] = [card_to_dict(c) for c in card_set.cards]
    return data


def review_from_dict(data: dict[str, Any]) -> ReviewRecord:
    return ReviewRecord(
        date=parse_timestamp(data["date"]),
        rating=Rating(data["rating"]),
        previous_interval=int(data.get("previousInterval", 0)),
        new_stability=float(data["newStability"]),
        new_difficulty=float(data["newDifficulty"]),
    )


def review_to_dict(record: ReviewRecord) -> dict[str, Any]:
    return {
        "date": format_timestamp(record.date),
        "rating": record.rating.value,
        "previousInterval": record.previous_interval,
        "newStability": record.new_stability,
        "newDifficulty": record.new_difficulty,
    }


def state_from_dict(card_id: str, data: dict[str, Any]) -> ScheduleState:
    """
    Build a ScheduleState from its stored record.

    Raises:
        ValueError: The record violates a state invariant.
        KeyError: A required key is missing.
    """
    last_reviewed = data.get("lastReviewed")
    history = tuple(review_from_dict(r) for r in data.get("reviewHistory", []))
    return ScheduleState(
        card_id=data.get("cardId", card_id),
        difficulty=float(data["difficulty"]),
        stability=float(data["stability"]),
        retrievability=float(data["retrievability"]),
        last_reviewed=parse_timestamp(last_reviewed) if last_reviewed else None,
        review_count=int(data.get("reviewCount", len(history))),
        next_review=parse_timestamp(data["nextReview"]),
        review_history=history,
    )


def state_to_dict(state: ScheduleState) -> dict[str, Any]:
    return {
        "cardId": state.card_id,
        "difficulty": state.difficulty,
        "stability": state.stability,
        "retrievability": state.retrievability,
        "lastReviewed": format_timestamp(state.last_reviewed) if state.last_reviewed else None,
        "reviewCount": state.review_count,
        "nextReview": format_timestamp(state.next_review),
        "reviewHistory": [review_to_dict(r) for r in state.review_history],
    }
