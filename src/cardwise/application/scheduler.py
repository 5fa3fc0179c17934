"""
Memory-model engine for spaced repetition.

Pure functions that turn a card's schedule state plus a review outcome into
the next schedule state. No I/O; the clock and settings are parameters.

Model:
    R(t) = 0.9^(t/S)               forgetting curve, R = 0.9 after S days
    I    = S * ln(r) / ln(0.9)     days until R falls to the desired retention r
"""

import logging
import math
from datetime import datetime, timedelta

from cardwise.application.config import StudySettings
from cardwise.domain.constants import (
    FSRS_WEIGHTS,
    MAX_DIFFICULTY,
    MAX_INTERVAL,
    MIN_DIFFICULTY,
    MIN_INTERVAL,
    MIN_STABILITY,
    RETRIEVABILITY_ANCHOR,
    SECONDS_PER_DAY,
)
from cardwise.domain.models import Rating, ReviewRecord, ScheduleState

logger = logging.getLogger(__name__)

w = FSRS_WEIGHTS

_INITIAL_STABILITY = {
    Rating.AGAIN: w[0],
    Rating.HARD: w[1],
    Rating.GOOD: w[2],
}

_DIFFICULTY_DELTA = {
    Rating.AGAIN: w[6],
    Rating.HARD: w[7],
    Rating.GOOD: -w[8],
}

_GROWTH_FACTOR = {
    Rating.HARD: w[15],
    Rating.GOOD: w[16],
}


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def require_aware(now: datetime) -> datetime:
    """
    Reject naive timestamps; stored states are always timezone-aware.

    Raises:
        ValueError: `now` has no timezone.
    """
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError(f"now must be timezone-aware, got naive {now.isoformat()}")
    return now


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from start to end."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def compute_retrievability(stability: float, days_since_review: float) -> float:
    """
    Recall probability after `days_since_review` days.

    No decay for reviews in the same instant (or a clock that went backwards).
    """
    if days_since_review <= 0:
        return 1.0
    return RETRIEVABILITY_ANCHOR ** (days_since_review / stability)


def next_difficulty(difficulty: float, rating: Rating) -> float:
    new_difficulty = difficulty + _DIFFICULTY_DELTA[rating]
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, new_difficulty))


def next_stability(
    stability: float,
    difficulty: float,
    retrievability: float,
    rating: Rating,
    is_new: bool,
) -> float:
    """
    Stability after a review, clamped to [MIN_STABILITY, MAX_INTERVAL].

    New cards take a fixed initial stability per rating. A lapse rebuilds
    stability from difficulty, old stability and retrievability. A successful
    recall grows it, more for easier cards, low stability and overdue reviews.
    """
    if is_new:
        return _INITIAL_STABILITY[rating]

    if rating is Rating.AGAIN:
        new_stability = (
            w[11]
            * math.pow(difficulty, -w[12])
            * (math.pow(stability + 1, w[13]) - 1)
            * math.exp(w[14] * (1 - retrievability))
        )
    else:
        new_stability = stability * (
            1
            + math.exp(w[8])
            * (11 - difficulty)
            * math.pow(stability, -w[9])
            * (math.exp((1 - retrievability) * w[10]) - 1)
            * _GROWTH_FACTOR[rating]
        )

    return max(MIN_STABILITY, min(float(MAX_INTERVAL), new_stability))


def next_interval(stability: float, desired_retention: float) -> int:
    """
    Whole days until retrievability drops to `desired_retention`, at least 1.
    """
    if stability <= 0:
        return MIN_INTERVAL
    interval = stability * math.log(desired_retention) / math.log(RETRIEVABILITY_ANCHOR)
    return max(MIN_INTERVAL, _round_half_up(interval))


def apply_review(
    state: ScheduleState | None,
    rating: Rating | str,
    now: datetime,
    settings: StudySettings,
    card_id: str | None = None,
) -> ScheduleState:
    """
    Apply one review to a card's schedule state.

    Args:
        state: Current state, or None for a card never seen (treated as a fresh state).
        rating: Button pressed; strings are coerced to Rating.
        now: Review timestamp.
        settings: Active study settings; only desired_retention is used.
        card_id: Required when state is None.

    Returns:
        A new ScheduleState; the input state is not modified.

    Raises:
        ValueError: Unknown rating, naive `now`, or no state and no card_id.
    """
    require_aware(now)
    rating = Rating(rating)
    if state is None:
        if card_id is None:
            raise ValueError("card_id is required to review a card without state")
        state = ScheduleState.new(card_id, now)

    is_new = state.review_count == 0
    days_since_review = (
        days_between(state.last_reviewed, now) if state.last_reviewed is not None else 0.0
    )

    retrievability = (
        1.0 if is_new else compute_retrievability(state.stability, days_since_review)
    )
    new_difficulty = next_difficulty(state.difficulty, rating)
    new_stability = next_stability(
        state.stability, state.difficulty, retrievability, rating, is_new
    )

    interval = next_interval(new_stability, settings.desired_retention)
    record = ReviewRecord(
        date=now,
        rating=rating,
        previous_interval=_round_half_up(days_since_review),
        new_stability=new_stability,
        new_difficulty=new_difficulty,
    )

    logger.debug(
        f"Reviewed {state.card_id} as {rating.value}: new={is_new} "
        f"R={retrievability:.4f} S={state.stability:.4f}->{new_stability:.4f} "
        f"D={state.difficulty:.4f}->{new_difficulty:.4f} interval={interval}d"
    )

    return ScheduleState(
        card_id=state.card_id,
        difficulty=new_difficulty,
        stability=new_stability,
        retrievability=retrievability,
        last_reviewed=now,
        review_count=state.review_count + 1,
        next_review=now + timedelta(days=interval),
        review_history=(*state.review_history, record),
    )


def preview_intervals(
    state: ScheduleState | None,
    now: datetime,
    settings: StudySettings,
    card_id: str = "",
) -> dict[Rating, int]:
    """Interval in days each rating would schedule if pressed at `now`."""
    if state is None:
        state = ScheduleState.new(card_id, now)
    return {
        rating: next_interval(
            apply_review(state, rating, now, settings).stability,
            settings.desired_retention,
        )
        for rating in Rating
    }


def format_interval(days: float) -> str:
    """Human readable interval, e.g. '3 days', '2 months'."""
    if days < 1:
        return "< 1 day"
    if days == 1:
        return "1 day"
    if days < 30:
        return f"{_round_half_up(days)} days"
    if days < 365:
        months = _round_half_up(days / 30)
        return f"{months} month{'s' if months > 1 else ''}"
    years = _round_half_up(days / 365)
    return f"{years} year{'s' if years > 1 else ''}"
