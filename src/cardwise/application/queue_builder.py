"""
Queue builder for daily study sessions.

Builds study queues by:
1. Counting what was already studied today (per-day caps)
2. Taking new cards up to the remaining new-card cap
3. Taking due review cards up to the remaining review cap

Input order is preserved within each pool.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Literal

from cardwise.application.config import StudySettings
from cardwise.application.scheduler import require_aware
from cardwise.domain.models import ScheduledCard, ScheduleState, StudyQueue

logger = logging.getLogger(__name__)

StudyMode = Literal["new", "review", "mixed"]


def count_today(
    states: Iterable[ScheduleState | None], now: datetime
) -> tuple[int, int]:
    """
    Count today's first-time studies and repeat reviews.

    A card counts when its last review falls on the calendar date of `now`,
    both read in the timezone of `now`.
    One review in its history means it was new today; more means a review.

    Returns:
        (new_cards_today, reviews_today)
    """
    require_aware(now)
    new_today = 0
    reviews_today = 0
    for state in states:
        if state is None or not state.reviewed_on(now):
            continue
        if len(state.review_history) == 1:
            new_today += 1
        elif len(state.review_history) > 1:
            reviews_today += 1
    return new_today, reviews_today


def build_study_queue(
    cards: Sequence[ScheduledCard | tuple],
    settings: StudySettings,
    now: datetime,
) -> StudyQueue:
    """
    Select the cards to study now.

    Args:
        cards: (card, state) pairs; state is None for cards never scheduled.
        settings: Active study settings.
        now: Current time; a card is due when now >= next_review.

    Returns:
        StudyQueue with new cards, due review cards and their total.
    """
    require_aware(now)
    items = [ScheduledCard(*item) for item in cards]

    if not settings.scheduler_enabled:
        # Plain sequential study: everything is "new"
        return StudyQueue(new_cards=items, review_cards=[], total_due=len(items))

    new_today, reviews_today = count_today((item.state for item in items), now)

    new_limit = max(0, settings.new_cards_per_day - new_today)
    review_limit = max(0, settings.max_reviews_per_day - reviews_today)

    new_pool = [item for item in items if item.state is None or item.state.is_new]
    review_pool = [
        item
        for item in items
        if item.state is not None and not item.state.is_new and item.state.is_due(now)
    ]

    new_cards = new_pool[:new_limit]
    review_cards = review_pool[:review_limit]

    logger.debug(
        f"Queue: {len(new_cards)}/{len(new_pool)} new (limit {new_limit}), "
        f"{len(review_cards)}/{len(review_pool)} due (limit {review_limit})"
    )

    return StudyQueue(
        new_cards=new_cards,
        review_cards=review_cards,
        total_due=len(new_cards) + len(review_cards),
    )


def session_cards(queue: StudyQueue, mode: StudyMode = "mixed") -> list[ScheduledCard]:
    """
    Flatten a queue into session order.

    'mixed' studies due reviews before new cards.
    """
    if mode == "new":
        return list(queue.new_cards)
    if mode == "review":
        return list(queue.review_cards)
    if mode == "mixed":
        return [*queue.review_cards, *queue.new_cards]
    raise ValueError(f"Unknown study mode: {mode}")
