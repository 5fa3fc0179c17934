"""
Metrics calculator for study statistics and per-card insights.

This is a pure computation module with no I/O.
"""

from collections.abc import Sequence
from datetime import datetime

from cardwise.application.config import StudySettings
from cardwise.application.queue_builder import count_today
from cardwise.application.scheduler import (
    compute_retrievability,
    days_between,
    next_interval,
    require_aware,
)
from cardwise.domain.models import CardInsight, Rating, ScheduledCard, StudyStats


class MetricsCalculator:
    """
    Computes study statistics from (card, state) pairs.

    Stateless and side-effect free.
    """

    def compute_stats(
        self,
        cards: Sequence[ScheduledCard],
        scheduler_enabled: bool,
        now: datetime,
    ) -> StudyStats:
        """
        Aggregate today's activity, retention and maturity over a set.

        With the scheduler disabled every card counts as learned and all
        other counters are zero.
        """
        require_aware(now)
        if not scheduler_enabled:
            return StudyStats(total_cards_learned=len(cards))

        states = [state for _, state in cards if state is not None]

        studied_today = sum(1 for s in states if s.reviewed_on(now))
        new_today, reviews_today = count_today(states, now)

        total_reviews = sum(s.review_count for s in states)
        correct_reviews = sum(
            1 for s in states for r in s.review_history if r.rating is not Rating.AGAIN
        )
        average_retention = correct_reviews / total_reviews if total_reviews > 0 else 0.0

        mature = sum(1 for s in states if s.is_mature)
        young = sum(1 for s in states if not s.is_new and not s.is_mature)

        return StudyStats(
            cards_studied_today=studied_today,
            new_cards_today=new_today,
            reviews_today=reviews_today,
            average_retention=average_retention,
            # Only today's activity is known, so the streak is 0 or 1
            streak_days=1 if studied_today > 0 else 0,
            total_cards_learned=sum(1 for s in states if not s.is_new),
            mature_cards=mature,
            young_cards=young,
        )

    def enrich(
        self,
        item: ScheduledCard,
        now: datetime,
        settings: StudySettings,
    ) -> CardInsight:
        """
        Derive per-card diagnostics.
        """
        require_aware(now)
        card, state = item
        if state is None or state.is_new:
            return CardInsight(
                card_id=card.id,
                front=card.front,
                review_count=0,
                difficulty=state.difficulty if state else None,
                stability=None,
                current_retrievability=None,
                days_overdue=None,
                lapse_rate=None,
                interval=None,
            )

        elapsed = days_between(state.last_reviewed, now) if state.last_reviewed else 0.0
        lapses = sum(1 for r in state.review_history if r.rating is Rating.AGAIN)

        return CardInsight(
            card_id=card.id,
            front=card.front,
            review_count=state.review_count,
            difficulty=state.difficulty,
            stability=state.stability,
            current_retrievability=compute_retrievability(state.stability, elapsed),
            days_overdue=int(days_between(state.next_review, now)),
            lapse_rate=lapses / state.review_count,
            interval=next_interval(state.stability, settings.desired_retention),
        )
