"""
Study stats service: application layer orchestrator.

Loads a set and its schedule states and hands them to the metrics calculator.
"""

import logging
from datetime import datetime

from cardwise.application.config import StudySettings
from cardwise.domain.errors import SetNotFoundError
from cardwise.domain.models import CardInsight, ScheduledCard, StudyStats
from cardwise.domain.ports import CardSetRepository, ScheduleRepository

from .metrics_calculator import MetricsCalculator

logger = logging.getLogger(__name__)


class StudyStatsService:
    """
    Application service for study statistics.

    Depends on the repository ports, not on concrete adapters.
    """

    def __init__(
        self,
        card_repo: CardSetRepository,
        schedule_repo: ScheduleRepository,
        calculator: MetricsCalculator | None = None,
    ):
        self._cards = card_repo
        self._schedules = schedule_repo
        self._calc = calculator or MetricsCalculator()

    async def _scheduled_cards(self, set_name: str) -> list[ScheduledCard]:
        card_set = await self._cards.get_set(set_name)
        if card_set is None:
            raise SetNotFoundError(set_name)
        states = await self._schedules.load_states(set_name)
        return [ScheduledCard(card, states.get(card.id)) for card in card_set.cards]

    async def get_stats(
        self, set_name: str, now: datetime, settings: StudySettings
    ) -> StudyStats:
        cards = await self._scheduled_cards(set_name)
        return self._calc.compute_stats(cards, settings.scheduler_enabled, now)

    async def get_insights(
        self, set_name: str, now: datetime, settings: StudySettings
    ) -> list[CardInsight]:
        """
        Per-card diagnostics, weakest (lowest current retrievability) first.

        Unreviewed cards come last.
        """
        cards = await self._scheduled_cards(set_name)
        insights = [self._calc.enrich(item, now, settings) for item in cards]
        insights.sort(
            key=lambda i: (
                i.current_retrievability is None,
                i.current_retrievability or 0.0,
            )
        )
        return insights
