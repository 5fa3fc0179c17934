"""
Study service: loads card sets and schedule states, builds queues, records
reviews and edits cards.

Reviews are persisted eagerly, one card at a time. Concurrent reviews of the
same card are not coordinated; the last write wins.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from cardwise.application.config import StudySettings
from cardwise.application.id_service import generate_card_id
from cardwise.application.queue_builder import build_study_queue
from cardwise.application.scheduler import apply_review
from cardwise.domain.errors import CardNotFoundError, SchedulerDisabledError, SetNotFoundError
from cardwise.domain.models import (
    Card,
    CardSet,
    Rating,
    ScheduledCard,
    ScheduleState,
    StudyQueue,
)
from cardwise.domain.ports import CardSetRepository, ScheduleRepository, SettingsRepository

logger = logging.getLogger(__name__)


class StudyService:
    def __init__(
        self,
        card_repo: CardSetRepository,
        schedule_repo: ScheduleRepository,
        settings_repo: SettingsRepository,
        defaults: StudySettings | None = None,
    ):
        """
        Args:
            card_repo: Port for card sets.
            schedule_repo: Port for per-set schedule states.
            settings_repo: Port for the stored study settings.
            defaults: Settings used for keys the user never saved.
        """
        self._cards = card_repo
        self._schedules = schedule_repo
        self._settings = settings_repo
        self._defaults = defaults or StudySettings()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def load_settings(self) -> StudySettings:
        """Stored settings merged over the defaults."""
        record = await self._settings.load()
        if not record:
            return self._defaults
        return self._defaults.merged(record)

    async def update_settings(self, changes: Mapping[str, Any]) -> StudySettings:
        """
        Apply a partial update and persist the full record.

        Raises:
            pydantic.ValidationError: An updated value is out of range.
        """
        current = await self.load_settings()
        updated = current.merged(changes)
        await self._settings.save(updated.to_record())
        logger.info(f"Study settings updated: {updated.to_record()}")
        return updated

    async def _resolve_settings(self, settings: StudySettings | None) -> StudySettings:
        return settings if settings is not None else await self.load_settings()

    # ------------------------------------------------------------------
    # Sets and cards
    # ------------------------------------------------------------------

    async def list_sets(self) -> list[CardSet]:
        sets: list[CardSet] = []
        for name in await self._cards.list_set_names():
            card_set = await self._cards.get_set(name)
            if card_set is not None:
                sets.append(card_set)
        return sets

    async def get_set(self, set_name: str) -> CardSet:
        card_set = await self._cards.get_set(set_name)
        if card_set is None:
            raise SetNotFoundError(set_name)
        return card_set

    async def create_set(
        self, file_name: str, name: str | None = None, description: str | None = None
    ) -> CardSet:
        if await self._cards.get_set(file_name) is not None:
            raise ValueError(f"Card set already exists: {file_name}")
        card_set = CardSet(file_name=file_name, name=name or file_name, description=description)
        await self._cards.save_set(card_set)
        logger.info(f"Created card set {file_name}")
        return card_set

    async def get_scheduled_cards(self, set_name: str) -> list[ScheduledCard]:
        card_set = await self.get_set(set_name)
        states = await self._schedules.load_states(set_name)
        return [ScheduledCard(card, states.get(card.id)) for card in card_set.cards]

    async def add_card(self, set_name: str, front: str, back: str) -> Card:
        card_set = await self.get_set(set_name)
        card = Card(id=generate_card_id(set_name), front=front, back=back)
        card_set.cards.append(card)
        await self._cards.save_set(card_set)
        logger.info(f"Added card {card.id} to {set_name}")
        return card

    async def update_card(
        self,
        set_name: str,
        card_id: str,
        front: str | None = None,
        back: str | None = None,
    ) -> Card:
        """Edit a card's text. Its schedule state is kept."""
        card_set = await self.get_set(set_name)
        existing = card_set.find(card_id)
        if existing is None:
            raise CardNotFoundError(set_name, card_id)

        updated = Card(
            id=card_id,
            front=existing.front if front is None else front,
            back=existing.back if back is None else back,
        )
        card_set.cards = [updated if c.id == card_id else c for c in card_set.cards]
        await self._cards.save_set(card_set)
        return updated

    async def delete_card(self, set_name: str, card_id: str) -> None:
        """Remove a card together with its schedule state."""
        card_set = await self.get_set(set_name)
        if card_set.find(card_id) is None:
            raise CardNotFoundError(set_name, card_id)

        card_set.cards = [c for c in card_set.cards if c.id != card_id]
        await self._cards.save_set(card_set)

        states = await self._schedules.load_states(set_name)
        if states.pop(card_id, None) is not None:
            await self._schedules.save_states(set_name, states)
        logger.info(f"Deleted card {card_id} from {set_name}")

    # ------------------------------------------------------------------
    # Studying
    # ------------------------------------------------------------------

    async def get_queue(
        self,
        set_name: str,
        now: datetime,
        settings: StudySettings | None = None,
    ) -> StudyQueue:
        settings = await self._resolve_settings(settings)
        cards = await self.get_scheduled_cards(set_name)
        return build_study_queue(cards, settings, now)

    async def review_card(
        self,
        set_name: str,
        card_id: str,
        rating: Rating | str,
        now: datetime,
        settings: StudySettings | None = None,
    ) -> ScheduleState:
        """
        Record a review and persist the set's schedule states.

        Raises:
            ValueError: Unknown rating.
            SchedulerDisabledError: The scheduler is turned off.
            SetNotFoundError, CardNotFoundError: Unknown set or card.
        """
        rating = Rating(rating)
        settings = await self._resolve_settings(settings)
        if not settings.scheduler_enabled:
            raise SchedulerDisabledError("Enable the scheduler to record reviews")

        card_set = await self.get_set(set_name)
        if card_set.find(card_id) is None:
            raise CardNotFoundError(set_name, card_id)

        states = await self._schedules.load_states(set_name)
        new_state = apply_review(states.get(card_id), rating, now, settings, card_id=card_id)

        # Only persist states of cards that still exist in the set
        known = {c.id for c in card_set.cards}
        updated = {cid: s for cid, s in states.items() if cid in known}
        updated[card_id] = new_state
        await self._schedules.save_states(set_name, updated)

        logger.info(
            f"Reviewed {card_id} in {set_name} as {rating.value}; "
            f"next review {new_state.next_review.isoformat()}"
        )
        return new_state
