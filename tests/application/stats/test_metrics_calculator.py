from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from cardwise.application.stats.metrics_calculator import MetricsCalculator
from cardwise.application.stats.service import StudyStatsService
from cardwise.domain.errors import SetNotFoundError
from cardwise.domain.models import Card, CardSet, Rating, ScheduledCard


@pytest.fixture
def calculator():
    return MetricsCalculator()


@pytest.fixture
def card_repo():
    return AsyncMock()


@pytest.fixture
def schedule_repo():
    return AsyncMock()


def _card(card_id: str) -> Card:
    return Card(id=card_id, front=f"front {card_id}", back="back")


def test_stats_disabled_counts_every_card_as_learned(calculator, now):
    cards = [ScheduledCard(_card(f"c{i}")) for i in range(3)]

    stats = calculator.compute_stats(cards, scheduler_enabled=False, now=now)

    assert stats.total_cards_learned == 3
    assert stats.cards_studied_today == 0
    assert stats.average_retention == 0
    assert stats.streak_days == 0
    assert stats.mature_cards == 0


def test_stats_without_reviews(calculator, now):
    cards = [ScheduledCard(_card("c0")), ScheduledCard(_card("c1"))]

    stats = calculator.compute_stats(cards, scheduler_enabled=True, now=now)

    assert stats.average_retention == 0
    assert stats.mature_cards == 0
    assert stats.young_cards == 0
    assert stats.total_cards_learned == 0
    assert stats.streak_days == 0


def test_stats_enabled(calculator, now, settings, replay, make_state):
    first_today = replay("c0", [(now - timedelta(hours=1), Rating.GOOD)], settings)
    relearned = replay(
        "c1",
        [(now - timedelta(days=1), Rating.AGAIN), (now - timedelta(hours=2), Rating.GOOD)],
        settings,
    )
    mature = make_state("c2", 30.0, 4.0, now - timedelta(days=10))
    cards = [
        ScheduledCard(_card("c0"), first_today),
        ScheduledCard(_card("c1"), relearned),
        ScheduledCard(_card("c2"), mature),
        ScheduledCard(_card("c3")),
    ]

    stats = calculator.compute_stats(cards, scheduler_enabled=True, now=now)

    assert stats.cards_studied_today == 2
    assert stats.new_cards_today == 1
    assert stats.reviews_today == 1
    # 4 reviews, one of them 'again'
    assert stats.average_retention == pytest.approx(3 / 4)
    assert stats.streak_days == 1
    assert stats.total_cards_learned == 3
    assert stats.mature_cards == 1
    assert stats.young_cards == 2


def test_enrich_reviewed_card(calculator, now, settings, make_state):
    state = make_state(
        "c1",
        10.0,
        6.0,
        now - timedelta(days=10),
        next_review=now - timedelta(days=2),
        ratings=(Rating.AGAIN, Rating.GOOD, Rating.GOOD, Rating.GOOD),
    )

    insight = calculator.enrich(ScheduledCard(_card("c1"), state), now, settings)

    # R = 0.9^(t/S) = 0.9^(10/10)
    assert insight.current_retrievability == pytest.approx(0.9)
    assert insight.days_overdue == 2
    assert insight.lapse_rate == 0.25
    assert insight.review_count == 4
    assert insight.interval == 13


def test_enrich_new_card(calculator, now, settings):
    insight = calculator.enrich(ScheduledCard(_card("c1")), now, settings)

    assert insight.review_count == 0
    assert insight.current_retrievability is None
    assert insight.days_overdue is None
    assert insight.front == "front c1"


@pytest.mark.asyncio
async def test_stats_service_orchestration(card_repo, schedule_repo, now, settings, replay):
    card_repo.get_set.return_value = CardSet(
        file_name="deck", name="Deck", cards=[_card("c0"), _card("c1")]
    )
    schedule_repo.load_states.return_value = {
        "c0": replay("c0", [(now - timedelta(hours=1), Rating.GOOD)], settings)
    }
    service = StudyStatsService(card_repo=card_repo, schedule_repo=schedule_repo)

    stats = await service.get_stats("deck", now, settings)

    assert stats.new_cards_today == 1
    assert stats.total_cards_learned == 1
    card_repo.get_set.assert_awaited_once_with("deck")
    schedule_repo.load_states.assert_awaited_once_with("deck")


@pytest.mark.asyncio
async def test_insights_weakest_first(card_repo, schedule_repo, now, settings, make_state):
    card_repo.get_set.return_value = CardSet(
        file_name="deck", name="Deck", cards=[_card("new"), _card("strong"), _card("weak")]
    )
    schedule_repo.load_states.return_value = {
        "strong": make_state("strong", 50.0, 3.0, now - timedelta(days=1)),
        "weak": make_state("weak", 2.0, 8.0, now - timedelta(days=6)),
    }
    service = StudyStatsService(card_repo=card_repo, schedule_repo=schedule_repo)

    insights = await service.get_insights("deck", now, settings)

    assert [i.card_id for i in insights] == ["weak", "strong", "new"]


@pytest.mark.asyncio
async def test_stats_service_unknown_set(card_repo, schedule_repo, now, settings):
    card_repo.get_set.return_value = None
    service = StudyStatsService(card_repo=card_repo, schedule_repo=schedule_repo)

    with pytest.raises(SetNotFoundError):
        await service.get_stats("missing", now, settings)


def test_stats_count_today_in_the_timezone_of_now(calculator, make_state):
    tokyo = timezone(timedelta(hours=9))
    # 20:00 UTC on the 10th is the morning of the 11th in Tokyo
    state = make_state("c0", 3.0, 5.0, datetime(2024, 5, 10, 20, 0, tzinfo=timezone.utc))
    now = datetime(2024, 5, 11, 6, 0, tzinfo=tokyo)

    stats = calculator.compute_stats([ScheduledCard(_card("c0"), state)], True, now)

    assert stats.cards_studied_today == 1
    assert stats.new_cards_today == 1
    assert stats.streak_days == 1


def test_naive_now_is_rejected(calculator, now, settings, make_state):
    item = ScheduledCard(_card("c0"), make_state("c0", 3.0, 5.0, now - timedelta(days=1)))
    naive = datetime(2024, 5, 10, 12, 0)

    with pytest.raises(ValueError):
        calculator.compute_stats([item], True, naive)
    with pytest.raises(ValueError):
        calculator.enrich(item, naive, settings)
