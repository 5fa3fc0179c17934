"""Tests for the memory-model engine."""

from datetime import datetime, timedelta

import pytest

from cardwise.application.config import StudySettings
from cardwise.application.scheduler import (
    apply_review,
    compute_retrievability,
    format_interval,
    next_difficulty,
    next_interval,
    next_stability,
    preview_intervals,
)
from cardwise.domain.constants import FSRS_WEIGHTS, MAX_INTERVAL, MIN_STABILITY
from cardwise.domain.models import Rating, ScheduleState


class TestFirstReview:
    """A card with no reviews takes the fixed initial stability."""

    def test_good_on_absent_state(self, now, settings):
        state = apply_review(None, Rating.GOOD, now, settings, card_id="c1")

        assert state.card_id == "c1"
        assert state.review_count == 1
        assert state.stability == FSRS_WEIGHTS[2]
        assert state.difficulty == pytest.approx(5 - FSRS_WEIGHTS[8])
        assert state.retrievability == 1.0
        assert state.last_reviewed == now
        # 3.1145 * ln(0.87) / ln(0.9) = 4.12 -> 4 days
        assert state.next_review == now + timedelta(days=4)

    def test_prior_stability_is_ignored_for_new_cards(self, now, settings):
        unreviewed = ScheduleState(card_id="c1", next_review=now, stability=7.0)

        state = apply_review(unreviewed, "good", now, settings)

        assert state.stability == 3.1145
        assert state.review_count == 1

    @pytest.mark.parametrize(
        "rating,stability,days",
        [
            (Rating.AGAIN, 0.4872, 1),
            (Rating.HARD, 1.4003, 2),
            (Rating.GOOD, 3.1145, 4),
        ],
    )
    def test_initial_stability_by_rating(self, now, settings, rating, stability, days):
        state = apply_review(ScheduleState.new("c1", now), rating, now, settings)
        assert state.stability == stability
        assert state.next_review - now == timedelta(days=days)

    def test_absent_state_requires_card_id(self, now, settings):
        with pytest.raises(ValueError):
            apply_review(None, Rating.GOOD, now, settings)

    def test_unknown_rating_fails_fast(self, now, settings):
        with pytest.raises(ValueError):
            apply_review(ScheduleState.new("c1", now), "easy", now, settings)

    def test_naive_now_fails_fast(self, now, settings):
        naive = datetime(2024, 5, 10, 12, 0)

        with pytest.raises(ValueError, match="timezone-aware"):
            apply_review(ScheduleState.new("c1", now), Rating.GOOD, naive, settings)
        with pytest.raises(ValueError):
            preview_intervals(None, naive, settings, card_id="c1")


class TestHistory:
    def test_history_is_appended_not_mutated(self, now, settings):
        first = apply_review(None, Rating.GOOD, now, settings, card_id="c1")
        later = now + timedelta(days=2, hours=14)  # 2.58 days

        second = apply_review(first, Rating.HARD, later, settings)

        assert len(first.review_history) == 1
        assert len(second.review_history) == second.review_count == 2
        record = second.review_history[-1]
        assert record.date == later
        assert record.rating is Rating.HARD
        assert record.previous_interval == 3
        assert record.new_stability == second.stability
        assert record.new_difficulty == second.difficulty

    def test_retrievability_reflects_elapsed_time(self, now, settings):
        first = apply_review(None, Rating.GOOD, now, settings, card_id="c1")
        later = now + timedelta(days=first.stability)

        second = apply_review(first, Rating.GOOD, later, settings)

        assert second.retrievability == pytest.approx(0.9)

    def test_same_instant_review_has_no_decay(self, now, settings):
        first = apply_review(None, Rating.GOOD, now, settings, card_id="c1")
        second = apply_review(first, Rating.GOOD, now, settings)

        assert second.retrievability == 1.0
        # No forgetting, no growth
        assert second.stability == pytest.approx(first.stability)


class TestClamps:
    @pytest.mark.parametrize("rating", list(Rating))
    @pytest.mark.parametrize("difficulty", [1.0, 5.0, 10.0])
    def test_difficulty_stays_in_range(self, rating, difficulty):
        assert 1.0 <= next_difficulty(difficulty, rating) <= 10.0

    def test_difficulty_clamped_at_bounds(self, now, settings, make_state):
        hardest = make_state("c1", 5.0, 10.0, now - timedelta(days=3))
        easiest = make_state("c2", 5.0, 1.0, now - timedelta(days=3))

        assert apply_review(hardest, Rating.AGAIN, now, settings).difficulty == 10.0
        assert apply_review(easiest, Rating.GOOD, now, settings).difficulty == 1.0

    def test_stability_capped_at_max_interval(self, now, settings, make_state):
        state = make_state("c1", 36000.0, 1.0, now - timedelta(days=36000))

        result = apply_review(state, Rating.GOOD, now, settings)

        assert result.stability == MAX_INTERVAL

    def test_lapse_stability_floored(self):
        assert next_stability(0.01, 10.0, 1.0, Rating.AGAIN, is_new=False) == MIN_STABILITY

    @pytest.mark.parametrize("rating", list(Rating))
    @pytest.mark.parametrize("retrievability", [0.0, 0.5, 1.0])
    @pytest.mark.parametrize("stability", [0.01, 2.0, 300.0, 36500.0])
    def test_stability_stays_in_range(self, rating, retrievability, stability):
        for difficulty in (1.0, 5.5, 10.0):
            s = next_stability(stability, difficulty, retrievability, rating, is_new=False)
            assert MIN_STABILITY <= s <= MAX_INTERVAL


class TestModelBehavior:
    def test_repeated_again_stays_below_repeated_good(self, now, settings, replay):
        days = [now + timedelta(days=i) for i in range(3)]

        failed = replay("c1", [(d, Rating.AGAIN) for d in days], settings)
        recalled = replay("c2", [(d, Rating.GOOD) for d in days], settings)

        assert failed.stability < recalled.stability
        assert failed.stability < FSRS_WEIGHTS[2]

    def test_good_grows_more_than_hard(self, now, settings, make_state):
        state = make_state("c1", 10.0, 5.0, now - timedelta(days=10))

        hard = apply_review(state, Rating.HARD, now, settings)
        good = apply_review(state, Rating.GOOD, now, settings)

        assert state.stability < hard.stability < good.stability

    def test_overdue_success_grows_more(self, now, settings, make_state):
        on_time = make_state("c1", 10.0, 5.0, now - timedelta(days=10))
        overdue = make_state("c2", 10.0, 5.0, now - timedelta(days=30))

        assert (
            apply_review(overdue, Rating.GOOD, now, settings).stability
            > apply_review(on_time, Rating.GOOD, now, settings).stability
        )


class TestRetrievabilityAndInterval:
    def test_anchor_at_stability(self):
        assert compute_retrievability(10.0, 10.0) == pytest.approx(0.9)

    def test_no_decay_without_elapsed_time(self):
        assert compute_retrievability(10.0, 0.0) == 1.0
        assert compute_retrievability(10.0, -1.0) == 1.0

    def test_interval_shrinks_as_retention_rises(self):
        assert next_interval(10.0, 0.95) < next_interval(10.0, 0.80)
        assert next_interval(10.0, 0.95) == 5
        assert next_interval(10.0, 0.80) == 21

    def test_interval_grows_with_stability(self):
        intervals = [next_interval(s, 0.9) for s in (0.5, 1.0, 3.0, 10.0, 100.0)]
        assert intervals == sorted(intervals)

    def test_interval_at_least_one_day(self):
        assert next_interval(0.01, 0.97) == 1
        assert next_interval(0.0, 0.9) == 1

    def test_desired_retention_at_anchor_equals_stability(self):
        assert next_interval(12.0, 0.9) == 12


class TestPreview:
    def test_new_card_preview(self, now, settings):
        previews = preview_intervals(None, now, settings, card_id="c1")
        assert previews == {Rating.AGAIN: 1, Rating.HARD: 2, Rating.GOOD: 4}

    def test_preview_uses_desired_retention(self, now):
        strict = StudySettings(scheduler_enabled=True, desired_retention=0.97)
        assert preview_intervals(None, now, strict, card_id="c1")[Rating.GOOD] == 1


@pytest.mark.parametrize(
    "days,expected",
    [
        (0.5, "< 1 day"),
        (1, "1 day"),
        (5, "5 days"),
        (30, "1 month"),
        (45, "2 months"),
        (400, "1 year"),
        (800, "2 years"),
    ],
)
def test_format_interval(days, expected):
    assert format_interval(days) == expected
