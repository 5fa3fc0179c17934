"""
Domain models for cards and their scheduling state.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import NamedTuple

from .constants import (
    DEFAULT_DIFFICULTY,
    MATURE_STABILITY_THRESHOLD,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
)


class Rating(str, Enum):
    """Answer buttons of the three-button review flow."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"


@dataclass(frozen=True)
class Card:
    id: str
    front: str
    back: str


@dataclass
class CardSet:
    """
    A named collection of cards stored as one file.

    Attributes:
        file_name: Storage key listed in the manifest (no extension).
        name: Display name.
        description: Optional free text.
        cards: Cards in file order.
    """

    file_name: str
    name: str
    description: str | None = None
    cards: list[Card] = field(default_factory=list)

    def find(self, card_id: str) -> Card | None:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None


@dataclass(frozen=True)
class ReviewRecord:
    """
    A single review log entry.

    Attributes:
        date: When the review happened.
        rating: Button pressed.
        previous_interval: Whole days since the prior review (0 for the first).
        new_stability: Stability after this review.
        new_difficulty: Difficulty after this review.
    """

    date: datetime
    rating: Rating
    previous_interval: int
    new_stability: float
    new_difficulty: float


@dataclass(frozen=True)
class ScheduleState:
    """
    Memory state of one card.

    Attributes:
        card_id: Owning card.
        next_review: When the card is due.
        difficulty: 1-10 scale, starts at 5.
        stability: Days until recall probability drops to 90%; 0 until first review.
        retrievability: Recall probability at the last computation.
        last_reviewed: None for cards never reviewed.
        review_count: Number of reviews, always equal to len(review_history).
        review_history: Reviews in chronological order.
    """

    card_id: str
    next_review: datetime
    difficulty: float = DEFAULT_DIFFICULTY
    stability: float = 0.0
    retrievability: float = 1.0
    last_reviewed: datetime | None = None
    review_count: int = 0
    review_history: tuple[ReviewRecord, ...] = ()

    def __post_init__(self):
        if not MIN_DIFFICULTY <= self.difficulty <= MAX_DIFFICULTY:
            raise ValueError(
                f"difficulty must be in [{MIN_DIFFICULTY}, {MAX_DIFFICULTY}], "
                f"got {self.difficulty} for card {self.card_id}"
            )
        if self.stability < 0:
            raise ValueError(
                f"stability must not be negative, got {self.stability} for card {self.card_id}"
            )
        if self.review_count > 0 and self.stability == 0:
            raise ValueError(f"reviewed card {self.card_id} has zero stability")
        if not 0.0 <= self.retrievability <= 1.0:
            raise ValueError(
                f"retrievability must be in [0, 1], got {self.retrievability} "
                f"for card {self.card_id}"
            )
        if self.review_count < 0:
            raise ValueError(f"review_count must not be negative for card {self.card_id}")
        if len(self.review_history) != self.review_count:
            raise ValueError(
                f"card {self.card_id} has {len(self.review_history)} history entries "
                f"but review_count={self.review_count}"
            )

    @classmethod
    def new(cls, card_id: str, now: datetime) -> "ScheduleState":
        """Default state for a card that was never reviewed, due immediately."""
        return cls(card_id=card_id, next_review=now)

    @property
    def is_new(self) -> bool:
        return self.review_count == 0

    @property
    def is_mature(self) -> bool:
        return self.stability > MATURE_STABILITY_THRESHOLD

    def is_due(self, now: datetime) -> bool:
        return now >= self.next_review

    def reviewed_on(self, now: datetime) -> bool:
        """True when the last review falls on the calendar day of `now`, in now's timezone."""
        if self.last_reviewed is None:
            return False
        return self.last_reviewed.astimezone(now.tzinfo).date() == now.date()


class ScheduledCard(NamedTuple):
    """A card paired with its schedule state, if it has one."""

    card: Card
    state: ScheduleState | None = None


@dataclass
class StudyQueue:
    """Cards selected for a study session."""

    new_cards: list[ScheduledCard]
    review_cards: list[ScheduledCard]
    total_due: int


@dataclass
class StudyStats:
    cards_studied_today: int = 0
    new_cards_today: int = 0
    reviews_today: int = 0
    average_retention: float = 0.0
    streak_days: int = 0
    total_cards_learned: int = 0
    mature_cards: int = 0  # stability > 21 days
    young_cards: int = 0  # reviewed, stability <= 21 days


@dataclass
class CardInsight:
    """
    Per-card diagnostics derived from a schedule state.
    """

    card_id: str
    front: str
    review_count: int
    difficulty: float | None
    stability: float | None

    # Computed metrics
    current_retrievability: float | None
    days_overdue: int | None  # Negative if not yet due
    lapse_rate: float | None  # again ratings / reviews
    interval: int | None  # Interval the current stability schedules
