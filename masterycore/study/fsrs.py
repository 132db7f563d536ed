"""
FSRS-4 memory model.

Stability/difficulty state machine working in calendar days:

    New -> Learning -> Review
                ^         |
                |   Again v
                +--- Relearning

Each review takes the card, a rating (Again/Hard/Good/Easy) and the days
elapsed since the previous review, and returns the updated card with the
interval (in days) until it should be seen again. An interval of 0 means
"again at the next opportunity" (learning steps).

The quiz-facing adaptation lives in study.quiz_schedule; the flashcard
variant in study.flashcards.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Sequence

from loguru import logger

from masterycore.core.models import CardState, MemoryCard, Rating

# =============================================================================
# FSRS-4 CONSTANTS
# =============================================================================

DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.4,    # w0: initial stability for Again
    0.6,    # w1: initial stability for Hard
    2.4,    # w2: initial stability for Good
    5.8,    # w3: initial stability for Easy
    4.93,   # w4: initial difficulty
    0.94,   # w5: initial difficulty slope per rating
    0.86,   # w6: difficulty change per rating
    0.01,   # w7: mean reversion towards w4
    1.49,   # w8: recall stability growth
    0.14,   # w9: stability saturation
    0.94,   # w10: retrievability sensitivity
    2.18,   # w11: post-lapse stability scale
    0.05,   # w12: post-lapse difficulty exponent
    0.34,   # w13: post-lapse stability exponent
    1.26,   # w14: post-lapse retrievability sensitivity
    0.29,   # w15: hard penalty
    2.61,   # w16: easy bonus
)

WEIGHT_COUNT = len(DEFAULT_WEIGHTS)
DEFAULT_REQUEST_RETENTION = 0.90
DEFAULT_MAXIMUM_INTERVAL = 36500

MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0
MIN_STABILITY = 0.1


def resolve_weights(weights: Sequence[float] | None) -> tuple[float, ...]:
    """Validate a learner-specific weight vector, falling back to the defaults."""
    if weights is None:
        return DEFAULT_WEIGHTS
    if len(weights) != WEIGHT_COUNT:
        logger.warning(
            f"Ignoring scheduler parameters: expected {WEIGHT_COUNT} weights, got {len(weights)}"
        )
        return DEFAULT_WEIGHTS
    try:
        resolved = tuple(float(w) for w in weights)
    except (TypeError, ValueError):
        logger.warning("Ignoring scheduler parameters: non-numeric weight")
        return DEFAULT_WEIGHTS
    if not all(math.isfinite(w) for w in resolved):
        logger.warning("Ignoring scheduler parameters: non-finite weight")
        return DEFAULT_WEIGHTS
    return resolved


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of one review: the new card and the interval in days."""

    card: MemoryCard
    interval_days: int


class MemoryScheduler:
    """
    FSRS-4 spaced repetition scheduler.

    Calculates review intervals from memory state and the desired
    retention rate. Cards are never mutated; review() returns a new card.
    """

    def __init__(
        self,
        weights: Sequence[float] | None = None,
        request_retention: float = DEFAULT_REQUEST_RETENTION,
        maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL,
    ):
        self.w = resolve_weights(weights)
        if not 0.0 < request_retention < 1.0:
            logger.warning(
                f"Invalid request retention {request_retention}, using {DEFAULT_REQUEST_RETENTION}"
            )
            request_retention = DEFAULT_REQUEST_RETENTION
        self.request_retention = request_retention
        self.maximum_interval = max(1, int(maximum_interval))

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def retrievability(self, card: MemoryCard, elapsed_days: float) -> float:
        """R = (1 + t / (9 * S))^-1; 0 for a card that was never reviewed."""
        if card.stability <= 0:
            return 0.0
        return math.pow(1 + max(0.0, elapsed_days) / (9 * card.stability), -1)

    def review(self, card: MemoryCard, rating: Rating, elapsed_days: float = 0.0) -> ReviewOutcome:
        """
        Process a review and return the new memory state.

        Args:
            card: Current card (not modified)
            rating: Review grade
            elapsed_days: Days since the previous review
        """
        rating = Rating(rating)
        elapsed = 0.0 if card.state == CardState.NEW else max(0.0, float(elapsed_days))

        new_card = replace(
            card,
            elapsed_days=elapsed,
            reps=card.reps + 1,
            last_rating=rating,
        )

        if card.state == CardState.NEW:
            interval = self._review_new(new_card, rating)
        elif card.state in (CardState.LEARNING, CardState.RELEARNING):
            interval = self._review_learning(card, new_card, rating, elapsed)
        else:
            interval = self._review_review(card, new_card, rating, elapsed)

        new_card.scheduled_days = interval
        return ReviewOutcome(card=new_card, interval_days=interval)

    def next_interval(self, stability: float) -> int:
        """Days until recall probability falls to request_retention."""
        interval = stability * 9 * (1 / self.request_retention - 1)
        return max(1, min(self.maximum_interval, _round_half_up(interval)))

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def _review_new(self, new_card: MemoryCard, rating: Rating) -> int:
        new_card.difficulty = self._initial_difficulty(rating)
        new_card.stability = self._initial_stability(rating)

        if rating == Rating.EASY:
            new_card.state = CardState.REVIEW
            return self.next_interval(new_card.stability)

        new_card.state = CardState.LEARNING
        return 0

    def _review_learning(
        self,
        card: MemoryCard,
        new_card: MemoryCard,
        rating: Rating,
        elapsed: float,
    ) -> int:
        self._update_memory(card, new_card, rating, elapsed)

        if rating in (Rating.AGAIN, Rating.HARD):
            new_card.state = card.state
            return 0

        new_card.state = CardState.REVIEW
        good_interval = self.next_interval(
            self._next_recall_stability(
                card.difficulty,
                card.stability,
                self.retrievability(card, elapsed),
                Rating.GOOD,
            )
        )
        if rating == Rating.GOOD:
            return good_interval
        return max(self.next_interval(new_card.stability), good_interval + 1)

    def _review_review(
        self,
        card: MemoryCard,
        new_card: MemoryCard,
        rating: Rating,
        elapsed: float,
    ) -> int:
        self._update_memory(card, new_card, rating, elapsed)

        if rating == Rating.AGAIN:
            new_card.state = CardState.RELEARNING
            new_card.lapses = card.lapses + 1
            return 0

        new_card.state = CardState.REVIEW
        r = self.retrievability(card, elapsed)
        hard = self.next_interval(
            self._next_recall_stability(card.difficulty, card.stability, r, Rating.HARD)
        )
        good = self.next_interval(
            self._next_recall_stability(card.difficulty, card.stability, r, Rating.GOOD)
        )
        hard = min(hard, good)
        good = max(good, hard + 1)

        if rating == Rating.HARD:
            return hard
        if rating == Rating.GOOD:
            return good
        easy = self.next_interval(new_card.stability)
        return max(easy, good + 1)

    def _update_memory(
        self,
        card: MemoryCard,
        new_card: MemoryCard,
        rating: Rating,
        elapsed: float,
    ) -> None:
        r = self.retrievability(card, elapsed)
        new_card.difficulty = self._next_difficulty(card.difficulty, rating)
        if rating == Rating.AGAIN:
            new_card.stability = self._next_forget_stability(card.difficulty, card.stability, r)
        else:
            new_card.stability = self._next_recall_stability(
                card.difficulty, card.stability, r, rating
            )

    # -------------------------------------------------------------------------
    # FSRS-4 equations
    # -------------------------------------------------------------------------

    def _initial_stability(self, rating: Rating) -> float:
        """Initial stability based on first review rating."""
        return max(self.w[int(rating) - 1], MIN_STABILITY)

    def _initial_difficulty(self, rating: Rating) -> float:
        """Initial difficulty: w4 for Good, higher for worse ratings."""
        return self._clamp_difficulty(self.w[4] - self.w[5] * (int(rating) - 3))

    def _next_difficulty(self, d: float, rating: Rating) -> float:
        """Nudge difficulty by rating, with mean reversion towards the initial value."""
        moved = d - self.w[6] * (int(rating) - 3)
        return self._clamp_difficulty(self.w[7] * self.w[4] + (1 - self.w[7]) * moved)

    def _next_recall_stability(self, d: float, s: float, r: float, rating: Rating) -> float:
        """Stability after a successful recall."""
        hard_penalty = self.w[15] if rating == Rating.HARD else 1.0
        easy_bonus = self.w[16] if rating == Rating.EASY else 1.0
        s = max(s, MIN_STABILITY)

        return s * (
            1
            + math.exp(self.w[8])
            * (11 - d)
            * math.pow(s, -self.w[9])
            * (math.exp((1 - r) * self.w[10]) - 1)
            * hard_penalty
            * easy_bonus
        )

    def _next_forget_stability(self, d: float, s: float, r: float) -> float:
        """Stability after forgetting."""
        d = max(d, MIN_DIFFICULTY)
        return max(
            MIN_STABILITY,
            self.w[11]
            * math.pow(d, -self.w[12])
            * (math.pow(max(s, 0.0) + 1, self.w[13]) - 1)
            * math.exp((1 - r) * self.w[14]),
        )

    @staticmethod
    def _clamp_difficulty(d: float) -> float:
        return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, d))
