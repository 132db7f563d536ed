"""
Flashcard scheduling.

Same FSRS memory model as quizzes, but in calendar time and driven by the
learner's own rating of recall (again/hard/good/easy).
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from masterycore.core.models import CardState, MemoryCard, Rating
from masterycore.study.fsrs import MemoryScheduler

# Learning-step delays for cards not yet graduated to Review
LEARNING_STEPS = {
    Rating.AGAIN: timedelta(minutes=1),
    Rating.HARD: timedelta(minutes=5),
    Rating.GOOD: timedelta(minutes=10),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FlashcardReview:
    """Latest review of one flashcard by one learner."""

    flashcard_id: str
    learner_id: str
    reviewed_at: datetime
    rating: Rating
    next_review_at: datetime
    interval: int = 0  # Days
    stability: float = 0.0
    difficulty: float = 0.0
    elapsed_days: float = 0.0
    reps: int = 0
    lapses: int = 0
    state: CardState = CardState.NEW

    @property
    def repetitions(self) -> int:
        return self.reps

    def is_due(self, now: datetime) -> bool:
        return self.next_review_at <= now

    def to_card(self) -> MemoryCard:
        return MemoryCard(
            stability=self.stability,
            difficulty=self.difficulty,
            elapsed_days=self.elapsed_days,
            scheduled_days=self.interval,
            reps=self.reps,
            lapses=self.lapses,
            state=self.state,
            last_rating=self.rating,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "flashcard_id": self.flashcard_id,
            "learner_id": self.learner_id,
            "reviewed_at": self.reviewed_at.isoformat(),
            "rating": self.rating.name.lower(),
            "next_review_at": self.next_review_at.isoformat(),
            "interval": self.interval,
            "stability": self.stability,
            "difficulty": self.difficulty,
            "elapsed_days": self.elapsed_days,
            "reps": self.reps,
            "lapses": self.lapses,
            "state": int(self.state),
        }


def next_flashcard_review(
    previous: FlashcardReview | None,
    rating: Rating | str,
    flashcard_id: str,
    learner_id: str,
    now: datetime | None = None,
    scheduler: MemoryScheduler | None = None,
) -> FlashcardReview:
    """
    Schedule the next review of a flashcard.

    Args:
        previous: Last review of this card, or None for a new card
        rating: Learner's recall rating
        now: Review time (defaults to the current UTC time)
    """
    if isinstance(rating, str):
        rating = Rating.from_label(rating)
    now = now or _utcnow()
    scheduler = scheduler or MemoryScheduler()

    if previous is None or previous.stability <= 0:
        card = MemoryCard()
        elapsed = 0.0
    else:
        card = previous.to_card()
        elapsed = max(0.0, (now - previous.reviewed_at).total_seconds() / 86400)

    outcome = scheduler.review(card, rating, elapsed)
    new_card = outcome.card

    if outcome.interval_days > 0:
        due = now + timedelta(days=outcome.interval_days)
    else:
        due = now + LEARNING_STEPS.get(rating, timedelta(minutes=10))

    return FlashcardReview(
        flashcard_id=flashcard_id,
        learner_id=learner_id,
        reviewed_at=now,
        rating=rating,
        next_review_at=due,
        interval=outcome.interval_days,
        stability=new_card.stability,
        difficulty=new_card.difficulty,
        elapsed_days=new_card.elapsed_days,
        reps=new_card.reps,
        lapses=new_card.lapses,
        state=new_card.state,
    )


def _latest(reviews: Iterable[FlashcardReview]) -> dict[str, FlashcardReview]:
    latest: dict[str, FlashcardReview] = {}
    for review in reviews:
        current = latest.get(review.flashcard_id)
        if current is None or review.reviewed_at >= current.reviewed_at:
            latest[review.flashcard_id] = review
    return latest


def due_flashcards(
    reviews: Iterable[FlashcardReview],
    all_flashcard_ids: Iterable[str],
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> list[str]:
    """New cards plus reviewed cards that are due, shuffled for interleaving."""
    now = now or _utcnow()
    rng = rng or random.Random()
    latest = _latest(reviews)

    new_cards = [fid for fid in all_flashcard_ids if fid not in latest]
    due_cards = [fid for fid, review in latest.items() if review.is_due(now)]

    result = new_cards + due_cards
    rng.shuffle(result)
    return result


def reviewed_due_flashcards(
    reviews: Iterable[FlashcardReview],
    now: datetime | None = None,
) -> list[str]:
    """Only cards reviewed before and now due; new cards are excluded."""
    now = now or _utcnow()
    return [fid for fid, review in _latest(reviews).items() if review.is_due(now)]


def deck_stats(
    reviews: Iterable[FlashcardReview],
    all_flashcard_ids: Iterable[str],
) -> dict[str, int]:
    """
    Counts by progress bucket.

    Reviewed cards are learning with 0 repetitions, review below 3 and
    mastered from 3 on.
    """
    all_ids = list(all_flashcard_ids)
    latest = _latest(reviews)

    stats = {
        "total": len(all_ids),
        "new": sum(1 for fid in all_ids if fid not in latest),
        "learning": 0,
        "review": 0,
        "mastered": 0,
    }
    for review in latest.values():
        if review.repetitions == 0:
            stats["learning"] += 1
        elif review.repetitions < 3:
            stats["review"] += 1
        else:
            stats["mastered"] += 1
    return stats
