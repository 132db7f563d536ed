"""
Study: the numeric models.

- scoring: partial credit and item parameters
- irt: 2PL ability estimation
- confidence: standard errors, Wilson intervals, public score scale
- fsrs: FSRS-4 memory model (days)
- quiz_schedule: the memory model in quiz numbers, due lists
- flashcards: the memory model for self-rated flashcards
"""

from masterycore.study.confidence import ConfidenceIntervalCalculator
from masterycore.study.flashcards import (
    FlashcardReview,
    deck_stats,
    due_flashcards,
    next_flashcard_review,
    reviewed_due_flashcards,
)
from masterycore.study.fsrs import MemoryScheduler
from masterycore.study.irt import AbilityEstimator
from masterycore.study.quiz_schedule import QuizClock, QuizScheduler
from masterycore.study.scoring import PartialCreditScorer

__all__ = [
    "AbilityEstimator",
    "ConfidenceIntervalCalculator",
    "FlashcardReview",
    "MemoryScheduler",
    "PartialCreditScorer",
    "QuizClock",
    "QuizScheduler",
    "deck_stats",
    "due_flashcards",
    "next_flashcard_review",
    "reviewed_due_flashcards",
]
