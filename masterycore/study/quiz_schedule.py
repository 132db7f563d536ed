"""
Quiz-index adaptation of the memory model.

The FSRS equations work in days; the product works in "quiz #N". A fixed
cadence (quizzes per week) converts between the two:

    days_per_quiz = 7 / quizzes_per_week
    offset        = max(1, round(interval_days / days_per_quiz))
    elapsed_days  = (current_quiz - last_review_quiz) * days_per_quiz

Cards keep stability and intervals in days; due_quiz and last_review_quiz
are quiz numbers.
"""

from __future__ import annotations

import math
from dataclasses import replace

from loguru import logger

from masterycore.core.models import (
    MemoryCard,
    ProgressState,
    QuestionHistory,
    Rating,
    TopicPerformance,
)
from masterycore.study.fsrs import MemoryScheduler

DEFAULT_QUIZZES_PER_WEEK = 3.5

# Unscheduled questions come back after this many quizzes
QUESTION_COOLDOWN_QUIZZES = 3


def rating_for(is_correct: bool) -> Rating:
    """Quiz outcomes carry no self-assessment: wrong is Again, right is Good."""
    return Rating.GOOD if is_correct else Rating.AGAIN


class QuizClock:
    """Converts between day intervals and quiz offsets."""

    def __init__(self, quizzes_per_week: float = DEFAULT_QUIZZES_PER_WEEK):
        if quizzes_per_week <= 0:
            logger.warning(
                f"Invalid quiz cadence {quizzes_per_week}/week, using {DEFAULT_QUIZZES_PER_WEEK}"
            )
            quizzes_per_week = DEFAULT_QUIZZES_PER_WEEK
        self.quizzes_per_week = quizzes_per_week

    @property
    def days_per_quiz(self) -> float:
        return 7.0 / self.quizzes_per_week

    def quiz_offset(self, interval_days: float) -> int:
        """Quizzes until due; always at least the next quiz."""
        return max(1, int(math.floor(interval_days / self.days_per_quiz + 0.5)))

    def elapsed_days(self, card: MemoryCard, current_quiz: int) -> float:
        """Days represented by the quizzes since the card's last review."""
        if card.last_review_quiz is None:
            return 0.0
        return max(0, current_quiz - card.last_review_quiz) * self.days_per_quiz


class QuizScheduler:
    """MemoryScheduler driven by quiz numbers instead of dates."""

    def __init__(
        self,
        scheduler: MemoryScheduler | None = None,
        clock: QuizClock | None = None,
    ):
        self.scheduler = scheduler or MemoryScheduler()
        self.clock = clock or QuizClock()

    def review(self, card: MemoryCard, is_correct: bool, quiz_number: int) -> MemoryCard:
        """Review a card at quiz_number and schedule its next due quiz."""
        elapsed = self.clock.elapsed_days(card, quiz_number)
        outcome = self.scheduler.review(card, rating_for(is_correct), elapsed)
        return replace(
            outcome.card,
            due_quiz=quiz_number + self.clock.quiz_offset(outcome.interval_days),
            last_review_quiz=quiz_number,
        )

    def review_topic(self, performance: TopicPerformance, is_correct: bool, quiz_number: int) -> None:
        performance.card = self.review(performance.card, is_correct, quiz_number)
        logger.debug(
            f"Topic {performance.topic_id!r}: {performance.card.state.name} "
            f"S={performance.card.stability:.2f} due at quiz {performance.card.due_quiz}"
        )

    def review_question(self, history: QuestionHistory, is_correct: bool, quiz_number: int) -> None:
        history.card = self.review(history.card, is_correct, quiz_number)


# =============================================================================
# DUE LISTS
# =============================================================================


def _topic_bucket(performance: TopicPerformance) -> int:
    if performance.is_struggling:
        return 0
    if performance.is_mastered:
        return 2
    return 1


def _topic_is_due(performance: TopicPerformance, quiz_index: int) -> bool:
    card = performance.card
    if card.due_quiz is not None:
        return card.due_quiz <= quiz_index
    return performance.questions_answered > 0


def topics_due(state: ProgressState, quiz_index: int | None = None) -> list[TopicPerformance]:
    """
    Topics due for review at quiz_index (default: the next quiz).

    Ordered struggling, learning, mastered; then earliest due quiz; then
    higher memory difficulty first.
    """
    if quiz_index is None:
        quiz_index = state.next_quiz_number

    due = [p for p in state.topic_performance.values() if _topic_is_due(p, quiz_index)]
    due.sort(
        key=lambda p: (
            _topic_bucket(p),
            p.card.due_quiz if p.card.due_quiz is not None else -1,
            -p.card.difficulty,
            p.topic_id,
        )
    )
    return due


def due_topic_ids(state: ProgressState, quiz_index: int | None = None) -> list[str]:
    return [p.topic_id for p in topics_due(state, quiz_index)]


def questions_due(
    state: ProgressState,
    quiz_index: int | None = None,
    cooldown: int = QUESTION_COOLDOWN_QUIZZES,
) -> list[QuestionHistory]:
    """
    Questions eligible for repetition at quiz_index.

    Scheduled questions are due when due_quiz <= quiz_index; unscheduled ones
    once cooldown quizzes have passed since they were last asked. Lapsed
    questions come first, then earliest due, then higher difficulty.
    """
    if quiz_index is None:
        quiz_index = state.next_quiz_number

    due: list[QuestionHistory] = []
    for history in state.question_history.values():
        card = history.card
        if card.due_quiz is not None:
            if card.due_quiz <= quiz_index:
                due.append(history)
        elif quiz_index - history.last_asked_quiz >= cooldown:
            due.append(history)

    due.sort(
        key=lambda h: (
            0 if h.card.lapses > 0 else 1,
            h.card.due_quiz if h.card.due_quiz is not None else -1,
            -h.card.difficulty,
            h.question_id,
        )
    )
    return due
