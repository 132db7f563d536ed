"""
Topic Performance Tracker.

Folds graded attempts into a ProgressState:
- topic coverage (first/last covered quiz, times covered)
- per-topic accuracy and struggling/learning/mastered classification
- per-topic and per-question memory cards, scheduled in quiz numbers
- lifetime counters

The tracker mutates the state it is given; ProgressService hands it a copy.
Replaying the same ordered attempts from a fresh state always reproduces
the same result: nothing here reads the clock or a random source.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from loguru import logger

from masterycore.core.curriculum import Curriculum
from masterycore.core.models import (
    GradedAttempt,
    ProgressState,
    QuestionHistory,
    TopicCoverageStatus,
    TopicPerformance,
)
from masterycore.study.fsrs import (
    DEFAULT_MAXIMUM_INTERVAL,
    DEFAULT_REQUEST_RETENTION,
    MemoryScheduler,
)
from masterycore.study.quiz_schedule import QuizClock, QuizScheduler

# Classification thresholds (accuracy in percent)
MASTERY_ACCURACY = 80.0
MASTERY_MIN_ANSWERED = 3
STRUGGLING_ACCURACY = 60.0
STRUGGLING_MIN_ANSWERED = 2


class TopicPerformanceTracker:
    """Aggregates attempts per topic and keeps each topic's card scheduled."""

    def __init__(
        self,
        curriculum: Curriculum,
        clock: QuizClock | None = None,
        request_retention: float = DEFAULT_REQUEST_RETENTION,
        maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL,
        mastery_accuracy: float = MASTERY_ACCURACY,
        mastery_min_answered: int = MASTERY_MIN_ANSWERED,
        struggling_accuracy: float = STRUGGLING_ACCURACY,
        struggling_min_answered: int = STRUGGLING_MIN_ANSWERED,
    ):
        if struggling_accuracy > mastery_accuracy:
            raise ValueError("struggling_accuracy must not exceed mastery_accuracy")
        self.curriculum = curriculum
        self.clock = clock or QuizClock()
        self.request_retention = request_retention
        self.maximum_interval = maximum_interval
        self.mastery_accuracy = mastery_accuracy
        self.mastery_min_answered = mastery_min_answered
        self.struggling_accuracy = struggling_accuracy
        self.struggling_min_answered = struggling_min_answered

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def ensure_initialized(self, state: ProgressState) -> ProgressState:
        """Give every curriculum topic a coverage and performance entry."""
        for domain in self.curriculum.domains:
            for topic in domain.topics:
                if topic not in state.topic_coverage:
                    state.topic_coverage[topic] = TopicCoverageStatus(topic_id=topic, domain_id=domain.id)
                if topic not in state.topic_performance:
                    state.topic_performance[topic] = TopicPerformance(topic_id=topic, domain_id=domain.id)
        return state

    def scheduler_for(self, state: ProgressState) -> QuizScheduler:
        """Quiz scheduler using the learner's own weights when present."""
        return QuizScheduler(
            MemoryScheduler(
                weights=state.scheduler_parameters,
                request_retention=self.request_retention,
                maximum_interval=self.maximum_interval,
            ),
            self.clock,
        )

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def classify(self, performance: TopicPerformance) -> None:
        """Recompute accuracy (percent) and the struggling/mastered flags."""
        if performance.questions_answered > 0:
            performance.accuracy = performance.correct_answers / performance.questions_answered * 100
        else:
            performance.accuracy = 0.0

        performance.is_mastered = (
            performance.accuracy >= self.mastery_accuracy
            and performance.questions_answered >= self.mastery_min_answered
        )
        performance.is_struggling = (
            not performance.is_mastered
            and performance.accuracy < self.struggling_accuracy
            and performance.questions_answered >= self.struggling_min_answered
        )

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def record_attempts(
        self,
        state: ProgressState,
        attempts: Sequence[GradedAttempt],
        quiz_number: int,
        tested_at: str | None = None,
    ) -> set[str]:
        """
        Apply a quiz's attempts in order.

        Args:
            state: State to update in place
            attempts: Graded attempts of one quiz
            quiz_number: Number of the quiz being recorded
            tested_at: ISO timestamp stored as last_tested

        Returns:
            Topics touched by the quiz
        """
        scheduler = self.scheduler_for(state)
        touched: set[str] = set()
        for attempt in attempts:
            touched.update(self.record_attempt(state, attempt, quiz_number, tested_at, scheduler))
        return touched

    def record_attempt(
        self,
        state: ProgressState,
        attempt: GradedAttempt,
        quiz_number: int,
        tested_at: str | None = None,
        scheduler: QuizScheduler | None = None,
    ) -> list[str]:
        """Apply one attempt to every topic it references; returns topics updated."""
        scheduler = scheduler or self.scheduler_for(state)
        updated: list[str] = []

        for topic in self._valid_topics(state, attempt.topics):
            self._update_coverage(state.topic_coverage[topic], quiz_number)

            performance = state.topic_performance.get(topic)
            if performance is None:
                performance = TopicPerformance(
                    topic_id=topic,
                    domain_id=state.topic_coverage[topic].domain_id,
                )
                state.topic_performance[topic] = performance

            performance.questions_answered += 1
            if attempt.is_correct:
                performance.correct_answers += 1
            performance.total_points += attempt.points_earned
            performance.max_points += attempt.max_points
            if tested_at is not None:
                performance.last_tested = tested_at
            self.classify(performance)

            scheduler.review_topic(performance, attempt.is_correct, quiz_number)
            updated.append(topic)

        if attempt.question_id:
            self._update_question(state, attempt, quiz_number, scheduler)

        state.total_questions += 1
        if attempt.is_correct:
            state.correct_answers += 1
        state.total_points += attempt.points_earned
        state.max_possible_points += attempt.max_points
        return updated

    def _valid_topics(self, state: ProgressState, topics: Iterable[str]) -> list[str]:
        valid: list[str] = []
        for topic in topics:
            if not topic or not isinstance(topic, str):
                logger.warning(f"Skipping invalid topic: {topic!r}")
            elif topic not in state.topic_coverage:
                logger.warning(f"Skipping unknown topic not in curriculum: {topic}")
            elif topic not in valid:
                valid.append(topic)
        return valid

    @staticmethod
    def _update_coverage(coverage: TopicCoverageStatus, quiz_number: int) -> None:
        if coverage.first_covered_quiz is None:
            coverage.first_covered_quiz = quiz_number
            logger.debug(f"First coverage of topic: {coverage.topic_id}")
        coverage.times_covered += 1
        coverage.last_covered_quiz = quiz_number

    @staticmethod
    def _update_question(
        state: ProgressState,
        attempt: GradedAttempt,
        quiz_number: int,
        scheduler: QuizScheduler,
    ) -> None:
        history = state.question_history.get(attempt.question_id)
        if history is None:
            history = QuestionHistory(
                question_id=attempt.question_id,
                first_asked_quiz=quiz_number,
                last_asked_quiz=quiz_number,
                question_category=attempt.question_category,
            )
            state.question_history[attempt.question_id] = history

        history.last_asked_quiz = quiz_number
        history.times_asked += 1
        history.correct_history.append(attempt.is_correct)
        if attempt.question_category is not None:
            history.question_category = attempt.question_category
        scheduler.review_question(history, attempt.is_correct, quiz_number)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @staticmethod
    def uncovered_topics(state: ProgressState) -> list[str]:
        return [t for t, c in state.topic_coverage.items() if c.times_covered == 0]

    @staticmethod
    def all_covered(state: ProgressState) -> bool:
        return bool(state.topic_coverage) and all(
            c.times_covered > 0 for c in state.topic_coverage.values()
        )

    @staticmethod
    def mastered_ratio(state: ProgressState) -> float:
        """Share of known topics currently mastered (0-1)."""
        total = len(state.topic_performance)
        if total == 0:
            return 0.0
        return sum(1 for p in state.topic_performance.values() if p.is_mastered) / total
