"""
Progress Service - the public API of mastery-core.

Wires the components together per learner:

    score -> update performance -> update coverage -> check phase -> done

Every operation takes a ProgressState and returns a new one; the input is
never modified. Persistence is optional and only used by the learner-id
based helpers (submit_quiz, rebuild, learner_ability).
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Sequence

from loguru import logger

from masterycore.config import Settings, get_settings
from masterycore.core.curriculum import Curriculum, default_curriculum, load_curriculum
from masterycore.core.models import (
    AbilityEstimate,
    Rating,
    GradedAttempt,
    MasteryError,
    Phase,
    ProgressState,
    QuestionCategory,
)
from masterycore.core.schemas import QuizPayload
from masterycore.learning.performance_tracker import TopicPerformanceTracker
from masterycore.learning.phase_controller import PhaseController
from masterycore.learning.topic_selector import TopicSelector
from masterycore.progress.store import ProgressStore
from masterycore.study import flashcards
from masterycore.study.confidence import (
    AbilityInterval,
    ConfidenceIntervalCalculator,
    ScoreInterval,
    to_public_score,
)
from masterycore.study.flashcards import FlashcardReview
from masterycore.study.fsrs import MemoryScheduler
from masterycore.study.irt import AbilityEstimator
from masterycore.study.quiz_schedule import QuizClock, due_topic_ids, questions_due
from masterycore.study.scoring import PartialCreditScorer, points_based_score


@dataclass(frozen=True)
class AbilityReport:
    """Ability estimate with its public-scale score and intervals."""

    theta: float
    standard_error: float
    public_score: int
    attempt_count: int
    ability_interval: AbilityInterval | None = None  # None without information
    score_interval: ScoreInterval | None = None

    @property
    def has_information(self) -> bool:
        return self.ability_interval is not None


@dataclass(frozen=True)
class ProgressSummary:
    phase: Phase
    quizzes_completed: int
    total_topics: int
    uncovered: int
    struggling: int
    learning: int
    mastered: int
    coverage_percent: float
    total_questions: int
    accuracy_percent: float
    points_score: int


@dataclass
class RecalculationResult:
    """Outcome of a full rebuild from quiz history."""

    state: ProgressState
    ability: AbilityReport
    quizzes_replayed: int = 0
    failed_quizzes: list[int] = field(default_factory=list)  # 1-based positions in history

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_quizzes)


def _timestamp(value: datetime | str | None) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return value.isoformat()


def _sort_key(value: datetime | None) -> datetime:
    if value is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ProgressService:
    """
    High-level service for mastery operations.

    Coordinates the scorer, tracker, phase controller, selector and
    ability estimator using one Settings instance.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        curriculum: Curriculum | None = None,
        store: ProgressStore | None = None,
        rng: random.Random | None = None,
    ):
        self.settings = settings or get_settings()
        if curriculum is None:
            curriculum = (
                load_curriculum(self.settings.curriculum_path)
                if self.settings.curriculum_path
                else default_curriculum()
            )
        self.curriculum = curriculum
        self.store = store
        self.rng = rng or random.Random()

        self.scorer = PartialCreditScorer(self.settings.default_option_count)
        self.memory_scheduler = MemoryScheduler(
            request_retention=self.settings.request_retention,
            maximum_interval=self.settings.maximum_interval,
        )
        self.tracker = TopicPerformanceTracker(
            curriculum,
            clock=QuizClock(self.settings.quizzes_per_week),
            request_retention=self.settings.request_retention,
            maximum_interval=self.settings.maximum_interval,
            mastery_accuracy=self.settings.mastery_accuracy,
            mastery_min_answered=self.settings.mastery_min_answered,
            struggling_accuracy=self.settings.struggling_accuracy,
            struggling_min_answered=self.settings.struggling_min_answered,
        )
        self.phase_controller = PhaseController(
            maintenance_mastery_ratio=self.settings.maintenance_mastery_ratio,
            maintenance_quiz_count=self.settings.maintenance_quiz_count,
        )
        self.confidence = ConfidenceIntervalCalculator(
            AbilityEstimator(
                max_iterations=self.settings.max_iterations,
                tolerance=self.settings.convergence_tolerance,
                min_reliable_attempts=self.settings.min_reliable_attempts,
                capped_limit=self.settings.capped_ability_limit,
            ),
            confidence_level=self.settings.confidence_level,
        )

    # -------------------------------------------------------------------------
    # Pure operations
    # -------------------------------------------------------------------------

    def score_attempt(
        self,
        selected: Iterable[int],
        correct: Iterable[int],
        option_count: int | None = None,
        max_points: float | None = None,
    ) -> float:
        """Partial-credit points for one multiple-response answer."""
        if max_points is None or max_points <= 0:
            max_points = self.settings.default_max_points
        return self.scorer.score(selected, correct, option_count, max_points)

    def new_state(self) -> ProgressState:
        """Empty state with every curriculum topic registered."""
        return self.tracker.ensure_initialized(ProgressState())

    def record_quiz(
        self,
        state: ProgressState,
        attempts: Sequence[GradedAttempt],
        completed_at: datetime | str | None = None,
    ) -> ProgressState:
        """
        Apply one completed quiz and return the updated state.

        Attempts are applied in order, then the phase transition is checked
        once for the quiz.
        """
        updated = self.tracker.ensure_initialized(state.copy())
        quiz_number = updated.next_quiz_number

        self.tracker.record_attempts(updated, attempts, quiz_number, _timestamp(completed_at))
        updated.total_quizzes_completed = quiz_number
        self.phase_controller.update(updated, quiz_number)

        summary = self.summary(updated)
        logger.info(
            f"Quiz {quiz_number} recorded ({len(attempts)} questions): "
            f"phase {summary.phase.display_name}, {summary.uncovered} uncovered, "
            f"{summary.struggling} struggling, {summary.mastered} mastered"
        )
        return updated

    def record_quiz_payload(self, state: ProgressState, quiz: QuizPayload) -> ProgressState:
        return self.record_quiz(
            state,
            quiz.graded_attempts(self.settings, self.scorer),
            quiz.completed_at,
        )

    def estimate_ability(self, attempts: Sequence[GradedAttempt]) -> AbilityReport:
        """Theta, standard error and public score over the whole attempt history."""
        estimate: AbilityEstimate = self.confidence.estimate(attempts)
        if not estimate.has_information:
            return AbilityReport(
                theta=estimate.theta,
                standard_error=estimate.standard_error,
                public_score=to_public_score(estimate.theta),
                attempt_count=estimate.attempt_count,
            )
        return AbilityReport(
            theta=estimate.theta,
            standard_error=estimate.standard_error,
            public_score=to_public_score(estimate.theta),
            attempt_count=estimate.attempt_count,
            ability_interval=self.confidence.ability_interval(estimate),
            score_interval=self.confidence.score_interval(estimate),
        )

    def next_quiz_topics(
        self,
        state: ProgressState,
        count: int | None = None,
        category: QuestionCategory | str | None = None,
        rng: random.Random | None = None,
    ) -> list[str]:
        """Ordered topics for the learner's next quiz."""
        if count is None:
            count = self.settings.default_quiz_size
        prepared = self.tracker.ensure_initialized(state.copy())
        return TopicSelector(rng or self.rng).select(prepared, count, category)

    def due_topics(self, state: ProgressState) -> list[str]:
        """Topics whose memory card is due at the next quiz, weakest first."""
        return due_topic_ids(state)

    def due_questions(self, state: ProgressState) -> list[str]:
        """Previously asked questions eligible for repetition at the next quiz."""
        return [h.question_id for h in questions_due(state)]

    def recalculate_from_history(self, quizzes: Sequence[QuizPayload]) -> RecalculationResult:
        """
        Rebuild a learner's state by replaying every quiz from an empty state.

        Quizzes are replayed in ascending completion time (history order for
        ties and undated quizzes). A quiz that fails to replay is logged and
        skipped; the result lists it so callers can report a partial rebuild.
        """
        ordered = sorted(
            enumerate(quizzes, start=1),
            key=lambda item: (_sort_key(item[1].completed_at), item[0]),
        )

        state = self.new_state()
        attempts: list[GradedAttempt] = []
        failed: list[int] = []

        for position, quiz in ordered:
            try:
                graded = quiz.graded_attempts(self.settings, self.scorer)
                state = self.record_quiz(state, graded, quiz.completed_at)
            except Exception:  # Intentionally broad - replay continues past a failed quiz
                logger.exception(f"Failed to replay quiz #{position} ({quiz.id}), continuing")
                failed.append(position)
                continue
            attempts.extend(graded)

        result = RecalculationResult(
            state=state,
            ability=self.estimate_ability(attempts),
            quizzes_replayed=len(ordered) - len(failed),
            failed_quizzes=failed,
        )
        if result.is_partial:
            logger.warning(f"Recalculation partial: {len(failed)} of {len(ordered)} quizzes failed")
        else:
            logger.info(f"Recalculated progress from {len(ordered)} quizzes")
        return result

    def summary(self, state: ProgressState) -> ProgressSummary:
        performances = list(state.topic_performance.values())
        total = len(state.topic_coverage)
        uncovered = len(TopicPerformanceTracker.uncovered_topics(state))
        return ProgressSummary(
            phase=state.current_phase,
            quizzes_completed=state.total_quizzes_completed,
            total_topics=total,
            uncovered=uncovered,
            struggling=sum(1 for p in performances if p.is_struggling),
            learning=sum(1 for p in performances if p.is_learning and p.questions_answered > 0),
            mastered=sum(1 for p in performances if p.is_mastered),
            coverage_percent=(total - uncovered) / total * 100 if total else 0.0,
            total_questions=state.total_questions,
            accuracy_percent=(
                state.correct_answers / state.total_questions * 100 if state.total_questions else 0.0
            ),
            points_score=points_based_score(state.total_points, state.max_possible_points),
        )

    # -------------------------------------------------------------------------
    # Learner operations (need a store)
    # -------------------------------------------------------------------------

    def _require_store(self) -> ProgressStore:
        if self.store is None:
            raise MasteryError("No progress store configured")
        return self.store

    def load_state(self, learner_id: str) -> ProgressState:
        """Stored state, or a fresh one for a new learner."""
        state = self._require_store().load(learner_id)
        return self.tracker.ensure_initialized(state) if state else self.new_state()

    def submit_quiz(self, learner_id: str, quiz: QuizPayload) -> ProgressState:
        """Load, log the quiz, record it and save."""
        store = self._require_store()
        state = self.load_state(learner_id)
        store.append_quiz(learner_id, quiz)
        updated = self.record_quiz_payload(state, quiz)
        store.save(learner_id, updated)
        return updated

    def rebuild(self, learner_id: str) -> RecalculationResult:
        """Recalculate from the stored history and overwrite the stored state."""
        store = self._require_store()
        result = self.recalculate_from_history(store.load_history(learner_id))
        store.save(learner_id, result.state)
        return result

    def learner_ability(self, learner_id: str) -> AbilityReport:
        attempts: list[GradedAttempt] = []
        for quiz in self._require_store().load_history(learner_id):
            attempts.extend(quiz.graded_attempts(self.settings, self.scorer))
        return self.estimate_ability(attempts)

    # -------------------------------------------------------------------------
    # Flashcards (calendar time)
    # -------------------------------------------------------------------------

    def review_flashcard(
        self,
        previous: FlashcardReview | None,
        rating: Rating | str,
        flashcard_id: str,
        learner_id: str,
        now: datetime | None = None,
    ) -> FlashcardReview:
        """Schedule a flashcard after a self-rated review."""
        review = flashcards.next_flashcard_review(
            previous, rating, flashcard_id, learner_id, now, self.memory_scheduler
        )
        logger.debug(
            f"Flashcard {flashcard_id} rated {review.rating.name.lower()}, "
            f"next review {review.next_review_at.isoformat()}"
        )
        return review

    def due_flashcards(
        self,
        reviews: Iterable[FlashcardReview],
        flashcard_ids: Iterable[str],
        now: datetime | None = None,
    ) -> list[str]:
        return flashcards.due_flashcards(reviews, flashcard_ids, now, self.rng)

    def flashcard_stats(
        self,
        reviews: Iterable[FlashcardReview],
        flashcard_ids: Iterable[str],
    ) -> dict[str, int]:
        return flashcards.deck_stats(reviews, flashcard_ids)
