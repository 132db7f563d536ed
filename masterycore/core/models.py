"""
Core domain model for mastery tracking.

Provides the canonical representation shared by the study and learning
packages:

- Enums: CardState, Rating, Phase, QuestionCategory
- GradedAttempt: one answered question (immutable)
- MemoryCard: FSRS memory state for a topic or question
- TopicCoverageStatus / TopicPerformance / QuestionHistory
- ProgressState: the per-learner aggregate every operation reads and returns
- AbilityEstimate: derived IRT ability with its uncertainty

Everything here is plain data. Serialisation is explicit (to_dict/from_dict)
so a state written by one process can be replayed byte-for-byte by another.
"""

from __future__ import annotations

import copy
import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# =============================================================================
# ERRORS
# =============================================================================


class MasteryError(Exception):
    """Base class for mastery-core errors."""


class PersistenceError(MasteryError):
    """Raised when the persistence collaborator fails to read or write."""


class CurriculumError(MasteryError):
    """Raised when a curriculum definition cannot be loaded."""


# =============================================================================
# ENUMS
# =============================================================================


class CardState(int, Enum):
    """FSRS card state."""

    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3


class Rating(int, Enum):
    """FSRS review grade."""

    AGAIN = 1  # Failed, forgot
    HARD = 2  # Recalled with difficulty
    GOOD = 3  # Recalled with normal effort
    EASY = 4  # Instant recall

    @classmethod
    def from_label(cls, label: str) -> Rating:
        """Parse 'again' / 'hard' / 'good' / 'easy' (case-insensitive)."""
        try:
            return cls[label.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown rating label: {label!r}") from None


class Phase(int, Enum):
    """Curriculum-wide selection mode."""

    COVERAGE = 1  # Cover every topic once
    REMEDIATION = 2  # Focus on weak topics
    MAINTENANCE = 3  # Long intervals, broad variety

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.name.title()


class QuestionCategory(str, Enum):
    """Question complexity by topic and domain spread."""

    SINGLE_TOPIC = "single-domain-single-topic"
    MULTI_TOPIC = "single-domain-multiple-topics"
    CROSS_DOMAIN = "multiple-domains-multiple-topics"

    @property
    def is_single_domain(self) -> bool:
        return self is not QuestionCategory.CROSS_DOMAIN


# =============================================================================
# ATTEMPTS
# =============================================================================


@dataclass(frozen=True)
class GradedAttempt:
    """One answered question, fixed at scoring time."""

    topics: tuple[str, ...]
    is_correct: bool
    points_earned: float
    max_points: float
    irt_difficulty: float = 0.0  # b
    irt_discrimination: float = 1.5  # a
    question_id: str | None = None
    question_category: QuestionCategory | None = None

    @property
    def observed_score(self) -> float:
        """Fraction of max points earned (0-1); partial credit is fractional."""
        if self.max_points <= 0:
            return 1.0 if self.is_correct else 0.0
        return min(1.0, max(0.0, self.points_earned / self.max_points))


# =============================================================================
# MEMORY STATE
# =============================================================================


@dataclass
class MemoryCard:
    """
    FSRS memory state.

    Stability and intervals stay in calendar days so the model equations
    remain valid; due_quiz is the quiz-number view the product works with.
    """

    stability: float = 0.0  # Days until recall drops to 90%
    difficulty: float = 0.0  # 1 (easy) to 10 (hard), 0 before first review
    elapsed_days: float = 0.0  # Days between the last two reviews
    scheduled_days: int = 0  # Interval chosen at the last review
    reps: int = 0  # Total review count
    lapses: int = 0  # Failures while in Review
    state: CardState = CardState.NEW
    due_quiz: int | None = None  # Quiz number when due again
    last_review_quiz: int | None = None
    last_rating: Rating | None = None

    @property
    def is_scheduled(self) -> bool:
        return self.due_quiz is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stability": self.stability,
            "difficulty": self.difficulty,
            "elapsed_days": self.elapsed_days,
            "scheduled_days": self.scheduled_days,
            "reps": self.reps,
            "lapses": self.lapses,
            "state": int(self.state),
            "due_quiz": self.due_quiz,
            "last_review_quiz": self.last_review_quiz,
            "last_rating": int(self.last_rating) if self.last_rating is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MemoryCard:
        if not data:
            return cls()
        last_rating = data.get("last_rating")
        return cls(
            stability=float(data.get("stability") or 0.0),
            difficulty=float(data.get("difficulty") or 0.0),
            elapsed_days=float(data.get("elapsed_days") or 0.0),
            scheduled_days=int(data.get("scheduled_days") or 0),
            reps=int(data.get("reps") or 0),
            lapses=int(data.get("lapses") or 0),
            state=CardState(int(data.get("state") or 0)),
            due_quiz=data.get("due_quiz"),
            last_review_quiz=data.get("last_review_quiz"),
            last_rating=Rating(int(last_rating)) if last_rating is not None else None,
        )


# =============================================================================
# PER-TOPIC AND PER-QUESTION RECORDS
# =============================================================================


@dataclass
class TopicCoverageStatus:
    """How often a topic has appeared in quizzes."""

    topic_id: str
    domain_id: str
    first_covered_quiz: int | None = None
    times_covered: int = 0
    last_covered_quiz: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "domain_id": self.domain_id,
            "first_covered_quiz": self.first_covered_quiz,
            "times_covered": self.times_covered,
            "last_covered_quiz": self.last_covered_quiz,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TopicCoverageStatus:
        return cls(
            topic_id=data["topic_id"],
            domain_id=data["domain_id"],
            first_covered_quiz=data.get("first_covered_quiz"),
            times_covered=int(data.get("times_covered") or 0),
            last_covered_quiz=data.get("last_covered_quiz"),
        )


@dataclass
class TopicPerformance:
    """
    Cross-quiz performance for one topic.

    Accuracy is a percentage (0-100). A topic is mastered at >= 80% over at
    least 3 answers and struggling below 60% over at least 2 answers; the two
    flags can never both be set.
    """

    topic_id: str
    domain_id: str
    questions_answered: int = 0
    correct_answers: int = 0
    total_points: float = 0.0
    max_points: float = 0.0
    accuracy: float = 0.0
    is_struggling: bool = False
    is_mastered: bool = False
    last_tested: str | None = None  # ISO timestamp of the quiz that last tested it
    card: MemoryCard = field(default_factory=MemoryCard)

    @property
    def is_learning(self) -> bool:
        """Neither struggling nor mastered."""
        return not self.is_mastered and not self.is_struggling

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "domain_id": self.domain_id,
            "questions_answered": self.questions_answered,
            "correct_answers": self.correct_answers,
            "total_points": self.total_points,
            "max_points": self.max_points,
            "accuracy": self.accuracy,
            "is_struggling": self.is_struggling,
            "is_mastered": self.is_mastered,
            "last_tested": self.last_tested,
            "card": self.card.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TopicPerformance:
        return cls(
            topic_id=data["topic_id"],
            domain_id=data["domain_id"],
            questions_answered=int(data.get("questions_answered") or 0),
            correct_answers=int(data.get("correct_answers") or 0),
            total_points=float(data.get("total_points") or 0.0),
            max_points=float(data.get("max_points") or 0.0),
            accuracy=float(data.get("accuracy") or 0.0),
            is_struggling=bool(data.get("is_struggling", False)),
            is_mastered=bool(data.get("is_mastered", False)),
            last_tested=data.get("last_tested"),
            card=MemoryCard.from_dict(data.get("card")),
        )


@dataclass
class QuestionHistory:
    """Repetition record for one concrete question."""

    question_id: str
    first_asked_quiz: int
    last_asked_quiz: int
    times_asked: int = 0
    correct_history: list[bool] = field(default_factory=list)
    question_category: QuestionCategory | None = None
    card: MemoryCard = field(default_factory=MemoryCard)

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "first_asked_quiz": self.first_asked_quiz,
            "last_asked_quiz": self.last_asked_quiz,
            "times_asked": self.times_asked,
            "correct_history": list(self.correct_history),
            "question_category": self.question_category.value if self.question_category else None,
            "card": self.card.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuestionHistory:
        category = data.get("question_category")
        return cls(
            question_id=data["question_id"],
            first_asked_quiz=int(data["first_asked_quiz"]),
            last_asked_quiz=int(data["last_asked_quiz"]),
            times_asked=int(data.get("times_asked") or 0),
            correct_history=[bool(x) for x in data.get("correct_history") or []],
            question_category=QuestionCategory(category) if category else None,
            card=MemoryCard.from_dict(data.get("card")),
        )


# =============================================================================
# AGGREGATE
# =============================================================================


@dataclass
class ProgressState:
    """
    Per-learner aggregate.

    Every curriculum topic has an entry in both topic_coverage and
    topic_performance, even before first exposure.
    """

    total_quizzes_completed: int = 0
    current_phase: Phase = Phase.COVERAGE
    all_topics_covered_once: bool = False
    topic_coverage: dict[str, TopicCoverageStatus] = field(default_factory=dict)
    topic_performance: dict[str, TopicPerformance] = field(default_factory=dict)
    question_history: dict[str, QuestionHistory] = field(default_factory=dict)
    scheduler_parameters: list[float] | None = None
    phase1_completed_at: int | None = None
    phase2_completed_at: int | None = None

    # Lifetime counters
    total_questions: int = 0
    correct_answers: int = 0
    total_points: float = 0.0
    max_possible_points: float = 0.0

    @property
    def next_quiz_number(self) -> int:
        return self.total_quizzes_completed + 1

    def copy(self) -> ProgressState:
        """Deep copy; operations never mutate the state they were given."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_quizzes_completed": self.total_quizzes_completed,
            "current_phase": int(self.current_phase),
            "all_topics_covered_once": self.all_topics_covered_once,
            "topic_coverage": {k: v.to_dict() for k, v in sorted(self.topic_coverage.items())},
            "topic_performance": {k: v.to_dict() for k, v in sorted(self.topic_performance.items())},
            "question_history": {k: v.to_dict() for k, v in sorted(self.question_history.items())},
            "scheduler_parameters": list(self.scheduler_parameters) if self.scheduler_parameters else None,
            "phase1_completed_at": self.phase1_completed_at,
            "phase2_completed_at": self.phase2_completed_at,
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "total_points": self.total_points,
            "max_possible_points": self.max_possible_points,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProgressState:
        params = data.get("scheduler_parameters")
        return cls(
            total_quizzes_completed=int(data.get("total_quizzes_completed") or 0),
            current_phase=Phase(int(data.get("current_phase") or 1)),
            all_topics_covered_once=bool(data.get("all_topics_covered_once", False)),
            topic_coverage={
                k: TopicCoverageStatus.from_dict(v)
                for k, v in (data.get("topic_coverage") or {}).items()
            },
            topic_performance={
                k: TopicPerformance.from_dict(v)
                for k, v in (data.get("topic_performance") or {}).items()
            },
            question_history={
                k: QuestionHistory.from_dict(v)
                for k, v in (data.get("question_history") or {}).items()
            },
            scheduler_parameters=[float(w) for w in params] if params else None,
            phase1_completed_at=data.get("phase1_completed_at"),
            phase2_completed_at=data.get("phase2_completed_at"),
            total_questions=int(data.get("total_questions") or 0),
            correct_answers=int(data.get("correct_answers") or 0),
            total_points=float(data.get("total_points") or 0.0),
            max_possible_points=float(data.get("max_possible_points") or 0.0),
        )

    def to_json(self, indent: int | None = None) -> str:
        """Canonical JSON (sorted keys) so identical states serialise identically."""
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent)

    @classmethod
    def from_json(cls, text: str) -> ProgressState:
        return cls.from_dict(json.loads(text))


@dataclass(frozen=True)
class AbilityEstimate:
    """IRT ability estimate. standard_error is inf when there is no information."""

    theta: float
    standard_error: float
    attempt_count: int = 0

    @property
    def has_information(self) -> bool:
        return math.isfinite(self.standard_error)
