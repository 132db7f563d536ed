"""
mastery-core: adaptive quiz mastery.

Estimates a learner's ability from graded quiz attempts (2PL IRT with
confidence intervals) and schedules topic reviews in quiz numbers with
FSRS, across three curriculum phases.

Typical use:

    from masterycore import ProgressService

    service = ProgressService()
    state = service.new_state()
    state = service.record_quiz(state, attempts, completed_at)
    topics = service.next_quiz_topics(state, 10)
"""

from masterycore.core.models import (
    AbilityEstimate,
    CurriculumError,
    GradedAttempt,
    MasteryError,
    PersistenceError,
    Phase,
    ProgressState,
    QuestionCategory,
)
from masterycore.core.schemas import AttemptPayload, QuestionPayload, QuizPayload
from masterycore.progress.service import (
    AbilityReport,
    ProgressService,
    ProgressSummary,
    RecalculationResult,
)
from masterycore.progress.store import JsonProgressStore, SqlProgressStore, open_store
from masterycore.study.scoring import score_attempt

__version__ = "1.0.0"

__all__ = [
    # Service
    "ProgressService",
    "AbilityReport",
    "ProgressSummary",
    "RecalculationResult",
    # Models
    "AbilityEstimate",
    "GradedAttempt",
    "Phase",
    "ProgressState",
    "QuestionCategory",
    # Input contract
    "AttemptPayload",
    "QuestionPayload",
    "QuizPayload",
    # Persistence
    "JsonProgressStore",
    "SqlProgressStore",
    "open_store",
    # Scoring
    "score_attempt",
    # Errors
    "MasteryError",
    "PersistenceError",
    "CurriculumError",
]
