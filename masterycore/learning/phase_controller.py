"""
Phase Controller.

Three curriculum-wide phases, entered in order and never left backwards:

1. Coverage     - until every topic has been covered once
2. Remediation  - focus on struggling and learning topics
3. Maintenance  - once > 70% of topics are mastered or 50 quizzes are done

Transitions are evaluated once per completed quiz and advance at most one
phase per evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from masterycore.core.models import Phase, ProgressState
from masterycore.learning.performance_tracker import TopicPerformanceTracker

MAINTENANCE_MASTERY_RATIO = 0.70
MAINTENANCE_QUIZ_COUNT = 50


@dataclass(frozen=True)
class PhaseTransition:
    old_phase: Phase
    new_phase: Phase
    quiz_number: int
    message: str


class PhaseController:
    """Decides when a learner moves to the next phase."""

    def __init__(
        self,
        maintenance_mastery_ratio: float = MAINTENANCE_MASTERY_RATIO,
        maintenance_quiz_count: int = MAINTENANCE_QUIZ_COUNT,
    ):
        self.maintenance_mastery_ratio = maintenance_mastery_ratio
        self.maintenance_quiz_count = maintenance_quiz_count

    def next_phase(self, state: ProgressState) -> Phase | None:
        """Phase the learner should move to now, or None to stay."""
        if state.current_phase == Phase.COVERAGE:
            if state.all_topics_covered_once:
                return Phase.REMEDIATION
            return None

        if state.current_phase == Phase.REMEDIATION:
            ratio = TopicPerformanceTracker.mastered_ratio(state)
            if (
                ratio > self.maintenance_mastery_ratio
                or state.total_quizzes_completed >= self.maintenance_quiz_count
            ):
                return Phase.MAINTENANCE

        return None

    def update(self, state: ProgressState, quiz_number: int) -> PhaseTransition | None:
        """
        Evaluate the state after quiz_number was recorded and apply any transition.

        Marks full coverage the first time every topic has been seen.
        """
        if not state.all_topics_covered_once and TopicPerformanceTracker.all_covered(state):
            state.all_topics_covered_once = True
            logger.info(f"All topics covered at quiz {quiz_number}")

        new_phase = self.next_phase(state)
        if new_phase is None:
            return None

        old_phase = state.current_phase
        state.current_phase = new_phase
        if new_phase == Phase.REMEDIATION:
            state.phase1_completed_at = quiz_number
            message = "All topics covered once, focusing on weak areas"
        else:
            state.phase2_completed_at = quiz_number
            message = "Most topics mastered, entering maintenance"

        logger.info(
            f"Phase transition at quiz {quiz_number}: "
            f"{old_phase.display_name} -> {new_phase.display_name}. {message}"
        )
        return PhaseTransition(
            old_phase=old_phase,
            new_phase=new_phase,
            quiz_number=quiz_number,
            message=message,
        )
