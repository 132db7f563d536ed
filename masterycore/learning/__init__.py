"""
Learning: per-learner progression.

- performance_tracker: folds attempts into coverage, accuracy and cards
- phase_controller: Coverage -> Remediation -> Maintenance
- topic_selector: next-quiz topics per phase
"""

from masterycore.learning.performance_tracker import TopicPerformanceTracker
from masterycore.learning.phase_controller import PhaseController, PhaseTransition
from masterycore.learning.topic_selector import TopicSelector

__all__ = [
    "PhaseController",
    "PhaseTransition",
    "TopicPerformanceTracker",
    "TopicSelector",
]
