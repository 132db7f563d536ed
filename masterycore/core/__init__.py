"""
Core: domain model and curriculum.

- models: dataclasses and enums shared by every package
- curriculum: the topic universe grouped by domain
- schemas: pydantic input contract for quiz documents
"""

from masterycore.core.curriculum import Curriculum, Domain, default_curriculum, load_curriculum
from masterycore.core.models import (
    CardState,
    GradedAttempt,
    MemoryCard,
    Phase,
    ProgressState,
    QuestionCategory,
    Rating,
)

__all__ = [
    "CardState",
    "Curriculum",
    "Domain",
    "GradedAttempt",
    "MemoryCard",
    "Phase",
    "ProgressState",
    "QuestionCategory",
    "Rating",
    "default_curriculum",
    "load_curriculum",
]
