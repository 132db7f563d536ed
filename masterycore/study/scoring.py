"""
Question scoring and item parameters.

- Partial credit for multiple-response questions
- IRT item parameters (difficulty b, discrimination a) and point values,
  looked up by question category or by difficulty label
- Points-ratio fallback score on the public 100-900 scale

Partial credit is symmetric: every option that is judged correctly (selected
and correct, or left out and incorrect) earns one unit.

Example: 4 options, correct answers are {0, 2}
- selects {0, 2}    -> 4/4 = 100% credit
- selects {0, 1, 2} -> 3/4 = 75% credit (1 wrong selection)
- selects {0}       -> 3/4 = 75% credit (missed 1 correct)
- selects {1, 3}    -> 0/4 = 0% credit
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from loguru import logger

from masterycore.core.models import QuestionCategory

DEFAULT_OPTION_COUNT = 4


@dataclass(frozen=True)
class ItemParameters:
    """Fixed 2PL parameters and point value for a question."""

    difficulty: float  # b
    discrimination: float  # a
    max_points: int


# Harder, multi-domain questions discriminate better and are worth more
CATEGORY_PARAMETERS: dict[QuestionCategory, ItemParameters] = {
    QuestionCategory.SINGLE_TOPIC: ItemParameters(difficulty=-1.0, discrimination=1.0, max_points=100),
    QuestionCategory.MULTI_TOPIC: ItemParameters(difficulty=0.3, discrimination=1.8, max_points=150),
    QuestionCategory.CROSS_DOMAIN: ItemParameters(difficulty=2.2, discrimination=2.5, max_points=250),
}

DIFFICULTY_PARAMETERS: dict[str, ItemParameters] = {
    "easy": ItemParameters(difficulty=-1.0, discrimination=1.0, max_points=100),
    "medium": ItemParameters(difficulty=0.0, discrimination=1.5, max_points=150),
    "hard": ItemParameters(difficulty=1.5, discrimination=2.0, max_points=250),
}

DEFAULT_PARAMETERS = DIFFICULTY_PARAMETERS["medium"]


def item_parameters(
    category: QuestionCategory | str | None = None,
    difficulty: str | None = None,
) -> ItemParameters:
    """
    Resolve item parameters: category table first, then difficulty label.

    Unknown values fall back to the medium parameters.
    """
    if category is not None:
        try:
            return CATEGORY_PARAMETERS[QuestionCategory(category)]
        except ValueError:
            logger.warning(f"Unknown question category {category!r}, ignoring")

    if difficulty is not None:
        params = DIFFICULTY_PARAMETERS.get(str(difficulty).lower())
        if params is not None:
            return params
        logger.warning(f"Unknown difficulty label {difficulty!r}, using medium")

    return DEFAULT_PARAMETERS


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class PartialCreditScorer:
    """
    Scores multiple-response answers with symmetric partial credit.

    Single-select questions are right or wrong: see score_single.
    """

    def __init__(self, default_option_count: int = DEFAULT_OPTION_COUNT):
        self.default_option_count = max(2, default_option_count)

    def resolve_option_count(self, option_count: int | None) -> int:
        """Use option_count when valid (>= 2), otherwise the configured default."""
        if option_count is None or option_count < 2:
            if option_count is not None:
                logger.warning(
                    f"Invalid option count {option_count}, using {self.default_option_count}"
                )
            return self.default_option_count
        return option_count

    def credit_units(
        self,
        selected: Iterable[int],
        correct: Iterable[int],
        option_count: int | None = None,
    ) -> tuple[int, int]:
        """Return (options judged correctly, options considered)."""
        n = self.resolve_option_count(option_count)
        selected_set = set(selected)
        correct_set = set(correct)

        units = 0
        for i in range(n):
            if (i in selected_set) == (i in correct_set):
                units += 1
        return units, n

    def score(
        self,
        selected: Iterable[int],
        correct: Iterable[int],
        option_count: int | None,
        max_points: float,
    ) -> float:
        """
        Points earned, 0 <= points <= max_points.

        Args:
            selected: Option indices the learner picked
            correct: Option indices that are correct
            option_count: Total options N (None or < 2 uses the default)
            max_points: Points for a fully correct answer
        """
        units, n = self.credit_units(selected, correct, option_count)
        if units == n:
            return max_points
        return max(0, min(max_points, _round_half_up(units / n * max_points)))

    def is_fully_correct(
        self,
        selected: Iterable[int],
        correct: Iterable[int],
        option_count: int | None = None,
    ) -> bool:
        units, n = self.credit_units(selected, correct, option_count)
        return units == n

    @staticmethod
    def score_single(
        selected: Iterable[int],
        correct: Iterable[int],
        max_points: float,
    ) -> tuple[float, bool]:
        """Right/wrong scoring for single-select: (points, is_correct)."""
        is_correct = set(selected) == set(correct)
        return (max_points if is_correct else 0.0), is_correct


def score_attempt(
    selected: Iterable[int],
    correct: Iterable[int],
    option_count: int | None,
    max_points: float,
) -> float:
    """Module-level convenience wrapper around PartialCreditScorer."""
    return PartialCreditScorer().score(selected, correct, option_count, max_points)


def points_based_score(total_points: float, max_possible_points: float) -> int:
    """
    Fallback public-scale score from the raw points ratio.

    Returns 0 when nothing has been attempted, else a value in 100-900.
    """
    if max_possible_points == 0:
        return 0
    score = _round_half_up(total_points / max_possible_points * 900)
    return max(100, min(900, score))
