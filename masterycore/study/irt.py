"""
Item Response Theory (IRT) ability estimation.

Models the probability of answering a question correctly from:
- Question difficulty (b parameter)
- Question discrimination (a parameter)
- Learner ability (theta)

2PL model:  P(theta) = 1 / (1 + e^(-a(theta - b)))

Item parameters are fixed per question (see study.scoring); only theta is
estimated, by Newton-Raphson maximum likelihood over the full attempt
history. Partial credit enters the likelihood as a fractional observation.
"""

from __future__ import annotations

import math
from typing import Sequence

from loguru import logger

from masterycore.core.models import GradedAttempt

THETA_MIN = -3.0
THETA_MAX = 3.0

# Phase 1 capping: sparse histories cannot produce extreme estimates
MINIMUM_QUESTIONS_THRESHOLD = 15
CAPPED_ABILITY_LIMIT = 2.0


def irt_probability(theta: float, difficulty: float, discrimination: float) -> float:
    """
    2PL probability of a correct response.

    Args:
        theta: Learner ability
        difficulty: Item difficulty (b)
        discrimination: Item discrimination (a)

    Returns:
        Probability in (0, 1)
    """
    x = discrimination * (theta - difficulty)
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    ex = math.exp(x)
    return ex / (1.0 + ex)


def fisher_information(theta: float, attempts: Sequence[GradedAttempt]) -> float:
    """
    Test information at theta: I(theta) = sum of a^2 * P * (1 - P).

    Well-targeted, highly discriminating items contribute the most.
    """
    info = 0.0
    for attempt in attempts:
        a = attempt.irt_discrimination
        p = irt_probability(theta, attempt.irt_difficulty, a)
        info += a * a * p * (1.0 - p)
    return info


def clamp_theta(theta: float) -> float:
    return max(THETA_MIN, min(THETA_MAX, theta))


def has_sufficient_data(total_questions: int, threshold: int = MINIMUM_QUESTIONS_THRESHOLD) -> bool:
    """True once enough questions were answered for an uncapped estimate."""
    return total_questions >= threshold


class AbilityEstimator:
    """
    Maximum-likelihood theta estimator.

    Starting at theta = 0, each iteration accumulates
        d1 = sum a * (y - p)
        d2 = sum -a^2 * p * (1 - p)
    and moves theta by d1 / |d2|, clamped to [-3, 3]. Iteration stops when
    the step falls below the tolerance. With fewer than
    min_reliable_attempts attempts the result is clamped to +/- capped_limit.
    """

    def __init__(
        self,
        max_iterations: int = 20,
        tolerance: float = 0.01,
        min_reliable_attempts: int = MINIMUM_QUESTIONS_THRESHOLD,
        capped_limit: float = CAPPED_ABILITY_LIMIT,
    ):
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.min_reliable_attempts = min_reliable_attempts
        self.capped_limit = capped_limit

    def estimate_theta(self, attempts: Sequence[GradedAttempt]) -> float:
        """Theta for the given history; 0.0 when there are no attempts."""
        if not attempts:
            return 0.0

        theta = 0.0
        for iteration in range(self.max_iterations):
            d1 = 0.0
            d2 = 0.0
            for attempt in attempts:
                a = attempt.irt_discrimination
                p = irt_probability(theta, attempt.irt_difficulty, a)
                y = attempt.observed_score
                d1 += a * (y - p)
                d2 += -a * a * p * (1.0 - p)

            if d2 == 0.0:
                # Probabilities saturated, the likelihood is flat here
                break

            delta = d1 / abs(d2)
            theta = clamp_theta(theta + delta)

            if abs(delta) < self.tolerance:
                logger.debug(f"Theta converged to {theta:.3f} after {iteration + 1} iterations")
                break

        if not has_sufficient_data(len(attempts), self.min_reliable_attempts):
            theta = max(-self.capped_limit, min(self.capped_limit, theta))

        return theta

