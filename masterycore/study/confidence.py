"""
Confidence interval utilities.

Provides statistical uncertainty for:
- IRT ability estimates (standard error from Fisher information)
- Proportions such as per-topic accuracy (Wilson score interval)
- The public 100-900 score scale
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Sequence

from masterycore.core.models import AbilityEstimate, GradedAttempt
from masterycore.study.irt import THETA_MAX, THETA_MIN, AbilityEstimator, fisher_information

Z_SCORES: dict[float, float] = {
    0.90: 1.645,
    0.95: 1.96,
    0.99: 2.576,
}

# Public scale: theta 0 -> 550, 130 points per theta unit
BASE_SCORE = 550
SCALE_FACTOR = 130
MIN_SCORE = 100
MAX_SCORE = 900


def z_score(confidence_level: float) -> float:
    """z for 0.90 / 0.95 / 0.99; anything else uses 1.96."""
    return Z_SCORES.get(round(confidence_level, 2), 1.96)


@dataclass(frozen=True)
class AbilityInterval:
    lower: float
    upper: float
    margin: float


@dataclass(frozen=True)
class ProportionInterval:
    """Wilson interval, all values in percent (0-100)."""

    lower: float
    upper: float
    proportion: float


@dataclass(frozen=True)
class ScoreInterval:
    lower: int
    upper: int


def to_public_score(theta: float) -> int:
    """Map theta onto the 100-900 scale: clamp(550 + 130 * theta)."""
    score = int(math.floor(BASE_SCORE + theta * SCALE_FACTOR + 0.5))
    return max(MIN_SCORE, min(MAX_SCORE, score))


def ability_interval(
    theta: float,
    standard_error: float,
    confidence_level: float = 0.95,
) -> AbilityInterval:
    """theta +/- z * SE, each bound clamped to the theta range."""
    margin = z_score(confidence_level) * standard_error
    return AbilityInterval(
        lower=max(THETA_MIN, theta - margin),
        upper=min(THETA_MAX, theta + margin),
        margin=margin,
    )


def _wilson_bounds(successes: int, total: int, z: float) -> tuple[float, float]:
    p = successes / total
    n = total
    z2 = z * z
    denominator = 1 + z2 / n
    center = (p + z2 / (2 * n)) / denominator
    margin = (z / denominator) * math.sqrt(p * (1 - p) / n + z2 / (4 * n * n))
    return max(0.0, center - margin), min(1.0, center + margin)


def wilson_interval(
    successes: int,
    total: int,
    confidence_level: float = 0.95,
) -> ProportionInterval:
    """
    Wilson score interval for a proportion.

    Stays inside [0, 100] and behaves at small n and extreme proportions,
    unlike the normal approximation. total == 0 gives [0, 0].
    """
    if total <= 0:
        return ProportionInterval(lower=0.0, upper=0.0, proportion=0.0)

    successes = max(0, min(successes, total))
    lower, upper = _wilson_bounds(successes, total, z_score(confidence_level))
    proportion = successes / total * 100

    if successes == 0:
        return ProportionInterval(lower=0.0, upper=upper * 100, proportion=0.0)
    if successes == total:
        return ProportionInterval(lower=lower * 100, upper=100.0, proportion=100.0)

    return ProportionInterval(
        lower=min(lower * 100, proportion),
        upper=max(upper * 100, proportion),
        proportion=proportion,
    )


def score_interval(theta_lower: float, theta_upper: float) -> ScoreInterval:
    """Ability interval mapped onto the public scale."""
    return ScoreInterval(lower=to_public_score(theta_lower), upper=to_public_score(theta_upper))


def format_interval(
    lower: float,
    upper: float,
    decimals: int = 2,
    brackets: bool = False,
) -> str:
    """'0.45 to 0.89' or '[0.45, 0.89]'."""
    low = f"{lower:.{decimals}f}"
    high = f"{upper:.{decimals}f}"
    return f"[{low}, {high}]" if brackets else f"{low} to {high}"


def reliability_label(
    margin: float,
    kind: Literal["ability", "proportion"] = "ability",
) -> tuple[str, str]:
    """
    Describe how precise an interval is. Narrower is better.

    Returns:
        (label, rich color)
    """
    if kind == "ability":
        cutoffs = (0.3, 0.5, 0.8, 1.2)  # theta range is 6 wide
    else:
        cutoffs = (5, 10, 15, 25)  # percentage points

    labels = (
        ("Very precise", "green"),
        ("Precise", "cyan"),
        ("Moderate", "yellow"),
        ("Uncertain", "dark_orange"),
    )
    for cutoff, result in zip(cutoffs, labels):
        if margin <= cutoff:
            return result
    return ("Very uncertain", "red")


class ConfidenceIntervalCalculator:
    """
    Uncertainty for ability estimates and proportions.

    Wraps an AbilityEstimator so a single call turns an attempt history into
    an AbilityEstimate with its standard error.
    """

    def __init__(
        self,
        estimator: AbilityEstimator | None = None,
        confidence_level: float = 0.95,
    ):
        self.estimator = estimator or AbilityEstimator()
        self.confidence_level = confidence_level

    @staticmethod
    def standard_error(theta: float, attempts: Sequence[GradedAttempt]) -> float:
        """SE(theta) = 1 / sqrt(I(theta)); inf with no attempts or no information."""
        if not attempts:
            return math.inf
        info = fisher_information(theta, attempts)
        return 1.0 / math.sqrt(info) if info > 0 else math.inf

    def estimate(self, attempts: Sequence[GradedAttempt]) -> AbilityEstimate:
        theta = self.estimator.estimate_theta(attempts)
        return AbilityEstimate(
            theta=theta,
            standard_error=self.standard_error(theta, attempts),
            attempt_count=len(attempts),
        )

    def ability_interval(self, estimate: AbilityEstimate) -> AbilityInterval:
        return ability_interval(estimate.theta, estimate.standard_error, self.confidence_level)

    def score_interval(self, estimate: AbilityEstimate) -> ScoreInterval:
        interval = self.ability_interval(estimate)
        return score_interval(interval.lower, interval.upper)

    def accuracy_interval(self, successes: int, total: int) -> ProportionInterval:
        return wilson_interval(successes, total, self.confidence_level)
