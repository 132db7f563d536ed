"""
Configuration settings for mastery-core.

Uses Pydantic Settings for environment variable management with .env file support.
Every value can be overridden with a ``MASTERY_`` prefixed environment variable,
e.g. ``MASTERY_QUIZZES_PER_WEEK=5``.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MASTERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Quiz-time scheduling
    # ========================================
    quizzes_per_week: float = Field(
        default=3.5,
        gt=0,
        description="Assumed quiz cadence used to map FSRS days onto quiz numbers",
    )
    request_retention: float = Field(
        default=0.90,
        gt=0,
        lt=1,
        description="FSRS desired retention",
    )
    maximum_interval: int = Field(
        default=36500,
        ge=1,
        description="FSRS interval cap (days)",
    )

    # ========================================
    # Scoring defaults for malformed attempts
    # ========================================
    default_option_count: int = Field(
        default=4,
        ge=2,
        description="Option count assumed when a question does not carry one",
    )
    default_max_points: int = Field(
        default=1,
        ge=1,
        description="Max points assumed when an attempt does not carry one",
    )

    # ========================================
    # Ability estimation (IRT)
    # ========================================
    min_reliable_attempts: int = Field(
        default=15,
        description="Attempts needed before theta is reported uncapped",
    )
    capped_ability_limit: float = Field(
        default=2.0,
        description="Theta cap applied below min_reliable_attempts",
    )
    max_iterations: int = Field(default=20, ge=1)
    convergence_tolerance: float = Field(default=0.01, gt=0)
    confidence_level: float = Field(
        default=0.95,
        description="Default confidence level for intervals (0.90, 0.95 or 0.99)",
    )

    # ========================================
    # Topic classification & phases
    # ========================================
    mastery_accuracy: float = Field(default=80.0, description="Accuracy % for mastery")
    mastery_min_answered: int = Field(default=3)
    struggling_accuracy: float = Field(default=60.0, description="Accuracy % below which a topic struggles")
    struggling_min_answered: int = Field(default=2)
    maintenance_mastery_ratio: float = Field(
        default=0.70,
        description="Mastered share of topics that moves a learner into maintenance",
    )
    maintenance_quiz_count: int = Field(
        default=50,
        description="Completed quizzes that move a learner into maintenance",
    )
    default_quiz_size: int = Field(default=10, ge=1)

    # ========================================
    # Curriculum & storage
    # ========================================
    curriculum_path: Path | None = Field(
        default=None,
        description="JSON curriculum replacing the bundled one",
    )
    data_dir: Path = Field(
        default=Path.home() / ".mastery",
        description="Root directory for the JSON progress store",
    )
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL; when set the SQL store is used",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    @property
    def days_per_quiz(self) -> float:
        """Average calendar days between two quizzes."""
        return 7.0 / self.quizzes_per_week


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
