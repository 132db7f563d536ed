"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from masterycore.config import Settings  # noqa: E402
from masterycore.core.curriculum import Curriculum  # noqa: E402
from masterycore.core.models import GradedAttempt  # noqa: E402
from masterycore.progress.service import ProgressService  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (file and SQLite stores)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def small_curriculum():
    """Five topics over three domains: A (a1, a2), B (b1, b2), C (c1)."""
    return Curriculum.from_mapping(
        {
            "A": ["a1", "a2"],
            "B": ["b1", "b2"],
            "C": ["c1"],
        },
        name="small",
    )


@pytest.fixture
def wide_curriculum():
    """Twelve topics over three domains of four."""
    return Curriculum.from_mapping(
        {
            "D1": ["d1-t1", "d1-t2", "d1-t3", "d1-t4"],
            "D2": ["d2-t1", "d2-t2", "d2-t3", "d2-t4"],
            "D3": ["d3-t1", "d3-t2", "d3-t3", "d3-t4"],
        },
        name="wide",
    )


@pytest.fixture
def settings(tmp_path):
    """Default settings isolated from any .env file, storing under tmp_path."""
    return Settings(_env_file=None, data_dir=tmp_path / "progress")


@pytest.fixture
def service(settings, small_curriculum):
    """ProgressService over the small curriculum with a seeded rng."""
    return ProgressService(settings, curriculum=small_curriculum, rng=random.Random(42))


@pytest.fixture
def make_attempt():
    """Factory for GradedAttempt with medium item parameters by default."""

    def _make(
        *topics,
        correct=True,
        points=None,
        max_points=1.0,
        difficulty=0.0,
        discrimination=1.5,
        question_id=None,
    ):
        if points is None:
            points = max_points if correct else 0.0
        return GradedAttempt(
            topics=tuple(topics),
            is_correct=correct,
            points_earned=points,
            max_points=max_points,
            irt_difficulty=difficulty,
            irt_discrimination=discrimination,
            question_id=question_id,
        )

    return _make


@pytest.fixture
def sample_quiz_document():
    """Provide a stored quiz document in its camelCase form."""
    return {
        "id": "quiz-001",
        "completedAt": "2024-03-01T10:00:00+00:00",
        "questions": [
            {
                "question": {
                    "id": "q-1",
                    "topics": ["a1"],
                    "difficulty": "easy",
                    "options": ["w", "x", "y", "z"],
                    "correctAnswer": 1,
                    "maxPoints": 100,
                },
                "userAnswer": 1,
                "isCorrect": True,
            },
            {
                "question": {
                    "id": "q-2",
                    "topics": ["b1", "c1"],
                    "questionCategory": "multiple-domains-multiple-topics",
                    "questionType": "multiple",
                    "options": ["w", "x", "y", "z"],
                    "correctAnswer": [0, 2],
                    "maxPoints": 100,
                },
                "userAnswer": [0, 1, 2],
            },
        ],
    }
