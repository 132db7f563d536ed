"""
Unit tests for the quiz document contract.

Tests:
- camelCase aliases and id coercion
- Recovery defaults when grading an attempt
- Right/wrong single-select and partial-credit multiple-response grading
- Item parameter resolution
- Invalid attempts dropped from their quiz
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from masterycore.core.models import QuestionCategory
from masterycore.core.schemas import AttemptPayload, QuestionPayload, QuizPayload, parse_quiz
from masterycore.study.irt import AbilityEstimator


def _attempt(question=None, **fields):
    data = {"question": {"id": "q", "topics": ["a1"], **(question or {})}, **fields}
    return AttemptPayload.model_validate(data)


class TestQuestionPayload:
    def test_aliases(self):
        question = QuestionPayload.model_validate(
            {
                "id": 7,
                "topics": ["a1"],
                "questionCategory": "single-domain-multiple-topics",
                "irtDifficulty": 0.4,
                "irtDiscrimination": 1.2,
                "maxPoints": 150,
                "optionCount": 5,
                "correctAnswer": [1, 3],
                "questionType": "multiple",
            }
        )
        assert question.id == "7"
        assert question.question_category == QuestionCategory.MULTI_TOPIC
        assert question.irt_difficulty == pytest.approx(0.4)
        assert question.max_points == 150
        assert question.resolved_option_count == 5
        assert question.correct_indices == [1, 3]

    def test_field_names_accepted(self):
        question = QuestionPayload(id="x", topics=["a1"], max_points=10, correct_answer=2)
        assert question.max_points == 10
        assert question.correct_indices == [2]

    def test_topics_deduplicated(self):
        question = QuestionPayload.model_validate({"topics": ["a1", "b1", "a1"]})
        assert question.topics == ["a1", "b1"]

    def test_single_topic_string(self):
        assert QuestionPayload.model_validate({"topics": "a1"}).topics == ["a1"]

    def test_option_count_from_options(self):
        question = QuestionPayload.model_validate({"options": ["a", "b", "c"]})
        assert question.resolved_option_count == 3
        assert QuestionPayload().resolved_option_count is None

    def test_unknown_category_ignored(self):
        question = QuestionPayload.model_validate({"questionCategory": "essay"})
        assert question.question_category is None

    def test_discrimination_must_be_positive(self):
        with pytest.raises(ValidationError):
            QuestionPayload.model_validate({"irtDiscrimination": 0})


class TestGradedAttempt:
    def test_partial_credit_from_answer(self, settings):
        attempt = _attempt(
            {"options": ["w", "x", "y", "z"], "correctAnswer": [0, 2], "maxPoints": 100},
            userAnswer=[0, 1, 2],
        )
        graded = attempt.to_graded_attempt(settings)
        assert graded.points_earned == 75
        assert graded.max_points == 100
        assert graded.is_correct is False
        assert graded.observed_score == pytest.approx(0.75)

    def test_full_credit_is_correct(self, settings):
        attempt = _attempt({"correctAnswer": 1, "maxPoints": 100}, userAnswer=1)
        graded = attempt.to_graded_attempt(settings)
        assert graded.points_earned == 100
        assert graded.is_correct is True

    def test_wrong_single_select_scores_zero(self, settings):
        attempt = _attempt(
            {"options": ["w", "x", "y", "z"], "correctAnswer": 1, "maxPoints": 100},
            userAnswer=2,
        )
        graded = attempt.to_graded_attempt(settings)
        assert graded.points_earned == 0
        assert graded.is_correct is False
        assert graded.observed_score == 0.0

    def test_wrong_single_select_answers_lower_ability(self, settings):
        """Wrong single choices are full misses for the ability estimate."""
        attempt = _attempt({"correctAnswer": 1, "maxPoints": 100}, userAnswer=3)
        graded = [attempt.to_graded_attempt(settings) for _ in range(20)]
        assert AbilityEstimator().estimate_theta(graded) < -2.0

    def test_multiple_inferred_from_answer_key(self, settings):
        """A key with several answers gets partial credit even without questionType."""
        graded = _attempt({"correctAnswer": [0, 2], "maxPoints": 100}, userAnswer=[0]).to_graded_attempt(
            settings
        )
        assert graded.points_earned == 75
        assert graded.is_correct is False

    def test_correctness_from_key_not_rounded_points(self, settings):
        """An empty answer rounds up to the single default point but is still wrong."""
        graded = _attempt(
            {"correctAnswer": [0, 2], "questionType": "multiple"}, userAnswer=[]
        ).to_graded_attempt(settings)
        assert graded.max_points == 1
        assert graded.is_correct is False

    def test_fractional_max_points_exact_answer(self, settings):
        graded = _attempt(
            {"correctAnswer": [0, 2], "questionType": "multiple", "maxPoints": 2.5},
            userAnswer=[0, 2],
        ).to_graded_attempt(settings)
        assert graded.points_earned == pytest.approx(2.5)
        assert graded.is_correct is True

    def test_missing_max_points_uses_default(self, settings):
        graded = _attempt(isCorrect=True).to_graded_attempt(settings)
        assert graded.max_points == settings.default_max_points
        assert graded.points_earned == settings.default_max_points
        assert graded.is_correct is True

    def test_attempt_max_points_wins(self, settings):
        graded = _attempt({"maxPoints": 100}, maxPoints=250, isCorrect=False).to_graded_attempt(settings)
        assert graded.max_points == 250
        assert graded.points_earned == 0

    def test_points_clamped(self, settings):
        graded = _attempt({"maxPoints": 100}, pointsEarned=130).to_graded_attempt(settings)
        assert graded.points_earned == 100
        assert graded.is_correct is True

        graded = _attempt({"maxPoints": 100}, pointsEarned=-5).to_graded_attempt(settings)
        assert graded.points_earned == 0

    def test_explicit_correctness_kept(self, settings):
        graded = _attempt({"maxPoints": 100}, pointsEarned=80, isCorrect=True).to_graded_attempt(settings)
        assert graded.points_earned == 80
        assert graded.is_correct is True

    def test_nothing_recorded_scores_zero(self, settings):
        graded = _attempt({"maxPoints": 100}).to_graded_attempt(settings)
        assert graded.points_earned == 0
        assert graded.is_correct is False

    def test_category_parameters(self, settings):
        graded = _attempt(
            {"questionCategory": "multiple-domains-multiple-topics"}, isCorrect=True
        ).to_graded_attempt(settings)
        assert graded.irt_difficulty == pytest.approx(2.2)
        assert graded.irt_discrimination == pytest.approx(2.5)
        assert graded.question_category == QuestionCategory.CROSS_DOMAIN

    def test_difficulty_label_parameters(self, settings):
        graded = _attempt({"difficulty": "easy"}, isCorrect=True).to_graded_attempt(settings)
        assert graded.irt_difficulty == pytest.approx(-1.0)
        assert graded.irt_discrimination == pytest.approx(1.0)

    def test_explicit_parameters_override(self, settings):
        graded = _attempt(
            {"difficulty": "hard", "irtDifficulty": 0.25}, isCorrect=True
        ).to_graded_attempt(settings)
        assert graded.irt_difficulty == pytest.approx(0.25)
        assert graded.irt_discrimination == pytest.approx(2.0)

    def test_defaults_to_medium(self, settings):
        graded = _attempt(isCorrect=True).to_graded_attempt(settings)
        assert graded.irt_difficulty == 0.0
        assert graded.irt_discrimination == pytest.approx(1.5)
        assert graded.topics == ("a1",)
        assert graded.question_id == "q"


class TestQuizPayload:
    def test_parse_document(self, sample_quiz_document, settings):
        quiz = parse_quiz(sample_quiz_document)
        assert quiz.id == "quiz-001"
        assert quiz.completed_at == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

        graded = quiz.graded_attempts(settings)
        assert [g.points_earned for g in graded] == [100, 75]
        assert [g.is_correct for g in graded] == [True, False]
        assert graded[1].topics == ("b1", "c1")

    def test_invalid_attempt_dropped(self):
        quiz = parse_quiz(
            {
                "id": 3,
                "questions": [
                    {"question": {"id": "ok", "topics": ["a1"]}, "isCorrect": True},
                    {"question": "not a question"},
                    {"isCorrect": True},
                ],
            }
        )
        assert quiz.id == "3"
        assert [q.question.id for q in quiz.questions] == ["ok"]

    def test_missing_id_is_invalid(self):
        with pytest.raises(ValidationError):
            parse_quiz({"questions": []})

    def test_document_uses_stored_names(self, sample_quiz_document, settings):
        quiz = parse_quiz(sample_quiz_document)
        document = quiz.to_document()
        assert "completedAt" in document
        assert document["questions"][0]["userAnswer"] == 1
        assert document["questions"][0]["question"]["maxPoints"] == 100

        reparsed = QuizPayload.model_validate(document)
        assert reparsed.graded_attempts(settings) == quiz.graded_attempts(settings)
