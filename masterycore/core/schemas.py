"""
Input contract for quiz history.

Pydantic models for the documents handed to the core: a quiz is a list of
answered questions, each question carrying its topics, difficulty data and
answer key. Field aliases accept the camelCase names used by stored quiz
documents (``maxPoints``, ``userAnswer``, ...).

Converting an attempt into a GradedAttempt applies the recovery defaults:
a malformed attempt is repaired with a warning, and one that cannot be
validated at all is dropped from its quiz without affecting the others.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from masterycore.config import Settings, get_settings
from masterycore.core.models import GradedAttempt, QuestionCategory
from masterycore.study.scoring import PartialCreditScorer, item_parameters


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class QuestionPayload(_Payload):
    """A question as delivered by the quiz-content collaborator."""

    id: Optional[str] = None
    topics: list[str] = Field(default_factory=list)
    difficulty: Optional[str] = Field(None, description="easy, medium or hard")
    question_category: Optional[QuestionCategory] = Field(None, alias="questionCategory")
    irt_difficulty: Optional[float] = Field(None, alias="irtDifficulty")
    irt_discrimination: Optional[float] = Field(None, alias="irtDiscrimination", gt=0)
    max_points: Optional[float] = Field(None, alias="maxPoints")
    options: Optional[list[str]] = None
    option_count: Optional[int] = Field(None, alias="optionCount")
    correct_answer: Optional[Union[int, list[int]]] = Field(None, alias="correctAnswer")
    question_type: Literal["single", "multiple"] = Field("single", alias="questionType")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @field_validator("question_category", mode="before")
    @classmethod
    def _lenient_category(cls, value: Any) -> Any:
        if value is None or value in {c.value for c in QuestionCategory}:
            return value
        logger.warning(f"Unknown question category {value!r}, ignoring")
        return None

    @field_validator("topics", mode="before")
    @classmethod
    def _dedupe_topics(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return value
        seen: list[str] = []
        for topic in value:
            if topic not in seen:
                seen.append(topic)
        return seen

    @property
    def resolved_option_count(self) -> Optional[int]:
        if self.option_count is not None:
            return self.option_count
        if self.options:
            return len(self.options)
        return None

    @property
    def correct_indices(self) -> Optional[list[int]]:
        if self.correct_answer is None:
            return None
        if isinstance(self.correct_answer, int):
            return [self.correct_answer]
        return list(self.correct_answer)

    @property
    def is_multiple_response(self) -> bool:
        """Multiple-response when declared so or when the key has several answers."""
        return self.question_type == "multiple" or len(self.correct_indices or []) > 1


class AttemptPayload(_Payload):
    """One answered question inside a quiz."""

    question: QuestionPayload
    user_answer: Optional[Union[int, list[int]]] = Field(None, alias="userAnswer")
    is_correct: Optional[bool] = Field(None, alias="isCorrect")
    points_earned: Optional[float] = Field(None, alias="pointsEarned")
    max_points: Optional[float] = Field(None, alias="maxPoints")

    @property
    def selected_indices(self) -> Optional[list[int]]:
        if self.user_answer is None:
            return None
        if isinstance(self.user_answer, int):
            return [self.user_answer]
        return list(self.user_answer)

    def to_graded_attempt(
        self,
        settings: Settings | None = None,
        scorer: PartialCreditScorer | None = None,
    ) -> GradedAttempt:
        """Freeze into a GradedAttempt, filling missing values with safe defaults."""
        settings = settings or get_settings()
        scorer = scorer or PartialCreditScorer(settings.default_option_count)
        question = self.question
        label = question.id or ",".join(question.topics) or "<unknown>"

        max_points = self.max_points if self.max_points is not None else question.max_points
        if max_points is None or max_points <= 0:
            logger.warning(
                f"Question {label}: missing max points, using {settings.default_max_points}"
            )
            max_points = float(settings.default_max_points)

        graded_correct: Optional[bool] = None
        if self.points_earned is not None:
            points = min(max(self.points_earned, 0.0), max_points)
        elif self.selected_indices is not None and question.correct_indices is not None:
            selected, key = self.selected_indices, question.correct_indices
            if question.is_multiple_response:
                option_count = question.resolved_option_count
                points = float(scorer.score(selected, key, option_count, max_points))
                graded_correct = scorer.is_fully_correct(selected, key, option_count)
            else:
                points, graded_correct = scorer.score_single(selected, key, max_points)
        elif self.is_correct is not None:
            points = max_points if self.is_correct else 0.0
        else:
            logger.warning(f"Question {label}: no answer or points recorded, scoring 0")
            points = 0.0

        if self.is_correct is not None:
            is_correct = self.is_correct
        elif graded_correct is not None:
            is_correct = graded_correct
        else:
            is_correct = points >= max_points

        params = item_parameters(question.question_category, question.difficulty)
        return GradedAttempt(
            topics=tuple(question.topics),
            is_correct=is_correct,
            points_earned=points,
            max_points=max_points,
            irt_difficulty=(
                question.irt_difficulty if question.irt_difficulty is not None else params.difficulty
            ),
            irt_discrimination=(
                question.irt_discrimination
                if question.irt_discrimination is not None
                else params.discrimination
            ),
            question_id=question.id,
            question_category=question.question_category,
        )


class QuizPayload(_Payload):
    """A completed quiz: ordered attempts plus its completion time."""

    id: str
    completed_at: Optional[datetime] = Field(None, alias="completedAt")
    questions: list[AttemptPayload] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return str(value) if value is not None else value

    @field_validator("questions", mode="before")
    @classmethod
    def _drop_invalid_attempts(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        valid: list[AttemptPayload] = []
        for index, item in enumerate(value):
            if isinstance(item, AttemptPayload):
                valid.append(item)
                continue
            try:
                valid.append(AttemptPayload.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    f"Dropping invalid attempt #{index + 1}: {e.error_count()} validation error(s)"
                )
        return valid

    def graded_attempts(
        self,
        settings: Settings | None = None,
        scorer: PartialCreditScorer | None = None,
    ) -> list[GradedAttempt]:
        settings = settings or get_settings()
        scorer = scorer or PartialCreditScorer(settings.default_option_count)
        return [q.to_graded_attempt(settings, scorer) for q in self.questions]

    def to_document(self) -> dict[str, Any]:
        """JSON-ready dict using the stored-document field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def parse_quiz(data: dict[str, Any]) -> QuizPayload:
    """Validate a quiz document; raises pydantic.ValidationError when the quiz itself is malformed."""
    return QuizPayload.model_validate(data)
