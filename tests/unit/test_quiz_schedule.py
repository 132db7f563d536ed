"""
Unit tests for quiz-number scheduling.

Tests:
- Day interval <-> quiz offset conversion
- Card review bookkeeping in quiz numbers
- Due topic and due question ordering
"""

import pytest

from masterycore.core.models import (
    CardState,
    MemoryCard,
    ProgressState,
    QuestionHistory,
    Rating,
    TopicCoverageStatus,
    TopicPerformance,
)
from masterycore.study.quiz_schedule import (
    QuizClock,
    QuizScheduler,
    due_topic_ids,
    questions_due,
    rating_for,
)


class TestQuizClock:
    """Default cadence is 3.5 quizzes a week, i.e. one quiz every 2 days."""

    def test_days_per_quiz(self):
        assert QuizClock().days_per_quiz == pytest.approx(2.0)
        assert QuizClock(7).days_per_quiz == pytest.approx(1.0)

    @pytest.mark.parametrize(
        "interval_days, offset",
        [
            (0, 1),
            (1, 1),
            (4, 2),
            (5, 3),  # 2.5 rounds half up
            (7, 4),
            (20, 10),
        ],
    )
    def test_quiz_offset(self, interval_days, offset):
        assert QuizClock().quiz_offset(interval_days) == offset

    def test_elapsed_days(self):
        clock = QuizClock()
        assert clock.elapsed_days(MemoryCard(last_review_quiz=3), 6) == pytest.approx(6.0)
        assert clock.elapsed_days(MemoryCard(), 6) == 0.0

    def test_invalid_cadence_uses_default(self):
        assert QuizClock(0).quizzes_per_week == pytest.approx(3.5)


class TestQuizScheduler:
    def test_rating_for(self):
        assert rating_for(True) == Rating.GOOD
        assert rating_for(False) == Rating.AGAIN

    def test_first_review_due_next_quiz(self):
        card = QuizScheduler().review(MemoryCard(), is_correct=False, quiz_number=1)
        assert card.state == CardState.LEARNING
        assert card.last_review_quiz == 1
        assert card.due_quiz == 2

    def test_graduation_schedules_further_out(self):
        scheduler = QuizScheduler()
        card = scheduler.review(MemoryCard(), True, 1)
        card = scheduler.review(card, True, 2)
        assert card.state == CardState.REVIEW
        assert card.elapsed_days == pytest.approx(2.0)
        assert card.due_quiz > 3

    def test_faster_cadence_means_later_quiz_numbers(self):
        slow = QuizScheduler(clock=QuizClock(1))
        fast = QuizScheduler(clock=QuizClock(7))
        slow_card = slow.review(slow.review(MemoryCard(), True, 1), True, 2)
        fast_card = fast.review(fast.review(MemoryCard(), True, 1), True, 2)
        assert fast_card.due_quiz >= slow_card.due_quiz


def _topic(topic_id, answered=0, correct=0, due=None, difficulty=5.0, struggling=False, mastered=False):
    return TopicPerformance(
        topic_id=topic_id,
        domain_id="D",
        questions_answered=answered,
        correct_answers=correct,
        is_struggling=struggling,
        is_mastered=mastered,
        card=MemoryCard(difficulty=difficulty, due_quiz=due, state=CardState.REVIEW if due else CardState.NEW),
    )


def _state(performances, completed=4):
    state = ProgressState(total_quizzes_completed=completed)
    for perf in performances:
        state.topic_performance[perf.topic_id] = perf
        state.topic_coverage[perf.topic_id] = TopicCoverageStatus(topic_id=perf.topic_id, domain_id="D")
    return state


class TestTopicsDue:
    def test_order_struggling_learning_mastered(self):
        state = _state(
            [
                _topic("mastered", 5, 5, due=1, mastered=True),
                _topic("learning-late", 3, 2, due=3),
                _topic("learning-unscheduled", 1, 1),
                _topic("struggling", 4, 1, due=5, struggling=True),
                _topic("untouched"),
                _topic("future", 3, 3, due=9),
            ]
        )
        assert due_topic_ids(state) == [
            "struggling",
            "learning-unscheduled",
            "learning-late",
            "mastered",
        ]

    def test_higher_difficulty_first_within_same_due_quiz(self):
        state = _state(
            [
                _topic("easy", 3, 2, due=2, difficulty=3.0),
                _topic("hard", 3, 2, due=2, difficulty=8.0),
            ]
        )
        assert due_topic_ids(state) == ["hard", "easy"]

    def test_explicit_quiz_index(self):
        state = _state([_topic("future", 3, 3, due=9)])
        assert due_topic_ids(state) == []
        assert due_topic_ids(state, quiz_index=9) == ["future"]


class TestQuestionsDue:
    def test_lapsed_first_then_due_order(self):
        state = ProgressState(total_quizzes_completed=4)  # next quiz is 5
        entries = [
            QuestionHistory("lapsed", 1, 3, 2, [True, False], card=MemoryCard(due_quiz=4, lapses=1)),
            QuestionHistory("due", 1, 1, 1, [True], card=MemoryCard(due_quiz=2)),
            QuestionHistory("cooled-down", 1, 1, 1, [True]),
            QuestionHistory("too-recent", 4, 4, 1, [True]),
            QuestionHistory("future", 4, 4, 1, [True], card=MemoryCard(due_quiz=9)),
        ]
        for entry in entries:
            state.question_history[entry.question_id] = entry

        assert [h.question_id for h in questions_due(state)] == ["lapsed", "cooled-down", "due"]

    def test_custom_cooldown(self):
        state = ProgressState(total_quizzes_completed=4)
        state.question_history["q"] = QuestionHistory("q", 4, 4, 1, [True])
        assert questions_due(state, cooldown=1) != []
        assert questions_due(state, cooldown=2) == []
