"""
Unit tests for TopicPerformanceTracker.

Tests:
- State initialisation from the curriculum
- Coverage and accuracy bookkeeping
- Struggling / mastered classification
- Per-question history and memory cards
- Unknown topics
"""

import pytest

from masterycore.core.models import CardState, ProgressState
from masterycore.learning.performance_tracker import TopicPerformanceTracker
from masterycore.study.fsrs import DEFAULT_WEIGHTS


@pytest.fixture
def tracker(small_curriculum):
    return TopicPerformanceTracker(small_curriculum)


@pytest.fixture
def state(tracker):
    return tracker.ensure_initialized(ProgressState())


class TestInitialisation:
    def test_every_topic_registered(self, state, small_curriculum):
        assert set(state.topic_coverage) == set(small_curriculum.topics)
        assert set(state.topic_performance) == set(small_curriculum.topics)
        assert state.topic_coverage["b2"].domain_id == "B"
        assert state.topic_performance["c1"].questions_answered == 0

    def test_existing_entries_kept(self, tracker, state, make_attempt):
        tracker.record_attempts(state, [make_attempt("a1")], quiz_number=1)
        tracker.ensure_initialized(state)
        assert state.topic_performance["a1"].questions_answered == 1

    def test_thresholds_validated(self, small_curriculum):
        with pytest.raises(ValueError):
            TopicPerformanceTracker(small_curriculum, mastery_accuracy=50, struggling_accuracy=60)


class TestRecording:
    def test_correct_answer(self, tracker, state, make_attempt):
        touched = tracker.record_attempts(
            state, [make_attempt("a1")], quiz_number=1, tested_at="2024-03-01T10:00:00+00:00"
        )
        assert touched == {"a1"}

        coverage = state.topic_coverage["a1"]
        assert (coverage.first_covered_quiz, coverage.times_covered, coverage.last_covered_quiz) == (1, 1, 1)

        perf = state.topic_performance["a1"]
        assert perf.questions_answered == 1
        assert perf.correct_answers == 1
        assert perf.accuracy == pytest.approx(100.0)
        assert perf.is_learning
        assert perf.last_tested == "2024-03-01T10:00:00+00:00"
        assert perf.card.state == CardState.LEARNING
        assert perf.card.due_quiz == 2

    def test_multi_topic_attempt_updates_each_topic(self, tracker, state, make_attempt):
        tracker.record_attempts(state, [make_attempt("a1", "b1", correct=False)], quiz_number=1)
        assert state.topic_performance["a1"].questions_answered == 1
        assert state.topic_performance["b1"].questions_answered == 1
        assert state.total_questions == 1

    def test_points_accumulate(self, tracker, state, make_attempt):
        tracker.record_attempts(
            state,
            [
                make_attempt("a1", correct=False, points=75, max_points=100),
                make_attempt("a1", points=150, max_points=150),
            ],
            quiz_number=1,
        )
        perf = state.topic_performance["a1"]
        assert perf.total_points == pytest.approx(225)
        assert perf.max_points == pytest.approx(250)
        assert state.total_points == pytest.approx(225)
        assert state.max_possible_points == pytest.approx(250)
        assert state.correct_answers == 1

    def test_coverage_tracks_quizzes(self, tracker, state, make_attempt):
        tracker.record_attempts(state, [make_attempt("a1")], quiz_number=1)
        tracker.record_attempts(state, [make_attempt("a1")], quiz_number=4)
        coverage = state.topic_coverage["a1"]
        assert coverage.first_covered_quiz == 1
        assert coverage.last_covered_quiz == 4
        assert coverage.times_covered == 2

    def test_unknown_topic_skipped(self, tracker, state, make_attempt):
        touched = tracker.record_attempts(state, [make_attempt("zz", "a1")], quiz_number=1)
        assert touched == {"a1"}
        assert "zz" not in state.topic_performance
        assert state.total_questions == 1

    def test_duplicate_topic_counted_once(self, tracker, state, make_attempt):
        tracker.record_attempts(state, [make_attempt("a1", "a1")], quiz_number=1)
        assert state.topic_performance["a1"].questions_answered == 1


class TestClassification:
    def test_mastered_after_three_correct(self, tracker, state, make_attempt):
        for quiz in (1, 2):
            tracker.record_attempts(state, [make_attempt("a1")], quiz_number=quiz)
        assert not state.topic_performance["a1"].is_mastered

        tracker.record_attempts(state, [make_attempt("a1")], quiz_number=3)
        assert state.topic_performance["a1"].is_mastered
        assert not state.topic_performance["a1"].is_struggling

    def test_struggling_after_two_wrong(self, tracker, state, make_attempt):
        tracker.record_attempts(state, [make_attempt("b1", correct=False)], quiz_number=1)
        assert not state.topic_performance["b1"].is_struggling

        tracker.record_attempts(state, [make_attempt("b1", correct=False)], quiz_number=2)
        perf = state.topic_performance["b1"]
        assert perf.is_struggling
        assert perf.accuracy == 0.0

    def test_recovers_from_struggling(self, tracker, state, make_attempt):
        outcomes = [False, False, True, True, True, True, True, True]
        for quiz, correct in enumerate(outcomes, 1):
            tracker.record_attempts(state, [make_attempt("c1", correct=correct)], quiz_number=quiz)
        perf = state.topic_performance["c1"]
        assert perf.accuracy == pytest.approx(75.0)
        assert perf.is_learning

    def test_flags_mutually_exclusive(self, tracker, state, make_attempt):
        """Also with thresholds that overlap at equal accuracy."""
        overlapping = TopicPerformanceTracker(
            tracker.curriculum, mastery_accuracy=50, struggling_accuracy=50
        )
        for quiz, correct in enumerate([True, False, True, False, False, True], 1):
            overlapping.record_attempts(state, [make_attempt("a2", correct=correct)], quiz_number=quiz)
            perf = state.topic_performance["a2"]
            assert not (perf.is_mastered and perf.is_struggling)

    def test_mastered_ratio(self, tracker, state, make_attempt):
        for quiz in (1, 2, 3):
            tracker.record_attempts(state, [make_attempt("a1"), make_attempt("b1")], quiz_number=quiz)
        assert TopicPerformanceTracker.mastered_ratio(state) == pytest.approx(2 / 5)
        assert TopicPerformanceTracker.mastered_ratio(ProgressState()) == 0.0


class TestQuestionHistory:
    def test_history_accumulates(self, tracker, state, make_attempt):
        tracker.record_attempts(state, [make_attempt("a1", question_id="q1")], quiz_number=1)
        tracker.record_attempts(
            state, [make_attempt("a1", correct=False, question_id="q1")], quiz_number=3
        )

        history = state.question_history["q1"]
        assert history.first_asked_quiz == 1
        assert history.last_asked_quiz == 3
        assert history.times_asked == 2
        assert history.correct_history == [True, False]
        assert history.card.reps == 2
        assert history.card.last_review_quiz == 3

    def test_anonymous_questions_not_tracked(self, tracker, state, make_attempt):
        tracker.record_attempts(state, [make_attempt("a1")], quiz_number=1)
        assert state.question_history == {}


class TestSchedulerParameters:
    def test_invalid_parameters_fall_back(self, tracker, state, make_attempt):
        state.scheduler_parameters = [1.0, 2.0]
        tracker.record_attempts(state, [make_attempt("a1")], quiz_number=1)
        assert state.topic_performance["a1"].card.stability == pytest.approx(2.4)

    def test_learner_weights_used(self, tracker, state, make_attempt):
        weights = list(DEFAULT_WEIGHTS)
        weights[2] = 4.0
        state.scheduler_parameters = weights
        tracker.record_attempts(state, [make_attempt("a1")], quiz_number=1)
        assert state.topic_performance["a1"].card.stability == pytest.approx(4.0)


class TestCoverageQueries:
    def test_uncovered_and_all_covered(self, tracker, state, make_attempt):
        assert not TopicPerformanceTracker.all_covered(state)
        tracker.record_attempts(state, [make_attempt("a1", "a2", "b1", "b2")], quiz_number=1)
        assert TopicPerformanceTracker.uncovered_topics(state) == ["c1"]

        tracker.record_attempts(state, [make_attempt("c1")], quiz_number=2)
        assert TopicPerformanceTracker.all_covered(state)
        assert not TopicPerformanceTracker.all_covered(ProgressState())
