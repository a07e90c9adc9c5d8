"""
Unit tests for the QuizSession state machine.
"""
import unittest

from trivia_bot.models import CompletionReason, SessionPhase, TimerDuration, display_text
from trivia_bot.quiz_session import (
    InvalidSessionStateError,
    QuizSession,
    calculate_percentage,
)
from tests.test_fixtures import TestFixtures


class TestQuizSession(unittest.TestCase):
    """Test cases for session transitions."""

    def setUp(self):
        """Set up test fixtures."""
        self.questions = TestFixtures.create_sample_questions()
        self.session = QuizSession(
            self.questions,
            TimerDuration.THIRTY_SECONDS,
            rng=TestFixtures.create_seeded_rng(),
            session_id="test"
        )

    def _answer(self, correct: bool):
        question = self.session.current_question
        if correct:
            choice = question.correct_answer
        else:
            choice = question.incorrect_answers[0]
        self.session.select_answer(choice)
        return self.session.advance()

    def test_initial_state(self):
        state = self.session.state
        self.assertEqual(state.current_index, 0)
        self.assertEqual(state.score, 0)
        self.assertIsNone(state.selected_answer)
        self.assertEqual(state.time_remaining, 30)
        self.assertEqual(state.phase, SessionPhase.RUNNING)
        self.assertEqual(sorted(state.shuffled_answers), sorted(self.questions[0].all_answers))
        self.assertEqual(state.total_questions, 3)

    def test_empty_questions_rejected(self):
        with self.assertRaises(ValueError):
            QuizSession([], TimerDuration.THIRTY_SECONDS)

    def test_three_question_game(self):
        """Correct, wrong, correct yields 2 of 3 and 67 percent."""
        self.assertFalse(self._answer(True))
        self.assertFalse(self._answer(False))
        self.assertTrue(self._answer(True))

        self.assertTrue(self.session.is_complete)
        summary = self.session.summary()
        self.assertEqual(summary.score, 2)
        self.assertEqual(summary.total, 3)
        self.assertEqual(summary.percentage, 67)
        self.assertEqual(summary.reason, CompletionReason.FINISHED)

    def test_final_advance_keeps_index(self):
        for _ in range(3):
            self._answer(True)
        self.assertEqual(self.session.state.current_index, 2)
        self.assertEqual(self.session.state.score, 3)

    def test_advance_resets_selection_and_reshuffles(self):
        self._answer(True)
        state = self.session.state
        self.assertEqual(state.current_index, 1)
        self.assertIsNone(state.selected_answer)
        self.assertEqual(sorted(state.shuffled_answers), sorted(self.questions[1].all_answers))

    def test_last_selection_wins(self):
        question = self.session.current_question
        self.session.select_answer(question.incorrect_answers[0])
        self.session.select_answer(question.correct_answer)
        self.assertEqual(self.session.state.selected_answer, question.correct_answer)
        self.session.advance()
        self.assertEqual(self.session.state.score, 1)

    def test_select_unknown_answer(self):
        with self.assertRaises(ValueError):
            self.session.select_answer("Not an option")
        self.assertIsNone(self.session.state.selected_answer)

    def test_advance_without_selection(self):
        with self.assertRaises(InvalidSessionStateError):
            self.session.advance()
        self.assertEqual(self.session.state.current_index, 0)

    def test_score_never_exceeds_answered(self):
        for index in range(3):
            self._answer(True)
            self.assertLessEqual(self.session.state.score, self.session.state.current_index + 1)

    def test_time_runs_out(self):
        """Thirty ticks from thirty seconds completes with nothing scored."""
        for _ in range(30):
            self.session.tick()

        self.assertTrue(self.session.is_complete)
        self.assertEqual(self.session.state.time_remaining, 0)
        summary = self.session.summary()
        self.assertEqual(summary.score, 0)
        self.assertEqual(summary.percentage, 0)
        self.assertEqual(summary.reason, CompletionReason.TIMED_OUT)

    def test_tick_before_expiry(self):
        for _ in range(29):
            self.session.tick()
        self.assertTrue(self.session.is_running)
        self.assertEqual(self.session.state.time_remaining, 1)

    def test_pending_selection_not_scored_on_timeout(self):
        self.session.select_answer(self.session.current_question.correct_answer)
        for _ in range(30):
            self.session.tick()
        self.assertEqual(self.session.summary().score, 0)

    def test_time_remaining_monotonic(self):
        previous = self.session.state.time_remaining
        for _ in range(40):
            self.session.tick()
            current = self.session.state.time_remaining
            self.assertLessEqual(current, previous)
            self.assertGreaterEqual(current, 0)
            previous = current

    def test_operations_after_complete(self):
        for _ in range(30):
            self.session.tick()

        with self.assertRaises(InvalidSessionStateError):
            self.session.select_answer(self.questions[0].correct_answer)
        with self.assertRaises(InvalidSessionStateError):
            self.session.advance()

        snapshot = self.session.state
        self.session.tick()
        self.assertEqual(self.session.state, snapshot)

    def test_summary_requires_completion(self):
        with self.assertRaises(InvalidSessionStateError):
            self.session.summary()

    def test_abandon(self):
        self.session.abandon()
        self.assertTrue(self.session.is_abandoned)
        self.assertFalse(self.session.is_running)
        self.assertFalse(self.session.is_complete)
        with self.assertRaises(InvalidSessionStateError):
            self.session.select_answer(self.questions[0].correct_answer)

        remaining = self.session.state.time_remaining
        self.session.tick()
        self.assertEqual(self.session.state.time_remaining, remaining)

        # Second call is a no-op
        self.session.abandon()
        self.assertTrue(self.session.is_abandoned)

    def test_one_hour_duration(self):
        session = QuizSession(self.questions, TimerDuration.ONE_HOUR)
        self.assertEqual(session.state.time_remaining, 3600)

    def test_encoded_answer_compared_raw(self):
        """Answers match on the provider's encoded text, not the decoded label."""
        question = TestFixtures.create_entity_question()
        session = QuizSession([question], TimerDuration.THIRTY_SECONDS, rng=TestFixtures.create_seeded_rng())

        session.select_answer(question.correct_answer)
        self.assertTrue(session.advance())
        self.assertEqual(session.summary().score, 1)

        decoded = QuizSession([question], TimerDuration.THIRTY_SECONDS, rng=TestFixtures.create_seeded_rng())
        self.assertEqual(display_text(question.correct_answer), "Pink Floyd's lineup")
        with self.assertRaises(ValueError):
            decoded.select_answer(display_text(question.correct_answer))
        self.assertIsNone(decoded.state.selected_answer)
        with self.assertRaises(InvalidSessionStateError):
            decoded.advance()
        self.assertEqual(decoded.state.score, 0)


class TestCalculatePercentage(unittest.TestCase):

    def test_rounding(self):
        self.assertEqual(calculate_percentage(2, 3), 67)
        self.assertEqual(calculate_percentage(1, 3), 33)
        self.assertEqual(calculate_percentage(1, 8), 13)
        self.assertEqual(calculate_percentage(0, 5), 0)
        self.assertEqual(calculate_percentage(5, 5), 100)

    def test_half_rounds_up(self):
        self.assertEqual(calculate_percentage(1, 200), 1)
        self.assertEqual(calculate_percentage(5, 8), 63)

    def test_zero_total(self):
        self.assertEqual(calculate_percentage(0, 0), 0)


if __name__ == '__main__':
    unittest.main()
