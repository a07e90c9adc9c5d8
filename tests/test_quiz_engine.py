"""
Unit tests for answer shuffling and the QuizTimer.
"""
import unittest
import asyncio
import random
from collections import Counter
from unittest.mock import AsyncMock

from trivia_bot.quiz_engine import QuizTimer, shuffle_answers
from tests.test_fixtures import TestFixtures, AsyncTestHelpers, async_test


class TestShuffleAnswers(unittest.TestCase):
    """Test cases for answer ordering."""

    def setUp(self):
        """Set up test fixtures."""
        self.question = TestFixtures.create_sample_questions()[0]

    def test_result_is_permutation(self):
        """Shuffled answers contain every answer exactly once."""
        for seed in range(20):
            result = shuffle_answers(self.question, random.Random(seed))
            self.assertEqual(Counter(result), Counter(self.question.all_answers))

    def test_source_question_untouched(self):
        original_incorrect = self.question.incorrect_answers
        shuffle_answers(self.question, random.Random(1))
        self.assertEqual(self.question.incorrect_answers, original_incorrect)

    def test_same_seed_same_order(self):
        first = shuffle_answers(self.question, random.Random(7))
        second = shuffle_answers(self.question, random.Random(7))
        self.assertEqual(first, second)

    def test_orders_vary(self):
        rng = random.Random(3)
        orders = {tuple(shuffle_answers(self.question, rng)) for _ in range(50)}
        self.assertGreater(len(orders), 1)

    def test_correct_answer_lands_everywhere(self):
        """The correct answer is not pinned to a fixed slot."""
        rng = random.Random(11)
        positions = {shuffle_answers(self.question, rng).index(self.question.correct_answer) for _ in range(200)}
        self.assertEqual(positions, {0, 1, 2, 3})

    def test_boolean_question(self):
        question = TestFixtures.create_sample_questions()[2]
        result = shuffle_answers(question, random.Random(0))
        self.assertEqual(sorted(result), ["False", "True"])

    def test_default_random_source(self):
        result = shuffle_answers(self.question)
        self.assertEqual(sorted(result), sorted(self.question.all_answers))

    def test_default_source_leaves_global_generator_alone(self):
        """Shuffling without an rng does not consume the module-level random state."""
        random.seed(5)
        before = random.getstate()
        shuffle_answers(self.question)
        self.assertEqual(random.getstate(), before)


class TestQuizTimer(unittest.TestCase):
    """Test cases for the cancellable countdown timer."""

    def test_invalid_interval(self):
        with self.assertRaises(ValueError):
            QuizTimer("session", interval=0)

    def test_cancel_before_start(self):
        timer = QuizTimer("session")
        self.assertTrue(timer.cancel())
        self.assertTrue(timer.is_cancelled)
        self.assertFalse(timer.cancel())

    @async_test
    async def test_ticks_until_cancelled(self):
        ticks = []
        timer = QuizTimer("session", interval=0.01)

        async def on_tick():
            ticks.append(timer.tick_count)
            if len(ticks) == 3:
                timer.cancel()

        task = timer.start(on_tick)
        await AsyncTestHelpers.run_with_timeout(task)

        self.assertEqual(ticks, [1, 2, 3])
        self.assertTrue(timer.is_cancelled)
        self.assertFalse(timer.is_running)
        self.assertFalse(task.cancelled())

    @async_test
    async def test_cancel_from_outside_cancels_task(self):
        on_tick = AsyncMock()
        timer = QuizTimer("session", interval=0.01)
        task = timer.start(on_tick)
        await asyncio.sleep(0.05)

        self.assertTrue(timer.is_running)
        self.assertTrue(timer.cancel())

        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertTrue(task.cancelled())
        ticks_at_cancel = on_tick.await_count

        await asyncio.sleep(0.05)
        self.assertEqual(on_tick.await_count, ticks_at_cancel)

    @async_test
    async def test_second_cancel_reports_false(self):
        timer = QuizTimer("session", interval=0.01)
        task = timer.start(AsyncMock())
        self.assertTrue(timer.cancel())
        self.assertFalse(timer.cancel())
        with self.assertRaises(asyncio.CancelledError):
            await task

    @async_test
    async def test_cannot_start_twice(self):
        timer = QuizTimer("session", interval=0.01)
        timer.start(AsyncMock())
        with self.assertRaises(RuntimeError):
            timer.start(AsyncMock())
        timer.cancel()
        await asyncio.sleep(0)

    @async_test
    async def test_tick_error_stops_timer(self):
        timer = QuizTimer("session", interval=0.01)
        task = timer.start(AsyncMock(side_effect=ValueError("boom")))

        with self.assertRaises(ValueError):
            await AsyncTestHelpers.run_with_timeout(task)
        self.assertFalse(timer.is_running)


if __name__ == '__main__':
    unittest.main()
