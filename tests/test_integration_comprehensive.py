"""
Integration tests for the Trivia Quiz Bot.
Drives complete quiz flows through the real client, resolver, controller
and session with only the HTTP session mocked.
"""
import unittest
import asyncio
import logging
from unittest.mock import Mock

import requests

from trivia_bot.config_manager import ConfigManager
from trivia_bot.models import CompletionReason, QuestionType
from trivia_bot.quiz_controller import QuizController
from trivia_bot.quiz_resolver import QuizResolver
from trivia_bot.trivia_client import TriviaClient
from tests.test_fixtures import TestFixtures, async_test

PLAYER = 67890


class FakeHTTPSession:
    """Routes requests by path to canned responses and records the calls."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def respond(self, path, payload=None, status_code=200, error=None):
        self.routes[path] = (payload, status_code, error)

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        path = url[url.rindex('/'):]
        payload, status_code, error = self.routes[path]
        if error is not None:
            raise error
        response = Mock()
        response.url = url
        response.status_code = status_code
        response.json.return_value = payload
        if status_code >= 400:
            response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} Error")
        return response

    def close(self):
        pass


class TestCompleteQuizFlow(unittest.TestCase):
    """Test complete quiz flow from configuration to final score."""

    def setUp(self):
        """Set up integration test environment."""
        logging.disable(logging.CRITICAL)
        self.http = FakeHTTPSession()
        self.http.respond("/api_category.php", TestFixtures.create_category_payload())
        self.http.respond("/api.php", TestFixtures.create_question_payload(3))

        self.config_manager = ConfigManager()
        self.client = TriviaClient(
            self.config_manager.get_provider_url(),
            self.config_manager.get_request_timeout(),
            session=self.http
        )
        self.resolver = QuizResolver(self.client)
        self.controller = QuizController(self.resolver, timer_interval=60)

    def tearDown(self):
        """Clean up test environment."""
        logging.disable(logging.NOTSET)

    @async_test
    async def test_configured_quiz_to_summary(self):
        await self.resolver.load_categories()
        category = self.resolver.find_category("General Knowledge")
        configuration = self.config_manager.build_configuration(
            question_count=3,
            category=category,
            difficulty=1.5,
            question_type=QuestionType.MULTIPLE_CHOICE,
            timer_duration=120
        )['configuration']

        start = await self.controller.start_quiz(PLAYER, configuration)
        self.assertTrue(start['success'])

        url, params = self.http.calls[-1]
        self.assertEqual(url, "https://opentdb.com/api.php")
        self.assertEqual(params, {'amount': '3', 'difficulty': 'hard', 'category': '9', 'type': 'multiple'})

        session = start['session']
        picks = [True, False, True]
        result = None
        for correct in picks:
            question = session.current_question
            self.controller.select_answer(PLAYER, question.correct_answer if correct else question.incorrect_answers[0])
            result = await self.controller.advance(PLAYER)

        self.assertTrue(result['completed'])
        self.assertEqual((result['summary'].score, result['summary'].percentage), (2, 67))
        self.assertTrue(session.timer.is_cancelled)

    @async_test
    async def test_category_outage_still_allows_any_category(self):
        self.http.respond("/api_category.php", error=requests.exceptions.ConnectionError("down"))

        categories = await self.resolver.load_categories()
        self.assertEqual(categories, [])

        configuration = self.config_manager.build_configuration()['configuration']
        start = await self.controller.start_quiz(PLAYER, configuration)
        self.assertTrue(start['success'])
        self.assertNotIn('category', self.http.calls[-1][1])
        self.controller.shutdown()

    @async_test
    async def test_rate_limited_provider(self):
        self.http.respond("/api.php", {"response_code": 5, "results": []}, status_code=429)

        configuration = self.config_manager.build_configuration()['configuration']
        result = await self.controller.start_quiz(PLAYER, configuration)

        self.assertFalse(result['success'])
        self.assertEqual(result['error_kind'], "rate_limited")
        self.assertIsNone(self.controller.get_session(PLAYER))

    @async_test
    async def test_provider_http_error(self):
        self.http.respond("/api.php", status_code=500)

        configuration = self.config_manager.build_configuration()['configuration']
        result = await self.controller.start_quiz(PLAYER, configuration)

        self.assertFalse(result['success'])
        self.assertEqual(result['error_kind'], "provider_unavailable")

    @async_test
    async def test_countdown_expiry(self):
        done = asyncio.Event()
        summaries = []

        async def on_complete(summary):
            summaries.append(summary)
            done.set()

        self.controller.timer_interval = 0.001
        configuration = self.config_manager.build_configuration()['configuration']
        start = await self.controller.start_quiz(PLAYER, configuration, on_complete=on_complete)
        session = start['session']
        session_question = session.current_question
        self.controller.select_answer(PLAYER, session_question.correct_answer)

        await asyncio.wait_for(done.wait(), timeout=5)

        self.assertEqual(len(summaries), 1)
        self.assertEqual(summaries[0].reason, CompletionReason.TIMED_OUT)
        self.assertEqual(summaries[0].score, 0)
        await asyncio.wait_for(session.timer.task, timeout=5)
        self.assertFalse(session.timer.is_running)

    @async_test
    async def test_concurrent_players(self):
        configuration = self.config_manager.build_configuration()['configuration']
        results = await asyncio.gather(*[
            self.controller.start_quiz(player_id, configuration)
            for player_id in (1, 2, 3)
        ])

        self.assertTrue(all(r['success'] for r in results))
        self.assertEqual(len(self.controller.get_all_sessions()), 3)
        self.controller.abandon(2)
        self.assertEqual(sorted(self.controller.get_all_sessions()), [1, 3])
        self.assertEqual(self.controller.shutdown(), 2)


if __name__ == '__main__':
    unittest.main()
