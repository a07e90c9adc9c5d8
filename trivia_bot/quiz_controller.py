"""
Quiz session controller for the Trivia Quiz Bot.
Manages one quiz session per player, from question fetch to final score.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from .models import QuizConfiguration, SessionState
from .quiz_resolver import QuizResolver
from .quiz_session import (
    CompleteListener,
    InvalidSessionStateError,
    QuizSession,
    TickListener,
)


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class SessionConflictError(QuizControllerError):
    """Raised when attempting to create a session that conflicts with existing session."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when attempting to operate on a non-existent session."""
    pass


class QuizController:
    """
    Orchestrates quiz sessions per player.

    Each player owns at most one session. A session stays registered after
    it completes so the summary can be shown, and is discarded when the
    player abandons or dismisses it.
    """

    def __init__(
        self,
        resolver: QuizResolver,
        timer_interval: float = 1.0
    ):
        """
        Initialize the quiz controller.

        Args:
            resolver: Fetches and validates question batches
            timer_interval: Seconds per countdown tick
        """
        self.logger = logging.getLogger(__name__)
        self.resolver = resolver
        self.timer_interval = timer_interval

        # Sessions mapped by player ID
        self._sessions: Dict[int, QuizSession] = {}

        self.logger.info("QuizController initialized")

    def get_session(self, player_id: int) -> Optional[QuizSession]:
        return self._sessions.get(player_id)

    def has_active_session(self, player_id: int) -> bool:
        """
        Check if a player has a running quiz session.

        Args:
            player_id: Discord user identifier

        Returns:
            True if the player's session is still running
        """
        session = self._sessions.get(player_id)
        return session is not None and session.is_running

    def get_session_state(self, player_id: int) -> Optional[SessionState]:
        session = self._sessions.get(player_id)
        return session.state if session is not None else None

    async def start_quiz(
        self,
        player_id: int,
        configuration: QuizConfiguration,
        on_tick: Optional[TickListener] = None,
        on_complete: Optional[CompleteListener] = None
    ) -> Dict[str, Any]:
        """
        Fetch questions and start a timed session for a player.

        Args:
            player_id: Discord user identifier
            configuration: Validated quiz configuration
            on_tick: Awaited with the session state after each countdown tick
            on_complete: Awaited with the summary when the session completes

        Returns:
            Dictionary with operation results and error information
        """
        if self.has_active_session(player_id):
            return self._handle_session_error(
                player_id,
                SessionConflictError(f"Quiz already running for player {player_id}"),
                "start_quiz"
            )

        result = await self.resolver.prepare_quiz(configuration, request_key=player_id)
        if not result['success']:
            return result

        # Another submission may have won the race while this one was fetching
        if self.has_active_session(player_id):
            return self._handle_session_error(
                player_id,
                SessionConflictError(f"Quiz already running for player {player_id}"),
                "start_quiz"
            )

        self._discard(player_id)
        session = QuizSession(
            result['questions'],
            configuration.timer_duration,
            session_id=f"{player_id}-{uuid.uuid4().hex[:6]}"
        )
        self._sessions[player_id] = session
        session.start_timer(on_tick=on_tick, on_complete=on_complete, interval=self.timer_interval)

        self.logger.info(
            f"Started quiz for player {player_id}: {len(result['questions'])} questions, "
            f"{configuration.timer_duration.value}"
        )
        return {
            'success': True,
            'message': "Quiz started successfully",
            'session': session,
            'state': session.state
        }

    def select_answer(self, player_id: int, answer: str) -> Dict[str, Any]:
        """
        Record a player's answer for the current question.

        Returns:
            Dictionary with operation results and error information
        """
        try:
            session = self._require_session(player_id)
            session.select_answer(answer)
            return {
                'success': True,
                'state': session.state
            }
        except (QuizControllerError, InvalidSessionStateError, ValueError) as e:
            return self._handle_session_error(player_id, e, "select_answer")

    async def advance(self, player_id: int) -> Dict[str, Any]:
        """
        Score the selected answer and move on, completing the quiz after the last question.

        Returns:
            Dictionary with operation results, 'completed' flag and the new state
        """
        try:
            session = self._require_session(player_id)
            completed = session.advance()
        except (QuizControllerError, InvalidSessionStateError) as e:
            return self._handle_session_error(player_id, e, "advance")

        if completed:
            try:
                await session.notify_complete()
            except Exception as e:
                self.logger.error(f"Completion listener failed for player {player_id}: {e}", exc_info=True)

        return {
            'success': True,
            'completed': completed,
            'state': session.state,
            'summary': session.summary() if completed else None
        }

    def abandon(self, player_id: int) -> Dict[str, Any]:
        """
        Stop and discard a player's session, whether running or showing its summary.

        Returns:
            Dictionary with operation results
        """
        session = self._sessions.get(player_id)
        if session is None:
            return {
                'success': False,
                'message': "No quiz to stop",
                'user_message': "ℹ️ You don't have a quiz in progress"
            }

        was_running = session.is_running
        state = session.state
        self._discard(player_id)
        return {
            'success': True,
            'message': "Quiz stopped" if was_running else "Quiz dismissed",
            'was_running': was_running,
            'state': state
        }

    def get_session_progress(self, player_id: int) -> Optional[Dict[str, Any]]:
        """
        Get progress information for a player's session.

        Returns:
            Dictionary with progress info, None if no session
        """
        session = self._sessions.get(player_id)
        if session is None:
            return None

        state = session.state
        return {
            'session_id': session.session_id,
            'current_question': state.current_index + 1,
            'total_questions': state.total_questions,
            'score': state.score,
            'time_remaining': state.time_remaining,
            'timer_duration': session.timer_duration.value,
            'phase': state.phase.value,
            'is_running': session.is_running
        }

    def get_all_sessions(self) -> Dict[int, Dict[str, Any]]:
        return {
            player_id: self.get_session_progress(player_id)
            for player_id in list(self._sessions)
        }

    def shutdown(self) -> int:
        """
        Abandon every session, stopping all timers.

        Returns:
            Number of sessions discarded
        """
        player_ids: List[int] = list(self._sessions)
        for player_id in player_ids:
            self._discard(player_id)
        self.logger.info(f"Controller shut down, discarded {len(player_ids)} sessions")
        return len(player_ids)

    def _require_session(self, player_id: int) -> QuizSession:
        session = self._sessions.get(player_id)
        if session is None:
            raise SessionNotFoundError(f"No quiz session for player {player_id}")
        return session

    def _discard(self, player_id: int) -> None:
        session = self._sessions.pop(player_id, None)
        if session is not None:
            session.abandon()

    def _handle_session_error(self, player_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log a session error and build the failure result.

        Args:
            player_id: Discord user identifier
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            Dictionary with error information
        """
        self.logger.warning(f"Session error for player {player_id} during {operation}: {error}")
        return {
            'success': False,
            'error': str(error),
            'error_kind': type(error).__name__,
            'user_message': self._get_user_friendly_error_message(error)
        }

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        if isinstance(error, SessionConflictError):
            return "⚠️ You already have a quiz running. Finish it or use `/quit` first."
        if isinstance(error, SessionNotFoundError):
            return "ℹ️ You don't have a quiz in progress. Use `/trivia` to start one."
        if isinstance(error, InvalidSessionStateError):
            if "selected answer" in str(error):
                return "⚠️ Pick an answer before moving on."
            return "ℹ️ This quiz is already over."
        if isinstance(error, ValueError):
            return "⚠️ That answer is not one of the options."
        return "❌ An unexpected error occurred. Please try again."
