"""
Quiz engine core logic for the Trivia Quiz Bot.
Handles answer ordering and the session countdown timer.
"""
import random
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional

from .models import Question

# Set up logger for timer operations
logger = logging.getLogger(__name__)


def shuffle_answers(question: Question, rng: Optional[random.Random] = None) -> List[str]:
    """
    Produce a random ordering of a question's answers.

    The correct answer and the incorrect answers (in provider order) are
    combined into a new list and permuted; the question itself is left
    untouched.

    Args:
        question: Question whose answers should be ordered
        rng: Random source, defaults to a fresh generator per call

    Returns:
        New list containing every answer exactly once
    """
    answers = question.all_answers
    (rng or random.Random()).shuffle(answers)
    return answers


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_created(session_id: str, duration: int) -> None:
        """Log timer creation."""
        logger.info(
            f"Timer lifecycle: CREATED - Session {session_id}, Duration {duration}s",
            extra={
                'event_type': 'timer_created',
                'session_id': session_id,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_start(session_id: str, task_id: str = None) -> None:
        """Log timer countdown start."""
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Session {session_id}",
            extra={
                'event_type': 'timer_countdown_start',
                'session_id': session_id,
                'task_id': task_id,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(session_id: str, remaining_time: int, total_duration: int) -> None:
        """Log timer update events (throttled to avoid spam)."""
        if total_duration <= 0:
            return
        if remaining_time % 10 == 0 or remaining_time <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100
            logger.debug(
                f"Timer lifecycle: UPDATE - Session {session_id}, Remaining {remaining_time}s ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'timer_update',
                    'session_id': session_id,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(session_id: str, completion_type: str, tick_count: int) -> None:
        """Log timer completion (stop request or task cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Session {session_id}, Type {completion_type}, Ticks {tick_count}",
            extra={
                'event_type': 'timer_completed',
                'session_id': session_id,
                'completion_type': completion_type,
                'tick_count': tick_count,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(session_id: str, from_state: str, to_state: str, reason: str = None) -> None:
        """Log timer state transitions."""
        logger.info(
            f"Timer lifecycle: STATE_TRANSITION - Session {session_id}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'session_id': session_id,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(session_id: str, error_type: str, error_message: str, operation: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Session {session_id}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'session_id': session_id,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_duplicate_stop(session_id: str) -> None:
        """Log a stop request on a timer that is already stopped."""
        logger.debug(
            f"Timer lifecycle: DUPLICATE_STOP - Session {session_id}",
            extra={
                'event_type': 'timer_duplicate_stop',
                'session_id': session_id,
                'timestamp': time.time()
            }
        )


class QuizTimer:
    """
    Cancellable periodic timer driving a quiz session countdown.

    The timer owns a single asyncio task that invokes the tick callback
    once per interval until `cancel()` is called. It is the only source
    of countdown ticks for its session.
    """

    def __init__(self, session_id: str = None, interval: float = 1.0):
        """Initialize the timer."""
        if interval <= 0:
            raise ValueError("Timer interval must be positive")
        self._task: Optional[asyncio.Task] = None
        self._is_cancelled = False
        self._session_id = session_id
        self._interval = interval
        self._tick_count = 0

    def start(self, tick_callback: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """
        Start ticking in a background task. Must be called from a running event loop.

        Args:
            tick_callback: Awaited once per interval

        Returns:
            The background task

        Raises:
            RuntimeError: If the timer was already started or cancelled
        """
        if self._task is not None or self._is_cancelled:
            raise RuntimeError(f"Timer for session {self._session_id} cannot be started twice")

        self._task = asyncio.create_task(self._run(tick_callback))
        TimerLifecycleLogger.log_timer_start(self._session_id, str(id(self._task)))
        return self._task

    async def _run(self, tick_callback: Callable[[], Awaitable[Any]]) -> None:
        try:
            while not self._is_cancelled:
                await asyncio.sleep(self._interval)
                if self._is_cancelled:
                    break
                self._tick_count += 1
                await tick_callback()

            TimerLifecycleLogger.log_timer_completion(self._session_id, "stopped", self._tick_count)

        except asyncio.CancelledError:
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_completion(self._session_id, "asyncio_cancelled", self._tick_count)
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                self._session_id,
                "tick_execution_error",
                str(e),
                "run"
            )
            raise

    def cancel(self) -> bool:
        """
        Stop the timer.

        Safe to call from inside the tick callback; in that case the loop
        exits after the callback returns instead of cancelling its own task.

        Returns:
            True if this call stopped the timer, False if it was already stopped
        """
        if self._is_cancelled:
            TimerLifecycleLogger.log_duplicate_stop(self._session_id)
            return False

        self._is_cancelled = True
        if self._task is not None and not self._task.done() and self._task is not _current_task():
            logger.debug(f"Cancelling timer task for session {self._session_id}")
            self._task.cancel()
            TimerLifecycleLogger.log_timer_state_transition(
                self._session_id,
                "running",
                "cancelled",
                "task cancelled"
            )
        else:
            TimerLifecycleLogger.log_timer_state_transition(
                self._session_id,
                "running",
                "cancelled",
                "stopped without task cancellation"
            )
        return True

    @property
    def is_cancelled(self) -> bool:
        """Check if timer is cancelled."""
        return self._is_cancelled

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._is_cancelled

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task
