"""
Quiz session engine for the Trivia Quiz Bot.
State machine over a single player's question sequence, score and countdown.
"""
import logging
import math
import random
import uuid
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from .models import (
    CompletionReason,
    Question,
    SessionPhase,
    SessionState,
    SessionSummary,
    TimerDuration,
)
from .quiz_engine import QuizTimer, TimerLifecycleLogger, shuffle_answers


TickListener = Callable[[SessionState], Awaitable[Any]]
CompleteListener = Callable[[SessionSummary], Awaitable[Any]]


class InvalidSessionStateError(Exception):
    """Raised when a session operation is not valid in the current state."""
    pass


def calculate_percentage(score: int, total: int) -> int:
    """Percentage of correct answers, rounded to the nearest integer with halves rounded up."""
    if total <= 0:
        return 0
    return int(math.floor(100 * score / total + 0.5))


class QuizSession:
    """
    A running quiz for one player.

    The session starts in the running phase on question 0 and moves to the
    complete phase when the last question is advanced past or the countdown
    reaches zero. The write surface is `select_answer`, `advance`, `tick`
    and `abandon`; everything else is read-only.
    """

    def __init__(
        self,
        questions: Sequence[Question],
        timer_duration: TimerDuration,
        rng: Optional[random.Random] = None,
        session_id: Optional[str] = None
    ):
        """
        Initialize the session.

        Args:
            questions: Non-empty, already validated question batch
            timer_duration: Time limit for the whole session
            rng: Random source for answer shuffling
            session_id: Identifier used in logs

        Raises:
            ValueError: If questions is empty
        """
        if not questions:
            raise ValueError("Cannot start a session without questions")

        self.logger = logging.getLogger(__name__)
        self.session_id = session_id or uuid.uuid4().hex[:8]
        self.timer_duration = timer_duration

        self._questions = tuple(questions)
        self._rng = rng or random.Random()
        self._current_index = 0
        self._score = 0
        self._selected_answer: Optional[str] = None
        self._time_remaining = timer_duration.seconds
        self._phase = SessionPhase.RUNNING
        self._completion_reason: Optional[CompletionReason] = None
        self._abandoned = False
        self._shuffled_answers = self._shuffle_current()

        self._timer: Optional[QuizTimer] = None
        self._tick_listener: Optional[TickListener] = None
        self._complete_listener: Optional[CompleteListener] = None
        self._completion_notified = False

        self.logger.info(
            f"Session {self.session_id} started: {len(self._questions)} questions, "
            f"{timer_duration.seconds}s limit"
        )

    # Read access

    @property
    def state(self) -> SessionState:
        return SessionState(
            questions=self._questions,
            current_index=self._current_index,
            score=self._score,
            selected_answer=self._selected_answer,
            shuffled_answers=tuple(self._shuffled_answers),
            time_remaining=self._time_remaining,
            phase=self._phase
        )

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._phase is SessionPhase.RUNNING and not self._abandoned

    @property
    def is_complete(self) -> bool:
        return self._phase is SessionPhase.COMPLETE

    @property
    def is_abandoned(self) -> bool:
        return self._abandoned

    @property
    def current_question(self) -> Question:
        return self._questions[self._current_index]

    @property
    def completion_reason(self) -> Optional[CompletionReason]:
        return self._completion_reason

    @property
    def timer(self) -> Optional[QuizTimer]:
        return self._timer

    def summary(self) -> SessionSummary:
        """
        Final score of the session.

        Raises:
            InvalidSessionStateError: If the session is not complete
        """
        if not self.is_complete:
            raise InvalidSessionStateError("Summary is only available once the session is complete")
        total = len(self._questions)
        return SessionSummary(
            score=self._score,
            total=total,
            percentage=calculate_percentage(self._score, total),
            reason=self._completion_reason
        )

    # Write surface

    def select_answer(self, answer: str) -> None:
        """
        Record the player's choice for the current question. Last choice wins.

        Raises:
            InvalidSessionStateError: If the session is not running
            ValueError: If the answer is not one of the current options
        """
        self._require_running("select an answer")
        if answer not in self._shuffled_answers:
            raise ValueError(f"Answer is not an option for the current question: {answer!r}")
        self._selected_answer = answer

    def advance(self) -> bool:
        """
        Score the selected answer and move to the next question.

        Returns:
            True if this completed the session, False otherwise

        Raises:
            InvalidSessionStateError: If the session is not running or no answer is selected
        """
        self._require_running("advance")
        if self._selected_answer is None:
            raise InvalidSessionStateError("Cannot advance without a selected answer")

        if self._selected_answer == self.current_question.correct_answer:
            self._score += 1

        if self._current_index == len(self._questions) - 1:
            self._complete(CompletionReason.FINISHED)
            return True

        self._current_index += 1
        self._selected_answer = None
        self._shuffled_answers = self._shuffle_current()
        return False

    def tick(self) -> None:
        """
        Apply one elapsed second. Completes the session when time runs out;
        the question in progress is not scored. Ignored once the session
        has stopped running.
        """
        if not self.is_running:
            return

        if self._time_remaining > 0:
            self._time_remaining -= 1
            TimerLifecycleLogger.log_timer_update(
                self.session_id,
                self._time_remaining,
                self.timer_duration.seconds
            )

        if self._time_remaining == 0:
            self._complete(CompletionReason.TIMED_OUT)

    def abandon(self) -> None:
        """Stop the timer and discard the session without scoring."""
        if self._abandoned:
            return
        self._abandoned = True
        self._stop_timer("abandoned")
        self.logger.info(f"Session {self.session_id} abandoned at question {self._current_index + 1}")

    # Timer ownership

    def start_timer(
        self,
        on_tick: Optional[TickListener] = None,
        on_complete: Optional[CompleteListener] = None,
        interval: float = 1.0
    ) -> QuizTimer:
        """
        Attach and start the countdown timer. Must be called from a running event loop.

        Args:
            on_tick: Awaited with a state snapshot after every tick while running
            on_complete: Awaited once with the summary when the timer observes completion
            interval: Seconds between ticks

        Raises:
            InvalidSessionStateError: If the session is not running or already has a timer
        """
        self._require_running("start the timer")
        if self._timer is not None:
            raise InvalidSessionStateError(f"Session {self.session_id} already has a timer")

        self._tick_listener = on_tick
        self._complete_listener = on_complete
        self._timer = QuizTimer(self.session_id, interval)
        TimerLifecycleLogger.log_timer_created(self.session_id, self.timer_duration.seconds)
        self._timer.start(self._on_timer_tick)
        return self._timer

    async def _on_timer_tick(self) -> None:
        self.tick()
        try:
            if self.is_running:
                if self._tick_listener is not None:
                    await self._tick_listener(self.state)
            else:
                await self.notify_complete()
        except Exception as e:
            self.logger.error(f"Session {self.session_id} listener failed: {e}", exc_info=True)

    async def notify_complete(self) -> None:
        """Deliver the summary to the completion listener once, if the session completed."""
        if not self.is_complete or self._completion_notified or self._complete_listener is None:
            return
        self._completion_notified = True
        await self._complete_listener(self.summary())

    # Internal helpers

    def _shuffle_current(self) -> List[str]:
        return shuffle_answers(self.current_question, self._rng)

    def _require_running(self, operation: str) -> None:
        if self._abandoned:
            raise InvalidSessionStateError(f"Cannot {operation}: session {self.session_id} was abandoned")
        if self._phase is not SessionPhase.RUNNING:
            raise InvalidSessionStateError(f"Cannot {operation}: session {self.session_id} is complete")

    def _complete(self, reason: CompletionReason) -> None:
        self._phase = SessionPhase.COMPLETE
        self._completion_reason = reason
        self._stop_timer(reason.value)
        self.logger.info(
            f"Session {self.session_id} complete ({reason.value}): "
            f"{self._score}/{len(self._questions)}"
        )

    def _stop_timer(self, reason: str) -> None:
        if self._timer is not None and not self._timer.is_cancelled:
            self._timer.cancel()
            self.logger.debug(f"Timer stopped for session {self.session_id}: {reason}")
