"""
Core data models for the Trivia Quiz Bot.
"""
import html
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


# Slider thresholds for the continuous 0-2 difficulty value
EASY_UPPER_BOUND = 0.67
MEDIUM_UPPER_BOUND = 1.33
MIN_DIFFICULTY = 0.0
MAX_DIFFICULTY = 2.0


def display_text(raw: str) -> str:
    """Decode the HTML entities OpenTDB embeds in question and answer text."""
    return html.unescape(raw)


def format_time(seconds: int) -> str:
    """Format a second count as a MM:SS countdown string."""
    minutes, remaining_seconds = divmod(max(seconds, 0), 60)
    return f"{minutes:02d}:{remaining_seconds:02d}"


class Difficulty(Enum):
    """Question difficulty level, valued by its OpenTDB wire name."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def from_slider(cls, value: float) -> "Difficulty":
        """
        Map a continuous difficulty value in [0, 2] to a difficulty level.

        Values below 0.67 are easy, values below 1.33 are medium and
        everything else is hard.
        """
        if value < EASY_UPPER_BOUND:
            return cls.EASY
        if value < MEDIUM_UPPER_BOUND:
            return cls.MEDIUM
        return cls.HARD

    @property
    def label(self) -> str:
        return self.value.capitalize()


class QuestionType(Enum):
    """Question format filter offered to the player."""

    ANY = "Any Type"
    MULTIPLE_CHOICE = "Multiple Choice"
    TRUE_FALSE = "True or False"

    @property
    def wire_value(self) -> Optional[str]:
        """OpenTDB `type` parameter, or None when no filter applies."""
        return _QUESTION_TYPE_WIRE_VALUES[self]


_QUESTION_TYPE_WIRE_VALUES: Dict[QuestionType, Optional[str]] = {
    QuestionType.ANY: None,
    QuestionType.MULTIPLE_CHOICE: "multiple",
    QuestionType.TRUE_FALSE: "boolean",
}


class TimerDuration(Enum):
    """Fixed set of session time limits."""

    THIRTY_SECONDS = "30 seconds"
    SIXTY_SECONDS = "60 seconds"
    ONE_TWENTY_SECONDS = "120 seconds"
    THREE_HUNDRED_SECONDS = "300 seconds"
    ONE_HOUR = "1 hour"

    @property
    def seconds(self) -> int:
        return _TIMER_DURATION_SECONDS[self]

    @classmethod
    def from_seconds(cls, seconds: int) -> "TimerDuration":
        """
        Look up the duration matching a second count.

        Raises:
            ValueError: If the count is not one of the supported durations
        """
        for duration, duration_seconds in _TIMER_DURATION_SECONDS.items():
            if duration_seconds == seconds:
                return duration
        raise ValueError(f"Unsupported timer duration: {seconds} seconds")


_TIMER_DURATION_SECONDS: Dict[TimerDuration, int] = {
    TimerDuration.THIRTY_SECONDS: 30,
    TimerDuration.SIXTY_SECONDS: 60,
    TimerDuration.ONE_TWENTY_SECONDS: 120,
    TimerDuration.THREE_HUNDRED_SECONDS: 300,
    TimerDuration.ONE_HOUR: 3600,
}


@dataclass(frozen=True)
class Category:
    """A trivia category from the provider catalog."""
    id: int
    name: str


@dataclass(frozen=True)
class QuizConfiguration:
    """Validated quiz parameters. Immutable once a session starts."""
    question_count: int
    category: Optional[Category] = None
    difficulty: float = 1.0
    question_type: QuestionType = QuestionType.ANY
    timer_duration: TimerDuration = TimerDuration.THIRTY_SECONDS

    @property
    def difficulty_level(self) -> Difficulty:
        return Difficulty.from_slider(self.difficulty)


@dataclass(frozen=True)
class RequestDescriptor:
    """Transport parameters for a question fetch."""
    amount: int
    difficulty: str
    category_id: Optional[int] = None
    question_type: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        """Build the query parameters, leaving out unset filters."""
        params = {
            'amount': str(self.amount),
            'difficulty': self.difficulty,
        }
        if self.category_id is not None:
            params['category'] = str(self.category_id)
        if self.question_type is not None:
            params['type'] = self.question_type
        return params


@dataclass(frozen=True)
class Question:
    """
    A single trivia question as returned by the provider.

    Text fields keep the raw, HTML-entity encoded form; correctness checks
    compare against `correct_answer` exactly as received.
    """
    category: str
    type: str
    difficulty: str
    prompt: str
    correct_answer: str
    incorrect_answers: Tuple[str, ...] = ()
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def all_answers(self) -> List[str]:
        """Incorrect answers in provider order followed by the correct one."""
        return list(self.incorrect_answers) + [self.correct_answer]

    @property
    def display_prompt(self) -> str:
        return display_text(self.prompt)


class SessionPhase(Enum):
    """Phases of a quiz session."""
    RUNNING = "running"
    COMPLETE = "complete"


class CompletionReason(Enum):
    """Why a session reached the complete phase."""
    FINISHED = "finished"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class SessionState:
    """Read-only snapshot of a quiz session."""
    questions: Tuple[Question, ...]
    current_index: int
    score: int
    selected_answer: Optional[str]
    shuffled_answers: Tuple[str, ...]
    time_remaining: int
    phase: SessionPhase

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.questions) - 1


@dataclass(frozen=True)
class SessionSummary:
    """Final score of a completed session."""
    score: int
    total: int
    percentage: int
    reason: CompletionReason
