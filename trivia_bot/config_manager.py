"""
Configuration manager for Trivia Quiz Bot settings and quiz parameters.
"""
import logging
from typing import Any, Dict, List, Optional

from .models import (
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    Category,
    Difficulty,
    QuestionType,
    QuizConfiguration,
    TimerDuration,
)


class ConfigManager:
    """Manages default quiz parameters and builds validated quiz configurations."""

    # Default configuration values
    DEFAULT_QUESTION_COUNT = 5
    DEFAULT_DIFFICULTY = 1.0
    DEFAULT_QUESTION_TYPE = QuestionType.ANY
    DEFAULT_TIMER_DURATION = TimerDuration.THIRTY_SECONDS
    DEFAULT_PROVIDER_URL = "https://opentdb.com"
    DEFAULT_REQUEST_TIMEOUT = 15

    # Validation limits
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 50  # OpenTDB per-request maximum

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._question_count = self.DEFAULT_QUESTION_COUNT
        self._difficulty = self.DEFAULT_DIFFICULTY
        self._question_type = self.DEFAULT_QUESTION_TYPE
        self._timer_duration = self.DEFAULT_TIMER_DURATION
        self._provider_url = self.DEFAULT_PROVIDER_URL
        self._request_timeout = self.DEFAULT_REQUEST_TIMEOUT

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply settings from a parsed config.json dictionary.

        Invalid entries are logged and skipped so the defaults stay in effect.

        Returns:
            List of error messages for rejected entries
        """
        errors = []
        quiz_config = config.get('quiz', {}) or {}
        provider_config = config.get('provider', {}) or {}

        setters = [
            ('default_question_count', self.set_question_count),
            ('default_difficulty', self.set_difficulty),
            ('default_question_type', self.set_question_type),
            ('default_timer_duration', self.set_timer_duration),
        ]
        for key, setter in setters:
            if key in quiz_config:
                result = setter(quiz_config[key])
                if not result['success']:
                    errors.append(result['error'])

        base_url = provider_config.get('base_url')
        if base_url is not None:
            if isinstance(base_url, str) and base_url.startswith(('http://', 'https://')):
                self._provider_url = base_url.rstrip('/')
            else:
                errors.append(f"Invalid provider base_url: {base_url!r}")

        timeout = provider_config.get('request_timeout')
        if timeout is not None:
            if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout > 0:
                self._request_timeout = timeout
            else:
                errors.append(f"Invalid provider request_timeout: {timeout!r}")

        for error in errors:
            self.logger.error(f"Ignoring configuration entry: {error}")
        return errors

    def set_question_count(self, count: Any) -> Dict[str, Any]:
        """
        Set the default number of questions.

        Args:
            count: Number of questions to request

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        error = self._validate_question_count(count)
        if error:
            self.logger.error(error['error'])
            return error

        self._question_count = count
        self.logger.info(f"Question count set to {count}")
        return {
            'success': True,
            'message': f"Question count set to {count}",
            'user_message': f"✅ Question count set to {count}"
        }

    def set_difficulty(self, difficulty: Any) -> Dict[str, Any]:
        """
        Set the default difficulty as a slider value between 0 and 2.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        error = self._validate_difficulty(difficulty)
        if error:
            self.logger.error(error['error'])
            return error

        self._difficulty = float(difficulty)
        level = Difficulty.from_slider(self._difficulty)
        self.logger.info(f"Difficulty set to {self._difficulty} ({level.value})")
        return {
            'success': True,
            'message': f"Difficulty set to {self._difficulty}",
            'user_message': f"✅ Difficulty set to {level.label}"
        }

    def set_question_type(self, question_type: Any) -> Dict[str, Any]:
        """
        Set the default question type from an enum member or its label.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        resolved = self._resolve_question_type(question_type)
        if resolved is None:
            error_msg = f"Unknown question type: {question_type!r}"
            self.logger.error(error_msg)
            labels = ", ".join(t.value for t in QuestionType)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Unknown question type. Choose one of: {labels}"
            }

        self._question_type = resolved
        self.logger.info(f"Question type set to {resolved.value}")
        return {
            'success': True,
            'message': f"Question type set to {resolved.value}",
            'user_message': f"✅ Question type set to {resolved.value}"
        }

    def set_timer_duration(self, duration: Any) -> Dict[str, Any]:
        """
        Set the default session time limit.

        Args:
            duration: TimerDuration member or a supported number of seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        resolved = self._resolve_timer_duration(duration)
        if resolved is None:
            error_msg = f"Unsupported timer duration: {duration!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer must be one of: {self.get_duration_choices_text()}"
            }

        self._timer_duration = resolved
        self.logger.info(f"Timer duration set to {resolved.seconds} seconds")
        return {
            'success': True,
            'message': f"Timer duration set to {resolved.seconds} seconds",
            'user_message': f"✅ Timer set to {resolved.value}"
        }

    def get_question_count(self) -> int:
        return self._question_count

    def get_difficulty(self) -> float:
        return self._difficulty

    def get_question_type(self) -> QuestionType:
        return self._question_type

    def get_timer_duration(self) -> TimerDuration:
        return self._timer_duration

    def get_provider_url(self) -> str:
        return self._provider_url

    def get_request_timeout(self) -> float:
        return self._request_timeout

    def get_duration_choices_text(self) -> str:
        return ", ".join(d.value for d in TimerDuration)

    def build_configuration(
        self,
        question_count: Any = None,
        category: Optional[Category] = None,
        difficulty: Any = None,
        question_type: Any = None,
        timer_duration: Any = None
    ) -> Dict[str, Any]:
        """
        Merge per-quiz overrides with the defaults into a QuizConfiguration.

        Arguments left as None fall back to the current defaults.

        Returns:
            Dictionary with success status and either 'configuration' or
            'error'/'user_message'
        """
        count = self._question_count if question_count is None else question_count
        error = self._validate_question_count(count)
        if error:
            return error

        level = self._difficulty if difficulty is None else difficulty
        error = self._validate_difficulty(level)
        if error:
            return error

        resolved_type = self._question_type if question_type is None else self._resolve_question_type(question_type)
        if resolved_type is None:
            return {
                'success': False,
                'error': f"Unknown question type: {question_type!r}",
                'user_message': "❌ Unknown question type"
            }

        resolved_duration = (
            self._timer_duration if timer_duration is None
            else self._resolve_timer_duration(timer_duration)
        )
        if resolved_duration is None:
            return {
                'success': False,
                'error': f"Unsupported timer duration: {timer_duration!r}",
                'user_message': f"❌ Timer must be one of: {self.get_duration_choices_text()}"
            }

        configuration = QuizConfiguration(
            question_count=count,
            category=category,
            difficulty=float(level),
            question_type=resolved_type,
            timer_duration=resolved_duration
        )
        return {
            'success': True,
            'configuration': configuration,
            'message': self.describe_configuration(configuration)
        }

    def describe_configuration(self, configuration: QuizConfiguration) -> str:
        category_name = configuration.category.name if configuration.category else "Any Category"
        return (
            f"Questions: {configuration.question_count} | "
            f"Category: {category_name} | "
            f"Difficulty: {configuration.difficulty_level.label} | "
            f"Type: {configuration.question_type.value} | "
            f"Timer: {configuration.timer_duration.value}"
        )

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._question_count = self.DEFAULT_QUESTION_COUNT
        self._difficulty = self.DEFAULT_DIFFICULTY
        self._question_type = self.DEFAULT_QUESTION_TYPE
        self._timer_duration = self.DEFAULT_TIMER_DURATION
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        if self._validate_question_count(self._question_count):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid question count: {self._question_count}")

        if self._validate_difficulty(self._difficulty):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid difficulty: {self._difficulty}")

        if not isinstance(self._question_type, QuestionType):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid question type: {self._question_type}")

        if not isinstance(self._timer_duration, TimerDuration):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid timer duration: {self._timer_duration}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        level = Difficulty.from_slider(self._difficulty)
        return (
            f"Quiz Settings:\n"
            f"• Questions: {self._question_count}\n"
            f"• Difficulty: {level.label} ({self._difficulty:.1f})\n"
            f"• Type: {self._question_type.value}\n"
            f"• Timer: {self._timer_duration.value}\n"
            f"• Provider: {self._provider_url}"
        )

    def _validate_question_count(self, count: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(count, int) or isinstance(count, bool):
            return {
                'success': False,
                'error': f"Question count must be an integer, got {type(count).__name__}",
                'user_message': f"❌ Invalid input: Expected a number, got {type(count).__name__}"
            }
        if count < self.MIN_QUESTION_COUNT:
            return {
                'success': False,
                'error': f"Question count must be at least {self.MIN_QUESTION_COUNT}",
                'user_message': f"❌ Too few questions: Minimum is {self.MIN_QUESTION_COUNT}"
            }
        if count > self.MAX_QUESTION_COUNT:
            return {
                'success': False,
                'error': f"Question count cannot exceed {self.MAX_QUESTION_COUNT}",
                'user_message': f"❌ Too many questions: Maximum is {self.MAX_QUESTION_COUNT}"
            }
        return None

    def _validate_difficulty(self, difficulty: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(difficulty, (int, float)) or isinstance(difficulty, bool):
            return {
                'success': False,
                'error': f"Difficulty must be a number, got {type(difficulty).__name__}",
                'user_message': f"❌ Invalid input: Expected a number, got {type(difficulty).__name__}"
            }
        if not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
            return {
                'success': False,
                'error': f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}",
                'user_message': f"❌ Difficulty must be between {MIN_DIFFICULTY:g} and {MAX_DIFFICULTY:g}"
            }
        return None

    def _resolve_question_type(self, question_type: Any) -> Optional[QuestionType]:
        if isinstance(question_type, QuestionType):
            return question_type
        if isinstance(question_type, str):
            key = question_type.strip().lower()
            for candidate in QuestionType:
                if key in (candidate.value.lower(), candidate.name.lower(), (candidate.wire_value or 'any')):
                    return candidate
        return None

    def _resolve_timer_duration(self, duration: Any) -> Optional[TimerDuration]:
        if isinstance(duration, TimerDuration):
            return duration
        if isinstance(duration, int) and not isinstance(duration, bool):
            try:
                return TimerDuration.from_seconds(duration)
            except ValueError:
                return None
        if isinstance(duration, str):
            for candidate in TimerDuration:
                if duration.strip().lower() == candidate.value:
                    return candidate
        return None
