"""
Quiz configuration resolver for the Trivia Quiz Bot.
Turns a quiz configuration into a provider request, fetches the question
batch and classifies provider failures.
"""
import logging
from typing import Any, Dict, List, Optional, Set, Union

from .models import Category, Difficulty, Question, QuizConfiguration, RequestDescriptor
from .trivia_client import TriviaClient, TriviaClientError, TriviaPayloadError


EMPTY_RESULTS_HINT = "Try reducing the number of questions or changing the category/difficulty."


class QuizError(Exception):
    """Base exception for question fetch failures."""

    kind = "unknown"
    default_message = "Unknown error occurred. Please try different settings."

    def __init__(self, message: Optional[str] = None, user_message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.user_message = user_message or self.default_message


class InvalidRequestError(QuizError):
    """Raised when the configuration cannot be turned into a valid request."""
    kind = "invalid_request"
    default_message = "Invalid URL"


class InsufficientQuestionsError(QuizError):
    """Raised when the provider has too few questions for the criteria (code 1, or code 0 with no rows)."""
    kind = "insufficient_questions"
    default_message = (
        "Not enough questions available for your criteria. "
        "Try reducing the number of questions or changing the category/difficulty."
    )


class InvalidParameterError(QuizError):
    """Raised on response code 2."""
    kind = "invalid_parameter"
    default_message = "Invalid parameter in request. Please check your selections."


class SessionTokenMissingError(QuizError):
    """Raised on response code 3."""
    kind = "session_token_missing"
    default_message = "Session token not found"


class SessionTokenExhaustedError(QuizError):
    """Raised on response code 4."""
    kind = "session_token_exhausted"
    default_message = "Session token has returned all questions"


class RateLimitedError(QuizError):
    """Raised on response code 5 or an HTTP 429 without a payload."""
    kind = "rate_limited"
    default_message = "Too many requests. Please wait a few seconds and try again."


class UnknownResponseError(QuizError):
    """Raised on a response code outside the documented range."""
    kind = "unknown_response"


class DecodingError(QuizError):
    """Raised when the provider payload does not have the expected shape."""
    kind = "decoding_error"

    def __init__(self, cause: str):
        super().__init__(
            f"Could not decode provider response: {cause}",
            f"Error loading questions: {cause}"
        )
        self.cause = cause


class ProviderUnavailableError(QuizError):
    """Raised when the provider cannot be reached."""
    kind = "provider_unavailable"

    def __init__(self, cause: str):
        super().__init__(
            f"Trivia provider unavailable: {cause}",
            f"Error loading questions: {cause}"
        )
        self.cause = cause


class CategoryLoadError(QuizError):
    """Raised internally when the category catalog cannot be loaded."""
    kind = "category_load_failed"
    default_message = "Categories could not be loaded. Any Category is still available."


RESPONSE_CODE_ERRORS = {
    1: InsufficientQuestionsError,
    2: InvalidParameterError,
    3: SessionTokenMissingError,
    4: SessionTokenExhaustedError,
    5: RateLimitedError,
}

REQUIRED_QUESTION_FIELDS = ('category', 'type', 'difficulty', 'question', 'correct_answer')


class QuizResolver:
    """
    Resolves quiz configurations into validated question batches.

    The resolver is the error boundary of the fetch path: `prepare_quiz`
    never raises, it reports failures as a result dictionary carrying a
    single user-facing message.
    """

    def __init__(self, client: TriviaClient):
        """
        Initialize the resolver.

        Args:
            client: Transport used to reach the trivia provider
        """
        self.logger = logging.getLogger(__name__)
        self.client = client
        self.categories: List[Category] = []
        self.category_load_error: Optional[str] = None
        self._pending_requests: Set[Any] = set()

    async def load_categories(self) -> List[Category]:
        """
        Load the category catalog.

        Failures are logged and leave the catalog empty so that
        "Any Category" remains the only choice.

        Returns:
            List of loaded categories, empty on failure
        """
        try:
            payload = await self.client.fetch_categories()
            self.categories = self._parse_categories(payload)
            self.category_load_error = None
            self.logger.info(f"Loaded {len(self.categories)} trivia categories")
        except TriviaClientError as e:
            self._record_category_failure(CategoryLoadError(str(e)))
        except CategoryLoadError as e:
            self._record_category_failure(e)
        return list(self.categories)

    def _record_category_failure(self, error: CategoryLoadError) -> None:
        self.categories = []
        self.category_load_error = str(error)
        self.logger.warning(f"Error loading categories: {error}")

    def _parse_categories(self, payload: Any) -> List[Category]:
        if not isinstance(payload, dict) or not isinstance(payload.get('trivia_categories'), list):
            raise CategoryLoadError("Category payload is missing 'trivia_categories'")

        categories = []
        for entry in payload['trivia_categories']:
            if not isinstance(entry, dict):
                raise CategoryLoadError(f"Category entry is not an object: {entry!r}")
            category_id = entry.get('id')
            name = entry.get('name')
            if not isinstance(category_id, int) or isinstance(category_id, bool) or not isinstance(name, str):
                raise CategoryLoadError(f"Malformed category entry: {entry!r}")
            categories.append(Category(id=category_id, name=name))
        return categories

    def find_category(self, key: Union[int, str, None]) -> Optional[Category]:
        """
        Look up a loaded category by id or case-insensitive name.

        Returns:
            The matching category, or None
        """
        if key is None:
            return None
        for category in self.categories:
            if isinstance(key, int) and category.id == key:
                return category
            if isinstance(key, str) and (category.name.lower() == key.strip().lower() or str(category.id) == key.strip()):
                return category
        return None

    def build_request(self, config: QuizConfiguration) -> RequestDescriptor:
        """
        Map a configuration to transport parameters.

        Difficulty is always sent; category only when one was chosen and
        type only when it is not "Any".

        Raises:
            InvalidRequestError: If the question count is not a positive integer
        """
        count = config.question_count
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            raise InvalidRequestError(f"Question count must be a positive integer, got {count!r}")

        try:
            difficulty = Difficulty.from_slider(float(config.difficulty)).value
        except (TypeError, ValueError):
            difficulty = Difficulty.MEDIUM.value

        return RequestDescriptor(
            amount=count,
            difficulty=difficulty,
            category_id=config.category.id if config.category is not None else None,
            question_type=config.question_type.wire_value
        )

    async def fetch_questions(self, request: RequestDescriptor) -> List[Question]:
        """
        Fetch and decode a question batch.

        Returns:
            Non-empty list of questions, each with a fresh id

        Raises:
            QuizError: Classified failure (see module exceptions)
        """
        params = request.to_params()
        self.logger.info(f"Fetching questions with parameters {params}")

        try:
            payload = await self.client.fetch_questions(params)
        except TriviaPayloadError as e:
            raise DecodingError(str(e)) from e
        except TriviaClientError as e:
            if e.status_code == 429:
                raise RateLimitedError(str(e)) from e
            raise ProviderUnavailableError(str(e)) from e

        response_code, results = self._decode_envelope(payload)

        if response_code == 0:
            if not results:
                raise InsufficientQuestionsError("Provider returned response code 0 with no results")
            return [self._parse_question(entry, index) for index, entry in enumerate(results)]

        error_class = RESPONSE_CODE_ERRORS.get(response_code, UnknownResponseError)
        user_message = error_class.default_message
        if not results and error_class is not InsufficientQuestionsError:
            user_message += f"\n{EMPTY_RESULTS_HINT}"
        raise error_class(f"Provider returned response code {response_code}", user_message)

    def _decode_envelope(self, payload: Any):
        if not isinstance(payload, dict):
            raise DecodingError(f"expected a JSON object, got {type(payload).__name__}")
        if 'response_code' not in payload:
            raise DecodingError("missing 'response_code'")
        response_code = payload['response_code']
        if not isinstance(response_code, int) or isinstance(response_code, bool):
            raise DecodingError(f"'response_code' must be an integer, got {response_code!r}")
        results = payload.get('results', [])
        if not isinstance(results, list):
            raise DecodingError(f"'results' must be a list, got {type(results).__name__}")
        return response_code, results

    def _parse_question(self, entry: Any, index: int) -> Question:
        if not isinstance(entry, dict):
            raise DecodingError(f"result {index} is not an object")

        for field_name in REQUIRED_QUESTION_FIELDS:
            if not isinstance(entry.get(field_name), str):
                raise DecodingError(f"result {index} has missing or invalid '{field_name}'")

        incorrect_answers = entry.get('incorrect_answers')
        if not isinstance(incorrect_answers, list) or not all(isinstance(a, str) for a in incorrect_answers):
            raise DecodingError(f"result {index} has missing or invalid 'incorrect_answers'")

        return Question(
            category=entry['category'],
            type=entry['type'],
            difficulty=entry['difficulty'],
            prompt=entry['question'],
            correct_answer=entry['correct_answer'],
            incorrect_answers=tuple(incorrect_answers)
        )

    def is_request_pending(self, request_key: Any) -> bool:
        return request_key in self._pending_requests

    async def prepare_quiz(self, config: QuizConfiguration, request_key: Any = None) -> Dict[str, Any]:
        """
        Build the request, fetch questions and convert failures into a result.

        A second call with the same `request_key` while the first is still
        outstanding is rejected without contacting the provider.

        Args:
            config: Validated quiz configuration
            request_key: Identifies the submitter, e.g. a player id

        Returns:
            Dictionary with success status and either questions or an error
        """
        if request_key is not None and request_key in self._pending_requests:
            self.logger.warning(f"Ignoring duplicate quiz request for {request_key}: fetch already in progress")
            return {
                'success': False,
                'error_kind': 'in_progress',
                'error': "Question fetch already in progress",
                'user_message': "⏳ Your questions are already being fetched. Please wait."
            }

        if request_key is not None:
            self._pending_requests.add(request_key)
        try:
            request = self.build_request(config)
            questions = await self.fetch_questions(request)
            self.logger.info(f"Fetched {len(questions)} questions for {request_key}")
            return {
                'success': True,
                'questions': questions,
                'request': request
            }
        except QuizError as e:
            self.logger.error(f"Failed to fetch questions ({e.kind}): {e}")
            return {
                'success': False,
                'error_kind': e.kind,
                'error': str(e),
                'user_message': e.user_message
            }
        finally:
            self._pending_requests.discard(request_key)
