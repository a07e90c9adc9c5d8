"""
HTTP client for the Open Trivia Database.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import requests


class TriviaClientError(Exception):
    """Raised when the trivia provider cannot be reached or answers with an HTTP error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TriviaPayloadError(TriviaClientError):
    """Raised when the provider response body is not valid JSON."""
    pass


class TriviaClient:
    """Fetches categories and question batches from OpenTDB."""

    DEFAULT_BASE_URL = "https://opentdb.com"
    DEFAULT_TIMEOUT = 15
    CATEGORY_PATH = "/api_category.php"
    QUESTION_PATH = "/api.php"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: Provider root URL
            timeout: Per-request timeout in seconds
            session: Optional requests session, mainly for tests
        """
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = session or requests.Session()

    async def fetch_categories(self) -> Dict[str, Any]:
        """Fetch the raw category catalog payload."""
        return await asyncio.to_thread(self._get_json, self.CATEGORY_PATH, None)

    async def fetch_questions(self, params: Dict[str, str]) -> Dict[str, Any]:
        """Fetch a raw question batch payload for the given query parameters."""
        return await asyncio.to_thread(self._get_json, self.QUESTION_PATH, params)

    def _get_json(self, path: str, params: Optional[Dict[str, str]]) -> Dict[str, Any]:
        """
        Perform a blocking GET request and decode the JSON body.

        OpenTDB answers rate limiting with HTTP 429 and a regular JSON
        envelope, so a decodable 429 body is returned to the caller.

        Raises:
            TriviaClientError: On network failures or HTTP errors
            TriviaPayloadError: If the body is not valid JSON
        """
        url = f"{self.base_url}{path}"
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Request to {url} failed: {e}")
            raise TriviaClientError(f"Request to {url} failed: {e}") from e

        self.logger.debug(f"GET {response.url} -> {response.status_code}")

        if response.status_code == 429:
            try:
                return response.json()
            except ValueError as e:
                raise TriviaClientError("Rate limited by trivia provider", status_code=429) from e

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            self.logger.error(f"HTTP error from {url}: {e}")
            raise TriviaClientError(str(e), status_code=response.status_code) from e

        try:
            return response.json()
        except ValueError as e:
            self.logger.error(f"Invalid JSON from {url}: {e}")
            raise TriviaPayloadError(f"Invalid JSON response: {e}", status_code=response.status_code) from e

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self._session.close()
