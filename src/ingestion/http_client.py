"""
HTTP infrastructure layer with retry logic.

Provides:
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async HTTP client with automatic retry on transient failures

This layer separates HTTP concerns (retries, backoff, auth headers) from
domain logic (issue-tracker calls, corpus snapshots, image downloads).
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    Implements exponential backoff with jitter to prevent thundering herd
    problems when multiple clients retry simultaneously.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))
    """

    max_retries: int = 3
    max_backoff_seconds: float = 60.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int, retry_after: float | None = None) -> float:
        """
        Calculate backoff duration for a given retry attempt.

        Args:
            attempt: The retry attempt number (0-indexed)
            retry_after: Server-provided Retry-After hint in seconds, if any

        Returns:
            Backoff duration in seconds with jitter applied
        """
        if retry_after is not None:
            return min(max(retry_after, 0.0), self.max_backoff_seconds)

        delay = self.base_delay * (2**attempt)
        delay = min(delay, self.max_backoff_seconds)

        jitter = delay * self.jitter_factor * random.random()
        return delay + jitter

    def is_retryable_status(self, status_code: int) -> bool:
        """
        Check if an HTTP status code should trigger a retry.

        Retryable: 429 (rate limited) and 500/502/503/504.
        """
        return status_code in {429, 500, 502, 503, 504}

    def is_retryable_exception(self, exc: Exception) -> bool:
        """Check if a transport exception should trigger a retry."""
        return isinstance(
            exc,
            (
                httpx.TimeoutException,
                httpx.ConnectError,
                httpx.ReadError,
            ),
        )


class HTTPClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(HTTPClientError):
    """Raised when rate limit is hit and all retries exhausted."""

    pass


def _parse_retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class HTTPClient:
    """
    Async HTTP client with retry logic.

    Features:
    - Exponential backoff with jitter on retryable errors
    - Honors Retry-After on 429/503 responses
    - Automatic retry on timeout/connection errors
    - Optional base URL and default headers (e.g. bearer auth)
    - Context manager for proper resource cleanup

    Example:
        async with HTTPClient(RetryConfig(max_retries=3), base_url=api) as client:
            response = await client.get("/repos/o/r/issues", params={"state": "all"})
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        base_url: str = "",
        headers: dict[str, str] | None = None,
    ):
        """
        Initialize HTTP client.

        Args:
            retry_config: Configuration for retry behavior. Uses defaults if None.
            timeout: Request timeout in seconds.
            base_url: Prefix for relative request URLs.
            headers: Headers sent with every request.
        """
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.base_url = base_url
        self.headers = dict(headers) if headers else {}
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        """Enter async context manager, create client."""
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            base_url=self.base_url,
            headers=self.headers,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager, close client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Perform GET request with retry logic.

        Raises:
            HTTPClientError: On non-retryable errors or after retries exhausted
            RateLimitError: When rate limited and retries exhausted
        """
        return await self.request("GET", url, params=params, headers=headers)

    async def post(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> httpx.Response:
        """Perform POST request with retry logic."""
        return await self.request(
            "POST", url, params=params, headers=headers, json_body=json_body
        )

    async def patch(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> httpx.Response:
        """Perform PATCH request with retry logic."""
        return await self.request("PATCH", url, headers=headers, json_body=json_body)

    async def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> httpx.Response:
        """
        Execute HTTP request with retry logic.

        Implements exponential backoff with jitter on retryable errors.
        """
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")
        if method not in {"GET", "POST", "PATCH"}:
            raise ValueError(f"Unsupported HTTP method: {method}")

        last_status_code: int | None = None
        last_response_body: str | None = None

        for attempt in range(self.retry_config.max_retries + 1):
            try:
                response = await self._client.request(
                    method,
                    url,
                    params=params or None,
                    headers=headers or None,
                    json=json_body,
                )

                if self.retry_config.is_retryable_status(response.status_code):
                    last_status_code = response.status_code
                    last_response_body = response.text

                    if attempt < self.retry_config.max_retries:
                        backoff = self.retry_config.calculate_backoff(
                            attempt, _parse_retry_after(response)
                        )
                        logger.warning(
                            f"Retryable status {response.status_code} from {url}, "
                            f"attempt {attempt + 1}/{self.retry_config.max_retries + 1}, "
                            f"backing off {backoff:.2f}s"
                        )
                        await asyncio.sleep(backoff)
                        continue

                    if response.status_code == 429:
                        raise RateLimitError(
                            f"Rate limit exceeded for {url} after {attempt + 1} attempts",
                            status_code=response.status_code,
                            response_body=last_response_body,
                        )
                    raise HTTPClientError(
                        f"Request failed with status {response.status_code} after {attempt + 1} attempts",
                        status_code=response.status_code,
                        response_body=last_response_body,
                    )

                if response.status_code >= 400:
                    raise HTTPClientError(
                        f"Request failed with status {response.status_code}",
                        status_code=response.status_code,
                        response_body=response.text,
                    )

                return response

            except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as e:
                if attempt < self.retry_config.max_retries:
                    backoff = self.retry_config.calculate_backoff(attempt)
                    logger.warning(
                        f"Retryable error {type(e).__name__} for {url}, "
                        f"attempt {attempt + 1}/{self.retry_config.max_retries + 1}, "
                        f"backing off {backoff:.2f}s"
                    )
                    await asyncio.sleep(backoff)
                    continue

                raise HTTPClientError(
                    f"Request failed after {attempt + 1} attempts: {e}",
                    status_code=last_status_code,
                ) from e

        raise HTTPClientError(
            f"Request failed after {self.retry_config.max_retries + 1} attempts",
            status_code=last_status_code,
            response_body=last_response_body,
        )
