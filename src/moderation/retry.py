"""Retry policy for calls to unreliable external classifiers.

Each attempt is bounded by a timeout enforced through task cancellation;
an expired attempt counts as a failure and is retried. Before attempt n
(n >= 2) the policy waits ``base_delay * multiplier ** (n - 2)``, so the
defaults wait 1s before the second attempt and 2s before the third.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Every attempt failed; `last_error` holds the final failure."""

    def __init__(self, attempts: int, last_error: BaseException | None):
        reason = "timed out" if isinstance(last_error, asyncio.TimeoutError) else str(last_error)
        super().__init__(f"Gave up after {attempts} attempts: {reason}")
        self.attempts = attempts
        self.last_error = last_error


@dataclass
class RetryPolicy:
    """
    Fixed-count retry with exponential delay and a per-attempt timeout.

    Args:
        max_attempts: Total attempts including the first
        base_delay: Seconds to wait before the second attempt
        timeout: Seconds allowed per attempt
        multiplier: Growth factor of the delay between attempts
        sleep: Awaitable sleep, replaceable in tests
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    timeout: float = 30.0
    multiplier: float = 2.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def delay_before(self, attempt: int) -> float:
        """Delay before a 1-indexed attempt (0 for the first)."""
        if attempt <= 1:
            return 0.0
        return self.base_delay * (self.multiplier ** (attempt - 2))

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        on_failure: Callable[[int, BaseException], None] | None = None,
    ) -> T:
        """
        Run `operation` until it succeeds or attempts run out.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            on_failure: Called with (attempt, error) after each failed attempt

        Raises:
            RetryExhaustedError: all attempts failed or timed out
        """
        last_error: BaseException | None = None

        for attempt in range(1, self.max_attempts + 1):
            delay = self.delay_before(attempt)
            if delay > 0:
                await self.sleep(delay)

            try:
                return await asyncio.wait_for(operation(), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                last_error = e
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} timed out after {self.timeout}s"
                )
            except Exception as e:
                last_error = e
                logger.warning(f"Attempt {attempt}/{self.max_attempts} failed: {e}")

            if on_failure is not None:
                on_failure(attempt, last_error)

        raise RetryExhaustedError(self.max_attempts, last_error) from last_error
