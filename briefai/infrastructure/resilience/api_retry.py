"""Service for executing API calls with automatic retries.

Implements pure exponential backoff (no jitter) for transient errors like
rate limits (429) or temporary server issues (5xx). Intermediate failures
are logged and reported as events; only the last failure is raised, and it
is raised unchanged.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from briefai.domain.events.fanout_events import EventSink, RetryScheduled, log_event
from briefai.domain.models.common import BackoffPolicy
from briefai.domain.models.errors import PermanentFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BASE_DELAY_S = 1.0
DEFAULT_MAX_DELAY_S = 10.0


def is_retryable(error: BaseException) -> bool:
    """Default retry predicate: everything except permanent failures."""
    return not isinstance(error, PermanentFailure)


def backoff_delay(attempt: int, base_delay_s: float, max_delay_s: float) -> float:
    """Delay after the 0-based ``attempt`` failed: min(base * 2**attempt, max)."""
    return min(base_delay_s * (2 ** attempt), max_delay_s)


class ApiRetryService:
    """Handles API call execution with bounded exponential-backoff retries."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_s: float = DEFAULT_BASE_DELAY_S,
        max_delay_s: float = DEFAULT_MAX_DELAY_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        event_sink: EventSink = log_event,
    ):
        """Initializes the ApiRetryService.

        Args:
            max_attempts: Total number of calls, including the first one.
            base_delay_s: Delay before the first retry.
            max_delay_s: Upper bound for any single delay.
            sleep: Awaitable sleep (injectable for tests).
            event_sink: Receives a RetryScheduled event per retry.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay_s = base_delay_s
        self.max_delay_s = max_delay_s
        self._sleep = sleep
        self._event_sink = event_sink
        logger.info(
            f"ApiRetryService initialized: max_attempts={max_attempts}, "
            f"base_delay={base_delay_s}s, max_delay={max_delay_s}s"
        )

    @classmethod
    def from_policy(cls, policy: BackoffPolicy, **kwargs) -> "ApiRetryService":
        return cls(
            max_attempts=policy["max_attempts"],
            base_delay_s=policy["base_delay_s"],
            max_delay_s=policy["max_delay_s"],
            **kwargs,
        )

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: Optional[str] = None,
        should_retry: Optional[Callable[[BaseException], bool]] = None,
    ) -> T:
        """Runs ``operation`` until it succeeds or the attempts run out.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per call.
            operation_name: Label for logs and events.
            should_retry: Predicate deciding whether an error is worth retrying.

        Returns:
            The first successful result.

        Raises:
            Exception: The last error, unchanged.
        """
        name = operation_name or getattr(operation, "__name__", "operation")
        predicate = should_retry or is_retryable

        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except Exception as e:
                if attempt == self.max_attempts - 1:
                    logger.error(
                        f"Max attempts ({self.max_attempts}) reached for {name}. Last error: {e}"
                    )
                    raise
                if not predicate(e):
                    logger.error(f"Non-retryable error calling {name} on attempt {attempt + 1}: {e}")
                    raise

                delay = backoff_delay(attempt, self.base_delay_s, self.max_delay_s)
                logger.warning(
                    f"Retryable error calling {name} on attempt {attempt + 1}/{self.max_attempts}: "
                    f"{type(e).__name__}. Waiting {delay:.2f}s..."
                )
                self._event_sink(RetryScheduled(
                    operation=name,
                    attempt_number=attempt + 1,
                    delay_seconds=delay,
                    error_type=type(e).__name__,
                ))
                await self._sleep(delay)

        # max_attempts >= 1 guarantees the loop returns or raises
        raise AssertionError("unreachable")
