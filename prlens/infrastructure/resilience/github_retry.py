"""Service for executing GitHub REST calls with rate-limit-aware retries.

Kept separate from the generic engine in ``retry.py`` because the REST rules
do not generalise:

- authentication failures are never retried;
- 4xx responses are not retried, except rate limits;
- a rate limit carrying ``retry_after`` waits exactly that long, even past
  ``max_delay``;
- everything else (network errors, 5xx) backs off as
  ``base_delay * 2 ** attempt``, capped by ``max_delay`` when set.

Failures that are not yet typed are classified here, so callers only ever
see errors from the taxonomy.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple

from prlens.domain.events.api_events import (
    EventSink, RateLimitWait, RetriesExhausted, RetryScheduled, log_event
)
from prlens.domain.models.errors import APIError, APIReason, AppError, AuthError, classify_exception

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class GitHubRetryPolicy:
    """Retry configuration for GitHub calls. Delays are in seconds."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: Optional[float] = 60.0  # Caps exponential waits only; None disables the cap.

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")


class GitHubRetryService:
    """Handles GitHub call execution with classification and retries."""

    def __init__(
        self,
        policy: Optional[GitHubRetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
        event_sink: Optional[EventSink] = None,
    ):
        """Initializes the GitHubRetryService.

        Args:
            policy: Retry configuration.
            sleep: Awaitable sleep used between attempts.
            event_sink: Receives RetryScheduled/RateLimitWait/RetriesExhausted events.
        """
        self.policy = policy or GitHubRetryPolicy()
        self._sleep = sleep
        self._emit = event_sink or log_event
        logger.info(
            f"GitHubRetryService initialized: max_retries={self.policy.max_retries}, "
            f"base_delay={self.policy.base_delay}s, max_delay={self.policy.max_delay}"
        )

    def compute_backoff(self, attempt: int) -> float:
        delay = self.policy.base_delay * 2 ** attempt
        if self.policy.max_delay is not None:
            delay = min(delay, self.policy.max_delay)
        return delay

    def retry_delay(self, error: AppError, attempt: int) -> Tuple[Optional[float], bool]:
        """Decides how long to wait before retrying ``error``.

        Returns:
            ``(delay, is_rate_limit_wait)``; ``delay`` is None when the error
            must not be retried.
        """
        if isinstance(error, AuthError):
            return None, False
        if isinstance(error, APIError):
            if error.reason == APIReason.RATE_LIMIT:
                if error.retry_after is not None:
                    return float(error.retry_after), True
            elif error.status is not None and 400 <= error.status < 500:
                return None, False
        return self.compute_backoff(attempt), False

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        endpoint_name: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        """Executes an async GitHub call with retries.

        Args:
            func: The async function (API call) to execute.
            *args: Positional arguments for the function.
            endpoint_name: Name of the endpoint for logging/events.
            **kwargs: Keyword arguments for the function.

        Returns:
            The result of the function call.

        Raises:
            AppError: The classified last failure.
        """
        endpoint = endpoint_name or getattr(func, "__name__", "github_call")
        total_attempts = self.policy.max_retries + 1

        for attempt in range(total_attempts):
            try:
                return await func(*args, **kwargs)
            except Exception as raw:
                error = classify_exception(raw)
                delay, is_rate_limit = self.retry_delay(error, attempt)

                if delay is None:
                    logger.info(f"Not retrying {endpoint} ({error.code}): {error.message}")
                    _reraise(error, raw)

                if attempt == self.policy.max_retries:
                    logger.error(
                        f"Max retries ({self.policy.max_retries}) reached for {endpoint}. Last error: {error.code}"
                    )
                    self._emit(RetriesExhausted(
                        operation=endpoint, attempts=total_attempts,
                        error_type=error.code, error_message=error.message,
                    ))
                    _reraise(error, raw)

                if is_rate_limit:
                    logger.warning(f"Rate limited on {endpoint}; waiting {delay:.0f}s as requested by the server.")
                    self._emit(RateLimitWait(operation=endpoint, attempt_number=attempt + 1, wait_time_seconds=delay))
                else:
                    logger.warning(
                        f"Retryable error calling {endpoint} on attempt {attempt + 1}/{total_attempts}: "
                        f"{error.code}. Waiting {delay:.2f}s..."
                    )
                    self._emit(RetryScheduled(
                        operation=endpoint, attempt_number=attempt + 1,
                        delay_seconds=delay, error_code=error.code,
                    ))
                await self._sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover


def _reraise(error: AppError, raw: Exception) -> None:
    if error is raw:
        raise error
    raise error from raw
