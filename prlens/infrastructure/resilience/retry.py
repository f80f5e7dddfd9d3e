"""Generic retry with exponential backoff.

Runs an async operation and retries it while the policy's retry condition
accepts the failure. The delay before retry ``n`` (0-based) is
``min(base_delay * backoff_factor ** n, max_delay)``. A full exhaustion makes
``max_retries + 1`` attempts; the last error is re-raised unchanged.
"""

import asyncio
import dataclasses
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from prlens.domain.events.api_events import EventSink, RetriesExhausted, RetryScheduled, log_event
from prlens.domain.models.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration. Delays are in seconds."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    retry_condition: Callable[[BaseException], bool] = is_retryable

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")
        if self.backoff_factor <= 0:
            raise ValueError(f"backoff_factor must be positive, got {self.backoff_factor}")


DEFAULT_RETRY_POLICY = RetryPolicy()


def compute_backoff(policy: RetryPolicy, attempt: int) -> float:
    """Delay before the retry that follows 0-based ``attempt``."""
    return min(policy.base_delay * policy.backoff_factor ** attempt, policy.max_delay)


def _error_code(error: BaseException) -> Optional[str]:
    return getattr(error, "code", None)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Sleep = asyncio.sleep,
    event_sink: Optional[EventSink] = None,
    operation_name: Optional[str] = None,
    **overrides: Any,
) -> T:
    """Executes ``operation`` with retries.

    Args:
        operation: Zero-argument coroutine function to run.
        policy: Retry policy (defaults to ``DEFAULT_RETRY_POLICY``).
        sleep: Awaitable sleep used between attempts.
        event_sink: Receives RetryScheduled/RetriesExhausted events.
        operation_name: Label for logs and events.
        **overrides: Individual RetryPolicy fields overriding ``policy``.

    Returns:
        The operation's result.

    Raises:
        Exception: The last failure, unchanged, once retries are exhausted or
            the failure is not retryable.
    """
    policy = policy or DEFAULT_RETRY_POLICY
    if overrides:
        policy = dataclasses.replace(policy, **overrides)
    emit = event_sink or log_event
    name = operation_name or getattr(operation, "__name__", "operation")
    total_attempts = policy.max_retries + 1

    for attempt in range(total_attempts):
        try:
            return await operation()
        except Exception as e:
            if attempt == policy.max_retries:
                logger.error(f"{name} failed after {total_attempts} attempt(s): {e}")
                emit(RetriesExhausted(
                    operation=name, attempts=total_attempts,
                    error_type=type(e).__name__, error_message=str(e),
                ))
                raise

            if not policy.retry_condition(e):
                logger.debug(f"{name} raised a non-retryable error on attempt {attempt + 1}: {e!r}")
                raise

            delay = compute_backoff(policy, attempt)
            logger.warning(
                f"{name} failed (attempt {attempt + 1}/{total_attempts}), retrying in {delay:.2f}s: {e}"
            )
            emit(RetryScheduled(
                operation=name, attempt_number=attempt + 1,
                delay_seconds=delay, error_code=_error_code(e),
            ))
            await sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover


def create_retry_wrapper(
    fn: Callable[..., Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Sleep = asyncio.sleep,
    event_sink: Optional[EventSink] = None,
    **overrides: Any,
) -> Callable[..., Awaitable[T]]:
    """Returns a coroutine function with ``fn``'s signature that applies
    :func:`with_retry` to every call, forwarding all arguments."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        return await with_retry(
            lambda: fn(*args, **kwargs),
            policy,
            sleep=sleep,
            event_sink=event_sink,
            operation_name=getattr(fn, "__name__", None),
            **overrides,
        )

    return wrapper
