"""Classification of OpenAI SDK failures into the error taxonomy.

Decides which ``LLMError`` a failure of the ``openai`` client corresponds to,
and runs SDK calls under the generic retry engine with that classification
(api_failure and timeout are retryable, the rest are not).
"""

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import openai

from prlens.domain.models.errors import AppError, LLMError, LLMReason
from prlens.infrastructure.config.settings import get_retry_policy
from prlens.infrastructure.resilience.retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def classify_llm_exception(exc: BaseException) -> AppError:
    """Maps an exception raised by the OpenAI client to an ``LLMError``.

    AppErrors pass through unchanged.
    """
    if isinstance(exc, AppError):
        return exc
    # APITimeoutError subclasses APIConnectionError, so it is checked first.
    if isinstance(exc, openai.APITimeoutError):
        return LLMError(LLMReason.TIMEOUT, "Request timed out")
    if isinstance(exc, openai.APIConnectionError):
        return LLMError(LLMReason.API_FAILURE, "Network error")
    if isinstance(exc, openai.AuthenticationError):
        return LLMError(LLMReason.CONFIGURATION_ERROR, "Invalid API key")
    if isinstance(exc, openai.RateLimitError):
        return LLMError(LLMReason.QUOTA_EXCEEDED, "Rate limit exceeded")
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code >= 500:
            return LLMError(LLMReason.API_FAILURE, f"Server error: {exc.status_code}")
        return LLMError(LLMReason.API_FAILURE, exc.message or f"HTTP {exc.status_code}")
    if isinstance(exc, openai.APIResponseValidationError):
        return LLMError(LLMReason.INVALID_RESPONSE, "Unexpected response structure")
    logger.debug(f"Unclassified LLM failure: {exc!r}")
    return LLMError(LLMReason.API_FAILURE, str(exc) or "Unknown error occurred")


async def call_with_llm_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    **retry_kwargs: Any,
) -> T:
    """Runs an OpenAI call under the generic retry engine.

    Failures are classified with :func:`classify_llm_exception` before the
    retry condition sees them, so timeouts and server errors are retried and
    quota or key problems fail at once. The last failure is raised as an
    ``LLMError`` chained to the SDK exception.

    Args:
        operation: Zero-argument coroutine function performing the call.
        policy: Retry policy; the ``retry.*`` settings when None.
        **retry_kwargs: Forwarded to :func:`with_retry` (``sleep``,
            ``event_sink``, ``operation_name`` or policy overrides).
    """
    async def classified() -> T:
        try:
            return await operation()
        except Exception as e:
            error = classify_llm_exception(e)
            if error is e:
                raise
            raise error from e

    retry_kwargs.setdefault("operation_name", getattr(operation, "__name__", "llm_call"))
    return await with_retry(classified, policy or get_retry_policy(), **retry_kwargs)
