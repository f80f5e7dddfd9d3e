import httpx
import openai
import pytest
from unittest.mock import AsyncMock

from prlens.domain.models.errors import APIError, LLMError, LLMReason, is_retryable
from prlens.infrastructure.ai import call_with_llm_retry, classify_llm_exception
from prlens.infrastructure.config.settings import set_config_for_testing

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def status_error(cls, status):
    return cls("upstream said no", response=httpx.Response(status, request=REQUEST), body=None)


@pytest.mark.parametrize(
    "exc, reason",
    [
        (openai.APITimeoutError(request=REQUEST), LLMReason.TIMEOUT),
        (openai.APIConnectionError(request=REQUEST), LLMReason.API_FAILURE),
        (status_error(openai.AuthenticationError, 401), LLMReason.CONFIGURATION_ERROR),
        (status_error(openai.RateLimitError, 429), LLMReason.QUOTA_EXCEEDED),
        (status_error(openai.InternalServerError, 503), LLMReason.API_FAILURE),
        (status_error(openai.BadRequestError, 400), LLMReason.API_FAILURE),
        (RuntimeError("weird"), LLMReason.API_FAILURE),
    ],
)
def test_openai_failures_are_classified(exc, reason):
    error = classify_llm_exception(exc)
    assert isinstance(error, LLMError)
    assert error.reason == reason


def test_server_errors_mention_status():
    error = classify_llm_exception(status_error(openai.InternalServerError, 502))
    assert error.message == "Server error: 502"


def test_classification_drives_retry_decision():
    assert is_retryable(classify_llm_exception(openai.APITimeoutError(request=REQUEST)))
    assert not is_retryable(classify_llm_exception(status_error(openai.RateLimitError, 429)))
    assert not is_retryable(classify_llm_exception(status_error(openai.AuthenticationError, 401)))


def test_app_errors_pass_through():
    original = APIError("network_error", "offline")
    assert classify_llm_exception(original) is original


@pytest.mark.asyncio
async def test_llm_retry_retries_timeouts_then_returns(recording_sleep):
    operation = AsyncMock(side_effect=[openai.APITimeoutError(request=REQUEST), "summary"])

    assert await call_with_llm_retry(operation, sleep=recording_sleep) == "summary"
    assert operation.await_count == 2
    assert recording_sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_llm_retry_fails_fast_on_quota(recording_sleep):
    quota = status_error(openai.RateLimitError, 429)
    operation = AsyncMock(side_effect=quota)

    with pytest.raises(LLMError) as exc_info:
        await call_with_llm_retry(operation, sleep=recording_sleep)

    assert exc_info.value.reason == LLMReason.QUOTA_EXCEEDED
    assert exc_info.value.__cause__ is quota
    assert operation.await_count == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_llm_retry_policy_comes_from_settings(recording_sleep):
    set_config_for_testing({"retry.max_retries": 1, "retry.base_delay": 0.5})
    operation = AsyncMock(side_effect=openai.APIConnectionError(request=REQUEST))

    with pytest.raises(LLMError) as exc_info:
        await call_with_llm_retry(operation, sleep=recording_sleep)

    assert exc_info.value.reason == LLMReason.API_FAILURE
    assert operation.await_count == 2
    assert recording_sleep.delays == [0.5]
