from dataclasses import replace

import pytest

from claudesdk.errors import (
    AnthropicError,
    ApiConnectionError,
    ApiTimeoutError,
    HttpError,
    InvalidApiKeyError,
    NetworkError,
)
from claudesdk.retry import (
    Failed,
    HttpStatus,
    RetryCondition,
    RetryExecutor,
    RetryPolicy,
    Success,
    api_retry,
    default_retry,
)


def test_retry_policy_should_retry():
    policy = RetryPolicy()
    assert policy.should_retry(ApiTimeoutError())
    assert policy.should_retry(HttpError(429, "Rate limited"))
    assert policy.should_retry(HttpError(500, "Server error"))
    assert not policy.should_retry(InvalidApiKeyError())


def test_exponential_matches_defaults():
    assert RetryPolicy.exponential() == RetryPolicy()


def test_default_policy_conditions():
    policy = RetryPolicy.exponential()
    assert policy.should_retry(NetworkError("reset"))
    assert not policy.should_retry(ApiConnectionError("refused"))
    assert not policy.should_retry(HttpError(401, "unauthorized"))
    assert not policy.should_retry(HttpError(600, "odd"))
    assert policy.should_retry(HttpError(599, "odd"))


def test_specific_conditions():
    policy = RetryPolicy(retry_conditions=[HttpStatus(418), RetryCondition.AUTHENTICATION_ERROR])
    assert policy.should_retry(HttpError(418, "teapot"))
    assert policy.should_retry(HttpError(401, "unauthorized"))
    assert not policy.should_retry(HttpError(500, "Server error"))
    assert not policy.should_retry(ApiTimeoutError())


def test_all_condition_retries_everything():
    policy = RetryPolicy(retry_conditions=[RetryCondition.ALL])
    assert policy.should_retry(InvalidApiKeyError())
    assert policy.should_retry(AnthropicError("anything"))


def test_no_conditions_never_retries():
    policy = RetryPolicy(retry_conditions=[])
    assert not policy.should_retry(ApiTimeoutError())


def test_delay_calculation():
    policy = replace(RetryPolicy.exponential(), initial_delay=0.1, multiplier=2.0, jitter=False)
    assert policy.calculate_delay(0) == pytest.approx(0.1)
    assert policy.calculate_delay(1) == pytest.approx(0.2)
    assert policy.calculate_delay(2) == pytest.approx(0.4)


def test_delay_capped_by_max_delay():
    policy = RetryPolicy(initial_delay=0.1, max_delay=1.0, jitter=False)
    assert policy.calculate_delay(10) == pytest.approx(1.0)
    assert policy.calculate_delay(100000) == pytest.approx(1.0)


def test_jitter_stays_within_ten_percent():
    policy = RetryPolicy(initial_delay=1.0, jitter=True)
    for attempt in range(4):
        plain = RetryPolicy(initial_delay=1.0, jitter=False).calculate_delay(attempt)
        jittered = policy.calculate_delay(attempt)
        assert plain <= jittered <= plain * 1.1


@pytest.mark.asyncio
async def test_retry_executor_success():
    executor = RetryExecutor(replace(RetryPolicy.exponential(), max_retries=2))

    async def operation():
        return 42

    result = await executor.execute(operation)
    assert result == Success(42)


@pytest.mark.asyncio
async def test_retry_executor_failure():
    executor = RetryExecutor(
        replace(RetryPolicy.exponential(), max_retries=1, initial_delay=0.001)
    )
    error = InvalidApiKeyError()
    calls = []

    async def operation():
        calls.append(1)
        raise error

    result = await executor.execute(operation)
    assert result == Failed(error)
    assert result.error is error
    assert calls == [1]


@pytest.mark.asyncio
async def test_transient_failures_then_success():
    executor = RetryExecutor(RetryPolicy(max_retries=3, initial_delay=0.001, jitter=False))
    calls = []

    async def operation():
        calls.append(1)
        if len(calls) < 3:
            raise HttpError(503, "Service temporarily unavailable")
        return "Operation completed successfully"

    result = await executor.execute(operation)
    assert result == Success("Operation completed successfully")
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_exhausted_retries_return_last_error():
    executor = RetryExecutor(RetryPolicy(max_retries=2, initial_delay=0.001))
    calls = []

    async def operation():
        calls.append(1)
        raise HttpError(500, f"attempt {len(calls)}")

    result = await executor.execute(operation)
    assert isinstance(result, Failed)
    assert len(calls) == 3
    assert result.error.detail == "attempt 3"


@pytest.mark.asyncio
async def test_zero_elapsed_time_fails_without_calling():
    executor = RetryExecutor(RetryPolicy(max_elapsed_time=0.0))
    calls = []

    async def operation():
        calls.append(1)
        return 1

    result = await executor.execute(operation)
    assert calls == []
    assert isinstance(result, Failed)
    assert str(result.error) == "Unknown error in retry executor"


@pytest.mark.asyncio
async def test_non_api_exceptions_propagate():
    executor = RetryExecutor(RetryPolicy(retry_conditions=[RetryCondition.ALL]))

    async def operation():
        raise KeyError("boom")

    with pytest.raises(KeyError):
        await executor.execute(operation)


def test_helper_executors():
    assert default_retry().policy == RetryPolicy()
    policy = api_retry().policy
    assert policy.max_retries == 3
    assert policy.initial_delay == pytest.approx(0.5)
    assert policy.max_delay == pytest.approx(30.0)
    assert policy.retry_conditions == [
        RetryCondition.RATE_LIMIT,
        RetryCondition.SERVER_ERROR,
        RetryCondition.TIMEOUT,
        RetryCondition.CONNECTION_ERROR,
    ]