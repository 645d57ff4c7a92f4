"""Retry policies with exponential backoff for API operations."""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Optional, TypeVar, Union

from claudesdk.errors import (
    AnthropicError,
    ApiTimeoutError,
    HttpError,
    NetworkError,
)

_log = logging.getLogger(__name__)

T = TypeVar("T")


class RetryCondition(enum.Enum):
    """Kinds of failure a policy may retry on."""

    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    AUTHENTICATION_ERROR = "authentication_error"
    ALL = "all"


@dataclass(frozen=True)
class HttpStatus:
    """Retry when the API answers with this exact HTTP status."""

    code: int


Condition = Union[RetryCondition, HttpStatus]


def _default_conditions() -> list:
    return [
        RetryCondition.TIMEOUT,
        RetryCondition.CONNECTION_ERROR,
        RetryCondition.RATE_LIMIT,
        RetryCondition.SERVER_ERROR,
    ]


def _matches(condition: Condition, error: AnthropicError) -> bool:
    if isinstance(condition, HttpStatus):
        return isinstance(error, HttpError) and error.status == condition.code
    if condition is RetryCondition.ALL:
        return True
    if condition is RetryCondition.TIMEOUT:
        return isinstance(error, ApiTimeoutError)
    if condition is RetryCondition.CONNECTION_ERROR:
        return isinstance(error, NetworkError)
    if not isinstance(error, HttpError):
        return False
    if condition is RetryCondition.RATE_LIMIT:
        return error.status == 429
    if condition is RetryCondition.SERVER_ERROR:
        return 500 <= error.status < 600
    if condition is RetryCondition.AUTHENTICATION_ERROR:
        return error.status == 401
    return False


@dataclass
class RetryPolicy:
    """How often and how long to wait between retries; durations are in seconds."""

    max_retries: int = 3
    initial_delay: float = 0.1
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: bool = True
    max_elapsed_time: Optional[float] = 60.0
    retry_conditions: list = field(default_factory=_default_conditions)

    @classmethod
    def exponential(cls) -> "RetryPolicy":
        """Create an exponential backoff policy with the default settings."""
        return cls()

    def should_retry(self, error: AnthropicError) -> bool:
        """Tell whether any configured condition covers this error."""
        return any(_matches(condition, error) for condition in self.retry_conditions)

    def calculate_delay(self, attempt: int) -> float:
        """Return the wait before the retry following the given zero-based attempt."""
        base_ms = int(self.initial_delay * 1000)
        cap_ms = int(self.max_delay * 1000)
        try:
            raw_ms = base_ms * self.multiplier ** attempt
        except OverflowError:
            raw_ms = math.inf
        if math.isnan(raw_ms) or raw_ms >= cap_ms:
            delay_ms = cap_ms
        else:
            delay_ms = max(int(raw_ms), 0)
        if self.jitter:
            delay_ms = self._add_jitter(delay_ms)
        return delay_ms / 1000

    def _add_jitter(self, delay_ms: int) -> int:
        jitter_range = delay_ms * 0.1
        jitter = (id(self) % 100) / 100 * jitter_range
        return int(delay_ms + jitter)


@dataclass(frozen=True)
class Success(Generic[T]):
    """The operation produced a value."""

    value: T


@dataclass(frozen=True)
class Failed:
    """The operation failed after all allowed attempts."""

    error: AnthropicError


class RetryExecutor:
    """Runs an async operation under a retry policy."""

    def __init__(self, policy: RetryPolicy) -> None:
        self._policy = policy

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> Union[Success[T], Failed]:
        """Call ``operation`` until it succeeds or the policy gives up.

        Only :class:`AnthropicError` failures are retried; other exceptions propagate.
        """
        policy = self._policy
        start = time.monotonic()
        last_error: Optional[AnthropicError] = None

        for attempt in range(policy.max_retries + 1):
            if (
                policy.max_elapsed_time is not None
                and time.monotonic() - start >= policy.max_elapsed_time
            ):
                break
            try:
                result = await operation()
            except AnthropicError as error:
                last_error = error
                if attempt < policy.max_retries and policy.should_retry(error):
                    delay = policy.calculate_delay(attempt)
                    _log.debug(
                        "Request failed (attempt %d/%d): %s. Retrying in %.3fs",
                        attempt + 1,
                        policy.max_retries + 1,
                        error,
                        delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                break
            return Success(result)

        return Failed(last_error or AnthropicError("Unknown error in retry executor"))


def default_retry() -> RetryExecutor:
    """An executor with the default policy."""
    return RetryExecutor(RetryPolicy())


def api_retry() -> RetryExecutor:
    """An executor tuned for API calls."""
    return RetryExecutor(
        dataclasses.replace(
            RetryPolicy.exponential(),
            max_retries=3,
            initial_delay=0.5,
            max_delay=30.0,
            retry_conditions=[
                RetryCondition.RATE_LIMIT,
                RetryCondition.SERVER_ERROR,
                RetryCondition.TIMEOUT,
                RetryCondition.CONNECTION_ERROR,
            ],
        )
    )