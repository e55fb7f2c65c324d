"""
Retry execution with exponential backoff for remote operations.

Every call against the target API goes through a RetryExecutor. Failures
are classified before deciding to retry: rate limits, server errors and
network faults are retried, client errors are not, and anything that
cannot be classified is retried.

Example:
    >>> from pomigrate.core.retry import RetryExecutor, RetryPolicy
    >>>
    >>> executor = RetryExecutor(RetryPolicy(max_attempts=4, initial_delay=1.0))
    >>> sheet = await executor.execute(
    ...     lambda: client.get_sheet(123),
    ...     description="get sheet 123",
    ... )

Configuration:
    - Default attempts: 4 (one call plus three retries)
    - Default initial delay: 1.0 seconds
    - Default multiplier: 2.0x per retry
    - Default delay ceiling: 30.0 seconds
"""

import asyncio
import errno
import logging
import random
import socket
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from pomigrate.core.exceptions import ConfigurationError, TargetAPIError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

NETWORK_ERROR_CODES = frozenset(
    {"ETIMEDOUT", "ECONNREFUSED", "ECONNABORTED", "ENOTFOUND", "ENETUNREACH"}
)

_NETWORK_ERRNOS = frozenset(
    {errno.ETIMEDOUT, errno.ECONNREFUSED, errno.ECONNABORTED, errno.ENETUNREACH}
)


class RetryPolicy:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Total number of attempts, including the first call
        initial_delay: Delay in seconds before the first retry
        max_delay: Ceiling for any single delay in seconds
        multiplier: Exponential backoff multiplier
        jitter: Whether to add random variance to delays
        jitter_ratio: Variance ratio when jitter is enabled (0.2 = ±20%)
    """

    def __init__(
        self,
        max_attempts: int = 4,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        multiplier: float = 2.0,
        jitter: bool = False,
        jitter_ratio: float = 0.2,
    ) -> None:
        """
        Initialize retry policy.

        Raises:
            ConfigurationError: If parameters are invalid
        """
        if max_attempts <= 0:
            raise ConfigurationError("max_attempts must be greater than zero")
        if initial_delay <= 0:
            raise ConfigurationError("initial_delay must be greater than zero")
        if max_delay < initial_delay:
            raise ConfigurationError("max_delay must be >= initial_delay")
        if multiplier < 1.0:
            raise ConfigurationError("multiplier must be >= 1.0")
        if not 0.0 <= jitter_ratio <= 1.0:
            raise ConfigurationError("jitter_ratio must be between 0.0 and 1.0")

        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter = jitter
        self.jitter_ratio = jitter_ratio

    def calculate_delay(self, retry_number: int) -> float:
        """
        Calculate the delay before a given retry.

        delay = initial_delay * multiplier ^ (retry_number - 1), capped at max_delay

        Args:
            retry_number: Retry number (1 for the first retry)

        Returns:
            Delay in seconds
        """
        delay = self.initial_delay * (self.multiplier ** (retry_number - 1))
        delay = min(delay, self.max_delay)

        if self.jitter:
            variance = delay * self.jitter_ratio
            delay = min(delay + random.uniform(-variance, variance), self.max_delay)

        return max(0.0, delay)


def error_status_code(exception: BaseException) -> int | None:
    """
    Extract an HTTP status code from an exception, if it carries one.

    Looks at our own TargetAPIError, httpx.HTTPStatusError, and finally any
    ``status_code`` or ``status`` attribute.
    """
    if isinstance(exception, TargetAPIError):
        return exception.status_code
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code
    for attr in ("status_code", "status"):
        value = getattr(exception, attr, None)
        if isinstance(value, int):
            return value
    return None


def error_network_code(exception: BaseException) -> str | None:
    """Extract a symbolic network error code (e.g. "ECONNREFUSED") from an exception."""
    code = getattr(exception, "code", None)
    if isinstance(code, str) and code in NETWORK_ERROR_CODES:
        return code

    if isinstance(exception, socket.gaierror):
        return "ENOTFOUND"

    if isinstance(exception, OSError) and exception.errno in _NETWORK_ERRNOS:
        return errno.errorcode[exception.errno]

    return None


def is_retryable_error(exception: BaseException) -> bool:
    """
    Determine if an exception represents a transient, retryable failure.

    Retryable:
    - HTTP 429, 500, 502, 503, 504
    - Network codes ETIMEDOUT, ECONNREFUSED, ECONNABORTED, ENOTFOUND, ENETUNREACH
    - httpx timeouts and transport errors
    - Anything that cannot be classified, including API errors without a
      status such as a truncated JSON body

    Not retryable:
    - Any other status code (400, 401, 403, 404, 422, other 4xx, 2xx/3xx)
    - ConfigurationError and ValidationError

    Args:
        exception: Exception to check

    Returns:
        True if the operation should be retried
    """
    # Status codes first: httpx.HTTPStatusError is also an httpx.HTTPError
    status_code = error_status_code(exception)
    if status_code is not None:
        return status_code in RETRYABLE_STATUS_CODES

    if error_network_code(exception) is not None:
        return True

    if isinstance(exception, (httpx.TimeoutException, httpx.TransportError)):
        return True

    if isinstance(exception, (ConfigurationError, ValidationError)):
        return False

    return True


def retry_not_found(exception: BaseException) -> bool:
    """
    Widened classification for consistency-lag reads.

    A container created moments ago may briefly answer 404; treat that as
    transient in addition to the normal rules.
    """
    return error_status_code(exception) == 404 or is_retryable_error(exception)


class RetryExecutor:
    """
    Execute asynchronous operations with classification and backoff.

    The executor holds only its policy; independent calls share no state.

    Example:
        >>> executor = RetryExecutor(RetryPolicy(max_attempts=3, initial_delay=0.5))
        >>> rows = await executor.execute(lambda: client.add_rows(1, rows))
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        description: str = "operation",
        retry_if: Callable[[BaseException], bool] | None = None,
    ) -> T:
        """
        Run an operation, retrying transient failures.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt
            description: Short label used in log messages
            retry_if: Classification override for this call (defaults to is_retryable_error)

        Returns:
            The operation's result

        Raises:
            Exception: The original exception, unchanged, when it is not
                retryable or attempts are exhausted
        """
        should_retry = retry_if or is_retryable_error
        max_attempts = self.policy.max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if not should_retry(e):
                    logger.debug(f"{description}: Non-retryable error on attempt {attempt}: {e}")
                    raise

                if attempt >= max_attempts:
                    logger.warning(
                        f"{description}: Giving up after {max_attempts} attempt(s): {e}"
                    )
                    raise

                delay = self._delay_for(attempt, e)
                logger.info(
                    f"{description}: Retry attempt {attempt}/{max_attempts - 1} "
                    f"after {delay:.2f}s due to: {e}"
                )
                await self._sleep(delay)

        raise RuntimeError("Retry loop completed without success or exception")

    def _delay_for(self, attempt: int, error: Exception) -> float:
        """Backoff delay, stretched to a server-sent Retry-After up to max_delay."""
        delay = self.policy.calculate_delay(attempt)
        retry_after = getattr(error, "retry_after", None)
        if isinstance(retry_after, (int, float)) and retry_after > delay:
            delay = min(float(retry_after), self.policy.max_delay)
        return delay


__all__ = [
    "RETRYABLE_STATUS_CODES",
    "NETWORK_ERROR_CODES",
    "RetryPolicy",
    "RetryExecutor",
    "error_status_code",
    "error_network_code",
    "is_retryable_error",
    "retry_not_found",
]
