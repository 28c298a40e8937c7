"""Retry mechanism with exponential backoff for upstream calls.

This module provides a configurable retry policy, an ``execute`` helper and a
decorator that implement bounded retries with exponential backoff and jitter
for transient failures.
"""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from relay.app.core.config import settings
from relay.app.core.logging import get_logger
from relay.app.exceptions import RelayException

logger = get_logger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])


def is_retryable_error(exception: BaseException) -> bool:
    """Default retryability classification.

    Network failures, timeouts and HTTP 429/5xx are transient. HTTP 400 and
    other 4xx, malformed responses and upstream application errors mean the
    payload or the account is at fault, so another attempt cannot help.

    Args:
        exception: The exception raised by an attempt

    Returns:
        True if the exception should trigger a retry
    """
    if isinstance(exception, RelayException):
        return exception.retryable

    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return status == 429 or status >= 500

    if isinstance(exception, (httpx.TimeoutException, httpx.TransportError)):
        return True

    return isinstance(exception, (asyncio.TimeoutError, TimeoutError, ConnectionError))


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior with exponential backoff.

    Attributes:
        max_attempts: Total attempts including the first one (default: 3)
        base_delay: Delay before the second attempt in seconds (default: 1.0)
        max_delay: Upper bound of the exponential part in seconds (default: 5.0)
        jitter: Maximum random seconds added to every delay (default: 0.1)
        is_retryable: Classifies an attempt's exception

    Example:
        >>> policy = RetryPolicy(max_attempts=5, base_delay=1.0, jitter=0)
        >>> policy.calculate_delay(attempt=3)
        4.0
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0
    jitter: float = 0.1
    is_retryable: Callable[[BaseException], bool] = is_retryable_error

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter=settings.retry_jitter,
        )

    def calculate_delay(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Calculate the delay after a failed attempt.

        delay = min(max_delay, base_delay * 2 ^ (attempt - 1)) + uniform(0, jitter)

        Args:
            attempt: The attempt that just failed (1-indexed)
            rng: Random source for the jitter

        Returns:
            Delay in seconds
        """
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        if self.jitter > 0:
            delay += (rng or random).uniform(0, self.jitter)
        return delay


async def execute(
    attempt_fn: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    rng: Optional[random.Random] = None,
    name: Optional[str] = None,
) -> T:
    """Run ``attempt_fn`` with bounded retries.

    Attempts run sequentially. A non-retryable error, or any error on the last
    attempt, propagates unchanged.

    Args:
        attempt_fn: Zero-argument coroutine function performing one attempt
        policy: Retry policy; defaults to the configured one
        sleep: Awaitable sleep used between attempts
        rng: Random source for jitter
        name: Label used in log messages

    Returns:
        The result of the first successful attempt
    """
    retry_policy = policy or RetryPolicy.from_settings()
    label = name or getattr(attempt_fn, "__name__", "attempt")
    max_attempts = max(1, retry_policy.max_attempts)

    attempt = 1
    while True:
        try:
            return await attempt_fn()
        except Exception as e:
            if not retry_policy.is_retryable(e):
                logger.debug(
                    f"Non-retryable exception in {label}: {type(e).__name__}: {e}"
                )
                raise

            if attempt >= max_attempts:
                logger.warning(
                    f"Max attempts ({max_attempts}) exhausted for {label}: "
                    f"{type(e).__name__}: {e}"
                )
                raise

            delay = retry_policy.calculate_delay(attempt, rng)
            logger.warning(
                f"Retry {attempt}/{max_attempts - 1} for {label} "
                f"after {type(e).__name__}: {e}. Waiting {delay:.2f}s...",
                extra={"attempt": attempt},
            )
            await sleep(delay)
            attempt += 1


def with_retry(policy: Optional[RetryPolicy] = None) -> Callable[[F], F]:
    """Decorator form of :func:`execute`.

    Example:
        >>> @with_retry(policy=RetryPolicy(max_attempts=3))
        ... async def fetch(client, url):
        ...     return await client.get(url)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await execute(
                lambda: func(*args, **kwargs), policy, name=func.__name__
            )

        return wrapper  # type: ignore

    return decorator
