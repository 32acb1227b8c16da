"""Bounded retry with exponential backoff and jitter for async operations"""

import asyncio
import functools
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from ..models import RetryPolicy

T = TypeVar("T")

RetryClassifier = Callable[[BaseException], bool]


def default_is_retryable(error: BaseException) -> bool:
    """Retry unless the error marks itself ``retryable = False``"""
    return bool(getattr(error, "retryable", True))


async def retry_with_policy(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    is_retryable: RetryClassifier | None = None,
) -> T:
    """Await ``operation`` until it succeeds or the policy is exhausted

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        policy: Attempt count and backoff bounds
        is_retryable: Caller's classification of failures; errors it rejects
            are raised immediately

    Returns:
        The first successful result

    Raises:
        The last error raised by ``operation``, unchanged
    """
    classify = is_retryable or default_is_retryable
    name = getattr(operation, "__name__", "operation")

    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except Exception as e:
            if not classify(e):
                logger.debug(f"{name} failed with non-retryable {type(e).__name__}: {e}")
                raise
            if attempt == policy.max_retries:
                logger.error(f"{name} failed after {policy.max_attempts} attempts: {e}")
                raise

            delay = policy.compute_delay(attempt)
            logger.warning(
                f"{name} failed (attempt {attempt + 1}/{policy.max_attempts}): {e}. "
                f"Retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    raise RuntimeError("Retry loop completed without result or exception")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    *,
    jitter: float = 1.0,
    is_retryable: RetryClassifier | None = None,
) -> T:
    """Call ``operation`` up to ``max_retries + 1`` times

    Waits ``min(base_delay * 2**i + uniform(0, jitter), max_delay)`` seconds
    between attempt ``i`` and ``i + 1``.

    Example:
        feed = await with_retry(lambda: client.fetch("top"), max_retries=2)
    """
    policy = RetryPolicy(
        max_retries=max_retries,
        base_delay=base_delay,
        max_delay=max_delay,
        jitter=jitter,
    )
    return await retry_with_policy(operation, policy, is_retryable)


def retryable(policy: RetryPolicy | None = None, is_retryable: RetryClassifier | None = None):
    """Decorator retrying an async function with ``policy``"""
    policy = policy or RetryPolicy()

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_with_policy(
                functools.partial(func, *args, **kwargs), policy, is_retryable
            )

        wrapper.retry_policy = policy  # Expose policy for inspection
        return wrapper

    return decorator
