"""
Async Utilities for Efficient API Calls.

Provides:
- Retry with pure exponential backoff (shared retry policy)
- Parallel fan-out with join-all semantics
- Sequential batches with concurrent work inside each batch
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from functools import wraps
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import is_retryable_error

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY = 1.0  # seconds


# =============================================================================
# Retry Policy
# =============================================================================

async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        f"Retry attempt {retry_state.attempt_number} after {delay:.2f}s delay: {error}"
    )


def build_retrying(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
) -> AsyncRetrying:
    """
    Build the tenacity controller for the shared retry policy.

    Waits ``initial_delay * 2**attempt_index`` between attempts (no jitter),
    never retries 4xx responses other than 429, and re-raises the last error
    once attempts are exhausted.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=initial_delay, exp_base=2),
        retry=retry_if_exception(is_retryable_error),
        before_sleep=_log_retry,
        sleep=_sleep,
        reraise=True,
    )


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
) -> T:
    """
    Run ``operation`` under the shared retry policy.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt)
        max_attempts: Total attempts including the first one
        initial_delay: Delay in seconds before the first retry

    Returns:
        The operation's result

    Raises:
        The last error when attempts are exhausted, or a client error
        (4xx other than 429) immediately.

    Example:
        data = await retry_with_backoff(lambda: client.get(url), max_attempts=3)
    """
    async def attempt() -> T:
        return await operation()

    # tenacity only awaits coroutine functions; operation may be a lambda
    return await build_retrying(max_attempts, initial_delay)(attempt)


def async_retry(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator form of :func:`retry_with_backoff`.

    Example:
        @async_retry(max_attempts=3)
        async def fetch_summary(pmids: list[str]) -> dict:
            ...
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_with_backoff(
                lambda: func(*args, **kwargs),
                max_attempts=max_attempts,
                initial_delay=initial_delay,
            )
        return wrapper
    return decorator


# =============================================================================
# Parallel Execution
# =============================================================================

async def gather_all[T](*coros: Awaitable[T]) -> list[T]:
    """
    Await every coroutine concurrently and return results in input order.

    Uses asyncio.TaskGroup, so the first unexpected exception cancels the
    siblings and propagates. Callers pass coroutines that absorb their own
    failures when partial results are wanted.
    """
    async with asyncio.TaskGroup() as tg:
        tasks = [tg.create_task(coro) for coro in coros]
    return [task.result() for task in tasks]


async def batch_process[T, R](
    items: Sequence[T],
    processor: Callable[[T], Awaitable[R]],
    batch_size: int = 10,
    pause: float = 0.1,
) -> list[R]:
    """
    Process items in sequential batches, concurrently within a batch.

    A pause of ``pause`` seconds separates consecutive batches, which bounds
    the number of simultaneous connections to one provider.

    Args:
        items: Items to process
        processor: Async function applied to each item
        batch_size: Number of items per batch
        pause: Seconds to wait between batches

    Returns:
        Results in the same order as ``items``
    """
    results: list[R] = []
    size = max(1, batch_size)

    for i in range(0, len(items), size):
        batch = items[i:i + size]
        results.extend(await gather_all(*(processor(item) for item in batch)))

        if i + size < len(items) and pause > 0:
            await asyncio.sleep(pause)

    return results
