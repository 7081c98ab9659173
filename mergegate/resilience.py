"""Retry helpers for transient storage failures."""

import asyncio
import logging
from functools import wraps
from typing import Awaitable, Callable, ParamSpec, TypeVar

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorator for retrying coroutines with exponential backoff.

    Only safe for idempotent operations: the wrapped coroutine is re-run from
    the start on every attempt.

    Args:
        max_retries: Total number of attempts (default: 3)
        base_delay: Delay in seconds before the second attempt (default: 0.5)
        max_delay: Upper bound on any single delay (default: 10.0)
        exponential_base: Growth factor between delays (default: 2.0)
        exceptions: Exception types that trigger a retry; anything else propagates

    Returns:
        Decorated coroutine function with retry logic

    Example:
        @retry_with_backoff(max_retries=3, exceptions=(OperationalError,))
        async def write_status():
            ...
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(max_retries):
                try:
                    result = await func(*args, **kwargs)
                    if attempt > 0:
                        logger.info(
                            "%s succeeded on attempt %d/%d", func.__name__, attempt + 1, max_retries
                        )
                    return result

                except exceptions as e:
                    if attempt == max_retries - 1:
                        logger.error(
                            "%s failed after %d attempts: %s", func.__name__, max_retries, e
                        )
                        raise

                    delay = min(base_delay * (exponential_base**attempt), max_delay)
                    logger.warning(
                        "%s failed on attempt %d/%d: %s. Retrying in %.1fs...",
                        func.__name__,
                        attempt + 1,
                        max_retries,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)

            raise RuntimeError(f"{func.__name__} called with max_retries={max_retries}")

        return wrapper

    return decorator
