"""
Retry helper for fallible remote operations.

Delays grow linearly: the wait after attempt N is ``delay * N`` seconds.
"""

import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def retry(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    _attempt: int = 1,
) -> T:
    """
    Call ``fn`` until it succeeds or ``max_attempts`` calls have failed.

    Args:
        fn: Zero-argument coroutine function to call
        max_attempts: Total number of calls, including the first one
        delay: Base delay in seconds, multiplied by the attempt number
        retry_on: Exception types that trigger another attempt

    Returns:
        The result of the first successful call

    Raises:
        The exception from the last attempt once attempts are exhausted
    """
    try:
        return await fn()
    except retry_on as e:
        if _attempt >= max_attempts:
            logger.error(
                f"Giving up after {_attempt} attempts: {e}",
                extra={"attempts": _attempt, "error": str(e)},
            )
            raise

        wait = delay * _attempt
        logger.warning(
            f"Attempt {_attempt}/{max_attempts} failed, retrying in {wait:.2f}s: {e}",
            extra={"attempt": _attempt, "max_attempts": max_attempts},
        )
        await asyncio.sleep(wait)
        return await retry(fn, max_attempts, delay, retry_on, _attempt + 1)
