"""
Bounded exponential-backoff retry for async operations.

Delays are deterministic (base_delay * 2**attempt, no jitter), which is
fine for low-volume batch runs but would synchronize retries across many
concurrent callers.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    description: str = 'operation',
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run an async operation, retrying failures with exponential backoff.

    Attempt n (counting from 0) that fails with a retryable error is
    followed by a wait of base_delay * 2**n seconds, except after the
    final attempt.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        max_attempts: Total number of attempts (must be >= 1)
        base_delay: Delay in seconds before the second attempt
        retry_on: Exception types that trigger a retry; others propagate at once
        description: Name used in log messages
        sleep: Awaitable sleep function (injectable for tests)

    Returns:
        The operation's result from the first successful attempt

    Raises:
        ValueError: If max_attempts < 1
        Exception: The last error raised by the operation, unchanged
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got: {max_attempts}")

    last_error = None
    for attempt in range(max_attempts):
        try:
            return await operation()
        except retry_on as e:
            last_error = e
            if attempt < max_attempts - 1:
                delay = base_delay * (2 ** attempt)
                logger.warning(
                    f"{description} failed (attempt {attempt + 1}/{max_attempts}): {e}. "
                    f"Retrying in {delay:.2f}s"
                )
                await sleep(delay)

    logger.error(f"{description} failed after {max_attempts} attempt(s): {last_error}")
    raise last_error
