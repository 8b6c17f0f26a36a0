"""Bounded retry with cleanup between attempts.

Usage:
    from wpruntime.core.retry import with_cleanup_retry

    # Wipe and retry once, only where the transient defect is known
    await with_cleanup_retry(
        lambda: initialize(),
        cleanup=lambda: wipe(),
        retries=1 if platform == "darwin" else 0,
    )
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_cleanup_retry(
    coro_factory: Callable[[], Awaitable[T]],
    cleanup: Callable[[], Awaitable[None] | None],
    retries: int = 1,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """Run an async operation, cleaning up and retrying on failure.

    Args:
        coro_factory: Factory creating a new coroutine per attempt
        cleanup: Undo partial side effects before the next attempt (sync or async)
        retries: Additional attempts after the first (0 disables retry)
        retry_on: Exception types that trigger a retry; others propagate immediately

    Returns:
        Result of the first successful attempt

    Raises:
        The exception of the last attempt.
    """
    for attempt in range(retries + 1):
        try:
            return await coro_factory()
        except retry_on as exc:
            if attempt == retries:
                raise
            logger.warning(
                "Attempt %d/%d failed, cleaning up and retrying: %s",
                attempt + 1,
                retries + 1,
                exc,
                extra={"attempt": attempt + 1},
            )
            result = cleanup()
            if asyncio.iscoroutine(result):
                await result

    # retries < 0
    raise ValueError("retries must be >= 0")
