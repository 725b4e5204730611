import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

from gebrai.errors import RetryExhaustedError

T = TypeVar("T")


async def retry(
        operation: Callable[[], Awaitable[T]],
        max_attempts: int = 3,
        delay_ms: float = 500,
        label: str = "operation",
        on_attempt: Optional[Callable[[int], None]] = None,
) -> T:
    """
    Awaits `operation` until it succeeds or `max_attempts` is reached.

    The delay between attempts is fixed. Once every attempt has failed a
    RetryExhaustedError chained from the last failure is raised.

    Args:
        operation: zero argument coroutine factory, called once per attempt
        max_attempts: upper bound of calls, at least one
        delay_ms: pause between attempts in milliseconds
        label: human readable name used in logs and in the final error
        on_attempt: optional hook receiving the 1-based attempt number before each call
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        if on_attempt is not None:
            on_attempt(attempt)
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            logger.warning(
                "{label} failed on attempt {attempt}/{max_attempts}: {error}",
                label=label, attempt=attempt, max_attempts=max_attempts, error=str(e)
            )
            if attempt < max_attempts and delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000.0)
    raise RetryExhaustedError(label, max_attempts, last_error) from last_error
