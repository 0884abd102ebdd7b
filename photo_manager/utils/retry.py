"""
Retry with exponential backoff.

Used around storage backend calls that talk to remote services.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Type, TypeVar

logger = logging.getLogger("photo_manager.retry")

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: tuple[Type[Exception], ...] = (Exception,),
    target: Optional[str] = None,
    **kwargs,
) -> T:
    """
    Call ``func`` until it succeeds or ``max_attempts`` is exhausted.

    Args:
        func: async callable
        max_attempts: total number of attempts
        initial_delay: delay before the second attempt (seconds)
        max_delay: upper bound for a single delay (seconds)
        exponential_base: backoff multiplier
        jitter: randomise each delay to 50%-100% of its value
        retryable_exceptions: exception types that trigger another attempt
        target: label for logs (e.g. "object_storage.upload")
        *args, **kwargs: passed to func

    Returns:
        Whatever func returns

    Raises:
        The exception of the last attempt
    """
    last_exception: Optional[Exception] = None

    for attempt in range(max_attempts):
        try:
            return await func(*args, **kwargs)
        except retryable_exceptions as e:
            last_exception = e

            if attempt == max_attempts - 1:
                extra_err = {
                    "event": "retry",
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                    "error_type": type(e).__name__,
                }
                if target is not None:
                    extra_err["retry_target"] = target
                logger.error(
                    f"Retry exhausted after {max_attempts} attempts",
                    extra=extra_err,
                )
                raise

            delay = min(
                initial_delay * (exponential_base ** attempt),
                max_delay,
            )
            if jitter:
                delay = delay * (0.5 + random.random() * 0.5)

            extra_warn = {
                "event": "retry",
                "attempt": attempt + 1,
                "max_attempts": max_attempts,
                "delay": delay,
                "error_type": type(e).__name__,
            }
            if target is not None:
                extra_warn["retry_target"] = target
            logger.warning(
                f"Retry attempt {attempt + 1}/{max_attempts} after {delay:.2f}s",
                extra=extra_warn,
            )

            await asyncio.sleep(delay)

    # unreachable unless max_attempts < 1
    if last_exception:
        raise last_exception
    raise RuntimeError("Retry logic error")
