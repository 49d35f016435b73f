"""
Async retry with exponential backoff.

Wraps connection-level calls that may fail transiently: the startup
connectivity check (``Settings.retry_on_failure``) and each cycle of the
health probe. Every retry is logged at INFO, the final failure at ERROR.
"""

import asyncio
import functools
import logging
import random
from typing import Any, Callable, Tuple, Type

logger = logging.getLogger(__name__)

JITTER_RATIO = 0.2


def compute_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float,
    jitter: bool,
) -> float:
    """Delay before retry number ``attempt + 1`` (attempt counts from 0)."""
    delay = min(max_delay, base_delay * exponential_base ** attempt)
    if not jitter:
        return delay
    spread = delay * JITTER_RATIO
    return max(0.0, random.uniform(delay - spread, delay + spread))


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,)
):
    """
    Retry an async callable when it raises one of ``exceptions``.

    The callable runs at most ``max_retries + 1`` times. With
    ``base_delay=2.0`` and no jitter the waits are 2s, 4s, 8s. Other
    exception types propagate on the first attempt; the last failure is
    re-raised unchanged.

    Args:
        max_retries: Retries after the first call
        base_delay: Seconds before the first retry
        max_delay: Cap for any single wait
        exponential_base: Growth factor between waits
        jitter: Spread each wait by up to 20% either way
        exceptions: Exception types worth retrying

    Example:
        @retry_with_backoff(max_retries=3, base_delay=2.0, jitter=False)
        async def probe():
            ...
    """
    total = max_retries + 1

    def decorator(func: Callable) -> Callable:
        name = getattr(func, "__qualname__", repr(func))

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    attempt += 1
                    if attempt >= total:
                        logger.error(
                            f"Giving up on {name} after {total} attempts: {e}",
                            extra={"attempt": attempt},
                        )
                        raise

                    delay = compute_delay(
                        attempt - 1, base_delay, max_delay, exponential_base, jitter
                    )
                    logger.info(
                        f"{name} failed ({type(e).__name__}: {e}), "
                        f"attempt {attempt} of {total}; next try in {delay:.2f}s",
                        extra={"attempt": attempt},
                    )
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
