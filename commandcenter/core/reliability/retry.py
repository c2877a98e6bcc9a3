"""
Retry — exponential backoff for transient failures.

Package indexes and container registries fail transiently; a bounded
number of retries with growing delays turns most of those into a
success. Policy violations are never retried.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from typing import TypeVar

from commandcenter.core.errors import PolicyViolation

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float = 2.0, max_delay: float = 60.0) -> float:
    """Delay before retry number ``attempt`` (1-based), with jitter."""
    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
    return delay + random.uniform(0, delay * 0.3)


def retry_call(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    base_delay: float = 2.0,
    max_delay: float = 60.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    label: str = "",
) -> T:
    """Call ``fn`` until it returns, at most ``attempts`` times.

    Raises:
        The last exception if every attempt failed.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    name = label or getattr(fn, "__name__", "operation")
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except PolicyViolation:
            raise
        except retry_on as e:
            if attempt == attempts:
                logger.error("%s failed after %d attempts: %s", name, attempts, e)
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning("%s failed (attempt %d/%d): %s, retrying in %.1fs", name, attempt, attempts, e, delay)
            sleep(delay)
    raise AssertionError("unreachable")
