"""
Bounded retry with backoff.

License: Mozilla Public License 2.0
"""

import logging
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def retry(func: Callable[[], T], attempts: int, delay: float,
          backoff: float = 1.0, max_delay: Optional[float] = None,
          retryable: Callable[[BaseException], bool] = lambda e: True,
          sleep: Callable[[float], None] = time.sleep,
          description: str = "operation") -> T:
    """
    Call `func` until it returns, at most `attempts` times.

    Args:
        func: Zero-argument callable to invoke
        attempts: Maximum number of calls (>= 1)
        delay: Sleep before the second attempt, in seconds
        backoff: Multiplier applied to the delay after every failure
        max_delay: Upper bound for the delay
        retryable: Predicate deciding whether an exception allows another attempt
        sleep: Sleep function (injectable for tests)
        description: Name used in log messages

    Returns:
        The first successful result

    Raises:
        The last exception raised by `func` once attempts are exhausted, or
        immediately if `retryable` rejects it.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    wait = delay
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except Exception as e:
            if not retryable(e) or attempt == attempts:
                raise
            logger.debug(f"{description} failed (attempt {attempt}/{attempts}): {e}; retrying in {wait:.3f}s")
            sleep(wait)
            wait = wait * backoff
            if max_delay is not None:
                wait = min(wait, max_delay)

    raise AssertionError("unreachable")
