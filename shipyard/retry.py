"""Retry-with-timeout budget.

Wraps a flaky operation: the operation is attempted up to ``max_attempts``
times in sequence, and the whole sequence (back-off included) has to
finish within ``timeout`` seconds. Attempts run in the caller's thread and
receive the seconds left in the budget, which they pass on as their own
subprocess or request timeout so a hung attempt is killed, not abandoned.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from shipyard.errors import TimeoutExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_timeout(
    max_attempts: int,
    timeout: float,
    operation: Callable[[float], T],
    backoff: float = 0.0,
) -> T:
    """Run ``operation`` until it succeeds, attempts run out or time is up.

    Args:
        max_attempts: Total number of attempts (at least 1).
        timeout: Seconds allowed for all attempts together.
        operation: Callable taking the seconds left in the budget.
        backoff: Seconds to sleep between attempts.

    Returns:
        Whatever the first successful attempt returned.

    Raises:
        TimeoutExceededError: If the deadline passes, wrapping the last
            error seen before it.
        Exception: The last attempt's error once all attempts have failed.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    deadline = time.monotonic() + timeout
    last_error: Exception | None = None
    attempt = 0

    while True:
        attempt += 1
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutExceededError(timeout, last_error) from last_error

        try:
            return operation(remaining)
        except TimeoutExceededError as e:
            logger.error(
                "Attempt %d/%d still running after %s seconds, giving up",
                attempt,
                max_attempts,
                timeout,
            )
            raise TimeoutExceededError(timeout, last_error) from e
        except Exception as e:
            logger.warning("Attempt %d/%d failed: %s", attempt, max_attempts, e)
            if attempt == max_attempts:
                logger.error("Operation failed after %d attempt(s)", max_attempts)
                raise
            last_error = e

        if backoff:
            time.sleep(min(backoff, max(deadline - time.monotonic(), 0.0)))


__all__ = ["retry_with_timeout"]
