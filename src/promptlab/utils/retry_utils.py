"""Shared retry and backoff helpers for conflicting concurrent writes."""

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_lock_conflict(exc: Exception) -> bool:
    """Return True if the exception looks like a transient lock/serialization conflict."""
    msg = str(exc).lower()
    return (
        "database is locked" in msg
        or "deadlock" in msg
        or "could not serialize" in msg
        or "lock timeout" in msg
    )


def compute_backoff_delay(
    attempt: int,
    initial_delay: float = 0.05,
    factor: float = 2.0,
    max_delay: float = 2.0,
) -> float:
    """
    Compute delay in seconds for exponential backoff.

    Args:
        attempt: Current attempt index (0-based).
        initial_delay: Base delay for attempt 0.
        factor: Multiplier per attempt (delay = initial_delay * factor ** attempt).
        max_delay: Cap on delay.

    Returns:
        Delay in seconds.
    """
    return min(initial_delay * (factor ** attempt), max_delay)


def retry_on_conflict(
    func: Callable[[], T],
    retry_on: tuple[type[Exception], ...] = (OperationalError,),
    max_attempts: int = 5,
    initial_delay: float = 0.05,
    operation: str = "write",
) -> T:
    """
    Call func, retrying with backoff while it raises one of retry_on.

    OperationalError is only retried when it is a lock conflict; other database
    errors propagate on the first attempt. The last error is re-raised once
    max_attempts is exhausted.
    """
    attempt = 0
    while True:
        try:
            return func()
        except retry_on as e:
            if isinstance(e, OperationalError) and not is_lock_conflict(e):
                raise
            attempt += 1
            if attempt >= max_attempts:
                raise
            delay = compute_backoff_delay(attempt - 1, initial_delay=initial_delay)
            logger.debug("%s conflicted (attempt %s/%s), retrying in %.3fs: %s", operation, attempt, max_attempts, delay, e)
            time.sleep(delay)
