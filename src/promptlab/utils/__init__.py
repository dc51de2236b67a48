"""promptlab utilities."""

from .retry_utils import compute_backoff_delay, is_lock_conflict, retry_on_conflict

__all__ = [
    "compute_backoff_delay",
    "is_lock_conflict",
    "retry_on_conflict",
]
