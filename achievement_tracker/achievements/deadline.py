"""Deadlines propagated from the caller into every store call."""

import time
from typing import Optional

from .errors import StoreTimeoutError


class Deadline:
    """A point in monotonic time after which store calls must not start.

    Usage:
        deadline = Deadline.after(5.0)
        store.get(reference_id, deadline=deadline)
    """

    def __init__(self, expires_at: float):
        self.expires_at = expires_at

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(time.monotonic() + seconds)

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self, operation: str) -> None:
        """Raise StoreTimeoutError if the deadline has passed."""
        if self.expired:
            raise StoreTimeoutError(
                f"Deadline exceeded before {operation}", operation=operation
            )


def check_deadline(deadline: Optional[Deadline], operation: str) -> None:
    """Check an optional deadline; ``None`` means unbounded."""
    if deadline is not None:
        deadline.check(operation)
