"""Timeout tracking for test run suspension points."""

import time
from typing import Optional


class TimeoutHandler:
    """Tracks a deadline for one wait (first connection, next report)."""

    def __init__(self, timeout: float):
        """Initialize timeout handler.

        Args:
            timeout: Timeout in seconds.
        """
        self.timeout = timeout
        self._start_time: Optional[float] = None

    @property
    def elapsed(self) -> float:
        """Seconds elapsed since start."""
        if self._start_time is None:
            return 0.0
        return time.monotonic() - self._start_time

    @property
    def remaining(self) -> float:
        """Seconds remaining before timeout."""
        return max(0.0, self.timeout - self.elapsed)

    @property
    def is_expired(self) -> bool:
        """Whether the timeout has expired."""
        return self._start_time is not None and self.elapsed >= self.timeout

    def start(self) -> "TimeoutHandler":
        """Start the timeout timer."""
        self._start_time = time.monotonic()
        return self

    def reset(self) -> None:
        """Restart the timer, e.g. after activity on the channel."""
        self._start_time = time.monotonic()

    def expired_error(self, what: str) -> TimeoutError:
        return TimeoutError(f"{what} after {self.elapsed:.1f}s (timeout {self.timeout:.1f}s)")
