"""Per-job deadline used to cancel a category at its next suspension point."""

import time
from typing import Callable, Optional

from partscrape.exceptions import JobTimeoutError
from partscrape.shutdown import get_shutdown_handler

__all__ = ["Deadline"]


class Deadline:
    """Cancellation token for one extraction job.

    Long waits (navigation, network idle, element waits) ask the deadline
    for a bounded timeout and call ``check()`` before starting, so a wedged
    page can never hold a worker past the job budget. ``seconds=None``
    means no deadline.
    """

    def __init__(
        self,
        seconds: Optional[float],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.seconds = seconds
        self._clock = clock
        self._expires_at = clock() + seconds if seconds is not None else None

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, what: str = "") -> None:
        """Raise if the job should stop now.

        Raises:
            JobTimeoutError: If the deadline has passed
            KeyboardInterrupt: If a graceful shutdown was requested
        """
        get_shutdown_handler().check_shutdown()
        if self.expired:
            suffix = f" while {what}" if what else ""
            raise JobTimeoutError(f"Job exceeded its {self.seconds:.0f}s deadline{suffix}")

    def timeout_ms(self, default_ms: float) -> float:
        """Clamp a wait timeout (milliseconds) to the time left on the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return default_ms
        # Playwright treats 0 as "no timeout"
        return max(1.0, min(default_ms, remaining * 1000))
