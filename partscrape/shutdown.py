"""Graceful shutdown handling for long-running crawls.

The first SIGINT/SIGTERM sets a flag that workers observe at their next
suspension point: queued categories are skipped and running ones abort,
salvaging what they extracted so far. A second signal forces an exit.
"""

import signal
import sys
import threading
from typing import Optional

from partscrape.logging_config import get_logger

__all__ = [
    "ShutdownHandler",
    "get_shutdown_handler",
    "shutdown_requested",
]

logger = get_logger("shutdown")


class ShutdownHandler:
    """Handles graceful shutdown on SIGINT/SIGTERM signals.

    Usage:
        handler = get_shutdown_handler().install()
        ...
        handler.check_shutdown()  # raises KeyboardInterrupt once requested
    """

    _instance: Optional["ShutdownHandler"] = None
    _lock = threading.Lock()

    def __init__(self) -> None:
        self._shutdown_requested = threading.Event()
        self._original_handlers = {}
        self._installed = False

    @classmethod
    def get_instance(cls) -> "ShutdownHandler":
        """Get or create the singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def install(self) -> "ShutdownHandler":
        """Install signal handlers. Must be called from the main thread."""
        if self._installed:
            return self

        for signum in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[signum] = signal.getsignal(signum)
            signal.signal(signum, self._handle_signal)

        self._installed = True
        return self

    def uninstall(self) -> None:
        """Restore original signal handlers."""
        if not self._installed:
            return

        for signum, original in self._original_handlers.items():
            if original is not None:
                signal.signal(signum, original)
        self._original_handlers.clear()
        self._installed = False

    def _handle_signal(self, signum: int, frame) -> None:
        signal_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.warning(
            f"Received {signal_name}, finishing in-flight pages and saving partial results "
            "(send again to force quit)"
        )
        self._shutdown_requested.set()
        signal.signal(signum, self._force_exit)

    def _force_exit(self, signum: int, frame) -> None:
        logger.error("Force quitting")
        sys.exit(1)

    def request_shutdown(self) -> None:
        """Request shutdown without a signal."""
        self._shutdown_requested.set()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested.is_set()

    def check_shutdown(self) -> None:
        """Raise KeyboardInterrupt if shutdown was requested."""
        if self._shutdown_requested.is_set():
            raise KeyboardInterrupt("Graceful shutdown requested")

    def reset(self) -> None:
        """Reset shutdown state (for testing or reuse)."""
        self._shutdown_requested.clear()


def get_shutdown_handler() -> ShutdownHandler:
    """Get the global shutdown handler instance."""
    return ShutdownHandler.get_instance()


def shutdown_requested() -> bool:
    """Check if shutdown has been requested."""
    return get_shutdown_handler().shutdown_requested

