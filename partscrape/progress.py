"""Per-category progress reporting.

Bars are drawn on stdout; log lines go to stderr.
"""

import sys
from typing import Callable, Optional

from tqdm import tqdm

__all__ = [
    "ProgressReporter",
    "TqdmProgress",
    "NullProgress",
    "ProgressFactory",
    "make_progress_factory",
]


class ProgressReporter:
    """Receives 'total pages known' and 'page completed' events for one category."""

    def start(self, total: int) -> None:
        raise NotImplementedError

    def increment(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class NullProgress(ProgressReporter):
    """Discards progress events."""

    def start(self, total: int) -> None:
        pass

    def increment(self) -> None:
        pass

    def stop(self) -> None:
        pass


class TqdmProgress(ProgressReporter):
    """A tqdm bar labelled with the category name."""

    def __init__(self, category: str) -> None:
        self.category = category
        self._bar: Optional[tqdm] = None

    def start(self, total: int) -> None:
        self._bar = tqdm(
            total=total, desc=self.category, unit="page", leave=True, file=sys.stdout
        )

    def increment(self) -> None:
        if self._bar is not None:
            self._bar.update(1)

    def stop(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


ProgressFactory = Callable[[str], ProgressReporter]


def make_progress_factory(enabled: bool = True) -> ProgressFactory:
    if enabled:
        return TqdmProgress
    return lambda category: NullProgress()
