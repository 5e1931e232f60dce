"""
Progress reporting for long row loops.

Wraps a tqdm bar and additionally writes a log line every ``interval``
items, so progress also ends up in the log file. Purely observational.
"""

import logging
import time
from typing import Optional

from tqdm import tqdm

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Counts processed items for one operation."""

    def __init__(self, total: Optional[int], operation: str, interval: int = 1000,
                 show_bar: bool = True):
        self.total = total
        self.operation = operation
        self.interval = max(1, interval)
        self.current = 0
        self.start_time = time.monotonic()
        self.bar = tqdm(total=total, desc=operation, unit='rows',
                        disable=not show_bar, leave=False)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time

    @property
    def rate(self) -> float:
        elapsed = self.elapsed
        return self.current / elapsed if elapsed > 0 else 0.0

    def update(self, increment: int = 1) -> None:
        previous = self.current
        self.current += increment
        self.bar.update(increment)

        if self.current // self.interval > previous // self.interval or self.current == self.total:
            if self.total:
                pct = self.current / self.total * 100
                logger.info(f"{self.operation}: {self.current}/{self.total} ({pct:.1f}%)")
            else:
                logger.info(f"{self.operation}: {self.current}")

    def reset(self) -> None:
        """Start counting again (e.g. when a transaction is retried)."""
        self.current = 0
        self.start_time = time.monotonic()
        self.bar.reset(total=self.total)

    def complete(self) -> None:
        self.bar.close()
        logger.info(
            f"{self.operation} completed: {self.current} in {self.elapsed:.1f}s "
            f"({self.rate:.0f}/s)"
        )

    def error(self, message: str) -> None:
        self.bar.close()
        logger.error(f"{self.operation} failed: {message}")
