"""Bounded backoff for background store calls.

Background loops (autosave, chat poll) never surface errors to the live
view. Instead each failure pushes the next attempt back exponentially and,
past a threshold, flags the loop as stale so clients can show it.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..utils import utcnow

logger = logging.getLogger(__name__)


class RetryPolicy:
    def __init__(
        self,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        stale_after: int = 3,
        name: str = "background",
        now: Callable[[], datetime] = utcnow,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.stale_after = stale_after
        self.name = name
        self._now = now
        self.failures = 0
        self.last_error: Optional[str] = None
        self.next_attempt_at: Optional[datetime] = None

    @classmethod
    def from_settings(cls, settings, name: str = "background", now: Callable[[], datetime] = utcnow):
        return cls(
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
            stale_after=settings.stale_after_failures,
            name=name,
            now=now,
        )

    @property
    def stale(self) -> bool:
        return self.failures >= self.stale_after

    def delay_for(self, failures: int) -> float:
        if failures <= 0:
            return 0.0
        return min(self.base_delay * (2 ** (failures - 1)), self.max_delay)

    def ready(self) -> bool:
        return self.next_attempt_at is None or self._now() >= self.next_attempt_at

    def record_success(self):
        if self.stale:
            logger.info(f"{self.name} recovered after {self.failures} failures")
        self.failures = 0
        self.last_error = None
        self.next_attempt_at = None

    def record_failure(self, error: Exception):
        was_stale = self.stale
        self.failures += 1
        self.last_error = str(error)
        self.next_attempt_at = self._now() + timedelta(seconds=self.delay_for(self.failures))
        if self.stale and not was_stale:
            logger.error(f"{self.name} is stale after {self.failures} consecutive failures: {error}")
        else:
            logger.warning(f"{self.name} failed ({self.failures}): {error}")
