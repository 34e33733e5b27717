"""Operator-run match clock (M:SS), independent of wall-clock time."""

import logging
import re
from enum import Enum
from typing import Callable, Optional

from .timers import TimerHandle, start_timer, stop_timer

logger = logging.getLogger(__name__)

CLOCK_PATTERN = re.compile(r"^(\d+):(\d{2})$")
DEFAULT_DISPLAY = "5:00"
DEFAULT_SECONDS = 300


class ClockState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


def parse_clock(value: Optional[str]) -> Optional[int]:
    """'M:SS' -> total seconds, or None when the value does not match."""
    if not value:
        return None
    match = CLOCK_PATTERN.match(value.strip())
    if not match:
        return None
    minutes, seconds = int(match.group(1)), int(match.group(2))
    return minutes * 60 + seconds


def format_clock(total_seconds: int) -> str:
    total_seconds = max(0, int(total_seconds))
    return f"{total_seconds // 60}:{total_seconds % 60:02d}"


class MatchClock:
    """Stopped/Running countdown driven by a one-second tick.

    ``display`` is the operator-visible value and what gets persisted as
    ``time_remaining``. Invalid ``set`` input is ignored.
    """

    def __init__(
        self,
        display: str = DEFAULT_DISPLAY,
        on_change: Optional[Callable[[str], None]] = None,
        on_stop: Optional[Callable[[], None]] = None,
        tick_seconds: float = 1.0,
        default_seconds: int = DEFAULT_SECONDS,
    ):
        self.display = display or ""
        self.state = ClockState.STOPPED
        self.on_change = on_change
        self.on_stop = on_stop
        self.tick_seconds = tick_seconds
        self.default_seconds = default_seconds
        self._remaining = 0
        self._handle: Optional[TimerHandle] = None

    @property
    def running(self) -> bool:
        return self.state == ClockState.RUNNING

    def _show(self, display: str):
        if display != self.display:
            self.display = display
            if self.on_change:
                self.on_change(display)

    def _halt(self):
        stop_timer(self._handle)
        self._handle = None
        was_running = self.running
        self.state = ClockState.STOPPED
        if was_running and self.on_stop:
            self.on_stop()

    def start(self, schedule: bool = True):
        """Start or resume counting down from the current display.

        With ``schedule=False`` the caller drives ``tick()`` itself.
        """
        if self.running:
            return
        total = parse_clock(self.display or DEFAULT_DISPLAY)
        if not total or total <= 0:
            total = self.default_seconds
        self._remaining = total
        self._show(format_clock(total))
        self.state = ClockState.RUNNING
        if schedule:
            self._handle = start_timer(self.tick_seconds, self.tick, name="match-clock")
        logger.debug(f"Match clock started at {self.display}")

    def pause(self):
        self._halt()

    def set(self, value: str) -> bool:
        """Apply an 'M:SS' value; returns False (and changes nothing) when invalid."""
        total = parse_clock(value)
        if total is None:
            return False
        value = value.strip()
        if self.running:
            self._remaining = total
        self._show(value)
        return True

    def reset(self):
        self._halt()
        self._show(DEFAULT_DISPLAY)

    def tick(self):
        if not self.running:
            return
        self._remaining -= 1
        if self._remaining <= 0:
            self._remaining = 0
            self._show("0:00")
            logger.info("Match clock expired")
            self._halt()
            return
        self._show(format_clock(self._remaining))
