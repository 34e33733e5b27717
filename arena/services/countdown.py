"""Countdown to a scheduled match or tournament start."""

import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import AsyncGenerator, Callable, Optional, Union

from ..utils import parse_timestamp, utcnow
from .broadcast import BroadcastEvent, EventType
from .timers import TimerHandle, start_timer, stop_timer

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class TimeLeft:
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0

    @property
    def total_seconds(self) -> int:
        return self.days * SECONDS_PER_DAY + self.hours * 3600 + self.minutes * 60 + self.seconds

    @property
    def is_zero(self) -> bool:
        return self.total_seconds == 0

    def to_dict(self) -> dict:
        return asdict(self)


def time_left(target: Union[str, datetime, None], now: Optional[datetime] = None) -> TimeLeft:
    """Break the time remaining until ``target`` into days/hours/minutes/seconds.

    Past, missing or unparseable targets give all zeros, never negatives.
    """
    target_at = parse_timestamp(target)
    if target_at is None:
        return TimeLeft()
    now = parse_timestamp(now) if now is not None else utcnow()
    remaining = int((target_at - now).total_seconds())
    if remaining <= 0:
        return TimeLeft()
    days, rest = divmod(remaining, SECONDS_PER_DAY)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return TimeLeft(days=days, hours=hours, minutes=minutes, seconds=seconds)


class Countdown:
    """Recomputes ``time_left`` once per tick and fires ``on_complete`` once.

    After completion the countdown stops its own timer, so the completion
    callback is never repeated.
    """

    def __init__(
        self,
        target: Union[str, datetime, None],
        on_tick: Optional[Callable[[TimeLeft], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
        interval: float = 1.0,
        now: Callable[[], datetime] = utcnow,
    ):
        self.target = target
        self.on_tick = on_tick
        self.on_complete = on_complete
        self.interval = interval
        self._now = now
        self._handle: Optional[TimerHandle] = None
        self.completed = False
        self.current = time_left(target, now())

    @property
    def running(self) -> bool:
        return self._handle is not None and self._handle.active

    def tick(self) -> TimeLeft:
        if self.completed:
            return self.current
        self.current = time_left(self.target, self._now())
        if self.on_tick:
            self.on_tick(self.current)
        if self.current.is_zero:
            self.completed = True
            self.stop()
            logger.debug(f"Countdown to {self.target} complete")
            if self.on_complete:
                self.on_complete()
        return self.current

    def start(self):
        if self.running or self.completed:
            return
        self._handle = start_timer(self.interval, self.tick, name="countdown")

    def stop(self):
        stop_timer(self._handle)
        self._handle = None


def countdown_event(topic: str, left: TimeLeft) -> BroadcastEvent:
    data = left.to_dict()
    data.update(total_seconds=left.total_seconds, expired=left.is_zero)
    return BroadcastEvent(event_type=EventType.COUNTDOWN, topic=topic, data=data)


async def countdown_stream(
    topic: str,
    target: Union[str, datetime, None],
    interval: float = 1.0,
    now: Callable[[], datetime] = utcnow,
) -> AsyncGenerator[str, None]:
    """Yield one SSE frame per countdown tick; the zero frame is the last one."""
    ticks: asyncio.Queue = asyncio.Queue()
    countdown = Countdown(target, on_tick=ticks.put_nowait, interval=interval, now=now)
    yield countdown_event(topic, countdown.current).to_sse()
    if countdown.current.is_zero:
        return
    countdown.start()
    try:
        while True:
            left = await ticks.get()
            yield countdown_event(topic, left).to_sse()
            if left.is_zero:
                return
    finally:
        countdown.stop()
