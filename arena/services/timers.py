"""Owned timer handles for repeating and one-shot asyncio callbacks.

Every periodic behaviour (countdown display, match clock, autosave, chat
poll) runs through a ``TimerHandle`` returned by ``start_timer``. The owner
keeps the handle and passes it back to ``stop_timer`` on teardown.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Union[None, Awaitable[Any]]]


@dataclass
class TimerHandle:
    """A running timer task; ``stop_timer`` cancels it."""
    name: str
    interval: float
    repeating: bool = True
    ticks: int = 0
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()


async def _invoke(handle: TimerHandle, callback: TimerCallback):
    try:
        result = callback()
        if inspect.isawaitable(result):
            await result
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.exception(f"Timer {handle.name} callback failed: {e}")


async def _run(handle: TimerHandle, callback: TimerCallback):
    loop = asyncio.get_running_loop()
    next_at = loop.time() + handle.interval
    while True:
        await asyncio.sleep(max(0.0, next_at - loop.time()))
        handle.ticks += 1
        await _invoke(handle, callback)
        if not handle.repeating:
            return
        # Fixed-rate schedule; a slow callback skips missed slots instead of bunching
        next_at += handle.interval
        now = loop.time()
        if next_at < now:
            next_at = now + handle.interval


def start_timer(interval: float, callback: TimerCallback, *, name: Optional[str] = None) -> TimerHandle:
    """Run ``callback`` every ``interval`` seconds on the running loop."""
    if interval <= 0:
        raise ValueError("Timer interval must be positive")
    handle = TimerHandle(name=name or getattr(callback, "__name__", "timer"), interval=interval)
    handle.task = asyncio.get_running_loop().create_task(_run(handle, callback), name=handle.name)
    return handle


def call_later(delay: float, callback: TimerCallback, *, name: Optional[str] = None) -> TimerHandle:
    """Run ``callback`` once after ``delay`` seconds."""
    handle = TimerHandle(
        name=name or getattr(callback, "__name__", "call_later"),
        interval=max(0.0, delay),
        repeating=False,
    )
    handle.task = asyncio.get_running_loop().create_task(_run(handle, callback), name=handle.name)
    return handle


def stop_timer(handle: Optional[TimerHandle]) -> None:
    """Cancel a timer. Safe to call on stopped or missing handles."""
    if handle is None or handle.task is None:
        return
    if not handle.task.done():
        handle.task.cancel()
    handle.task = None
