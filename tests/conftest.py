import os
import sys
from datetime import datetime, timedelta, timezone

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from arena.config import Settings
from arena.store import MemoryStore


class FakeNow:
    """Controllable replacement for utcnow()."""

    def __init__(self, start=None):
        self.value = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.value

    def advance(self, seconds):
        self.value = self.value + timedelta(seconds=seconds)
        return self.value


@pytest.fixture
def fake_now():
    return FakeNow()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def fast_settings():
    # Short periods so timer-driven tests finish quickly
    return Settings(
        demo_mode=True,
        match_clock_tick_seconds=0.01,
        autosave_interval_seconds=0.01,
        chat_poll_interval_seconds=0.02,
        chat_followup_poll_delay_seconds=0.01,
        retry_base_delay_seconds=0.0,
    )
