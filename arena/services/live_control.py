"""Operator control sessions.

A control session is one operator's live view of one match (clock plus
stats plus autosave) or of one stream's chat. Sessions are independent:
two operators on the same match each run their own clock, and the stored
record reflects whichever autosave wrote last.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Generic, List, Optional, Set, TypeVar

from ..config import Settings
from ..errors import RecordNotFound
from ..store.base import DataStore, Row
from ..utils import utcnow
from .autosave import LiveStats, StatsAutosaver
from .broadcast import Broadcaster
from .chat_poller import ChatPoller
from .match_clock import MatchClock
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class LiveMatchControl:
    """Clock, stats and autosave loop for one operator on one match.

    The clock display is the stats' ``time_remaining``. The autosave loop
    runs only while the clock runs; stopping the clock (pause, reset or
    expiry) triggers one last write.
    """

    def __init__(
        self,
        session_id: str,
        store: DataStore,
        match_id: str,
        settings: Settings,
        broadcaster: Optional[Broadcaster] = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.session_id = session_id
        self.match_id = match_id
        self.settings = settings
        self.opened_at = now()
        self.closed = False
        self.autosaver = StatsAutosaver(
            store,
            match_id,
            retry=RetryPolicy.from_settings(settings, name=f"autosave {match_id}", now=now),
            broadcaster=broadcaster,
            now=now,
        )
        self.clock = MatchClock(
            display="",
            on_change=self._on_clock_change,
            on_stop=self._on_clock_stop,
            tick_seconds=settings.match_clock_tick_seconds,
            default_seconds=settings.default_clock_seconds,
        )
        self._pending: Set[asyncio.Task] = set()

    @property
    def stats(self) -> LiveStats:
        return self.autosaver.stats

    async def open(self) -> Row:
        row = await self.autosaver.load()
        self.clock.display = self.stats.time_remaining
        return row

    def _on_clock_change(self, display: str):
        self.stats.time_remaining = display

    def _on_clock_stop(self):
        self.autosaver.stop()
        if self.closed:
            return
        task = asyncio.get_running_loop().create_task(self.autosaver.flush())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def start_clock(self):
        self.clock.start()
        self.autosaver.start(self.settings.autosave_interval_seconds)

    def pause_clock(self):
        self.clock.pause()

    def reset_clock(self):
        self.clock.reset()

    def set_clock(self, value: str) -> bool:
        return self.clock.set(value)

    def update_stats(self, **changes) -> LiveStats:
        time_remaining = changes.pop("time_remaining", None)
        if time_remaining is not None:
            self.set_clock(time_remaining)
        return self.stats.apply(**changes)

    async def save(self, expected_version: Optional[int] = None) -> Row:
        return await self.autosaver.save(expected_version)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "match_id": self.match_id,
            "clock": {"display": self.clock.display or "0:00", "state": self.clock.state.value},
            "stats": self.stats.to_dict(),
            "kd_ratio": {"player1": self.stats.kd_ratio(1), "player2": self.stats.kd_ratio(2)},
            "autosave": {
                "running": self.autosaver.running,
                "writes": self.autosaver.writes,
                "stale": self.autosaver.stale,
                "last_error": self.autosaver.last_error,
            },
            "details_version": self.autosaver.version,
            "opened_at": self.opened_at,
        }

    async def close(self):
        self.closed = True
        self.clock.pause()
        self.autosaver.close()
        for task in list(self._pending):
            task.cancel()


class ChatRoom:
    """An admin's polling view of one stream's chat."""

    def __init__(
        self,
        room_id: str,
        store: DataStore,
        stream_id: str,
        settings: Settings,
        broadcaster: Optional[Broadcaster] = None,
    ):
        self.room_id = room_id
        self.stream_id = stream_id
        self.settings = settings
        self.unread = 0
        self.poller = ChatPoller(
            store,
            stream_id,
            retry=RetryPolicy.from_settings(settings, name=f"chat poll {stream_id}"),
            on_new=self._on_new,
            broadcaster=broadcaster,
            initial_limit=settings.chat_initial_limit,
            poll_limit=settings.chat_poll_limit,
            followup_delay=settings.chat_followup_poll_delay_seconds,
        )

    def _on_new(self, rows: List[Row]):
        self.unread += len(rows)

    async def open(self):
        await self.poller.store.get("live_streams", self.stream_id)
        await self.poller.load_initial()
        self.poller.start(self.settings.chat_poll_interval_seconds)

    def read(self, since: int = 0) -> Dict[str, Any]:
        """Transcript entries from index ``since``; resets the unread count."""
        self.unread = 0
        return {
            "room_id": self.room_id,
            "stream_id": self.stream_id,
            "messages": self.poller.transcript[since:],
            "total": len(self.poller.transcript),
            "stale": self.poller.stale,
            "last_error": self.poller.retry.last_error,
        }

    async def send(self, message: str, username: str = "Admin", user_id: Optional[str] = None) -> Row:
        return await self.poller.send(user_id, username, message, is_admin=True)

    async def close(self):
        self.poller.close()


T = TypeVar("T")


class SessionRegistry(Generic[T]):
    """Open sessions keyed by generated id."""

    def __init__(self, kind: str):
        self.kind = kind
        self.sessions: Dict[str, T] = {}
        self.lock = asyncio.Lock()

    @staticmethod
    def new_id() -> str:
        return str(uuid.uuid4())

    async def add(self, session_id: str, session: T) -> T:
        async with self.lock:
            self.sessions[session_id] = session
        logger.info(f"Opened {self.kind} session {session_id}")
        return session

    def get(self, session_id: str) -> T:
        session = self.sessions.get(session_id)
        if session is None:
            raise RecordNotFound(self.kind, session_id)
        return session

    async def close(self, session_id: str):
        async with self.lock:
            session = self.sessions.pop(session_id, None)
        if session is None:
            raise RecordNotFound(self.kind, session_id)
        await session.close()
        logger.info(f"Closed {self.kind} session {session_id}")

    async def close_all(self):
        async with self.lock:
            sessions = list(self.sessions.values())
            self.sessions.clear()
        for session in sessions:
            await session.close()
        if sessions:
            logger.info(f"Closed {len(sessions)} {self.kind} sessions")

    def __len__(self) -> int:
        return len(self.sessions)


class ControlCenter:
    """Owns every open match-control and chat session of the process."""

    def __init__(self, store: DataStore, settings: Settings, broadcaster: Optional[Broadcaster] = None):
        self.store = store
        self.settings = settings
        self.broadcaster = broadcaster
        self.matches: SessionRegistry[LiveMatchControl] = SessionRegistry("control_sessions")
        self.chats: SessionRegistry[ChatRoom] = SessionRegistry("chat_rooms")

    async def open_match(self, match_id: str) -> LiveMatchControl:
        control = LiveMatchControl(
            SessionRegistry.new_id(), self.store, match_id, self.settings, self.broadcaster
        )
        await control.open()
        return await self.matches.add(control.session_id, control)

    async def open_chat(self, stream_id: str) -> ChatRoom:
        room = ChatRoom(SessionRegistry.new_id(), self.store, stream_id, self.settings, self.broadcaster)
        await room.open()
        return await self.chats.add(room.room_id, room)

    async def close_all(self):
        await self.matches.close_all()
        await self.chats.close_all()
