"""Polling chat transcript for a live stream.

Each poll asks the store for messages newer than the last one held, drops
any whose id is already in the transcript and appends the rest in the order
the store returned them (ascending ``created_at``).
"""

import logging
from typing import Callable, List, Optional, Set

from ..errors import StoreError
from ..store.base import DataStore, Row, eq, gt
from .broadcast import Broadcaster, EventType, stream_topic
from .retry import RetryPolicy
from .timers import TimerHandle, call_later, start_timer, stop_timer

logger = logging.getLogger(__name__)

MESSAGES = "live_chat_messages"


class ChatPoller:
    def __init__(
        self,
        store: DataStore,
        stream_id: str,
        retry: Optional[RetryPolicy] = None,
        on_new: Optional[Callable[[List[Row]], None]] = None,
        broadcaster: Optional[Broadcaster] = None,
        initial_limit: int = 100,
        poll_limit: int = 50,
        followup_delay: float = 0.5,
    ):
        self.store = store
        self.stream_id = stream_id
        self.retry = retry or RetryPolicy(name=f"chat poll {stream_id}")
        self.on_new = on_new
        self.broadcaster = broadcaster
        self.initial_limit = initial_limit
        self.poll_limit = poll_limit
        self.followup_delay = followup_delay
        self.transcript: List[Row] = []
        self._seen: Set[str] = set()
        self._handle: Optional[TimerHandle] = None
        self._followup: Optional[TimerHandle] = None
        self.closed = False

    @property
    def running(self) -> bool:
        return self._handle is not None and self._handle.active

    @property
    def stale(self) -> bool:
        return self.retry.stale

    def _append(self, rows: List[Row]) -> List[Row]:
        fresh = []
        for row in rows:
            if row["id"] in self._seen:
                continue
            self._seen.add(row["id"])
            fresh.append(row)
        if fresh:
            self.transcript.extend(fresh)
            if self.on_new:
                self.on_new(fresh)
        return fresh

    async def load_initial(self) -> List[Row]:
        rows = await self.store.select(
            MESSAGES,
            [eq("stream_id", self.stream_id)],
            order_by="created_at",
            limit=self.initial_limit,
        )
        if self.closed:
            return []
        return self._append(rows)

    async def poll(self) -> List[Row]:
        """Fetch and append unseen messages; failures are logged and skipped."""
        if self.closed or not self.retry.ready():
            return []
        try:
            if not self.transcript:
                fresh = await self.load_initial()
            else:
                last = self.transcript[-1]
                rows = await self.store.select(
                    MESSAGES,
                    [eq("stream_id", self.stream_id), gt("created_at", last["created_at"])],
                    order_by="created_at",
                    limit=self.poll_limit,
                )
                # Drop results that arrive after teardown
                fresh = [] if self.closed else self._append(rows)
        except StoreError as e:
            self.retry.record_failure(e)
            return []
        self.retry.record_success()
        return fresh

    async def send(self, user_id: Optional[str], username: str, message: str, is_admin: bool = False) -> Row:
        """Insert a message, then poll once more shortly after."""
        text = (message or "").strip()
        if not text:
            raise ValueError("Message is empty")
        row = await self.store.insert(
            MESSAGES,
            {
                "stream_id": self.stream_id,
                "user_id": user_id,
                "username": username,
                "message": text,
                "is_admin": is_admin,
            },
        )
        if self.broadcaster:
            self.broadcaster.publish(stream_topic(self.stream_id), EventType.CHAT_MESSAGE, row)
        if not self.closed:
            stop_timer(self._followup)
            self._followup = call_later(self.followup_delay, self.poll, name=f"chat-followup:{self.stream_id}")
        return row

    def start(self, interval: float = 2.0):
        if self.running or self.closed:
            return
        self._handle = start_timer(interval, self.poll, name=f"chat-poll:{self.stream_id}")

    def close(self):
        stop_timer(self._handle)
        stop_timer(self._followup)
        self._handle = None
        self._followup = None
        self.closed = True
