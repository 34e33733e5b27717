"""In-process publish/subscribe with Server-Sent Events formatting.

Viewers subscribe to a topic (``match:{id}``, ``stream:{id}`` or ``tournament:{id}``) and get
pushed chat messages and stat updates; the polling endpoints remain as the
fallback for clients that cannot hold a stream open.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncGenerator, Dict, Optional, Set

from ..utils import utcnow

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Types of pushed events."""
    MATCH_UPDATED = "match.updated"
    MATCH_STATUS = "match.status"
    CHAT_MESSAGE = "chat.message"
    STREAM_UPDATED = "stream.updated"
    TOURNAMENT_UPDATED = "tournament.updated"
    TOURNAMENT_KILL = "tournament.kill"
    COUNTDOWN = "countdown"
    HEARTBEAT = "heartbeat"


def match_topic(match_id: str) -> str:
    return f"match:{match_id}"


def stream_topic(stream_id: str) -> str:
    return f"stream:{stream_id}"


def tournament_topic(tournament_id: str) -> str:
    return f"tournament:{tournament_id}"


def _default(value: Any):
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Cannot serialize {type(value).__name__}")


@dataclass
class BroadcastEvent:
    """A single pushed event."""
    event_type: EventType
    topic: str
    data: Dict[str, Any]
    sent_at: datetime = field(default_factory=utcnow)

    def to_sse(self) -> str:
        """Format as Server-Sent Event."""
        payload = {
            "type": self.event_type.value,
            "topic": self.topic,
            "data": self.data,
            "sent_at": self.sent_at,
        }
        return f"event: {self.event_type.value}\ndata: {json.dumps(payload, default=_default)}\n\n"


class Subscription:
    def __init__(self, broadcaster: "Broadcaster", topic: str, max_queue: int):
        self.broadcaster = broadcaster
        self.topic = topic
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self.dropped = 0

    def offer(self, event: BroadcastEvent):
        if self.queue.full():
            # Slow consumer: drop the oldest event
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(event)

    async def get(self, timeout: Optional[float] = None) -> Optional[BroadcastEvent]:
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def close(self):
        self.broadcaster.unsubscribe(self)


class Broadcaster:
    def __init__(self, max_queue: int = 100):
        self.max_queue = max_queue
        self._subscribers: Dict[str, Set[Subscription]] = {}

    def subscribe(self, topic: str) -> Subscription:
        subscription = Subscription(self, topic, self.max_queue)
        self._subscribers.setdefault(topic, set()).add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        subscribers = self._subscribers.get(subscription.topic)
        if not subscribers:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.topic]

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        if topic is not None:
            return len(self._subscribers.get(topic, ()))
        return sum(len(s) for s in self._subscribers.values())

    def publish(self, topic: str, event_type: EventType, data: Dict[str, Any]) -> int:
        """Deliver to every subscriber of ``topic``; returns how many got it."""
        subscribers = self._subscribers.get(topic)
        if not subscribers:
            return 0
        event = BroadcastEvent(event_type=event_type, topic=topic, data=data)
        for subscription in list(subscribers):
            subscription.offer(event)
        return len(subscribers)

    async def stream(self, topic: str, heartbeat: float = 15.0) -> AsyncGenerator[str, None]:
        """Yield SSE frames for ``topic`` until the client disconnects."""
        subscription = self.subscribe(topic)
        try:
            while True:
                event = await subscription.get(timeout=heartbeat)
                if event is None:
                    event = BroadcastEvent(event_type=EventType.HEARTBEAT, topic=topic, data={})
                yield event.to_sse()
        finally:
            subscription.close()
