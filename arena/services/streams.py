"""Live streams and their chat."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..store.base import DataStore, Row, eq, gt
from .broadcast import Broadcaster, EventType, stream_topic

logger = logging.getLogger(__name__)

STREAMS = "live_streams"
MESSAGES = "live_chat_messages"


class StreamService:
    def __init__(self, store: DataStore, broadcaster: Optional[Broadcaster] = None):
        self.store = store
        self.broadcaster = broadcaster

    async def list_streams(self) -> List[Row]:
        return await self.store.select(STREAMS, order_by="created_at", descending=True)

    async def get_stream(self, stream_id: str) -> Row:
        return await self.store.get(STREAMS, stream_id)

    async def get_active_stream(self) -> Optional[Row]:
        """The active stream, else the newest one, else None."""
        streams = await self.list_streams()
        for stream in streams:
            if stream["is_active"]:
                return stream
        return streams[0] if streams else None

    async def create_stream(self, data: Dict[str, Any]) -> Row:
        row = await self.store.insert(STREAMS, {**data, "is_active": False})
        logger.info(f"Created stream {row['id']}")
        return row

    async def update_stream(self, stream_id: str, changes: Dict[str, Any]) -> Row:
        await self.store.get(STREAMS, stream_id)
        changes = {k: v for k, v in changes.items() if v is not None}
        rows = await self.store.update(STREAMS, changes, [eq("id", stream_id)]) if changes else []
        row = rows[0] if rows else await self.store.get(STREAMS, stream_id)
        self._notify(row)
        return row

    async def delete_stream(self, stream_id: str):
        await self.store.get(STREAMS, stream_id)
        await self.store.delete(MESSAGES, [eq("stream_id", stream_id)])
        await self.store.delete(STREAMS, [eq("id", stream_id)])
        logger.info(f"Deleted stream {stream_id}")

    async def set_stream_active(self, stream_id: str, active: bool) -> Row:
        """Activating one stream deactivates every other stream."""
        await self.store.get(STREAMS, stream_id)
        if active:
            await self.store.set_exclusive(STREAMS, "is_active", stream_id)
        else:
            await self.store.update(STREAMS, {"is_active": False}, [eq("id", stream_id)])
        row = await self.store.get(STREAMS, stream_id)
        self._notify(row)
        return row

    def _notify(self, row: Row):
        if self.broadcaster:
            self.broadcaster.publish(stream_topic(row["id"]), EventType.STREAM_UPDATED, row)

    async def list_messages(
        self,
        stream_id: str,
        after: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Row]:
        filters = [eq("stream_id", stream_id)]
        if after is not None:
            filters.append(gt("created_at", after))
        return await self.store.select(MESSAGES, filters, order_by="created_at", limit=limit)

    async def send_message(
        self,
        stream_id: str,
        username: str,
        message: str,
        user_id: Optional[str] = None,
        is_admin: bool = False,
    ) -> Row:
        text = (message or "").strip()
        if not text:
            raise ValueError("Message is empty")
        await self.store.get(STREAMS, stream_id)
        row = await self.store.insert(
            MESSAGES,
            {
                "stream_id": stream_id,
                "user_id": user_id,
                "username": username,
                "message": text,
                "is_admin": is_admin,
            },
        )
        if self.broadcaster:
            self.broadcaster.publish(stream_topic(stream_id), EventType.CHAT_MESSAGE, row)
        return row
