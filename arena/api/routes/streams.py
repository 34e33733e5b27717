from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import StreamingResponse
from datetime import datetime
from typing import List, Optional

from ...services.broadcast import Broadcaster, stream_topic
from ...services.streams import StreamService
from ...schemas.streams import (
    StreamCreate, StreamUpdate, StreamResponse, ChatMessageCreate, ChatMessageResponse
)
from ..deps import get_broadcaster, get_stream_service

router = APIRouter()


@router.get("/", response_model=List[StreamResponse])
async def list_streams(service: StreamService = Depends(get_stream_service)):
    """List streams, newest first."""
    return await service.list_streams()


@router.post("/", response_model=StreamResponse, status_code=201)
async def create_stream(stream: StreamCreate, service: StreamService = Depends(get_stream_service)):
    """Create a stream. New streams start inactive."""
    return await service.create_stream(stream.model_dump(exclude_none=True))


@router.get("/active", response_model=Optional[StreamResponse])
async def active_stream(service: StreamService = Depends(get_stream_service)):
    """The active stream, falling back to the newest one."""
    return await service.get_active_stream()


@router.get("/{stream_id}", response_model=StreamResponse)
async def get_stream(stream_id: str, service: StreamService = Depends(get_stream_service)):
    return await service.get_stream(stream_id)


@router.patch("/{stream_id}", response_model=StreamResponse)
async def update_stream(
    stream_id: str,
    changes: StreamUpdate,
    service: StreamService = Depends(get_stream_service),
):
    return await service.update_stream(stream_id, changes.model_dump(exclude_none=True))


@router.delete("/{stream_id}", status_code=204)
async def delete_stream(stream_id: str, service: StreamService = Depends(get_stream_service)):
    """Delete a stream and its chat."""
    await service.delete_stream(stream_id)
    return Response(status_code=204)


@router.post("/{stream_id}/activate", response_model=StreamResponse)
async def activate_stream(stream_id: str, service: StreamService = Depends(get_stream_service)):
    """Make this the only active stream."""
    return await service.set_stream_active(stream_id, True)


@router.post("/{stream_id}/deactivate", response_model=StreamResponse)
async def deactivate_stream(stream_id: str, service: StreamService = Depends(get_stream_service)):
    return await service.set_stream_active(stream_id, False)


@router.get("/{stream_id}/messages", response_model=List[ChatMessageResponse])
async def list_messages(
    stream_id: str,
    after: Optional[datetime] = Query(None, description="Only messages created after this time"),
    limit: int = Query(100, ge=1, le=100),
    service: StreamService = Depends(get_stream_service),
):
    """Chat messages in ascending order; poll with ``after`` set to the last one seen."""
    return await service.list_messages(stream_id, after=after, limit=limit)


@router.post("/{stream_id}/messages", response_model=ChatMessageResponse, status_code=201)
async def send_message(
    stream_id: str,
    payload: ChatMessageCreate,
    service: StreamService = Depends(get_stream_service),
):
    """Post a viewer chat message."""
    try:
        return await service.send_message(
            stream_id, payload.username, payload.message, user_id=payload.user_id
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{stream_id}/events")
async def stream_events(
    stream_id: str,
    service: StreamService = Depends(get_stream_service),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Server-Sent Events stream of chat messages and stream changes."""
    await service.get_stream(stream_id)
    return StreamingResponse(
        broadcaster.stream(stream_topic(stream_id)),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
