"""Operator control sessions: match clock, live stats and admin chat."""

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from typing import Optional

from ...services.live_control import ControlCenter
from ...schemas.matches import LiveStatsPayload
from ...schemas.control import (
    ClockSet, ControlSnapshot, SaveResult, ChatSend, ChatTranscript
)
from ...schemas.streams import ChatMessageResponse
from ..deps import get_control_center

router = APIRouter()


@router.post("/matches/{match_id}/sessions", response_model=ControlSnapshot, status_code=201)
async def open_session(match_id: str, control: ControlCenter = Depends(get_control_center)):
    """Open a control session primed from the match's stored stats."""
    session = await control.open_match(match_id)
    return session.snapshot()


@router.get("/sessions/{session_id}", response_model=ControlSnapshot)
async def get_session(session_id: str, control: ControlCenter = Depends(get_control_center)):
    return control.matches.get(session_id).snapshot()


@router.delete("/sessions/{session_id}", status_code=204)
async def close_session(session_id: str, control: ControlCenter = Depends(get_control_center)):
    """Close a session and cancel its timers."""
    await control.matches.close(session_id)
    return Response(status_code=204)


@router.post("/sessions/{session_id}/clock/start", response_model=ControlSnapshot)
async def start_clock(session_id: str, control: ControlCenter = Depends(get_control_center)):
    """Start or resume the match clock; autosave runs while it does."""
    session = control.matches.get(session_id)
    session.start_clock()
    return session.snapshot()


@router.post("/sessions/{session_id}/clock/pause", response_model=ControlSnapshot)
async def pause_clock(session_id: str, control: ControlCenter = Depends(get_control_center)):
    session = control.matches.get(session_id)
    session.pause_clock()
    return session.snapshot()


@router.post("/sessions/{session_id}/clock/set", response_model=ControlSnapshot)
async def set_clock(session_id: str, payload: ClockSet, control: ControlCenter = Depends(get_control_center)):
    """Set the clock to an M:SS value. Malformed values leave it unchanged."""
    session = control.matches.get(session_id)
    session.set_clock(payload.value)
    return session.snapshot()


@router.post("/sessions/{session_id}/clock/reset", response_model=ControlSnapshot)
async def reset_clock(session_id: str, control: ControlCenter = Depends(get_control_center)):
    """Stop the clock and put it back to 5:00."""
    session = control.matches.get(session_id)
    session.reset_clock()
    return session.snapshot()


@router.patch("/sessions/{session_id}/stats", response_model=ControlSnapshot)
async def update_stats(
    session_id: str,
    payload: LiveStatsPayload,
    control: ControlCenter = Depends(get_control_center),
):
    """Edit the in-memory stats. They reach the store on the next autosave or save."""
    session = control.matches.get(session_id)
    session.update_stats(**payload.model_dump(exclude_none=True))
    return session.snapshot()


@router.post("/sessions/{session_id}/save", response_model=SaveResult)
async def save_session(
    session_id: str,
    expected_version: Optional[int] = Query(None, description="Refuse the save if the record moved on"),
    control: ControlCenter = Depends(get_control_center),
):
    """Save Stats: write now and report the outcome."""
    session = control.matches.get(session_id)
    row = await session.save(expected_version)
    return SaveResult(
        saved=True,
        match_id=session.match_id,
        details_version=row["details_version"],
        match_details=row["match_details"],
    )


@router.post("/streams/{stream_id}/chat", response_model=ChatTranscript, status_code=201)
async def open_chat(stream_id: str, control: ControlCenter = Depends(get_control_center)):
    """Open an admin chat view that polls the stream's messages."""
    room = await control.open_chat(stream_id)
    return room.read()


@router.get("/chat/{room_id}", response_model=ChatTranscript)
async def read_chat(
    room_id: str,
    since: int = Query(0, ge=0, description="Transcript index to read from"),
    control: ControlCenter = Depends(get_control_center),
):
    return control.chats.get(room_id).read(since)


@router.post("/chat/{room_id}/messages", response_model=ChatMessageResponse, status_code=201)
async def send_chat(room_id: str, payload: ChatSend, control: ControlCenter = Depends(get_control_center)):
    """Send as admin; the room polls again shortly after."""
    room = control.chats.get(room_id)
    try:
        return await room.send(payload.message, username=payload.username, user_id=payload.user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/chat/{room_id}", status_code=204)
async def close_chat(room_id: str, control: ControlCenter = Depends(get_control_center)):
    await control.chats.close(room_id)
    return Response(status_code=204)
