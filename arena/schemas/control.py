from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime


class ClockSet(BaseModel):
    value: str


class ClockView(BaseModel):
    display: str
    state: str  # 'stopped', 'running'


class AutosaveView(BaseModel):
    running: bool
    writes: int
    stale: bool
    last_error: Optional[str] = None


class ControlSnapshot(BaseModel):
    session_id: str
    match_id: str
    clock: ClockView
    stats: Dict[str, Any]
    kd_ratio: Dict[str, float]
    autosave: AutosaveView
    details_version: Optional[int] = None
    opened_at: datetime


class SaveResult(BaseModel):
    saved: bool
    match_id: str
    details_version: int
    match_details: Dict[str, Any]


class ChatSend(BaseModel):
    message: str = Field(..., min_length=1, max_length=500)
    username: str = "Admin"
    user_id: Optional[str] = None


class ChatTranscript(BaseModel):
    room_id: str
    stream_id: str
    messages: List[Dict[str, Any]]
    total: int
    stale: bool
    last_error: Optional[str] = None
