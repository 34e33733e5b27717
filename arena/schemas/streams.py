from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class StreamBase(BaseModel):
    title: str
    stream_url: str
    description: Optional[str] = None


class StreamCreate(StreamBase):
    created_by: Optional[str] = None


class StreamUpdate(BaseModel):
    title: Optional[str] = None
    stream_url: Optional[str] = None
    description: Optional[str] = None


class StreamResponse(StreamBase):
    id: str
    is_active: bool = False
    viewer_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ChatMessageCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    message: str = Field(..., min_length=1, max_length=500)
    user_id: Optional[str] = None


class ChatMessageResponse(BaseModel):
    id: str
    stream_id: str
    user_id: Optional[str] = None
    username: str
    message: str
    is_admin: bool = False
    created_at: datetime

    class Config:
        from_attributes = True
