from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime


class MatchBase(BaseModel):
    tournament_id: Optional[str] = None
    match_code: Optional[str] = None
    player1_id: Optional[str] = None
    player2_id: Optional[str] = None
    game: Optional[str] = None
    scheduled_time: Optional[datetime] = None


class MatchCreate(MatchBase):
    id: Optional[str] = None
    match_details: Dict[str, Any] = {}


class MatchResponse(MatchBase):
    id: str
    status: str
    match_details: Optional[Dict[str, Any]] = None
    details_version: int = 0
    player1_score: Optional[int] = None
    player2_score: Optional[int] = None
    winner_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MatchComplete(BaseModel):
    player1_score: Optional[int] = Field(None, ge=0)
    player2_score: Optional[int] = Field(None, ge=0)


class LiveStatsPayload(BaseModel):
    """Stat fields an operator can change; omitted fields are left alone."""
    player1_kills: Optional[int] = Field(None, ge=0)
    player1_deaths: Optional[int] = Field(None, ge=0)
    player2_kills: Optional[int] = Field(None, ge=0)
    player2_deaths: Optional[int] = Field(None, ge=0)
    time_remaining: Optional[str] = None
    current_round: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None


class StatsSave(LiveStatsPayload):
    expected_version: Optional[int] = None


class CountdownResponse(BaseModel):
    target: Optional[datetime] = None
    days: int
    hours: int
    minutes: int
    seconds: int
    total_seconds: int
    expired: bool
