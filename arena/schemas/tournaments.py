from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class TournamentBase(BaseModel):
    name: str
    game: Optional[str] = None
    start_date: Optional[datetime] = None
    room_code: Optional[str] = None
    room_password: Optional[str] = None
    map_name: Optional[str] = None
    total_rounds: int = Field(1, ge=1)


class TournamentCreate(TournamentBase):
    id: Optional[str] = None


class TournamentUpdate(BaseModel):
    name: Optional[str] = None
    start_date: Optional[datetime] = None
    room_code: Optional[str] = None
    room_password: Optional[str] = None
    map_name: Optional[str] = None
    total_rounds: Optional[int] = Field(None, ge=1)


class TournamentResponse(TournamentBase):
    id: str
    status: str
    current_round: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ParticipantCreate(BaseModel):
    user_id: str
    username: Optional[str] = None


class ParticipantResponse(BaseModel):
    id: str
    tournament_id: str
    user_id: str
    username: Optional[str] = None
    status: str
    total_kills: int = 0
    placement: Optional[int] = None
    score: int = 0
    joined_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LeaderboardEntry(ParticipantResponse):
    rank: int


class RoundResponse(BaseModel):
    id: str
    tournament_id: str
    round_number: int
    status: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    class Config:
        from_attributes = True


class KillCreate(BaseModel):
    killer_id: str = Field(..., description="User id of the killing participant")
    victim_id: str = Field(..., description="User id of the eliminated participant")
    weapon: Optional[str] = None
    headshot: bool = False


class KillResponse(BaseModel):
    id: str
    tournament_id: str
    round_number: int
    killer_id: str
    victim_id: str
    killer_username: Optional[str] = None
    victim_username: Optional[str] = None
    weapon: Optional[str] = None
    headshot: bool = False
    kill_time: Optional[datetime] = None

    class Config:
        from_attributes = True
