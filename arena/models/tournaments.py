from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils import new_id, utcnow


TOURNAMENT_STATUSES = ("upcoming", "ongoing", "completed", "cancelled")
ROUND_STATUSES = ("in_progress", "completed")


class Tournament(Base):
    __tablename__ = "tournaments"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(128), nullable=False)
    game = Column(String(64))
    status = Column(String(20), nullable=False, default="upcoming")
    start_date = Column(DateTime(timezone=True))
    room_code = Column(String(64))
    room_password = Column(String(64))
    map_name = Column(String(64))
    current_round = Column(Integer, nullable=False, default=0)
    total_rounds = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    matches = relationship("Match", back_populates="tournament")
    participants = relationship("TournamentParticipant", back_populates="tournament", cascade="all, delete-orphan")
    rounds = relationship("TournamentRound", back_populates="tournament", cascade="all, delete-orphan")
    kills = relationship("TournamentKill", back_populates="tournament", cascade="all, delete-orphan")


class TournamentParticipant(Base):
    __tablename__ = "tournament_participants"

    id = Column(String(64), primary_key=True, default=new_id)
    tournament_id = Column(String(64), ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), nullable=False)
    username = Column(String(64))
    status = Column(String(20), nullable=False, default="registered")
    total_kills = Column(Integer, nullable=False, default=0)
    placement = Column(Integer)
    score = Column(Integer, nullable=False, default=0)
    joined_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("tournament_id", "user_id", name="uq_participant_tournament_user"),
    )

    tournament = relationship("Tournament", back_populates="participants")


class TournamentRound(Base):
    __tablename__ = "tournament_rounds"

    id = Column(String(64), primary_key=True, default=new_id)
    tournament_id = Column(String(64), ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    round_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="in_progress")
    start_time = Column(DateTime(timezone=True), default=utcnow)
    end_time = Column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("tournament_id", "round_number", name="uq_round_tournament_number"),
    )

    tournament = relationship("Tournament", back_populates="rounds")


class TournamentKill(Base):
    __tablename__ = "tournament_kills"

    id = Column(String(64), primary_key=True, default=new_id)
    tournament_id = Column(String(64), ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    round_number = Column(Integer, nullable=False, default=1)
    # Participant user ids
    killer_id = Column(String(64), nullable=False)
    victim_id = Column(String(64), nullable=False)
    weapon = Column(String(64))
    headshot = Column(Boolean, nullable=False, default=False)
    kill_time = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_kills_tournament_time", "tournament_id", "kill_time"),
    )

    tournament = relationship("Tournament", back_populates="kills")
