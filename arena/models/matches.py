from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils import new_id, utcnow


MATCH_STATUSES = ("scheduled", "in_progress", "live", "completed", "cancelled", "disputed")


class Match(Base):
    __tablename__ = "matches"

    id = Column(String(64), primary_key=True, default=new_id)
    tournament_id = Column(String(64), ForeignKey("tournaments.id", ondelete="SET NULL"))
    match_code = Column(String(32))
    player1_id = Column(String(64))
    player2_id = Column(String(64))
    game = Column(String(64))
    status = Column(String(20), nullable=False, default="scheduled")
    scheduled_time = Column(DateTime(timezone=True))
    # Open JSON object: kills/deaths, time_remaining, current_round, notes, last_updated
    match_details = Column(JSON, default=dict)
    details_version = Column(Integer, nullable=False, default=0)
    player1_score = Column(Integer)
    player2_score = Column(Integer)
    winner_id = Column(String(64))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    tournament = relationship("Tournament", back_populates="matches")
