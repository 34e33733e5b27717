from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils import new_id, utcnow


class LiveStream(Base):
    __tablename__ = "live_streams"

    id = Column(String(64), primary_key=True, default=new_id)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    stream_url = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    viewer_count = Column(Integer, nullable=False, default=0)
    created_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    messages = relationship("LiveChatMessage", back_populates="stream", cascade="all, delete-orphan")


class LiveChatMessage(Base):
    __tablename__ = "live_chat_messages"

    id = Column(String(64), primary_key=True, default=new_id)
    stream_id = Column(String(64), ForeignKey("live_streams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64))
    username = Column(String(64), nullable=False)
    message = Column(Text, nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_chat_stream_created", "stream_id", "created_at"),
    )

    # Relationships
    stream = relationship("LiveStream", back_populates="messages")
