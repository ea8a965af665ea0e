import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Uuid
from sqlalchemy.orm import relationship

from app.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationModel(Base):
    """SQLAlchemy model for conversations table."""

    __tablename__ = "conversations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(String(20), nullable=False, default="direct")
    name = Column(String(255))
    creator_id = Column(String(64))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    messages = relationship(
        "MessageModel",
        back_populates="conversation",
        order_by="MessageModel.created_at",
    )
    participants = relationship("ParticipantModel", back_populates="conversation")

    # Conversations are never deleted; participants leave instead
    # type IN ('direct', 'group', 'mentorship', 'support')
