import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.db.conversation_model import utcnow


class ParticipantModel(Base):
    """SQLAlchemy model for participants table."""

    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint(
            "conversation_id", "user_id", name="uq_participant_conversation_user"
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid, ForeignKey("conversations.id"), nullable=False)
    user_id = Column(String(64), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="member")
    unread_count = Column(Integer, nullable=False, default=0)
    last_read_at = Column(DateTime(timezone=True))
    has_left = Column(Boolean, nullable=False, default=False)
    left_at = Column(DateTime(timezone=True))
    is_muted = Column(Boolean, nullable=False, default=False)
    muted_until = Column(DateTime(timezone=True))  # NULL while muted means indefinitely
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    conversation = relationship("ConversationModel", back_populates="participants")

    # role IN ('admin', 'member')
