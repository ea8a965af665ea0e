from datetime import datetime
from typing import Optional
from uuid import UUID

from app.models.api.base import CamelModel


class ParticipantResponse(CamelModel):
    """Response model for participant data."""

    id: UUID
    conversation_id: UUID
    user_id: str
    role: str  # 'admin' or 'member'
    unread_count: int = 0
    last_read_at: Optional[datetime] = None
    has_left: bool = False
    is_muted: bool = False
    muted_until: Optional[datetime] = None
    created_at: datetime
