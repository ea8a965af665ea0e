from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from app.models.api.base import CamelModel
from app.models.api.messages import MessageResponse


class LastMessageSnapshot(CamelModel):
    """The newest message of a conversation, as shown in conversation lists."""

    id: UUID
    sender_id: str
    content: str
    created_at: datetime


class ConversationResponse(CamelModel):
    """Response model for conversation data, seen from one participant."""

    id: UUID
    type: str = "direct"
    name: Optional[str] = None
    participants: List[str]  # user ids of active participants
    last_message: Optional[LastMessageSnapshot] = None
    unread_count: int = 0
    is_muted: bool = False
    muted_until: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ConversationListResponse(CamelModel):
    conversations: List[ConversationResponse]
    total_unread: int


class ConversationDetailResponse(CamelModel):
    conversation: ConversationResponse
    messages: List[MessageResponse]
    has_more: bool


class StartConversationRequest(CamelModel):
    """Request model for starting a conversation."""

    participant_ids: List[str] = Field(..., min_length=1)
    type: str = Field(default="direct", description="'direct' or 'group'")
    name: Optional[str] = Field(default=None, max_length=255)
    initial_message: Optional[str] = Field(default=None, max_length=10000)


class StartConversationResponse(CamelModel):
    conversation: ConversationResponse
    is_existing: bool


class UnreadCountResponse(CamelModel):
    unread_count: int


class MuteConversationRequest(CamelModel):
    """Mute for ``duration`` hours, or until unmuted when it is omitted."""

    duration: Optional[float] = Field(default=None, gt=0, le=24 * 365)


class MuteConversationResponse(CamelModel):
    success: bool = True
    is_muted: bool
    muted_until: Optional[datetime] = None
