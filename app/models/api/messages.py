from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import Field, field_validator

from app.models.api.base import CamelModel


class SendMessageRequest(CamelModel):
    """Request model for sending a message."""

    content: str = Field(..., description="Message text", max_length=10000)
    # 'system' messages are only written by the server
    message_type: Literal["text"] = Field(default="text", description="Always 'text'")
    client_id: Optional[str] = Field(
        default=None,
        description="Temporary id of the optimistic message, echoed on message:new",
        max_length=64,
    )

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be empty")
        return value


class MessageResponse(CamelModel):
    """Response model for message data."""

    id: UUID
    conversation_id: UUID
    sender_id: str
    content: str
    message_type: str = "text"
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime


class SendMessageResponse(CamelModel):
    message: MessageResponse


class MarkReadRequest(CamelModel):
    """Specific message ids to mark read; empty means every unread message."""

    message_ids: List[str] = Field(default_factory=list)


class MarkReadResponse(CamelModel):
    success: bool = True
    updated: int
    message_ids: List[UUID]


class PresenceStatus(CamelModel):
    online: bool
    last_seen: Optional[datetime] = None


class PresenceResponse(CamelModel):
    presence: Dict[str, PresenceStatus]
