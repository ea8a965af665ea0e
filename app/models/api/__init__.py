# API models for request/response contracts
from .conversations import (
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationResponse,
    LastMessageSnapshot,
    StartConversationRequest,
    StartConversationResponse,
    UnreadCountResponse,
)
from .messages import (
    MarkReadRequest,
    MarkReadResponse,
    MessageResponse,
    PresenceResponse,
    PresenceStatus,
    SendMessageRequest,
    SendMessageResponse,
)
from .participants import ParticipantResponse

__all__ = [
    "ConversationDetailResponse",
    "ConversationListResponse",
    "ConversationResponse",
    "LastMessageSnapshot",
    "StartConversationRequest",
    "StartConversationResponse",
    "UnreadCountResponse",
    "MarkReadRequest",
    "MarkReadResponse",
    "MessageResponse",
    "PresenceResponse",
    "PresenceStatus",
    "SendMessageRequest",
    "SendMessageResponse",
    "ParticipantResponse",
]
