# Export all models
from .api import (
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationResponse,
    MarkReadRequest,
    MarkReadResponse,
    MessageResponse,
    ParticipantResponse,
    SendMessageRequest,
    SendMessageResponse,
    StartConversationRequest,
)
from .db import (
    ConversationModel,
    MessageModel,
    ParticipantModel,
)

__all__ = [
    # API models
    "ConversationDetailResponse",
    "ConversationListResponse",
    "ConversationResponse",
    "MarkReadRequest",
    "MarkReadResponse",
    "MessageResponse",
    "ParticipantResponse",
    "SendMessageRequest",
    "SendMessageResponse",
    "StartConversationRequest",
    # DB models
    "ConversationModel",
    "MessageModel",
    "ParticipantModel",
]
