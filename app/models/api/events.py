"""Versioned real-time event contract.

Every frame on the WebSocket is a JSON object ``{"v": 1, "type": ..., ...}``.
Server and client events are separate tagged unions keyed on ``type``; a frame
with an unknown type, another version or missing fields fails validation at
the boundary instead of reaching handlers.
"""

import json
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from app.models.api.base import CamelModel

EVENT_VERSION = 1


class Event(CamelModel):
    v: Literal[1] = EVENT_VERSION

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# Server -> client


class AuthenticatedEvent(Event):
    type: Literal["authenticated"] = "authenticated"
    user_id: str


class MessageNewEvent(Event):
    type: Literal["message:new"] = "message:new"
    id: str
    conversation_id: str
    sender_id: str
    content: str
    created_at: datetime
    is_read: bool = False
    client_id: Optional[str] = None


class MessageSentEvent(Event):
    """Acknowledges a socket-sent message to its sender."""

    type: Literal["message:sent"] = "message:sent"
    client_id: str
    message_id: str
    created_at: datetime


class TypingEvent(Event):
    type: Literal["message:typing"] = "message:typing"
    conversation_id: str
    user_id: str
    is_typing: bool


class PresenceUpdateEvent(Event):
    type: Literal["presence:update"] = "presence:update"
    user_id: str
    status: Literal["online", "offline"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MessageReadEvent(Event):
    type: Literal["message:read"] = "message:read"
    conversation_id: str
    user_id: str
    message_ids: List[str]


class ConversationJoinedEvent(Event):
    """Answers a room join with the participants currently online."""

    type: Literal["conversation:joined"] = "conversation:joined"
    conversation_id: str
    online_participants: List[str] = Field(default_factory=list)


class ErrorEvent(Event):
    type: Literal["error"] = "error"
    message: str
    client_id: Optional[str] = None


ServerEvent = Annotated[
    Union[
        AuthenticatedEvent,
        MessageNewEvent,
        MessageSentEvent,
        TypingEvent,
        PresenceUpdateEvent,
        MessageReadEvent,
        ConversationJoinedEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]


# Client -> server


class JoinConversationEvent(Event):
    type: Literal["conversation:join"] = "conversation:join"
    conversation_id: str


class LeaveConversationEvent(Event):
    type: Literal["conversation:leave"] = "conversation:leave"
    conversation_id: str


class SendMessageEvent(Event):
    type: Literal["message:send"] = "message:send"
    conversation_id: str
    content: str = Field(..., min_length=1, max_length=10000)
    client_id: Optional[str] = None


class SendTypingEvent(Event):
    type: Literal["message:typing"] = "message:typing"
    conversation_id: str
    is_typing: bool


class MarkReadEvent(Event):
    type: Literal["message:read"] = "message:read"
    conversation_id: str
    message_ids: List[str] = Field(default_factory=list)


ClientEvent = Annotated[
    Union[
        JoinConversationEvent,
        LeaveConversationEvent,
        SendMessageEvent,
        SendTypingEvent,
        MarkReadEvent,
    ],
    Field(discriminator="type"),
]

_server_events: TypeAdapter = TypeAdapter(ServerEvent)
_client_events: TypeAdapter = TypeAdapter(ClientEvent)


def _load(raw: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Frame is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError("Frame must be a JSON object")
    return raw


def parse_server_event(raw: Union[str, bytes, Dict[str, Any]]) -> Any:
    """Validate a frame sent by the server. Raises ``ValueError`` if malformed."""
    return _server_events.validate_python(_load(raw))


def parse_client_event(raw: Union[str, bytes, Dict[str, Any]]) -> Any:
    """Validate a frame sent by a client. Raises ``ValueError`` if malformed."""
    return _client_events.validate_python(_load(raw))
