"""WebSocket endpoint carrying the real-time event contract."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import decode_token
from app.database import get_db
from app.logging_config import get_logger
from app.models.api.events import (
    AuthenticatedEvent,
    ConversationJoinedEvent,
    ErrorEvent,
    JoinConversationEvent,
    LeaveConversationEvent,
    MarkReadEvent,
    MessageSentEvent,
    PresenceUpdateEvent,
    SendMessageEvent,
    SendTypingEvent,
    TypingEvent,
    parse_client_event,
)
from app.models.api.messages import SendMessageRequest
from app.realtime.connection_manager import ConnectionManager, get_connection_manager
from app.repositories.participant_repository import ParticipantRepository
from app.services.mark_read_service import MarkReadService
from app.services.send_message_service import SendMessageService

logger = get_logger(__name__)

router = APIRouter()

# Application close code for a missing or rejected token
CLOSE_UNAUTHORIZED = 4401


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
) -> None:
    """
    Authenticated real-time channel.

    The token travels as the ``token`` query parameter. After the
    ``authenticated`` event the client may join conversation rooms, send
    messages, typing signals and read receipts.
    """
    user_id = decode_token(token) if token else None
    if not user_id:
        await websocket.close(code=CLOSE_UNAUTHORIZED)
        return

    came_online = await connections.connect(user_id, websocket)
    await connections.send(websocket, AuthenticatedEvent(user_id=user_id))
    if came_online:
        await connections.broadcast(
            PresenceUpdateEvent(user_id=user_id, status="online"), exclude=websocket
        )

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                event = parse_client_event(raw)
            except ValueError as e:
                await connections.send(websocket, ErrorEvent(message=f"Invalid event: {e}"))
                continue
            await handle_client_event(event, user_id, websocket, db, connections)
    except WebSocketDisconnect:
        pass
    finally:
        if connections.disconnect(user_id, websocket):
            await connections.broadcast(
                PresenceUpdateEvent(user_id=user_id, status="offline")
            )


def room_key(conversation_id: str) -> str:
    """Canonical room name, matching the ids services deliver to."""
    return str(UUID(conversation_id))


async def handle_client_event(
    event,
    user_id: str,
    websocket: WebSocket,
    db: AsyncSession,
    connections: ConnectionManager,
) -> None:
    """Run one validated client event, reporting failures back as ``error``."""
    client_id = getattr(event, "client_id", None)
    try:
        if isinstance(event, JoinConversationEvent):
            conversation_id = UUID(event.conversation_id)
            participants = ParticipantRepository(db)
            if not await participants.get_active(conversation_id, user_id):
                raise HTTPException(status_code=404, detail="Conversation not found")
            room = room_key(event.conversation_id)
            connections.join(room, websocket)

            members = await participants.get_by_conversation(conversation_id)
            await connections.send(
                websocket,
                ConversationJoinedEvent(
                    conversation_id=room,
                    online_participants=[
                        p.user_id for p in members if connections.is_online(p.user_id)
                    ],
                ),
            )

        elif isinstance(event, LeaveConversationEvent):
            connections.leave(room_key(event.conversation_id), websocket)

        elif isinstance(event, SendMessageEvent):
            service = SendMessageService(db, connections)
            message = await service.send_message(
                UUID(event.conversation_id),
                user_id,
                SendMessageRequest(content=event.content, client_id=event.client_id),
            )
            if event.client_id:
                await connections.send(
                    websocket,
                    MessageSentEvent(
                        client_id=event.client_id,
                        message_id=str(message.id),
                        created_at=message.created_at,
                    ),
                )

        elif isinstance(event, SendTypingEvent):
            room = room_key(event.conversation_id)
            # Typing is only relayed from sockets that joined the room
            if not connections.in_room(room, websocket):
                return
            await connections.deliver(
                TypingEvent(
                    conversation_id=room,
                    user_id=user_id,
                    is_typing=event.is_typing,
                ),
                conversation_id=room,
                exclude=websocket,
            )

        elif isinstance(event, MarkReadEvent):
            service = MarkReadService(db, connections)
            await service.mark_read(
                UUID(event.conversation_id), user_id, event.message_ids
            )

    except HTTPException as e:
        await connections.send(websocket, ErrorEvent(message=str(e.detail), client_id=client_id))
    except ValueError as e:
        await connections.send(websocket, ErrorEvent(message=str(e), client_id=client_id))
    except Exception:
        logger.exception("Failed to handle %s from %s", event.type, user_id)
        await connections.send(
            websocket, ErrorEvent(message="Internal server error", client_id=client_id)
        )
