from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user_id
from app.database import get_db
from app.logging_config import get_logger
from app.models.api.conversations import (
    ConversationDetailResponse,
    ConversationListResponse,
    MuteConversationRequest,
    MuteConversationResponse,
    StartConversationRequest,
    StartConversationResponse,
    UnreadCountResponse,
)
from app.models.api.messages import SendMessageRequest, SendMessageResponse
from app.realtime.connection_manager import ConnectionManager, get_connection_manager
from app.services.get_conversation_messages_service import (
    GetConversationMessagesService,
)
from app.services.leave_conversation_service import LeaveConversationService
from app.services.list_conversations_service import ListConversationsService
from app.services.mute_conversation_service import MuteConversationService
from app.services.send_message_service import SendMessageService
from app.services.start_conversation_service import StartConversationService

logger = get_logger(__name__)

router = APIRouter()


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    limit: Optional[int] = Query(
        50, description="Maximum number of conversations to return", ge=1, le=200
    ),
    offset: Optional[int] = Query(
        0, description="Number of conversations to skip", ge=0
    ),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ConversationListResponse:
    """
    List the caller's conversations, most recently active first.

    Query parameters:
    - limit: Maximum number of conversations to return (default: 50, max: 200)
    - offset: Number of conversations to skip (default: 0)
    """
    try:
        service = ListConversationsService(db)
        return await service.list_conversations(user_id, limit=limit, offset=offset)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Failed to list conversations for %s", user_id)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/conversations", response_model=StartConversationResponse)
async def start_conversation(
    request: StartConversationRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
) -> StartConversationResponse:
    """Start a conversation, reusing the existing direct one when there is one."""
    try:
        service = StartConversationService(db, connections)
        return await service.start_conversation(user_id, request)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Failed to start conversation for %s", user_id)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get(
    "/conversations/{conversation_id}", response_model=ConversationDetailResponse
)
async def get_conversation(
    conversation_id: UUID,
    limit: Optional[int] = Query(
        None, description="Maximum number of messages to return", ge=1, le=200
    ),
    before: Optional[datetime] = Query(
        None, description="Only return messages created before this instant"
    ),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ConversationDetailResponse:
    """
    Get a conversation with its newest page of messages, oldest first.

    Opening a conversation resets the caller's unread count.

    Path parameters:
    - conversation_id: UUID of the conversation

    Query parameters:
    - limit: Page size (default: 50, max: 200)
    - before: Page backwards from this timestamp
    """
    try:
        service = GetConversationMessagesService(db)
        return await service.get_conversation(
            conversation_id, user_id, limit=limit, before=before
        )
    except HTTPException:
        # Re-raise HTTP exceptions from the service
        raise
    except Exception:
        logger.exception("Failed to load conversation %s", conversation_id)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=SendMessageResponse,
    status_code=201,
)
async def send_message(
    conversation_id: UUID,
    request: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
) -> SendMessageResponse:
    """Send a message. Connected participants receive it as message:new."""
    try:
        service = SendMessageService(db, connections)
        message = await service.send_message(conversation_id, user_id, request)
        return SendMessageResponse(message=message)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Failed to send message to %s", conversation_id)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/conversations/{conversation_id}", status_code=204)
async def leave_conversation(
    conversation_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Leave a conversation. History stays for the other participants."""
    try:
        service = LeaveConversationService(db)
        await service.leave_conversation(conversation_id, user_id)
        return Response(status_code=204)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to leave conversation %s", conversation_id)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post(
    "/conversations/{conversation_id}/mute", response_model=MuteConversationResponse
)
async def mute_conversation(
    conversation_id: UUID,
    request: Optional[MuteConversationRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MuteConversationResponse:
    """
    Mute a conversation for the caller.

    Body (optional):
    - duration: Hours to stay muted; omit to mute until unmuted
    """
    try:
        service = MuteConversationService(db)
        duration = request.duration if request else None
        return await service.mute(conversation_id, user_id, duration)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to mute conversation %s", conversation_id)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete(
    "/conversations/{conversation_id}/mute", response_model=MuteConversationResponse
)
async def unmute_conversation(
    conversation_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MuteConversationResponse:
    """Unmute a conversation for the caller."""
    try:
        service = MuteConversationService(db)
        return await service.unmute(conversation_id, user_id)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to unmute conversation %s", conversation_id)
        raise HTTPException(status_code=500, detail="Internal server error")

@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> UnreadCountResponse:
    """Total unread messages across the caller's conversations."""
    try:
        service = ListConversationsService(db)
        return UnreadCountResponse(unread_count=await service.get_unread_count(user_id))
    except Exception:
        logger.exception("Failed to count unread messages for %s", user_id)
        raise HTTPException(status_code=500, detail="Internal server error")
