from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user_id
from app.database import get_db
from app.logging_config import get_logger
from app.models.api.messages import MarkReadRequest, MarkReadResponse, PresenceResponse
from app.realtime.connection_manager import ConnectionManager, get_connection_manager
from app.services.mark_read_service import MarkReadService

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/conversations/{conversation_id}/read", response_model=MarkReadResponse
)
async def mark_read(
    conversation_id: UUID,
    request: Optional[MarkReadRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
) -> MarkReadResponse:
    """
    Mark messages as read.

    With an empty ``messageIds`` every unread message from other participants
    is marked. Readers are pushed a message:read event.
    """
    message_ids = request.message_ids if request else []
    try:
        service = MarkReadService(db, connections)
        return await service.mark_read(conversation_id, user_id, message_ids)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Failed to mark conversation %s read", conversation_id)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/presence", response_model=PresenceResponse)
async def get_presence(
    user_ids: str = Query(
        ..., alias="userIds", description="Comma separated user ids"
    ),
    user_id: str = Depends(get_current_user_id),
    connections: ConnectionManager = Depends(get_connection_manager),
) -> PresenceResponse:
    """Online status and last seen time of the given users."""
    ids = [uid.strip() for uid in user_ids.split(",") if uid.strip()]
    if not ids:
        raise HTTPException(status_code=400, detail="userIds must not be empty")
    return PresenceResponse(presence=connections.presence(ids))
