from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.logging_config import get_logger
from app.models.api.conversations import MuteConversationResponse
from app.repositories.participant_repository import ParticipantRepository

logger = get_logger(__name__)


class MuteConversationService:
    """Service for muting and unmuting a conversation for one participant.

    Muting is private to the caller. It changes nothing for the other
    participants and does not stop unread counting.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.participant_repo = ParticipantRepository(db)

    async def mute(
        self,
        conversation_id: UUID,
        user_id: str,
        duration_hours: Optional[float] = None,
    ) -> MuteConversationResponse:
        """
        Mute a conversation.

        Args:
            conversation_id: The conversation to mute
            user_id: The caller
            duration_hours: Length of the mute; None mutes until unmuted

        Returns:
            MuteConversationResponse: The new mute state

        Raises:
            HTTPException: 404 if the caller is not an active participant
        """
        muted_until = (
            datetime.now(timezone.utc) + timedelta(hours=duration_hours)
            if duration_hours
            else None
        )
        updated = await self.participant_repo.set_muted(
            conversation_id, user_id, True, muted_until
        )
        if not updated:
            raise HTTPException(status_code=404, detail="Conversation not found")

        logger.debug(
            "User %s muted %s until %s", user_id, conversation_id, muted_until or "unmuted"
        )
        return MuteConversationResponse(is_muted=True, muted_until=muted_until)

    async def unmute(
        self, conversation_id: UUID, user_id: str
    ) -> MuteConversationResponse:
        updated = await self.participant_repo.set_muted(conversation_id, user_id, False)
        if not updated:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return MuteConversationResponse(is_muted=False)
