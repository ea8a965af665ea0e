from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.participant_repository import ParticipantRepository


class LeaveConversationService:
    """Service for leaving a conversation. Nothing is deleted."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.participant_repo = ParticipantRepository(db)

    async def leave_conversation(self, conversation_id: UUID, user_id: str) -> None:
        left = await self.participant_repo.mark_left(conversation_id, user_id)
        if not left:
            raise HTTPException(status_code=404, detail="Conversation not found")
