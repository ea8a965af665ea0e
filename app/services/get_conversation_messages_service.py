from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import MESSAGES_PAGE_LIMIT
from app.models.api.conversations import ConversationDetailResponse
from app.repositories.conversation_repository import ConversationRepository
from app.repositories.message_repository import MessageRepository
from app.repositories.participant_repository import ParticipantRepository


class GetConversationMessagesService:
    """Service for retrieving a conversation together with its message history."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.conversation_repo = ConversationRepository(db)
        self.message_repo = MessageRepository(db)
        self.participant_repo = ParticipantRepository(db)

    async def get_conversation(
        self,
        conversation_id: UUID,
        user_id: str,
        limit: Optional[int] = None,
        before: Optional[datetime] = None,
    ) -> ConversationDetailResponse:
        """
        Get a conversation for one of its participants:

        1. Verify the user is an active participant
        2. Retrieve one page of messages, oldest first
        3. Reset the user's unread count
        """
        # Validate parameters
        if limit is not None and (limit <= 0 or limit > 200):
            raise HTTPException(
                status_code=400, detail="Limit must be between 1 and 200"
            )
        limit = limit or MESSAGES_PAGE_LIMIT

        # Step 1: Verify conversation exists and the caller belongs to it
        conversation = await self.conversation_repo.get_for_participant(
            conversation_id, user_id
        )
        if not conversation:
            raise HTTPException(status_code=404, detail="Conversation not found")

        # Step 2: Get messages from repository
        messages, has_more = await self.message_repo.get_page(
            conversation_id, limit=limit, before=before
        )

        # Step 3: Opening a conversation reads it
        await self.participant_repo.reset_unread(conversation_id, user_id)
        conversation.unread_count = 0

        return ConversationDetailResponse(
            conversation=conversation, messages=messages, has_more=has_more
        )
