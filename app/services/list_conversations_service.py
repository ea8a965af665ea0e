from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.api.conversations import ConversationListResponse
from app.repositories.conversation_repository import ConversationRepository
from app.repositories.participant_repository import ParticipantRepository


class ListConversationsService:
    """Service for listing a user's conversations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.conversation_repo = ConversationRepository(db)
        self.participant_repo = ParticipantRepository(db)

    async def list_conversations(
        self,
        user_id: str,
        limit: Optional[int] = 50,
        offset: Optional[int] = 0,
    ) -> ConversationListResponse:
        """
        List conversations the user takes part in:

        1. Retrieve active conversations, newest activity first
        2. Attach last message snapshot and the user's unread count
        3. Add the total unread count across all of them
        """
        # Validate parameters
        if limit is not None and (limit <= 0 or limit > 200):
            raise ValueError("Limit must be between 1 and 200")
        if offset is not None and offset < 0:
            raise ValueError("Offset must be non-negative")

        # Use default values if None
        limit = limit or 50
        offset = offset or 0

        conversations = await self.conversation_repo.list_for_user(
            user_id, limit=limit, offset=offset
        )
        total_unread = await self.participant_repo.total_unread(user_id)

        return ConversationListResponse(
            conversations=conversations, total_unread=total_unread
        )

    async def get_unread_count(self, user_id: str) -> int:
        """Total unread messages across the user's active conversations."""
        return await self.participant_repo.total_unread(user_id)
