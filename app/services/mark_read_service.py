from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.api.events import MessageReadEvent
from app.models.api.messages import MarkReadResponse
from app.realtime.connection_manager import ConnectionManager
from app.repositories.message_repository import MessageRepository
from app.repositories.participant_repository import ParticipantRepository


class MarkReadService:
    """Service for read receipts."""

    def __init__(self, db: AsyncSession, connections: Optional[ConnectionManager] = None):
        self.db = db
        self.connections = connections
        self.message_repo = MessageRepository(db)
        self.participant_repo = ParticipantRepository(db)

    async def mark_read(
        self, conversation_id: UUID, user_id: str, message_ids: Optional[List[str]] = None
    ) -> MarkReadResponse:
        """
        Mark messages read on behalf of ``user_id``:

        1. Verify the user is an active participant
        2. Flip unread messages from other senders (all of them, or only
           ``message_ids``) to read
        3. Reset the user's unread count
        4. Tell the room which messages were read
        """
        ids = self._parse_ids(message_ids or [])

        participant = await self.participant_repo.get_active(conversation_id, user_id)
        if not participant:
            raise HTTPException(status_code=404, detail="Conversation not found")

        changed = await self.message_repo.mark_read(conversation_id, user_id, ids)
        await self.participant_repo.reset_unread(conversation_id, user_id)

        if changed and self.connections is not None:
            participants = await self.participant_repo.get_by_conversation(
                conversation_id
            )
            await self.connections.deliver(
                MessageReadEvent(
                    conversation_id=str(conversation_id),
                    user_id=user_id,
                    message_ids=[str(message_id) for message_id in changed],
                ),
                conversation_id=str(conversation_id),
                user_ids=[p.user_id for p in participants if p.user_id != user_id],
            )

        return MarkReadResponse(updated=len(changed), message_ids=changed)

    def _parse_ids(self, message_ids: List[str]) -> List[UUID]:
        parsed = []
        for message_id in message_ids:
            try:
                parsed.append(UUID(str(message_id)))
            except ValueError as e:
                raise ValueError(f"Invalid message id: {message_id}") from e
        return parsed
