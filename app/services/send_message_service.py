from typing import Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.logging_config import get_logger
from app.models.api.events import MessageNewEvent
from app.models.api.messages import MessageResponse, SendMessageRequest
from app.realtime.connection_manager import ConnectionManager
from app.repositories.conversation_repository import ConversationRepository
from app.repositories.message_repository import MessageRepository
from app.repositories.participant_repository import ParticipantRepository

logger = get_logger(__name__)


class SendMessageService:
    """Service for posting messages into a conversation."""

    def __init__(self, db: AsyncSession, connections: Optional[ConnectionManager] = None):
        self.db = db
        self.connections = connections
        self.message_repo = MessageRepository(db)
        self.conversation_repo = ConversationRepository(db)
        self.participant_repo = ParticipantRepository(db)

    async def send_message(
        self, conversation_id: UUID, sender_id: str, request: SendMessageRequest
    ) -> MessageResponse:
        """
        Main business logic for sending a message:
        1. Verify the sender is an active participant
        2. Save message to database
        3. Bump conversation activity and other participants' unread counts
        4. Push message:new to the room and to every participant's sockets
        5. Return response
        """
        # Step 1: Verify participation
        participant = await self.participant_repo.get_active(conversation_id, sender_id)
        if not participant:
            raise HTTPException(status_code=404, detail="Conversation not found")

        # Step 2: Save to database
        message = await self.message_repo.create_message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=request.content,
            message_type=request.message_type,
        )

        # Step 3: Conversation bookkeeping
        await self.conversation_repo.touch(conversation_id)
        await self.participant_repo.increment_unread(conversation_id, sender_id)

        # Step 4: Real-time fan-out
        await self._publish(message, request.client_id)

        logger.debug(
            "Message %s stored in conversation %s", message.id, conversation_id
        )
        return message

    async def _publish(self, message: MessageResponse, client_id: Optional[str]) -> None:
        if self.connections is None:
            return

        participants = await self.participant_repo.get_by_conversation(
            message.conversation_id
        )
        event = MessageNewEvent(
            id=str(message.id),
            conversation_id=str(message.conversation_id),
            sender_id=message.sender_id,
            content=message.content,
            created_at=message.created_at,
            is_read=message.is_read,
            client_id=client_id,
        )
        await self.connections.deliver(
            event,
            conversation_id=str(message.conversation_id),
            user_ids=[p.user_id for p in participants],
        )
