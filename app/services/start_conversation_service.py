from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.api.conversations import (
    StartConversationRequest,
    StartConversationResponse,
)
from app.models.api.messages import SendMessageRequest
from app.realtime.connection_manager import ConnectionManager
from app.repositories.conversation_repository import ConversationRepository
from app.repositories.participant_repository import ParticipantRepository
from app.services.send_message_service import SendMessageService


class StartConversationService:
    """Service for opening direct and group conversations."""

    def __init__(self, db: AsyncSession, connections: Optional[ConnectionManager] = None):
        self.db = db
        self.connections = connections
        self.conversation_repo = ConversationRepository(db)
        self.participant_repo = ParticipantRepository(db)

    async def start_conversation(
        self, user_id: str, request: StartConversationRequest
    ) -> StartConversationResponse:
        """
        Start a conversation:

        1. Validate participants
        2. Reuse the existing direct conversation between two users, if any
        3. Otherwise create the conversation with the caller as admin
        4. Post the optional initial message
        """
        others = [pid for pid in dict.fromkeys(request.participant_ids) if pid != user_id]
        if not others:
            raise ValueError("participantIds must name at least one other user")
        if request.type not in ("direct", "group"):
            raise ValueError("type must be 'direct' or 'group'")
        if request.type == "direct" and len(others) != 1:
            raise ValueError("Direct conversations have exactly one other participant")

        is_existing = False
        conversation = None
        if request.type == "direct":
            conversation = await self.conversation_repo.find_direct(user_id, others[0])

        if conversation:
            is_existing = True
            # Leaving is soft, so starting again rejoins
            await self.participant_repo.add_participant(conversation.id, user_id)
            conversation = await self.conversation_repo.get_for_participant(
                conversation.id, user_id
            )
        else:
            conversation = await self.conversation_repo.create_conversation(
                creator_id=user_id,
                participant_ids=others,
                type=request.type,
                name=request.name,
            )

        if request.initial_message and request.initial_message.strip():
            sender = SendMessageService(self.db, self.connections)
            await sender.send_message(
                conversation.id,
                user_id,
                SendMessageRequest(content=request.initial_message),
            )
            conversation = await self.conversation_repo.get_for_participant(
                conversation.id, user_id
            )

        return StartConversationResponse(
            conversation=conversation, is_existing=is_existing
        )
