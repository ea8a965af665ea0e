import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.models.api.conversations import ConversationResponse, LastMessageSnapshot
from app.models.api.messages import MessageResponse
from app.models.db.conversation_model import ConversationModel
from app.models.db.participant_model import ParticipantModel
from app.repositories.base_repository import BaseRepository
from app.repositories.message_repository import MessageRepository
from app.repositories.participant_repository import is_mute_active


class ConversationRepository(BaseRepository[ConversationModel, ConversationResponse]):
    """Repository for conversation operations.

    Conversations are always read from the point of view of one participant
    (the viewer), whose unread count is reported on the response.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(db, ConversationModel)
        self.message_repo = MessageRepository(db)

    async def get_for_participant(
        self, conversation_id: UUID, user_id: str
    ) -> Optional[ConversationResponse]:
        """Get a conversation if ``user_id`` is an active participant of it."""
        query = (
            select(self.model_class)
            .join(self.model_class.participants)
            .where(
                self.model_class.id == conversation_id,
                ParticipantModel.user_id == user_id,
                ParticipantModel.has_left.is_(False),
            )
            .options(selectinload(self.model_class.participants))
            .execution_options(populate_existing=True)
        )  # type: ignore
        result = await self.db.execute(query)
        db_model = result.scalars().first()
        if not db_model:
            return None
        return (await self._with_snapshots([db_model], viewer_id=user_id))[0]

    async def list_for_user(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> List[ConversationResponse]:
        """Conversations the user has not left, most recently active first."""
        query = (
            select(self.model_class)
            .join(self.model_class.participants)
            .where(
                ParticipantModel.user_id == user_id,
                ParticipantModel.has_left.is_(False),
            )
            .options(selectinload(self.model_class.participants))
            .execution_options(populate_existing=True)
            .order_by(self.model_class.updated_at.desc())
            .limit(limit)
            .offset(offset)
        )  # type: ignore
        result = await self.db.execute(query)
        db_models = list(result.scalars().unique().all())
        return await self._with_snapshots(db_models, viewer_id=user_id)

    async def find_direct(
        self, user_id: str, other_user_id: str
    ) -> Optional[ConversationResponse]:
        """Find the direct conversation between exactly these two users."""
        wanted = sorted({user_id, other_user_id})
        query = (
            select(self.model_class)
            .join(self.model_class.participants)
            .where(
                self.model_class.type == "direct",
                ParticipantModel.user_id == user_id,
            )
            .options(selectinload(self.model_class.participants))
            .execution_options(populate_existing=True)
        )  # type: ignore
        result = await self.db.execute(query)

        for conversation in result.scalars().unique().all():
            members = sorted({p.user_id for p in conversation.participants})
            if members == wanted:
                found = await self._with_snapshots([conversation], viewer_id=user_id)
                return found[0]
        return None

    async def create_conversation(
        self,
        creator_id: str,
        participant_ids: Sequence[str],
        type: str = "direct",
        name: Optional[str] = None,
    ) -> ConversationResponse:
        """Create a conversation with the creator as admin and the rest as members."""
        now = datetime.now(timezone.utc)
        db_model = ConversationModel(
            id=uuid.uuid4(),
            type=type,
            name=name if type != "direct" else None,
            creator_id=creator_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(db_model)

        members = [creator_id] + [
            pid for pid in dict.fromkeys(participant_ids) if pid != creator_id
        ]
        for member_id in members:
            self.db.add(
                ParticipantModel(
                    id=uuid.uuid4(),
                    conversation_id=db_model.id,
                    user_id=member_id,
                    role="admin" if member_id == creator_id else "member",
                    unread_count=0,
                    has_left=False,
                    created_at=now,
                )
            )
        await self.db.commit()

        conversation = await self.get_for_participant(db_model.id, creator_id)
        if conversation is None:
            raise RuntimeError(f"Conversation {db_model.id} vanished after create")
        return conversation

    async def touch(self, conversation_id: UUID) -> None:
        """Bump ``updated_at`` so the conversation sorts first."""
        await self.db.execute(
            update(self.model_class)
            .where(self.model_class.id == conversation_id)
            .values(updated_at=datetime.now(timezone.utc))
        )
        await self.db.commit()

    async def _with_snapshots(
        self, db_models: List[Any], viewer_id: Optional[str] = None
    ) -> List[ConversationResponse]:
        latest = await self.message_repo.get_latest_by_conversation(
            [db_model.id for db_model in db_models]
        )
        return [
            self._to_pydantic(db_model, viewer_id, latest.get(db_model.id))
            for db_model in db_models
        ]

    def _to_pydantic(
        self,
        db_model: Any,
        viewer_id: Optional[str] = None,
        last_message: Optional[MessageResponse] = None,
    ) -> ConversationResponse:
        """Convert SQLAlchemy ConversationModel to Pydantic ConversationResponse."""
        active = [p for p in db_model.participants if not p.has_left]
        viewer = next(
            (p for p in db_model.participants if p.user_id == viewer_id), None
        )
        unread_count = viewer.unread_count if viewer else 0

        snapshot = (
            LastMessageSnapshot(
                id=last_message.id,
                sender_id=last_message.sender_id,
                content=last_message.content,
                created_at=last_message.created_at,
            )
            if last_message
            else None
        )

        return ConversationResponse(
            id=db_model.id,
            type=db_model.type or "direct",
            name=db_model.name,
            participants=[p.user_id for p in active],
            last_message=snapshot,
            unread_count=unread_count or 0,
            is_muted=is_mute_active(viewer) if viewer else False,
            muted_until=viewer.muted_until if viewer else None,
            created_at=db_model.created_at,
            updated_at=db_model.updated_at,
        )

    def _from_pydantic(self, pydantic_model: ConversationResponse) -> ConversationModel:
        """Convert Pydantic ConversationResponse to SQLAlchemy ConversationModel."""
        return ConversationModel(
            id=pydantic_model.id,
            type=pydantic_model.type,
            name=pydantic_model.name,
            created_at=pydantic_model.created_at,
            updated_at=pydantic_model.updated_at,
        )
