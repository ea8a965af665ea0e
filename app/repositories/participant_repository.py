import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.api.participants import ParticipantResponse
from app.models.db.participant_model import ParticipantModel
from app.repositories.base_repository import BaseRepository


def is_mute_active(participant: Any, now: Optional[datetime] = None) -> bool:
    """A mute with a ``muted_until`` in the past no longer counts."""
    if not participant.is_muted:
        return False
    if participant.muted_until is None:
        return True
    until = participant.muted_until
    if until.tzinfo is None:
        # SQLite hands back naive UTC datetimes
        until = until.replace(tzinfo=timezone.utc)
    return until > (now or datetime.now(timezone.utc))


class ParticipantRepository(BaseRepository[ParticipantModel, ParticipantResponse]):
    """Repository for participant operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, ParticipantModel)

    async def get_by_conversation(
        self, conversation_id: UUID, include_left: bool = False
    ) -> List[ParticipantResponse]:
        """Get the participants of a conversation."""
        query = select(self.model_class).where(
            self.model_class.conversation_id == conversation_id
        )  # type: ignore
        if not include_left:
            query = query.where(self.model_class.has_left.is_(False))
        result = await self.db.execute(query)
        db_models = result.scalars().all()
        return [self._to_pydantic(db_model) for db_model in db_models]

    async def get_active(
        self, conversation_id: UUID, user_id: str
    ) -> Optional[ParticipantResponse]:
        """Get a participant row if the user has not left the conversation."""
        query = select(self.model_class).where(
            self.model_class.conversation_id == conversation_id,
            self.model_class.user_id == user_id,
            self.model_class.has_left.is_(False),
        )
        result = await self.db.execute(query)
        db_model = result.scalar_one_or_none()
        return self._to_pydantic(db_model) if db_model else None

    async def add_participant(
        self, conversation_id: UUID, user_id: str, role: str = "member"
    ) -> ParticipantResponse:
        """Add a participant to a conversation, rejoining if they had left."""
        query = select(self.model_class).where(
            self.model_class.conversation_id == conversation_id,
            self.model_class.user_id == user_id,
        )
        result = await self.db.execute(query)
        existing = result.scalar_one_or_none()

        if existing:
            if existing.has_left:
                existing.has_left = False
                existing.left_at = None
                await self.db.commit()
                await self.db.refresh(existing)
            return self._to_pydantic(existing)

        new_participant = ParticipantResponse(
            id=uuid.uuid4(),
            conversation_id=conversation_id,
            user_id=user_id,
            role=role,
            unread_count=0,
            last_read_at=None,
            has_left=False,
            created_at=datetime.now(timezone.utc),
        )

        return await self.create(new_participant)

    async def increment_unread(self, conversation_id: UUID, sender_id: str) -> None:
        """Bump unread counts of everyone in the conversation except the sender."""
        await self.db.execute(
            update(self.model_class)
            .where(
                self.model_class.conversation_id == conversation_id,
                self.model_class.user_id != sender_id,
                self.model_class.has_left.is_(False),
            )
            .values(unread_count=self.model_class.unread_count + 1)
        )
        await self.db.commit()

    async def reset_unread(self, conversation_id: UUID, user_id: str) -> None:
        await self.db.execute(
            update(self.model_class)
            .where(
                self.model_class.conversation_id == conversation_id,
                self.model_class.user_id == user_id,
            )
            .values(unread_count=0, last_read_at=datetime.now(timezone.utc))
        )
        await self.db.commit()

    async def mark_left(self, conversation_id: UUID, user_id: str) -> bool:
        """Soft-leave a conversation. Returns False if the user was not in it."""
        result = await self.db.execute(
            update(self.model_class)
            .where(
                self.model_class.conversation_id == conversation_id,
                self.model_class.user_id == user_id,
                self.model_class.has_left.is_(False),
            )
            .values(has_left=True, left_at=datetime.now(timezone.utc))
        )
        await self.db.commit()
        return bool(result.rowcount)

    async def set_muted(
        self,
        conversation_id: UUID,
        user_id: str,
        is_muted: bool,
        muted_until: Optional[datetime] = None,
    ) -> bool:
        """Mute or unmute for one participant. Returns False if the user is not in it."""
        result = await self.db.execute(
            update(self.model_class)
            .where(
                self.model_class.conversation_id == conversation_id,
                self.model_class.user_id == user_id,
                self.model_class.has_left.is_(False),
            )
            .values(is_muted=is_muted, muted_until=muted_until if is_muted else None)
        )
        await self.db.commit()
        return bool(result.rowcount)

    async def total_unread(self, user_id: str) -> int:
        """Sum of unread counts across the user's active conversations."""
        query = select(func.coalesce(func.sum(self.model_class.unread_count), 0)).where(
            self.model_class.user_id == user_id,
            self.model_class.has_left.is_(False),
        )
        result = await self.db.execute(query)
        return int(result.scalar() or 0)

    def _to_pydantic(self, db_model: Any) -> ParticipantResponse:
        """Convert SQLAlchemy ParticipantModel to Pydantic ParticipantResponse."""
        return ParticipantResponse(
            id=db_model.id,
            conversation_id=db_model.conversation_id,
            user_id=db_model.user_id,
            role=db_model.role,
            unread_count=db_model.unread_count or 0,
            last_read_at=db_model.last_read_at,
            has_left=bool(db_model.has_left),
            is_muted=is_mute_active(db_model),
            muted_until=db_model.muted_until,
            created_at=db_model.created_at,
        )

    def _from_pydantic(self, pydantic_model: ParticipantResponse) -> ParticipantModel:
        """Convert Pydantic ParticipantResponse to SQLAlchemy ParticipantModel."""
        return ParticipantModel(
            id=pydantic_model.id,
            conversation_id=pydantic_model.conversation_id,
            user_id=pydantic_model.user_id,
            role=pydantic_model.role,
            unread_count=pydantic_model.unread_count,
            last_read_at=pydantic_model.last_read_at,
            has_left=pydantic_model.has_left,
            is_muted=pydantic_model.is_muted,
            muted_until=pydantic_model.muted_until,
            created_at=pydantic_model.created_at,
        )
