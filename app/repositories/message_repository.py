from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy import and_, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.api.messages import MessageResponse
from app.models.db.message_model import MessageModel
from app.repositories.base_repository import BaseRepository


class MessageRepository(BaseRepository[MessageModel, MessageResponse]):
    """Repository for message operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, MessageModel)

    async def create_message(
        self,
        conversation_id: UUID,
        sender_id: str,
        content: str,
        message_type: str = "text",
    ) -> MessageResponse:
        """Persist a new unread message."""
        message = MessageResponse(
            id=uuid4(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            message_type=message_type,
            is_read=False,
            read_at=None,
            created_at=datetime.now(timezone.utc),
        )
        return await self.create(message)

    async def get_page(
        self,
        conversation_id: UUID,
        limit: int = 50,
        before: Optional[datetime] = None,
    ) -> Tuple[List[MessageResponse], bool]:
        """Get the newest ``limit`` messages (older than ``before``), oldest first.

        Returns the page and whether older messages remain.
        """
        query = select(self.model_class).where(
            self.model_class.conversation_id == conversation_id
        )
        if before is not None:
            query = query.where(self.model_class.created_at < before)
        query = query.order_by(self.model_class.created_at.desc()).limit(limit + 1)

        result = await self.db.execute(query)
        db_models = list(result.scalars().all())
        has_more = len(db_models) > limit
        page = db_models[:limit]
        page.reverse()
        return [self._to_pydantic(db_model) for db_model in page], has_more

    async def get_latest_by_conversation(
        self, conversation_ids: Iterable[UUID]
    ) -> Dict[UUID, MessageResponse]:
        """Newest message of each conversation, keyed by conversation id."""
        ids = list(conversation_ids)
        if not ids:
            return {}

        latest = (
            select(
                self.model_class.conversation_id,
                func.max(self.model_class.created_at).label("max_created_at"),
            )
            .where(self.model_class.conversation_id.in_(ids))
            .group_by(self.model_class.conversation_id)
            .subquery()
        )
        query = select(self.model_class).join(
            latest,
            and_(
                self.model_class.conversation_id == latest.c.conversation_id,
                self.model_class.created_at == latest.c.max_created_at,
            ),
        )
        result = await self.db.execute(query)
        return {
            db_model.conversation_id: self._to_pydantic(db_model)
            for db_model in result.scalars().all()
        }

    async def mark_read(
        self,
        conversation_id: UUID,
        reader_id: str,
        message_ids: Optional[List[UUID]] = None,
    ) -> List[UUID]:
        """Mark unread messages from other senders as read.

        Only rows that are still unread are touched, so a read message never
        goes back to unread. Returns the ids that changed.
        """
        conditions = [
            self.model_class.conversation_id == conversation_id,
            self.model_class.sender_id != reader_id,
            self.model_class.is_read.is_(False),
        ]
        if message_ids:
            conditions.append(self.model_class.id.in_(message_ids))

        result = await self.db.execute(select(self.model_class.id).where(*conditions))
        ids = list(result.scalars().all())
        if not ids:
            return []

        await self.db.execute(
            update(self.model_class)
            .where(self.model_class.id.in_(ids), self.model_class.is_read.is_(False))
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        await self.db.commit()
        return ids

    def _to_pydantic(self, db_model: Any) -> MessageResponse:
        """Convert SQLAlchemy MessageModel to Pydantic MessageResponse."""
        return MessageResponse(
            id=db_model.id,
            conversation_id=db_model.conversation_id,
            sender_id=db_model.sender_id,
            content=db_model.content,
            message_type=db_model.message_type or "text",
            is_read=bool(db_model.is_read),
            read_at=db_model.read_at,
            created_at=db_model.created_at,
        )

    def _from_pydantic(self, pydantic_model: MessageResponse) -> MessageModel:
        """Convert Pydantic MessageResponse to SQLAlchemy MessageModel."""
        return MessageModel(
            id=pydantic_model.id,
            conversation_id=pydantic_model.conversation_id,
            sender_id=pydantic_model.sender_id,
            content=pydantic_model.content,
            message_type=pydantic_model.message_type,
            is_read=pydantic_model.is_read,
            read_at=pydantic_model.read_at,
            created_at=pydantic_model.created_at,
        )
