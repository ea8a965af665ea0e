from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base

ModelType = TypeVar("ModelType", bound=Base)
PydanticType = TypeVar("PydanticType", bound=BaseModel)


class BaseRepository(Generic[ModelType, PydanticType]):
    """Generic base repository with common CRUD operations.

    There is no delete: conversations, participants and messages
    only ever change state.
    """

    def __init__(self, db: AsyncSession, model_class: Any):
        self.db = db
        self.model_class = model_class

    async def create(self, pydantic_model: PydanticType) -> PydanticType:
        """Create a new record."""
        db_model = self._from_pydantic(pydantic_model)
        self.db.add(db_model)
        await self.db.commit()
        await self.db.refresh(db_model)
        return self._to_pydantic(db_model)

    def _to_pydantic(self, db_model: ModelType) -> PydanticType:
        """Convert SQLAlchemy model to Pydantic model.

        This should be overridden in subclasses for specific conversion logic.
        """
        raise NotImplementedError

    def _from_pydantic(self, pydantic_model: PydanticType) -> ModelType:
        """Convert Pydantic model to SQLAlchemy model.

        This should be overridden in subclasses for specific conversion logic.
        """
        raise NotImplementedError
