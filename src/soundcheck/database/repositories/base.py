"""
Base Repository
Common read operations for all entities
"""

import uuid
from typing import Generic, TypeVar, Type, Optional, Dict, Any, Union
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from ...core.errors import RepositoryError
from ..connection import Base

# Type variable for generic repository
ModelType = TypeVar("ModelType", bound=Base)

EntityId = Union[uuid.UUID, str]


class BaseRepository(Generic[ModelType]):
    """Base repository with common read operations.

    Mutations live on the concrete repositories as single guarded statements;
    nothing here does read-modify-write.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get(self, id: EntityId) -> Optional[ModelType]:
        """Get entity by ID"""
        try:
            result = await self.session.execute(
                select(self.model).where(self.model.id == id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error getting {self.model.__name__}: {str(e)}") from e

    async def exists(self, id: EntityId) -> bool:
        """Check if entity exists"""
        return await self.count({"id": id}) > 0

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count entities with optional filters"""
        try:
            query = self._apply_filters(select(func.count(self.model.id)), filters)
            result = await self.session.execute(query)
            return result.scalar() or 0

        except SQLAlchemyError as e:
            raise RepositoryError(f"Error counting entities: {str(e)}") from e

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        if filters:
            for field, value in filters.items():
                if hasattr(self.model, field):
                    column = getattr(self.model, field)
                    if isinstance(value, list):
                        query = query.where(column.in_(value))
                    else:
                        query = query.where(column == value)
        return query
