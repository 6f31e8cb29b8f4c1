"""
Insight Repository
Per-milestone storage for externally generated insights
"""

import uuid
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...core.errors import AlreadyExists, RepositoryError
from ..models import AIInsight
from .base import BaseRepository


class InsightRepository(BaseRepository[AIInsight]):
    """Repository for AIInsight operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(AIInsight, session)

    async def exists_for(self, track_id: uuid.UUID, milestone: int) -> bool:
        """Whether insights were already stored for this milestone"""
        try:
            result = await self.session.execute(
                select(self.model.id)
                .where(
                    (self.model.track_id == track_id) &
                    (self.model.milestone == milestone)
                )
            )
            return result.first() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error checking insights: {str(e)}") from e

    async def create(self, track_id: uuid.UUID, milestone: int, insights: list) -> AIInsight:
        """Store insights once per (track, milestone)"""
        row = AIInsight(track_id=track_id, milestone=milestone, insights=insights)
        self.session.add(row)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise AlreadyExists(f"Insights for milestone {milestone} already stored") from e
        return row

    async def get_latest(self, track_id: uuid.UUID) -> Optional[AIInsight]:
        """Insights from the highest milestone reached"""
        try:
            result = await self.session.execute(
                select(self.model)
                .where(self.model.track_id == track_id)
                .order_by(self.model.milestone.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error getting insights: {str(e)}") from e
