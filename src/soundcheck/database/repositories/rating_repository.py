"""
Rating Repository
Insert-once ratings guarded by the (track, rater) uniqueness constraint
"""

import uuid
from typing import List, Optional, Sequence
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...core.errors import AlreadyExists, RepositoryError
from ..models import Rating
from .base import BaseRepository


class RatingRepository(BaseRepository[Rating]):
    """Repository for Rating operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Rating, session)

    async def exists_for(self, track_id: uuid.UUID, rater_id: str) -> bool:
        """Whether the rater already rated the track"""
        try:
            result = await self.session.execute(
                select(self.model.id)
                .where(
                    (self.model.track_id == track_id) &
                    (self.model.rater_id == rater_id)
                )
            )
            return result.first() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error checking rating: {str(e)}") from e

    async def create(
        self,
        track_id: uuid.UUID,
        rater_id: str,
        dimensions: Sequence[int],
        feedback: Optional[str] = None
    ) -> Rating:
        """Insert a rating; the unique constraint turns a raced duplicate into AlreadyExists"""
        d1, d2, d3, d4 = dimensions
        rating = Rating(
            track_id=track_id,
            rater_id=rater_id,
            dimension_1=d1,
            dimension_2=d2,
            dimension_3=d3,
            dimension_4=d4,
            feedback=feedback
        )
        self.session.add(rating)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise AlreadyExists("You have already rated this track") from e
        return rating

    async def get_by_track(self, track_id: uuid.UUID) -> List[Rating]:
        """All ratings for a track, oldest first"""
        try:
            result = await self.session.execute(
                select(self.model)
                .where(self.model.track_id == track_id)
                .order_by(self.model.created_at)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error getting track ratings: {str(e)}") from e

    async def count_by_track(self, track_id: uuid.UUID) -> int:
        """Count ratings for a track"""
        try:
            result = await self.session.execute(
                select(func.count(self.model.id)).where(self.model.track_id == track_id)
            )
            return result.scalar() or 0
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error counting ratings: {str(e)}") from e
