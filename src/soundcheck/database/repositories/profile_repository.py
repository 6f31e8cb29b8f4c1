"""
Profile Repository
Guarded single-statement mutations for profile balances and counters
"""

from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...core.errors import AlreadyExists, RepositoryError
from ..models import Profile
from .base import BaseRepository


class ProfileRepository(BaseRepository[Profile]):
    """Repository for Profile operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Profile, session)

    async def handle_taken(self, handle: str) -> bool:
        """Check whether a handle is already in use"""
        try:
            result = await self.session.execute(
                select(self.model.id).where(self.model.handle == handle)
            )
            return result.first() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error checking handle: {str(e)}") from e

    async def get_credits(self, user_id: str) -> Optional[int]:
        """Current balance read straight from the row"""
        try:
            result = await self.session.execute(
                select(self.model.credits).where(self.model.id == user_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error reading credits: {str(e)}") from e

    async def create(self, user_id: str, handle: str, credits: int) -> Profile:
        """Insert a new profile; a PK or handle collision raises AlreadyExists"""
        profile = Profile(id=user_id, handle=handle, credits=credits)
        self.session.add(profile)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise AlreadyExists(f"Profile {user_id} or handle {handle} already exists") from e
        return profile

    async def deduct_credits(self, user_id: str, amount: int) -> Optional[int]:
        """Subtract if balance >= amount; returns the new balance or None"""
        try:
            result = await self.session.execute(
                update(self.model)
                .where(
                    (self.model.id == user_id) &
                    (self.model.credits >= amount)
                )
                .values(credits=self.model.credits - amount)
                .returning(self.model.credits)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error deducting credits: {str(e)}") from e

    async def add_credits(self, user_id: str, amount: int) -> Optional[int]:
        """Add to the balance; returns the new balance or None when missing"""
        try:
            result = await self.session.execute(
                update(self.model)
                .where(self.model.id == user_id)
                .values(credits=self.model.credits + amount)
                .returning(self.model.credits)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error adding credits: {str(e)}") from e

    async def increment_uploaded(self, user_id: str) -> bool:
        """Bump the tracks_uploaded counter"""
        try:
            result = await self.session.execute(
                update(self.model)
                .where(self.model.id == user_id)
                .values(tracks_uploaded=self.model.tracks_uploaded + 1)
                .returning(self.model.id)
            )
            return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error incrementing uploads: {str(e)}") from e

    async def record_rating(self, user_id: str, track_progress: bool) -> Optional[int]:
        """Bump tracks_rated (and rating_progress); returns the new progress or None"""
        values = {"tracks_rated": self.model.tracks_rated + 1}
        if track_progress:
            values["rating_progress"] = self.model.rating_progress + 1

        try:
            result = await self.session.execute(
                update(self.model)
                .where(self.model.id == user_id)
                .values(**values)
                .returning(self.model.rating_progress)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error recording rating: {str(e)}") from e

    async def reset_progress_and_award(
        self,
        user_id: str,
        threshold: int,
        amount: int
    ) -> Optional[int]:
        """Compare-and-reset: only one caller can consume a full progress bar"""
        try:
            result = await self.session.execute(
                update(self.model)
                .where(
                    (self.model.id == user_id) &
                    (self.model.rating_progress >= threshold)
                )
                .values(
                    rating_progress=0,
                    credits=self.model.credits + amount
                )
                .returning(self.model.credits)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error resetting rating progress: {str(e)}") from e
