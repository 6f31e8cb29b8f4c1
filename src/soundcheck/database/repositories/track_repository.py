"""
Track Repository
Guarded status transitions, vote counters and read queries for tracks
"""

import uuid
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import select, update, delete, func, exists, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...core.errors import AlreadyExists, RepositoryError
from ..models import Track, Rating, TrackStatus
from .base import BaseRepository


class TrackRepository(BaseRepository[Track]):
    """Repository for Track operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Track, session)

    async def create_draft(
        self,
        user_id: str,
        title: str,
        audio_filename: str,
        duration: float,
        genre_tags: List[str],
        snippet_start: float,
        snippet_end: float,
        production_stage: Optional[str],
        share_token: str
    ) -> Track:
        """Insert a track in draft status, invisible to raters"""
        track = Track(
            user_id=user_id,
            title=title,
            audio_filename=audio_filename,
            duration=duration,
            genre_tags=list(genre_tags),
            snippet_start=snippet_start,
            snippet_end=snippet_end,
            production_stage=production_stage,
            share_token=share_token,
            status=TrackStatus.DRAFT.value
        )
        self.session.add(track)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise AlreadyExists("Track could not be created") from e
        return track

    async def activate(
        self,
        track_id: uuid.UUID,
        context_id: str,
        votes_requested: int
    ) -> Optional[Track]:
        """draft -> collecting, setting context and target in the same statement"""
        try:
            result = await self.session.execute(
                update(self.model)
                .where(
                    (self.model.id == track_id) &
                    (self.model.status == TrackStatus.DRAFT.value)
                )
                .values(
                    status=TrackStatus.COLLECTING.value,
                    context_id=context_id,
                    votes_requested=votes_requested
                )
                .returning(self.model)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error activating track: {str(e)}") from e

    async def increment_votes(self, track_id: uuid.UUID) -> Optional[Tuple[int, int]]:
        """Count one vote while the track is collecting and under target.

        Returns (votes_received, votes_requested) or None when the guard fails.
        """
        try:
            result = await self.session.execute(
                update(self.model)
                .where(
                    (self.model.id == track_id) &
                    (self.model.status == TrackStatus.COLLECTING.value) &
                    (self.model.is_deleted == False) &  # noqa: E712
                    (self.model.votes_received < self.model.votes_requested)
                )
                .values(votes_received=self.model.votes_received + 1)
                .returning(self.model.votes_received, self.model.votes_requested)
            )
            row = result.first()
            return (row[0], row[1]) if row else None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error incrementing votes: {str(e)}") from e

    async def complete(
        self,
        track_id: uuid.UUID,
        overall_score: float,
        percentile: Optional[float]
    ) -> bool:
        """collecting -> complete; only the first writer matches"""
        try:
            result = await self.session.execute(
                update(self.model)
                .where(
                    (self.model.id == track_id) &
                    (self.model.status == TrackStatus.COLLECTING.value)
                )
                .values(
                    status=TrackStatus.COMPLETE.value,
                    overall_score=overall_score,
                    percentile=percentile
                )
                .returning(self.model.id)
            )
            return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error completing track: {str(e)}") from e

    async def soft_delete(self, track_id: uuid.UUID, owner_id: str) -> bool:
        """Hide a track unless it is collecting"""
        try:
            result = await self.session.execute(
                update(self.model)
                .where(
                    (self.model.id == track_id) &
                    (self.model.user_id == owner_id) &
                    (self.model.status != TrackStatus.COLLECTING.value) &
                    (self.model.is_deleted == False)  # noqa: E712
                )
                .values(is_deleted=True)
                .returning(self.model.id)
            )
            return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error deleting track: {str(e)}") from e

    async def get_status(self, track_id: uuid.UUID) -> Optional[str]:
        """Current status without loading the row"""
        try:
            result = await self.session.execute(
                select(self.model.status).where(self.model.id == track_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error reading track status: {str(e)}") from e

    async def get_by_share_token(self, share_token: str) -> Optional[Track]:
        """Public lookup; deleted tracks and unpaid drafts are hidden"""
        try:
            result = await self.session.execute(
                select(self.model)
                .where(
                    (self.model.share_token == share_token) &
                    (self.model.status != TrackStatus.DRAFT.value) &
                    (self.model.is_deleted == False)  # noqa: E712
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error getting track by share token: {str(e)}") from e

    async def get_next_to_rate(self, user_id: str) -> Optional[Track]:
        """Eligible track with the fewest votes so far"""
        already_rated = exists().where(
            and_(
                Rating.track_id == self.model.id,
                Rating.rater_id == user_id
            )
        )
        try:
            result = await self.session.execute(
                select(self.model)
                .where(
                    (self.model.status == TrackStatus.COLLECTING.value) &
                    (self.model.user_id != user_id) &
                    (self.model.is_deleted == False) &  # noqa: E712
                    (self.model.votes_received < self.model.votes_requested) &
                    ~already_rated
                )
                .order_by(self.model.votes_received.asc(), self.model.created_at.asc())
                .limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error getting next track to rate: {str(e)}") from e

    async def get_by_user(
        self,
        user_id: str,
        skip: int = 0,
        limit: int = 10
    ) -> List[Track]:
        """Non-deleted tracks owned by a user, newest first"""
        try:
            result = await self.session.execute(
                select(self.model)
                .where(
                    (self.model.user_id == user_id) &
                    (self.model.is_deleted == False)  # noqa: E712
                )
                .order_by(self.model.created_at.desc())
                .offset(skip)
                .limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error getting user tracks: {str(e)}") from e

    async def count_by_user(self, user_id: str) -> int:
        """Count non-deleted tracks owned by a user"""
        try:
            result = await self.session.execute(
                select(func.count(self.model.id))
                .where(
                    (self.model.user_id == user_id) &
                    (self.model.is_deleted == False)  # noqa: E712
                )
            )
            return result.scalar() or 0
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error counting user tracks: {str(e)}") from e

    async def completed_scores_in_context(
        self,
        context_id: str,
        exclude_track_id: uuid.UUID
    ) -> List[float]:
        """Overall scores of the other visible complete tracks in a context"""
        try:
            result = await self.session.execute(
                select(self.model.overall_score)
                .where(
                    (self.model.status == TrackStatus.COMPLETE.value) &
                    (self.model.context_id == context_id) &
                    (self.model.is_deleted == False) &  # noqa: E712
                    (self.model.id != exclude_track_id) &
                    (self.model.overall_score.is_not(None))
                )
            )
            return [float(score) for score in result.scalars().all()]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error getting context scores: {str(e)}") from e

    async def get_stale_drafts(self, cutoff: datetime, limit: int = 500) -> List[Track]:
        """Drafts created at or before the cutoff"""
        try:
            result = await self.session.execute(
                select(self.model)
                .where(
                    (self.model.status == TrackStatus.DRAFT.value) &
                    (self.model.created_at <= cutoff)
                )
                .order_by(self.model.created_at)
                .limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error listing stale drafts: {str(e)}") from e

    async def get_awaiting_scores(self, limit: int = 100) -> List[uuid.UUID]:
        """Collecting tracks that reached their target but were never completed"""
        try:
            result = await self.session.execute(
                select(self.model.id)
                .where(
                    (self.model.status == TrackStatus.COLLECTING.value) &
                    (self.model.is_deleted == False) &  # noqa: E712
                    (self.model.votes_requested > 0) &
                    (self.model.votes_received >= self.model.votes_requested)
                )
                .order_by(self.model.created_at)
                .limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error listing tracks awaiting scores: {str(e)}") from e

    async def delete_draft(self, track_id: uuid.UUID) -> bool:
        """Hard-delete a row only while it is still a draft"""
        try:
            result = await self.session.execute(
                delete(self.model)
                .where(
                    (self.model.id == track_id) &
                    (self.model.status == TrackStatus.DRAFT.value)
                )
                .returning(self.model.id)
            )
            return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error deleting draft: {str(e)}") from e

    async def audio_referenced_elsewhere(
        self,
        audio_filename: str,
        exclude_track_id: uuid.UUID
    ) -> bool:
        """Whether another track still points at the same audio"""
        try:
            result = await self.session.execute(
                select(self.model.id)
                .where(
                    (self.model.audio_filename == audio_filename) &
                    (self.model.id != exclude_track_id)
                )
                .limit(1)
            )
            return result.first() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error checking audio references: {str(e)}") from e
