"""
Upload Repository
Registration and one-time claiming of uploaded audio
"""

import uuid
from datetime import datetime
from typing import List, Optional
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...core.errors import AlreadyExists, RepositoryError
from ..models import Upload
from .base import BaseRepository


class UploadRepository(BaseRepository[Upload]):
    """Repository for Upload operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Upload, session)

    async def create(
        self,
        user_id: str,
        filename: str,
        original_name: Optional[str],
        size: Optional[int]
    ) -> Upload:
        """Record a stored blob"""
        upload = Upload(
            user_id=user_id,
            filename=filename,
            original_name=original_name,
            size=size
        )
        self.session.add(upload)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise AlreadyExists(f"Upload {filename} already registered") from e
        return upload

    async def claim(self, filename: str, owner_id: str) -> Optional[uuid.UUID]:
        """Mark consumed if it exists, belongs to owner and is unconsumed"""
        try:
            result = await self.session.execute(
                update(self.model)
                .where(
                    (self.model.filename == filename) &
                    (self.model.user_id == owner_id) &
                    (self.model.consumed == False)  # noqa: E712
                )
                .values(consumed=True)
                .returning(self.model.id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error claiming upload: {str(e)}") from e

    async def release(self, upload_id: uuid.UUID) -> bool:
        """Undo a claim"""
        try:
            result = await self.session.execute(
                update(self.model)
                .where(
                    (self.model.id == upload_id) &
                    (self.model.consumed == True)  # noqa: E712
                )
                .values(consumed=False)
                .returning(self.model.id)
            )
            return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error releasing upload: {str(e)}") from e

    async def count_recent(self, user_id: str, since: datetime) -> int:
        """Uploads created by a user since a point in time"""
        try:
            result = await self.session.execute(
                select(func.count(self.model.id))
                .where(
                    (self.model.user_id == user_id) &
                    (self.model.created_at >= since)
                )
            )
            return result.scalar() or 0
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error counting recent uploads: {str(e)}") from e

    async def get_stale_unconsumed(self, cutoff: datetime, limit: int = 500) -> List[Upload]:
        """Unclaimed uploads created at or before the cutoff"""
        try:
            result = await self.session.execute(
                select(self.model)
                .where(
                    (self.model.consumed == False) &  # noqa: E712
                    (self.model.created_at <= cutoff)
                )
                .order_by(self.model.created_at)
                .limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error listing stale uploads: {str(e)}") from e

    async def delete_unconsumed(self, upload_id: uuid.UUID) -> bool:
        """Remove a row only if it is still unclaimed"""
        try:
            result = await self.session.execute(
                delete(self.model)
                .where(
                    (self.model.id == upload_id) &
                    (self.model.consumed == False)  # noqa: E712
                )
                .returning(self.model.id)
            )
            return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error deleting upload: {str(e)}") from e

    async def filename_registered(self, filename: str) -> bool:
        """Whether any upload row still points at the file"""
        try:
            result = await self.session.execute(
                select(self.model.id).where(self.model.filename == filename)
            )
            return result.first() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error checking upload filename: {str(e)}") from e
