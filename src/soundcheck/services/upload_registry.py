"""
SoundCheck Upload Claim Registry
Records stored audio and lets exactly one track claim each upload
"""

import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..core.errors import RateLimitExceeded, UploadNotClaimable, ValidationError
from ..core.logging import lifecycle_logger
from ..database.connection import DatabaseManager
from ..database.models import Upload, utcnow
from ..database.repositories import UploadRepository
from .storage import StorageBackend, generate_upload_name, get_storage_backend


class UploadClaimRegistry:
    """Upload bookkeeping: accept, claim, release, reclaim"""

    def __init__(
        self,
        db: DatabaseManager,
        storage: Optional[StorageBackend] = None,
        settings=None
    ):
        self.db = db
        self.storage = storage or get_storage_backend()
        self.settings = settings or get_settings()

    def validate_file(self, original_name: str, content_type: Optional[str], size: int) -> str:
        """Check size, MIME type and extension; returns the normalized extension"""
        if size <= 0:
            raise ValidationError("No file provided")
        if size > self.settings.MAX_UPLOAD_SIZE:
            max_mb = self.settings.MAX_UPLOAD_SIZE // (1024 * 1024)
            raise ValidationError(f"File too large (max {max_mb}MB)")

        extension = original_name.rsplit(".", 1)[-1].lower() if "." in original_name else ""
        # MIME type and extension must both match
        if (
            content_type not in self.settings.ALLOWED_AUDIO_TYPES
            or not self.settings.validate_audio_extension(extension)
        ):
            raise ValidationError("Invalid file type")
        return extension

    async def check_rate_limit(self, owner_id: str) -> None:
        window_start = utcnow() - timedelta(hours=1)
        async with self.db.get_session() as session:
            recent = await UploadRepository(session).count_recent(owner_id, window_start)
        if recent >= self.settings.MAX_UPLOADS_PER_HOUR:
            raise RateLimitExceeded("Upload limit reached. Please try again later.")

    async def accept_upload(
        self,
        owner_id: str,
        original_name: str,
        content_type: Optional[str],
        data: bytes
    ) -> Upload:
        """Validate, store and register an uploaded file.

        The stored blob is removed again when the row cannot be written.
        """
        await self.check_rate_limit(owner_id)
        extension = self.validate_file(original_name, content_type, len(data))

        url = await self.storage.upload(generate_upload_name(extension), data)
        try:
            return await self.register(owner_id, url, original_name, len(data))
        except Exception as e:
            lifecycle_logger.log_rollback("register_upload", str(e), filename=url)
            await self.storage.delete([url])
            raise

    async def register(
        self,
        owner_id: str,
        filename: str,
        original_name: Optional[str],
        size: Optional[int]
    ) -> Upload:
        """Record a stored blob as an unconsumed upload"""
        async with self.db.transaction() as session:
            return await UploadRepository(session).create(owner_id, filename, original_name, size)

    async def claim(self, filename: str, owner_id: str, session: AsyncSession) -> uuid.UUID:
        """Consume an upload for a track; raises UploadNotClaimable"""
        upload_id = await UploadRepository(session).claim(filename, owner_id)
        if upload_id is None:
            raise UploadNotClaimable()
        return upload_id

    async def release(self, upload_id: uuid.UUID, session: AsyncSession) -> None:
        """Compensate a claim whose follow-up step failed"""
        released = await UploadRepository(session).release(upload_id)
        lifecycle_logger.log_rollback(
            "claim_upload",
            "follow-up step failed",
            upload_id=str(upload_id),
            released=released
        )

    async def reclaim_stale_uploads(self, max_age: Optional[timedelta] = None) -> int:
        """Delete unconsumed uploads older than max_age; returns rows removed.

        The blob is deleted before the row; when that fails the row stays as
        the retry record for the next run.
        """
        if max_age is None:
            max_age = timedelta(hours=self.settings.UPLOAD_RETENTION_HOURS)
        cutoff = utcnow() - max_age

        async with self.db.get_session() as session:
            stale = await UploadRepository(session).get_stale_unconsumed(cutoff)

        removed = 0
        failed = 0
        for upload in stale:
            try:
                await self.storage.delete([upload.filename])
            except (OSError, ValueError) as e:
                failed += 1
                lifecycle_logger.log_error(
                    "reclaim_upload", str(e), upload_id=str(upload.id), filename=upload.filename
                )
                continue

            async with self.db.transaction() as session:
                if await UploadRepository(session).delete_unconsumed(upload.id):
                    removed += 1

        lifecycle_logger.log_reclaim("uploads", removed, failed)
        return removed
