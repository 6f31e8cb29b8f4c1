"""
SoundCheck Track Lifecycle
Submission, activation, soft delete and draft reclamation for tracks
"""

import math
import re
import secrets
import uuid
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from ..core.auth import AuthContext
from ..core.catalogs import (
    RatingContext,
    VotePackage,
    context_catalog,
    production_stage_catalog,
    vote_package_catalog,
)
from ..core.config import get_settings
from ..core.errors import (
    InsufficientCredits,
    NotFoundOrForbidden,
    StateConflict,
    ValidationError,
)
from ..core.logging import lifecycle_logger
from ..database.connection import DatabaseManager
from ..database.models import Track, TrackStatus, utcnow
from ..database.repositories import ProfileRepository, TrackRepository, UploadRepository
from ..database.schemas import TrackSubmission
from .credit_ledger import CreditLedger
from .profile_service import ProfileService
from .upload_registry import UploadClaimRegistry

_LOCAL_UPLOAD_PATH = re.compile(r"^/uploads/\d+-[a-z0-9]+\.(mp3|wav|m4a)$", re.IGNORECASE)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def is_valid_audio_reference(url: Any, public_base_url: Optional[str] = None) -> bool:
    """Audio must point at an accepted upload location"""
    if not isinstance(url, str):
        return False
    if _LOCAL_UPLOAD_PATH.match(url):
        return True
    if public_base_url:
        base = public_base_url.rstrip("/")
        if url.startswith(base + "/"):
            return bool(_LOCAL_UPLOAD_PATH.match(url[len(base):]))
    return False


def validate_track_input(
    submission: TrackSubmission,
    settings=None
) -> Tuple[RatingContext, VotePackage]:
    """Reject bad submissions before any mutation.

    Returns the resolved context and vote package; cost and vote counts come
    from the catalog only.
    """
    settings = settings or get_settings()

    title = submission.title
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required")
    if len(title.strip()) > settings.TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be {settings.TITLE_MAX_LENGTH} characters or fewer")

    tags = submission.genre_tags
    if not isinstance(tags, list):
        raise ValidationError("Genre tags must be a list")
    if len(tags) > settings.MAX_GENRE_TAGS:
        raise ValidationError(f"You can select up to {settings.MAX_GENRE_TAGS} genre tags")
    for tag in tags:
        if not isinstance(tag, str) or not tag.strip():
            raise ValidationError("Each genre tag must be a non-empty string")
        if len(tag.strip()) > settings.GENRE_TAG_MAX_LENGTH:
            raise ValidationError(
                f"Each genre tag must be {settings.GENRE_TAG_MAX_LENGTH} characters or fewer"
            )

    if not is_valid_audio_reference(submission.audio_filename, settings.PUBLIC_STORAGE_BASE_URL):
        raise ValidationError("Invalid audio file URL")

    duration = submission.duration
    if not _is_number(duration) or duration <= 0:
        raise ValidationError("Invalid duration")

    start, end = submission.snippet_start, submission.snippet_end
    if (
        not _is_number(start)
        or not _is_number(end)
        or start < 0
        or end > duration
        or end <= start
    ):
        raise ValidationError(
            "Invalid snippet bounds. Start must be >= 0, end must be <= duration, "
            "and end must be > start."
        )

    span = end - start
    if span < settings.SNIPPET_MIN_SECONDS or span > settings.SNIPPET_MAX_SECONDS:
        raise ValidationError(
            f"Snippet must be between {settings.SNIPPET_MIN_SECONDS:g} and "
            f"{settings.SNIPPET_MAX_SECONDS:g} seconds long."
        )

    if production_stage_catalog.get(submission.production_stage) is None:
        raise ValidationError("Invalid production stage")

    context = context_catalog.get(submission.context_id)
    if context is None:
        raise ValidationError("Invalid context")

    package = vote_package_catalog.get(submission.package_index)
    if package is None:
        raise ValidationError("Invalid vote package")

    return context, package


class TrackLifecycle:
    """
    Track state machine: draft -> collecting -> complete, plus soft delete.

    Every transition is one guarded UPDATE; a transition that matches zero rows
    means another request got there first.
    """

    def __init__(
        self,
        db: DatabaseManager,
        registry: Optional[UploadClaimRegistry] = None,
        profiles: Optional[ProfileService] = None,
        settings=None
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.registry = registry or UploadClaimRegistry(db, settings=self.settings)
        self.profiles = profiles or ProfileService(db, self.settings)

    async def submit_track(self, auth: AuthContext, submission: TrackSubmission) -> Track:
        """Claim the upload, pay for the vote package and open the track for rating"""
        context, package = validate_track_input(submission, self.settings)
        await self.profiles.ensure_profile(auth)
        user_id = auth.user_id

        async with self.db.transaction() as session:
            upload_id = await self.registry.claim(submission.audio_filename, user_id, session)
            track = await TrackRepository(session).create_draft(
                user_id=user_id,
                title=submission.title.strip(),
                audio_filename=submission.audio_filename,
                duration=float(submission.duration),
                genre_tags=[tag.strip() for tag in submission.genre_tags],
                snippet_start=float(submission.snippet_start),
                snippet_end=float(submission.snippet_end),
                production_stage=submission.production_stage,
                share_token=secrets.token_hex(8)
            )
            track_id = track.id

        if package.credits > 0:
            try:
                async with self.db.transaction() as session:
                    await CreditLedger(session).deduct(user_id, package.credits, str(track_id))
            except InsufficientCredits:
                # The inert draft is left for the janitor
                async with self.db.transaction() as session:
                    await self.registry.release(upload_id, session)
                raise

        return await self.activate(track_id, context.id, package.votes, user_id, package.credits)

    async def activate(
        self,
        track_id: uuid.UUID,
        context_id: str,
        votes_requested: int,
        user_id: Optional[str] = None,
        credits_paid: int = 0
    ) -> Track:
        """Guarded draft -> collecting; refunds the payment when the guard fails"""
        async with self.db.transaction() as session:
            activated = await TrackRepository(session).activate(
                track_id, context_id, votes_requested
            )
            if activated is not None and user_id is not None:
                await ProfileRepository(session).increment_uploaded(user_id)

        if activated is None:
            if user_id is not None and credits_paid > 0:
                async with self.db.transaction() as session:
                    await CreditLedger(session).refund(user_id, credits_paid, str(track_id))
                lifecycle_logger.log_rollback(
                    "activate_track",
                    "track was no longer a draft",
                    track_id=str(track_id),
                    refunded=credits_paid
                )
            raise StateConflict(f"Track {track_id} could not be activated")

        lifecycle_logger.log_transition(
            str(track_id),
            TrackStatus.DRAFT.value,
            TrackStatus.COLLECTING.value,
            context_id=context_id,
            votes_requested=votes_requested
        )
        return activated

    async def delete_track(self, track_id: uuid.UUID, owner_id: str) -> None:
        """Soft-delete a finished or draft track owned by the caller"""
        async with self.db.transaction() as session:
            tracks = TrackRepository(session)
            if await tracks.soft_delete(track_id, owner_id):
                lifecycle_logger.log_deleted(str(track_id), owner_id)
                return

            track = await tracks.get(track_id)
            if (
                track is not None
                and track.user_id == owner_id
                and not track.is_deleted
                and track.status == TrackStatus.COLLECTING.value
            ):
                raise StateConflict("Tracks cannot be deleted while collecting ratings")
        raise NotFoundOrForbidden(f"Track {track_id} not found")

    async def reclaim_stale_drafts(self, max_age: Optional[timedelta] = None) -> int:
        """Remove drafts older than max_age; returns rows removed.

        Audio still referenced by an upload row or another track is left alone.
        Otherwise the blob is deleted first and a failed delete keeps the row.
        """
        if max_age is None:
            max_age = timedelta(hours=self.settings.DRAFT_RETENTION_HOURS)
        cutoff = utcnow() - max_age

        async with self.db.get_session() as session:
            stale = await TrackRepository(session).get_stale_drafts(cutoff)

        removed = 0
        failed = 0
        for draft in stale:
            async with self.db.get_session() as session:
                shared = (
                    await UploadRepository(session).filename_registered(draft.audio_filename)
                    or await TrackRepository(session).audio_referenced_elsewhere(
                        draft.audio_filename, draft.id
                    )
                )

            if not shared:
                try:
                    await self.registry.storage.delete([draft.audio_filename])
                except (OSError, ValueError) as e:
                    failed += 1
                    lifecycle_logger.log_error(
                        "reclaim_draft", str(e), track_id=str(draft.id)
                    )
                    continue

            async with self.db.transaction() as session:
                if await TrackRepository(session).delete_draft(draft.id):
                    removed += 1

        lifecycle_logger.log_reclaim("drafts", removed, failed)
        return removed

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    async def get_track_by_id(self, track_id: uuid.UUID) -> Optional[Track]:
        """Visible (non-deleted) track by id"""
        async with self.db.get_session() as session:
            track = await TrackRepository(session).get(track_id)
        if track is None or track.is_deleted:
            return None
        return track

    async def get_owned_track(self, track_id: uuid.UUID, owner_id: str) -> Track:
        track = await self.get_track_by_id(track_id)
        if track is None or track.user_id != owner_id:
            raise NotFoundOrForbidden(f"Track {track_id} not found")
        return track

    async def get_track_by_share_token(self, share_token: str) -> Optional[Track]:
        async with self.db.get_session() as session:
            return await TrackRepository(session).get_by_share_token(share_token)

    async def get_next_track_to_rate(self, user_id: str) -> Optional[Track]:
        async with self.db.get_session() as session:
            return await TrackRepository(session).get_next_to_rate(user_id)

    async def get_tracks_by_user(
        self,
        user_id: str,
        page: int = 1,
        per_page: int = 3
    ) -> Dict[str, Any]:
        """One page of the user's tracks, newest first"""
        page = max(page, 1)
        per_page = max(per_page, 1)
        async with self.db.get_session() as session:
            tracks = TrackRepository(session)
            items = await tracks.get_by_user(user_id, (page - 1) * per_page, per_page)
            total = await tracks.count_by_user(user_id)

        return {
            "tracks": items,
            "total": total,
            "page": page,
            "per_page": per_page,
            "total_pages": math.ceil(total / per_page),
        }
