"""
SoundCheck Maintenance API Routes
Janitor endpoint for stale uploads, drafts and unscored tracks, called by an external scheduler
"""

import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from ...core.config import get_settings
from ...database.schemas import CleanupResponse
from ...services.score_compute import ScoreComputer
from ...services.track_lifecycle import TrackLifecycle
from ...services.upload_registry import UploadClaimRegistry
from ..dependencies import get_score_computer, get_track_lifecycle, get_upload_registry

router = APIRouter()


def require_cleanup_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Bearer token check against CLEANUP_SECRET"""
    secret = get_settings().CLEANUP_SECRET
    if not secret:
        raise HTTPException(status_code=503, detail="Cleanup is not configured")

    expected = f"Bearer {secret}"
    if not authorization or not secrets.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/cleanup", response_model=CleanupResponse, dependencies=[Depends(require_cleanup_secret)])
async def run_cleanup(
    registry: UploadClaimRegistry = Depends(get_upload_registry),
    lifecycle: TrackLifecycle = Depends(get_track_lifecycle),
    score_computer: ScoreComputer = Depends(get_score_computer)
):
    """Reclaim stale uploads and drafts, then finish tracks stuck at their vote target"""
    deleted_uploads = await registry.reclaim_stale_uploads()
    deleted_drafts = await lifecycle.reclaim_stale_drafts()
    scored_tracks = await score_computer.complete_pending_tracks()
    return CleanupResponse(
        deleted_uploads=deleted_uploads,
        deleted_drafts=deleted_drafts,
        scored_tracks=scored_tracks
    )
