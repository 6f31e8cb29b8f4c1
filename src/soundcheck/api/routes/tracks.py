"""
SoundCheck Tracks API Routes
Submission, listing, results and deletion of the caller's tracks
"""

import uuid

from fastapi import APIRouter, Depends, Query, Response

from ...core.auth import AuthContext
from ...core.errors import NotFoundOrForbidden
from ...database.schemas import (
    SharedResultsResponse,
    SharedTrackResponse,
    TrackPage,
    TrackResponse,
    TrackResultsResponse,
    TrackSubmission,
)
from ...services.results_service import ResultsService
from ...services.track_lifecycle import TrackLifecycle
from ..dependencies import get_auth_context, get_results_service, get_track_lifecycle

router = APIRouter()
share_router = APIRouter()


@router.post("", response_model=TrackResponse, status_code=201)
async def submit_track(
    submission: TrackSubmission,
    auth: AuthContext = Depends(get_auth_context),
    lifecycle: TrackLifecycle = Depends(get_track_lifecycle)
):
    """Submit an uploaded track for crowd rating"""
    track = await lifecycle.submit_track(auth, submission)
    return TrackResponse.model_validate(track)


@router.get("/mine", response_model=TrackPage)
async def list_my_tracks(
    page: int = Query(1, ge=1),
    per_page: int = Query(3, ge=1, le=50),
    auth: AuthContext = Depends(get_auth_context),
    lifecycle: TrackLifecycle = Depends(get_track_lifecycle)
):
    """List the caller's tracks, newest first"""
    result = await lifecycle.get_tracks_by_user(auth.user_id, page, per_page)
    return TrackPage(
        tracks=[TrackResponse.model_validate(t) for t in result["tracks"]],
        total=result["total"],
        page=result["page"],
        per_page=result["per_page"],
        total_pages=result["total_pages"]
    )


@router.get("/{track_id}", response_model=TrackResponse)
async def get_track(
    track_id: uuid.UUID,
    auth: AuthContext = Depends(get_auth_context),
    lifecycle: TrackLifecycle = Depends(get_track_lifecycle)
):
    """Get one of the caller's tracks"""
    track = await lifecycle.get_owned_track(track_id, auth.user_id)
    return TrackResponse.model_validate(track)


@router.get("/{track_id}/results", response_model=TrackResultsResponse)
async def get_track_results(
    track_id: uuid.UUID,
    auth: AuthContext = Depends(get_auth_context),
    results: ResultsService = Depends(get_results_service)
):
    """Aggregated ratings, insights and feedback for the owner"""
    data = await results.get_results(track_id, viewer_id=auth.user_id)
    return TrackResultsResponse(
        track=TrackResponse.model_validate(data["track"]),
        dimension_names=data["dimension_names"],
        dimension_averages=data["dimension_averages"],
        insights=data["insights"],
        ai_insights=data["ai_insights"],
        feedback=data["feedback"]
    )


@router.delete("/{track_id}", status_code=204)
async def delete_track(
    track_id: uuid.UUID,
    auth: AuthContext = Depends(get_auth_context),
    lifecycle: TrackLifecycle = Depends(get_track_lifecycle)
):
    """Soft-delete a draft or completed track"""
    await lifecycle.delete_track(track_id, auth.user_id)
    return Response(status_code=204)


@share_router.get("/{share_token}", response_model=SharedResultsResponse)
async def get_shared_track(
    share_token: str,
    lifecycle: TrackLifecycle = Depends(get_track_lifecycle),
    results: ResultsService = Depends(get_results_service)
):
    """Public results page reached through a share link"""
    track = await lifecycle.get_track_by_share_token(share_token)
    if track is None:
        raise NotFoundOrForbidden("Shared track not found")

    data = await results.get_results(track.id, share_token=share_token)
    return SharedResultsResponse(
        track=SharedTrackResponse.model_validate(data["track"]),
        dimension_names=data["dimension_names"],
        dimension_averages=data["dimension_averages"],
        insights=data["insights"]
    )
