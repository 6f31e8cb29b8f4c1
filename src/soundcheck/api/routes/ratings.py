"""
SoundCheck Ratings API Routes
Rating queue and rating submission
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...core.auth import AuthContext
from ...core.errors import AlreadyExists
from ...database.schemas import (
    NextTrackResponse,
    PublicTrackResponse,
    RatingOutcomeResponse,
    RatingSubmission,
)
from ...services.profile_service import ProfileService
from ...services.rating_intake import RatingIntake
from ...services.track_lifecycle import TrackLifecycle
from ..dependencies import (
    get_auth_context,
    get_profile_service,
    get_rating_intake,
    get_track_lifecycle,
)

router = APIRouter()


@router.get("/next", response_model=NextTrackResponse)
async def get_next_track(
    auth: AuthContext = Depends(get_auth_context),
    lifecycle: TrackLifecycle = Depends(get_track_lifecycle),
    profiles: ProfileService = Depends(get_profile_service)
):
    """Next track the caller can rate, fewest votes first"""
    profile = await profiles.ensure_profile(auth)
    track = await lifecycle.get_next_track_to_rate(auth.user_id)
    return NextTrackResponse(
        track=PublicTrackResponse.model_validate(track) if track else None,
        rating_progress=profile.rating_progress
    )


@router.post("", response_model=RatingOutcomeResponse, status_code=201)
async def submit_rating(
    submission: RatingSubmission,
    auth: AuthContext = Depends(get_auth_context),
    intake: RatingIntake = Depends(get_rating_intake)
):
    """Rate a track on its four context dimensions"""
    try:
        outcome = await intake.submit_rating(
            auth,
            submission.track_id,
            submission.dimensions,
            submission.feedback
        )
    except AlreadyExists as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"error": e.user_message, "already_recorded": True}
        )

    return RatingOutcomeResponse(
        credit_earned=outcome.credit_earned,
        credits_earned=outcome.credits_earned,
        new_progress=outcome.new_progress,
        track_completed=outcome.track_completed
    )
