"""
SoundCheck Upload API Routes
Audio upload endpoint feeding the claim registry
"""

from fastapi import APIRouter, Depends, File, UploadFile

from ...core.auth import AuthContext
from ...core.config import get_settings
from ...database.schemas import UploadResponse
from ...services.profile_service import ProfileService
from ...services.upload_registry import UploadClaimRegistry
from ..dependencies import get_auth_context, get_profile_service, get_upload_registry

router = APIRouter()
settings = get_settings()


@router.post("", response_model=UploadResponse, status_code=201)
async def upload_audio_file(
    file: UploadFile = File(...),
    auth: AuthContext = Depends(get_auth_context),
    registry: UploadClaimRegistry = Depends(get_upload_registry),
    profiles: ProfileService = Depends(get_profile_service)
):
    """Upload an audio file to be claimed by a track submission"""
    # Uploads reference profiles.id
    await profiles.ensure_profile(auth)

    # One byte over the limit is enough to reject the file
    data = await file.read(settings.MAX_UPLOAD_SIZE + 1)
    upload = await registry.accept_upload(
        auth.user_id,
        file.filename or "",
        file.content_type,
        data
    )
    return UploadResponse.model_validate(upload)
