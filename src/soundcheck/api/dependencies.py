"""
SoundCheck API Dependencies
Request-scoped auth context and service wiring for the routes
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException

from ..core.auth import AuthContext
from ..database.connection import DatabaseManager, database_manager
from ..services.milestone_notifier import MilestoneNotifier
from ..services.profile_service import ProfileService
from ..services.rating_intake import RatingIntake
from ..services.results_service import ResultsService
from ..services.score_compute import ScoreComputer
from ..services.track_lifecycle import TrackLifecycle
from ..services.upload_registry import UploadClaimRegistry


async def get_auth_context(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None)
) -> AuthContext:
    """Caller identity forwarded by the auth gateway"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return AuthContext(user_id=x_user_id.strip(), display_name=x_user_name)


def get_database() -> DatabaseManager:
    return database_manager


# Global instance; keeps background insight tasks alive across requests
_milestone_notifier: Optional[MilestoneNotifier] = None


def get_milestone_notifier(db: DatabaseManager = Depends(get_database)) -> MilestoneNotifier:
    global _milestone_notifier
    if _milestone_notifier is None:
        _milestone_notifier = MilestoneNotifier(db)
    return _milestone_notifier


async def close_milestone_notifier() -> None:
    """Drain pending insight tasks and close the generator"""
    global _milestone_notifier
    if _milestone_notifier is not None:
        await _milestone_notifier.close()
        _milestone_notifier = None


def get_profile_service(db: DatabaseManager = Depends(get_database)) -> ProfileService:
    return ProfileService(db)


def get_upload_registry(db: DatabaseManager = Depends(get_database)) -> UploadClaimRegistry:
    return UploadClaimRegistry(db)


def get_track_lifecycle(
    db: DatabaseManager = Depends(get_database),
    registry: UploadClaimRegistry = Depends(get_upload_registry),
    profiles: ProfileService = Depends(get_profile_service)
) -> TrackLifecycle:
    return TrackLifecycle(db, registry=registry, profiles=profiles)


def get_rating_intake(
    db: DatabaseManager = Depends(get_database),
    notifier: MilestoneNotifier = Depends(get_milestone_notifier),
    profiles: ProfileService = Depends(get_profile_service)
) -> RatingIntake:
    return RatingIntake(db, notifier=notifier, profiles=profiles)


def get_results_service(db: DatabaseManager = Depends(get_database)) -> ResultsService:
    return ResultsService(db)


def get_score_computer(db: DatabaseManager = Depends(get_database)) -> ScoreComputer:
    return ScoreComputer(db)
