"""
SoundCheck Rating Intake
Accepts one rating per (track, rater) and applies its counters and rewards atomically
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ..core.auth import AuthContext
from ..core.config import get_settings
from ..core.errors import (
    AlreadyExists,
    NotFoundOrForbidden,
    ProfileNotFound,
    SoundCheckError,
    StateConflict,
    ValidationError,
)
from ..core.logging import lifecycle_logger, rating_logger
from ..database.connection import DatabaseManager
from ..database.models import TrackStatus
from ..database.repositories import ProfileRepository, RatingRepository, TrackRepository
from .credit_ledger import CreditLedger
from .milestone_notifier import MilestoneNotifier
from .profile_service import ProfileService
from .reward_policy import RewardContext, RewardPolicy, get_reward_policy
from .score_compute import ScoreComputer

DIMENSION_COUNT = 4


@dataclass
class RatingOutcome:
    """What the rater gets back for an accepted rating"""
    credits_earned: int
    new_progress: int
    track_completed: bool = False

    @property
    def credit_earned(self) -> bool:
        return self.credits_earned > 0


class RatingIntake:
    """Rating submission: pre-checks, one transaction, then post-commit follow-ups"""

    def __init__(
        self,
        db: DatabaseManager,
        score_computer: Optional[ScoreComputer] = None,
        notifier: Optional[MilestoneNotifier] = None,
        reward_policy: Optional[RewardPolicy] = None,
        profiles: Optional[ProfileService] = None,
        settings=None
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.score_computer = score_computer or ScoreComputer(db, self.settings)
        self.notifier = notifier or MilestoneNotifier(db, settings=self.settings)
        self.reward_policy = reward_policy or get_reward_policy(self.settings)
        self.profiles = profiles or ProfileService(db, self.settings)

    def validate_rating(self, dimensions: Sequence[Any], feedback: Optional[str]) -> Optional[str]:
        """Check dimension values and feedback; returns normalized feedback"""
        if (
            not isinstance(dimensions, (list, tuple))
            or len(dimensions) != DIMENSION_COUNT
            or any(
                isinstance(d, bool)
                or not isinstance(d, int)
                or not self.settings.validate_rating_value(d)
                for d in dimensions
            )
        ):
            raise ValidationError(
                f"Invalid rating values. Each dimension must be an integer between "
                f"{self.settings.RATING_SCALE_MIN} and {self.settings.RATING_SCALE_MAX}."
            )

        if feedback is None:
            return None
        if not isinstance(feedback, str) or len(feedback) > self.settings.FEEDBACK_MAX_LENGTH:
            raise ValidationError(
                f"Feedback must be a string of {self.settings.FEEDBACK_MAX_LENGTH} "
                f"characters or fewer."
            )
        return feedback or None

    async def submit_rating(
        self,
        rater: AuthContext,
        track_id: uuid.UUID,
        dimensions: Sequence[Any],
        feedback: Optional[str] = None
    ) -> RatingOutcome:
        """Record a rating and reward the rater"""
        if isinstance(track_id, str):
            try:
                track_id = uuid.UUID(track_id)
            except ValueError:
                raise ValidationError("Invalid track ID")
        feedback = self.validate_rating(dimensions, feedback)
        rater_id = rater.user_id

        await self.profiles.ensure_profile(rater)

        async with self.db.get_session() as session:
            if await RatingRepository(session).exists_for(track_id, rater_id):
                rating_logger.log_duplicate(str(track_id), rater_id)
                raise AlreadyExists("You have already rated this track")

            track = await TrackRepository(session).get(track_id)
            if track is None or track.is_deleted or track.status == TrackStatus.DRAFT.value:
                raise NotFoundOrForbidden("Track not found")
            if track.status != TrackStatus.COLLECTING.value:
                raise StateConflict("This track is not currently accepting ratings")
            if track.user_id == rater_id:
                raise NotFoundOrForbidden("You cannot rate your own track")
            snippet_seconds = track.snippet_length

        try:
            async with self.db.transaction() as session:
                await RatingRepository(session).create(track_id, rater_id, list(dimensions), feedback)

                counts = await TrackRepository(session).increment_votes(track_id)
                if counts is None:
                    raise StateConflict("This track is no longer accepting ratings")
                votes_received, votes_requested = counts

                progress = await ProfileRepository(session).record_rating(
                    rater_id, self.reward_policy.uses_progress
                )
                if progress is None:
                    raise ProfileNotFound(f"Rater profile {rater_id} not found")

                credits_earned = await self.reward_policy.compute_reward(
                    RewardContext(
                        ledger=CreditLedger(session),
                        rater_id=rater_id,
                        track_id=str(track_id),
                        snippet_seconds=snippet_seconds,
                        rating_progress=progress
                    )
                )
        except AlreadyExists:
            rating_logger.log_duplicate(str(track_id), rater_id)
            raise

        if self.reward_policy.uses_progress and credits_earned > 0:
            new_progress = 0
        else:
            new_progress = self.reward_policy.display_progress(progress)

        rating_logger.log_rating_recorded(str(track_id), rater_id, votes_received, credits_earned)

        milestone = self.notifier.crossed_milestone(votes_received - 1, votes_received)
        if milestone is not None:
            self.notifier.schedule(track_id, milestone)

        track_completed = False
        if votes_requested > 0 and votes_received >= votes_requested:
            # The rating is committed; a failed compute is retried by the maintenance sweep
            try:
                await self.score_computer.compute_scores(track_id)
                track_completed = True
            except (SoundCheckError, SQLAlchemyError) as e:
                lifecycle_logger.log_error("compute_scores", str(e), track_id=str(track_id))

        return RatingOutcome(
            credits_earned=credits_earned,
            new_progress=new_progress,
            track_completed=track_completed
        )
