"""
SoundCheck Database Models
SQLAlchemy ORM models for profiles, uploads, tracks, ratings and the credit ledger
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
from sqlalchemy import (
    String,
    Integer,
    Float,
    Boolean,
    Text,
    TIMESTAMP,
    JSON,
    ForeignKey,
    Index,
    CheckConstraint,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from .connection import Base


def utcnow() -> datetime:
    """Naive UTC timestamp matching the TIMESTAMP columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TrackStatus(str, Enum):
    """Track lifecycle states; transitions only move forward"""
    DRAFT = "draft"
    COLLECTING = "collecting"
    COMPLETE = "complete"


class TransactionType(str, Enum):
    """Ledger row type tags"""
    SUBMIT_COST = "submit_cost"
    RATING_REWARD = "rating_reward"
    REFUND = "refund"
    BONUS = "bonus"


class Profile(Base):
    """One per authenticated user; created lazily and never hard-deleted"""
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_profiles_credits_non_negative"),
        CheckConstraint(
            "rating_progress >= 0",
            name="ck_profiles_rating_progress_non_negative"
        ),
    )

    # Auth user id
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    handle: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tracks_uploaded: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tracks_rated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # 0-4, resets at 5

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    tracks: Mapped[List["Track"]] = relationship("Track", back_populates="owner")

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, handle='{self.handle}', credits={self.credits})>"


class Upload(Base):
    """Raw uploaded audio waiting to be claimed by exactly one track"""
    __tablename__ = "uploads"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id"),
        nullable=False
    )

    # Storage URL or public path
    filename: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    original_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    consumed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Upload(id={self.id}, filename='{self.filename}', consumed={self.consumed})>"


class Track(Base):
    """Submitted clip moving through draft -> collecting -> complete"""
    __tablename__ = "tracks"
    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'collecting', 'complete')",
            name="ck_tracks_status"
        ),
        CheckConstraint(
            "votes_received <= votes_requested",
            name="ck_tracks_votes_within_target"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id"),
        nullable=False
    )

    # Track metadata
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    audio_filename: Mapped[str] = mapped_column(Text, nullable=False)
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    genre_tags: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    production_stage: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # Set on activation
    context_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16),
        default=TrackStatus.DRAFT.value,
        nullable=False
    )

    # Snippet bounds in seconds
    snippet_start: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    snippet_end: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Vote counters
    votes_requested: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    votes_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Set once on completion
    overall_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    percentile: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    share_token: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    owner: Mapped["Profile"] = relationship("Profile", back_populates="tracks")

    @property
    def snippet_length(self) -> Optional[float]:
        if self.snippet_start is None or self.snippet_end is None:
            return None
        return self.snippet_end - self.snippet_start

    def __repr__(self) -> str:
        return f"<Track(id={self.id}, title='{self.title}', status='{self.status}')>"


class Rating(Base):
    """One listener's scoring of one track"""
    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("track_id", "rater_id", name="ratings_track_rater_unique"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Ratings outlive soft-deleted tracks; no cascade
    track_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tracks.id"),
        nullable=False
    )
    rater_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id"),
        nullable=False
    )

    dimension_1: Mapped[int] = mapped_column(Integer, nullable=False)
    dimension_2: Mapped[int] = mapped_column(Integer, nullable=False)
    dimension_3: Mapped[int] = mapped_column(Integer, nullable=False)
    dimension_4: Mapped[int] = mapped_column(Integer, nullable=False)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    @property
    def dimensions(self) -> List[int]:
        return [self.dimension_1, self.dimension_2, self.dimension_3, self.dimension_4]

    def __repr__(self) -> str:
        return f"<Rating(id={self.id}, track_id={self.track_id}, rater_id={self.rater_id})>"


class CreditTransaction(Base):
    """Append-only ledger row; never updated"""
    __tablename__ = "credit_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id"),
        nullable=False
    )

    # Positive = earned, negative = spent
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    reference_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<CreditTransaction(user_id={self.user_id}, amount={self.amount}, type='{self.type}')>"


class AIInsight(Base):
    """Externally generated insights, one row per (track, milestone)"""
    __tablename__ = "ai_insights"
    __table_args__ = (
        UniqueConstraint("track_id", "milestone", name="ai_insights_track_milestone_unique"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    track_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tracks.id"),
        nullable=False
    )
    milestone: Mapped[int] = mapped_column(Integer, nullable=False)
    insights: Mapped[list] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<AIInsight(track_id={self.track_id}, milestone={self.milestone})>"


# Performance indexes
Index("ix_uploads_user_created", Upload.user_id, Upload.created_at)
Index("ix_uploads_consumed_created", Upload.consumed, Upload.created_at)
Index("ix_tracks_user_id", Track.user_id)
Index("ix_tracks_status_context", Track.status, Track.context_id)
Index("ix_tracks_rating_queue", Track.status, Track.is_deleted, Track.votes_received)
Index("ix_ratings_track_id", Rating.track_id)
Index("ix_ratings_rater_id", Rating.rater_id)
Index("ix_credit_transactions_user_id", CreditTransaction.user_id)
