"""
SoundCheck Pydantic Schemas
Request/response models for API validation and serialization
"""

import uuid
from datetime import datetime
from typing import Optional, List, Any
from pydantic import BaseModel, Field, ConfigDict


# Base configuration for all schemas
class BaseSchema(BaseModel):
    """Base schema with common configuration"""
    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
        arbitrary_types_allowed=True
    )


# Profile Schemas
class ProfileResponse(BaseSchema):
    """Schema for profile responses"""
    id: str
    handle: str
    credits: int
    tracks_uploaded: int
    tracks_rated: int
    rating_progress: int
    created_at: datetime


class CreditTransactionResponse(BaseSchema):
    """Schema for ledger rows"""
    id: uuid.UUID
    amount: int
    type: str
    reference_id: Optional[str] = None
    created_at: datetime


class CreditBalanceResponse(BaseSchema):
    """Schema for the credit balance endpoint"""
    credits: int
    transactions: List[CreditTransactionResponse] = Field(default_factory=list)


# Upload Schemas
class UploadResponse(BaseSchema):
    """Schema for a stored upload"""
    id: uuid.UUID
    filename: str
    original_name: Optional[str] = None
    size: Optional[int] = None


# Track Schemas
class TrackSubmission(BaseSchema):
    """Schema for submitting a track for rating.

    Field shapes are checked here; ranges and catalog membership are checked by
    the lifecycle service so every entry point applies the same rules.
    """
    title: str
    audio_filename: str
    duration: float
    genre_tags: List[str] = Field(default_factory=list)
    snippet_start: float
    snippet_end: float
    production_stage: str
    context_id: str
    package_index: int


class TrackResponse(BaseSchema):
    """Schema for track responses"""
    id: uuid.UUID
    user_id: str
    title: str
    audio_filename: str
    duration: Optional[float] = None
    genre_tags: List[str] = Field(default_factory=list)
    production_stage: Optional[str] = None
    context_id: Optional[str] = None
    status: str
    snippet_start: Optional[float] = None
    snippet_end: Optional[float] = None
    votes_requested: int
    votes_received: int
    overall_score: Optional[float] = None
    percentile: Optional[float] = None
    share_token: str
    created_at: datetime


class PublicTrackResponse(BaseSchema):
    """Schema for tracks shown to raters; owner and share token stay hidden"""
    id: uuid.UUID
    title: str
    audio_filename: str
    context_id: Optional[str] = None
    snippet_start: Optional[float] = None
    snippet_end: Optional[float] = None


class TrackPage(BaseSchema):
    """Paginated list of the caller's tracks"""
    tracks: List[TrackResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


# Rating Schemas
class RatingSubmission(BaseSchema):
    """Schema for submitting a rating"""
    track_id: uuid.UUID
    dimensions: List[Any] = Field(..., description="Four integer dimension scores")
    feedback: Optional[str] = None


class RatingOutcomeResponse(BaseSchema):
    """Schema for the result of a rating submission"""
    credit_earned: bool
    credits_earned: int
    new_progress: int
    track_completed: bool = False


class NextTrackResponse(BaseSchema):
    """Next track to rate plus the caller's reward progress"""
    track: Optional[PublicTrackResponse] = None
    rating_progress: int


# Results Schemas
class InsightItem(BaseSchema):
    """Rule-based or generated insight"""
    title: str
    description: str
    variant: str = "default"
    emoji: Optional[str] = None
    category: Optional[str] = None


class TrackResultsResponse(BaseSchema):
    """Aggregated results for a track"""
    track: TrackResponse
    dimension_names: List[str]
    dimension_averages: List[float]
    insights: List[InsightItem]
    ai_insights: List[InsightItem] = Field(default_factory=list)
    feedback: List[str] = Field(default_factory=list)


class SharedTrackResponse(BaseSchema):
    """Track fields safe to show on a public share page"""
    title: str
    genre_tags: List[str] = Field(default_factory=list)
    production_stage: Optional[str] = None
    context_id: Optional[str] = None
    status: str
    votes_requested: int
    votes_received: int
    overall_score: Optional[float] = None
    percentile: Optional[float] = None
    created_at: datetime


class SharedResultsResponse(BaseSchema):
    """Results reachable through a share token; feedback stays private"""
    track: SharedTrackResponse
    dimension_names: List[str]
    dimension_averages: List[float]
    insights: List[InsightItem]


# Catalog Schemas
class DimensionResponse(BaseSchema):
    key: str
    name: str
    description: str
    low_label: str
    high_label: str


class ContextResponse(BaseSchema):
    id: str
    name: str
    description: str
    dimensions: List[DimensionResponse]


class ProductionStageResponse(BaseSchema):
    id: str
    name: str


class VotePackageResponse(BaseSchema):
    index: int
    votes: int
    credits: int
    label: str
    description: str
    is_free: bool


# Maintenance Schemas
class CleanupResponse(BaseSchema):
    deleted_uploads: int
    deleted_drafts: int
    scored_tracks: int
