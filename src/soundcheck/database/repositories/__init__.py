"""
SoundCheck Repository Layer
Data access layer with guarded async operations
"""

from .base import BaseRepository
from .profile_repository import ProfileRepository
from .upload_repository import UploadRepository
from .track_repository import TrackRepository
from .rating_repository import RatingRepository
from .credit_transaction_repository import CreditTransactionRepository
from .insight_repository import InsightRepository

__all__ = [
    "BaseRepository",
    "ProfileRepository",
    "UploadRepository",
    "TrackRepository",
    "RatingRepository",
    "CreditTransactionRepository",
    "InsightRepository"
]
