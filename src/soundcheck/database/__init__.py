"""
SoundCheck Database Module
Exports database models, connection management, and Base
"""

from .connection import Base, DatabaseManager, database_manager
from .models import (
    Profile,
    Upload,
    Track,
    Rating,
    CreditTransaction,
    AIInsight,
    TrackStatus,
    TransactionType
)

__all__ = [
    "Base",
    "DatabaseManager",
    "database_manager",
    "Profile",
    "Upload",
    "Track",
    "Rating",
    "CreditTransaction",
    "AIInsight",
    "TrackStatus",
    "TransactionType"
]
