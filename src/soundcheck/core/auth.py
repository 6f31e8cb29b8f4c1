"""
SoundCheck Auth Context
Identity of the caller, resolved upstream by the auth gateway
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AuthContext:
    """Authenticated user for the current request"""
    user_id: str
    display_name: Optional[str] = None
