"""
SoundCheck Profile Service
Lazy profile creation with unique handles and the signup bonus
"""

import logging
import random
import re
from typing import Optional

from ..core.auth import AuthContext
from ..core.config import get_settings
from ..core.errors import AlreadyExists, FatalError, ProfileNotFound
from ..database.connection import DatabaseManager
from ..database.models import Profile, TransactionType
from ..database.repositories import ProfileRepository
from .credit_ledger import CreditLedger

logger = logging.getLogger(__name__)

HANDLE_ATTEMPTS = 10
CREATE_ATTEMPTS = 3

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def base_handle(display_name: Optional[str], user_id: str) -> str:
    """Lowercased alphanumerics of the display name, else a user id prefix"""
    if display_name:
        cleaned = _NON_ALNUM.sub("", display_name.lower())
        if cleaned:
            return cleaned
    return user_id[:8]


async def generate_unique_handle(
    repo: ProfileRepository,
    display_name: Optional[str],
    user_id: str
) -> str:
    """First free handle among the base and random 3-digit suffixes.

    The UNIQUE constraint on profiles.handle still decides races between
    concurrent creators.
    """
    base = base_handle(display_name, user_id)
    candidate = base
    for _ in range(HANDLE_ATTEMPTS):
        if not await repo.handle_taken(candidate):
            return candidate
        candidate = f"{base}{random.randint(100, 999)}"
    return f"{base}{user_id[:6]}"


class ProfileService:
    """Profile reads and lazy creation"""

    def __init__(self, db: DatabaseManager, settings=None):
        self.db = db
        self.settings = settings or get_settings()

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        async with self.db.get_session() as session:
            return await ProfileRepository(session).get(user_id)

    async def ensure_profile(self, auth: AuthContext) -> Profile:
        """Return the caller's profile, creating it on first use"""
        for _ in range(CREATE_ATTEMPTS):
            existing = await self.get_profile(auth.user_id)
            if existing is not None:
                return existing

            try:
                return await self._create(auth)
            except AlreadyExists:
                # Lost an insert race, either on the id or on the handle
                logger.info(f"Concurrent profile creation for {auth.user_id}; re-reading")

        existing = await self.get_profile(auth.user_id)
        if existing is None:
            raise FatalError(f"Could not create profile for {auth.user_id}")
        return existing

    async def _create(self, auth: AuthContext) -> Profile:
        starting = self.settings.STARTING_CREDITS
        async with self.db.transaction() as session:
            repo = ProfileRepository(session)
            handle = await generate_unique_handle(repo, auth.display_name, auth.user_id)
            profile = await repo.create(auth.user_id, handle, starting)
            if starting > 0:
                await CreditLedger(session).record(
                    auth.user_id, starting, TransactionType.BONUS, starting, "signup"
                )
        logger.info(f"Created profile {auth.user_id} with handle '{profile.handle}'")
        return profile

    async def require_profile(self, user_id: str) -> Profile:
        profile = await self.get_profile(user_id)
        if profile is None:
            raise ProfileNotFound(f"Profile {user_id} not found")
        return profile
