"""
SoundCheck Profile API Routes
The caller's profile and credit history
"""

from fastapi import APIRouter, Depends, Query

from ...core.auth import AuthContext
from ...database.connection import DatabaseManager
from ...database.schemas import (
    CreditBalanceResponse,
    CreditTransactionResponse,
    ProfileResponse,
)
from ...services.credit_ledger import CreditLedger
from ...services.profile_service import ProfileService
from ..dependencies import get_auth_context, get_database, get_profile_service

router = APIRouter()


@router.get("", response_model=ProfileResponse)
async def get_profile(
    auth: AuthContext = Depends(get_auth_context),
    profiles: ProfileService = Depends(get_profile_service)
):
    """Get the caller's profile, creating it on first use"""
    profile = await profiles.ensure_profile(auth)
    return ProfileResponse.model_validate(profile)


@router.get("/credits", response_model=CreditBalanceResponse)
async def get_credits(
    limit: int = Query(20, ge=1, le=100),
    auth: AuthContext = Depends(get_auth_context),
    profiles: ProfileService = Depends(get_profile_service),
    db: DatabaseManager = Depends(get_database)
):
    """Current balance and recent ledger rows"""
    await profiles.ensure_profile(auth)
    async with db.get_session() as session:
        ledger = CreditLedger(session)
        balance = await ledger.balance(auth.user_id)
        history = await ledger.history(auth.user_id, limit)

    return CreditBalanceResponse(
        credits=balance,
        transactions=[CreditTransactionResponse.model_validate(row) for row in history]
    )
