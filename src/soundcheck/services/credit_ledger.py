"""
SoundCheck Credit Ledger
Guarded balance mutations, each paired with an append-only ledger row
"""

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import InsufficientCredits, ProfileNotFound, ValidationError
from ..core.logging import ledger_logger
from ..database.models import CreditTransaction, TransactionType
from ..database.repositories import CreditTransactionRepository, ProfileRepository


def _check_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Credit amount must be a positive integer")
    return amount


class CreditLedger:
    """
    Credit balance operations bound to the caller's session.

    Every mutation is a single conditional UPDATE followed by one ledger row in
    the same transaction, so the stored balance always equals the ledger sum.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.profiles = ProfileRepository(session)
        self.transactions = CreditTransactionRepository(session)

    async def deduct(
        self,
        user_id: str,
        amount: int,
        reference_id: Optional[str] = None
    ) -> int:
        """Spend credits; returns the new balance"""
        if amount == 0 and type(amount) is int:
            return await self.balance(user_id)
        _check_amount(amount)

        new_balance = await self.profiles.deduct_credits(user_id, amount)
        if new_balance is None:
            if await self.profiles.exists(user_id):
                ledger_logger.log_insufficient(user_id, amount)
                raise InsufficientCredits()
            raise ProfileNotFound(f"Profile {user_id} not found during deduction")

        await self.transactions.append(
            user_id, -amount, TransactionType.SUBMIT_COST.value, reference_id
        )
        ledger_logger.log_mutation(
            user_id, -amount, TransactionType.SUBMIT_COST.value, new_balance, reference_id
        )
        return new_balance

    async def award(
        self,
        user_id: str,
        amount: int,
        transaction_type: TransactionType = TransactionType.RATING_REWARD,
        reference_id: Optional[str] = None
    ) -> int:
        """Grant credits; returns the new balance"""
        _check_amount(amount)

        new_balance = await self.profiles.add_credits(user_id, amount)
        if new_balance is None:
            raise ProfileNotFound(f"Profile {user_id} not found during award")

        await self.record(user_id, amount, transaction_type, new_balance, reference_id)
        return new_balance

    async def refund(self, user_id: str, amount: int, reference_id: Optional[str] = None) -> int:
        """Compensating credit for a deduction whose follow-up failed"""
        return await self.award(user_id, amount, TransactionType.REFUND, reference_id)

    async def record(
        self,
        user_id: str,
        amount: int,
        transaction_type: TransactionType,
        balance: int,
        reference_id: Optional[str] = None
    ) -> CreditTransaction:
        """Ledger row for a balance change already applied by a guarded statement"""
        row = await self.transactions.append(
            user_id, amount, transaction_type.value, reference_id
        )
        ledger_logger.log_mutation(
            user_id, amount, transaction_type.value, balance, reference_id
        )
        return row

    async def balance(self, user_id: str) -> int:
        credits = await self.profiles.get_credits(user_id)
        if credits is None:
            raise ProfileNotFound(f"Profile {user_id} not found")
        return credits

    async def ledger_balance(self, user_id: str) -> int:
        return await self.transactions.sum_for_user(user_id)

    async def history(self, user_id: str, limit: int = 50) -> List[CreditTransaction]:
        return await self.transactions.list_for_user(user_id, limit)
