"""
Credit Transaction Repository
Append-only access to the credit ledger
"""

from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from ...core.errors import RepositoryError
from ..models import CreditTransaction
from .base import BaseRepository


class CreditTransactionRepository(BaseRepository[CreditTransaction]):
    """Repository for CreditTransaction operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(CreditTransaction, session)

    async def append(
        self,
        user_id: str,
        amount: int,
        transaction_type: str,
        reference_id: Optional[str] = None
    ) -> CreditTransaction:
        """Append one ledger row"""
        row = CreditTransaction(
            user_id=user_id,
            amount=amount,
            type=transaction_type,
            reference_id=reference_id
        )
        self.session.add(row)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error appending ledger row: {str(e)}") from e
        return row

    async def sum_for_user(self, user_id: str) -> int:
        """Balance derived from the ledger"""
        try:
            result = await self.session.execute(
                select(func.coalesce(func.sum(self.model.amount), 0))
                .where(self.model.user_id == user_id)
            )
            return int(result.scalar())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error summing ledger: {str(e)}") from e

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[CreditTransaction]:
        """Most recent ledger rows for a user"""
        try:
            result = await self.session.execute(
                select(self.model)
                .where(self.model.user_id == user_id)
                .order_by(self.model.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error listing ledger rows: {str(e)}") from e
