"""
Repository for the credit ledger.
"""

from sqlalchemy import select, func, update

from common.repositories.base import BaseRepository
from packages.billing.models.database.credit import CreditEntity
from packages.billing.models.domain.credit import Credit
from common.core.otel_axiom_exporter import trace_span


class CreditRepository(BaseRepository[CreditEntity, Credit]):
    """
    Repository for credit ledger rows.

    Adjustments are appended as new rows; the balance is always derived by
    summing the balance column.
    """

    def __init__(self):
        super().__init__(CreditEntity, Credit)

    @trace_span
    async def get_balance(self, customer_id: str) -> int:
        """Sum of ledger balances for a customer."""
        async with self._get_session() as session:
            result = await session.execute(
                select(func.coalesce(func.sum(CreditEntity.balance), 0)).where(
                    CreditEntity.customer_id == customer_id
                )
            )
            return int(result.scalar_one())

    @trace_span
    async def expire(self, credit_id: str) -> bool:
        """Zero the remaining balance of a ledger row. Returns False if unknown."""
        async with self._get_session() as session:
            result = await session.execute(
                update(CreditEntity)
                .where(CreditEntity.id == credit_id)
                .values(balance=0)
            )
            await session.flush()
            return result.rowcount > 0
