"""
Repository for mirrored subscription contracts.
"""

from typing import Optional

from sqlalchemy import select

from common.repositories.base import BaseRepository
from packages.billing.models.database.contract import ContractEntity
from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.enums import ContractStatus
from common.core.otel_axiom_exporter import trace_span


class ContractRepository(BaseRepository[ContractEntity, Contract]):
    """Repository for contract mirrors keyed by provider contract ID."""

    def __init__(self):
        super().__init__(ContractEntity, Contract)

    @trace_span
    async def get_active_by_customer_id(self, customer_id: str) -> Optional[Contract]:
        """Get the active contract for a subscription customer."""
        async with self._get_session() as session:
            result = await session.execute(
                select(ContractEntity)
                .where(
                    ContractEntity.customer_id == customer_id,
                    ContractEntity.status == ContractStatus.ACTIVE.value,
                )
                .order_by(ContractEntity.created_at.desc())
                .limit(1)
            )
            contract = result.scalar_one_or_none()
            return self._entity_to_domain(contract) if contract else None

    @trace_span
    async def get_by_customer_id(self, customer_id: str) -> list[Contract]:
        """All contracts for a customer, most recently created first."""
        async with self._get_session() as session:
            result = await session.execute(
                select(ContractEntity)
                .where(ContractEntity.customer_id == customer_id)
                .order_by(ContractEntity.created_at.desc())
            )
            return self._entities_to_domain(result.scalars().all())
