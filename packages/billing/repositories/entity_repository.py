"""
Repository for first-party billing entities.
"""

from typing import Optional

from sqlalchemy import select

from common.repositories.base import BaseRepository
from packages.billing.models.database.entity import BillingEntityEntity
from packages.billing.models.domain.customer import BillingEntity
from common.core.otel_axiom_exporter import trace_span


class BillingEntityRepository(BaseRepository[BillingEntityEntity, BillingEntity]):
    """Repository for users and organizations we bill."""

    def __init__(self):
        super().__init__(BillingEntityEntity, BillingEntity)

    @trace_span
    async def get_by_email(self, email: str) -> Optional[BillingEntity]:
        async with self._get_session() as session:
            result = await session.execute(
                select(BillingEntityEntity)
                .where(BillingEntityEntity.email == email)
                .limit(1)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None
