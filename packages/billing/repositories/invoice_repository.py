"""
Repository for mirrored invoices.
"""

from sqlalchemy import select

from common.repositories.base import BaseRepository
from packages.billing.models.database.invoice import InvoiceEntity
from packages.billing.models.domain.invoice import Invoice
from common.core.otel_axiom_exporter import trace_span


class InvoiceRepository(BaseRepository[InvoiceEntity, Invoice]):
    def __init__(self):
        super().__init__(InvoiceEntity, Invoice)

    @trace_span
    async def get_by_customer_id(self, customer_id: str) -> list[Invoice]:
        async with self._get_session() as session:
            result = await session.execute(
                select(InvoiceEntity)
                .where(InvoiceEntity.customer_id == customer_id)
                .order_by(InvoiceEntity.created_at.desc())
            )
            return self._entities_to_domain(result.scalars().all())
