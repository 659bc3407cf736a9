"""
Repositories for provider-side customer mirrors.
"""

from typing import Optional

from sqlalchemy import select

from common.repositories.base import BaseRepository
from packages.billing.models.database.customer import (
    SubscriptionCustomerEntity,
    PaymentCustomerEntity,
)
from packages.billing.models.domain.customer import (
    SubscriptionCustomer,
    PaymentCustomer,
)
from common.core.otel_axiom_exporter import trace_span


class SubscriptionCustomerRepository(
    BaseRepository[SubscriptionCustomerEntity, SubscriptionCustomer]
):
    """Mirror of subscription provider customers, one per entity."""

    def __init__(self):
        super().__init__(SubscriptionCustomerEntity, SubscriptionCustomer)

    @trace_span
    async def get_by_entity_id(self, entity_id: str) -> Optional[SubscriptionCustomer]:
        """Get the subscription customer for one of our entities."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionCustomerEntity).where(
                    SubscriptionCustomerEntity.entity_id == entity_id
                )
            )
            customer = result.scalar_one_or_none()
            return self._entity_to_domain(customer) if customer else None


class PaymentCustomerRepository(BaseRepository[PaymentCustomerEntity, PaymentCustomer]):
    """Mirror of Stripe customers, one per entity."""

    def __init__(self):
        super().__init__(PaymentCustomerEntity, PaymentCustomer)

    @trace_span
    async def get_by_entity_id(self, entity_id: str) -> Optional[PaymentCustomer]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PaymentCustomerEntity).where(
                    PaymentCustomerEntity.entity_id == entity_id
                )
            )
            customer = result.scalar_one_or_none()
            return self._entity_to_domain(customer) if customer else None
