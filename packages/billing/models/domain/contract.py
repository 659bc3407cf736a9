"""
Domain models for subscription contracts.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from packages.billing.models.domain.base import BillingModel, UtcDatetime
from packages.billing.models.domain.enums import (
    BillingPeriod,
    BillingTier,
    ContractStatus,
)


class Contract(BillingModel):
    """
    A customer's contract with the subscription provider.

    Represents the billing tier and period for one customer. At most one
    contract per customer is active at a time.
    """

    id: str
    customer_id: str

    tier: BillingTier
    status: ContractStatus
    billing_period: BillingPeriod

    start_date: UtcDatetime
    end_date: Optional[UtcDatetime] = None
    cancelled_at: Optional[UtcDatetime] = None

    rate_card_id: Optional[str] = None

    created_at: UtcDatetime
    updated_at: UtcDatetime

    def is_active(self) -> bool:
        return self.status == ContractStatus.ACTIVE

    def is_newer_than(self, other: "Contract") -> bool:
        """Check if this snapshot is at least as recent as another one."""
        return self.updated_at >= other.updated_at


class ContractUpdateModel(BaseModel):
    """Model for updating a mirrored contract."""

    status: Optional[ContractStatus] = None
    billing_period: Optional[BillingPeriod] = None
    cancelled_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
