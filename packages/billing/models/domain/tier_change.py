"""
Domain models for tier changes and subscription status.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.enums import (
    BillingPeriod,
    BillingTier,
    ContractStatus,
)


class TierChangeRequest(BaseModel):
    entity_id: str
    new_tier: BillingTier
    billing_period: Optional[BillingPeriod] = None
    effective_date: Optional[datetime] = None


class TierChangeResult(BaseModel):
    """Outcome of a tier or billing-period change."""

    entity_id: str
    old_tier: BillingTier
    new_tier: BillingTier
    contract: Contract
    # None for a billing-period-only change
    prorated_amount: Optional[Decimal] = None


class SubscriptionStatusView(BaseModel):
    """Current subscription as shown to callers."""

    entity_id: str
    tier: BillingTier
    status: ContractStatus
    billing_period: BillingPeriod
    current_period_start: datetime
    current_period_end: Optional[datetime] = None
    credits_balance: int = 0
    next_invoice_date: Optional[datetime] = None
