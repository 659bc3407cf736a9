"""
Tier catalog: static prices and credit allotments per billing tier.
"""

from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from common.core.exceptions import ValidationError
from packages.billing.models.domain.enums import BillingPeriod, BillingTier


class TierConfig(BaseModel):
    """Price and allotment for one tier. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: BillingTier
    name: str
    monthly_price: Decimal
    yearly_price: Decimal
    monthly_credits: int
    features: tuple[str, ...] = ()
    max_storage_gb: Optional[int] = None  # -1 means unlimited
    max_inference_requests: Optional[int] = None  # -1 means unlimited

    def price_for(self, billing_period: BillingPeriod) -> Decimal:
        """Get the list price for a billing period."""
        if billing_period == BillingPeriod.YEARLY:
            return self.yearly_price
        return self.monthly_price


DEFAULT_TIER_CONFIGS: dict[BillingTier, TierConfig] = {
    BillingTier.FREE: TierConfig(
        id=BillingTier.FREE,
        name="Free",
        monthly_price=Decimal("0"),
        yearly_price=Decimal("0"),
        monthly_credits=1_000,
        features=("Basic storage", "Public repositories"),
        max_storage_gb=15,
        max_inference_requests=1_000,
    ),
    BillingTier.PRO: TierConfig(
        id=BillingTier.PRO,
        name="Pro",
        monthly_price=Decimal("9"),
        yearly_price=Decimal("90"),  # ~$7.50/month when paid yearly
        monthly_credits=10_000,
        features=("Unlimited storage", "Private repositories", "Priority support"),
        max_storage_gb=100,
        max_inference_requests=10_000,
    ),
    BillingTier.TEAM: TierConfig(
        id=BillingTier.TEAM,
        name="Team",
        monthly_price=Decimal("29"),
        yearly_price=Decimal("290"),  # ~$24/month when paid yearly
        monthly_credits=50_000,
        features=("Everything in Pro", "Team collaboration", "Advanced analytics"),
        max_storage_gb=500,
        max_inference_requests=50_000,
    ),
    BillingTier.ENTERPRISE: TierConfig(
        id=BillingTier.ENTERPRISE,
        name="Enterprise",
        monthly_price=Decimal("0"),  # Custom pricing
        yearly_price=Decimal("0"),
        monthly_credits=0,  # Custom credits
        features=(
            "Everything in Team",
            "Custom integrations",
            "Dedicated support",
            "SLA",
        ),
        max_storage_gb=-1,
        max_inference_requests=-1,
    ),
}


def get_tier_config(tier: Union[BillingTier, str]) -> TierConfig:
    """
    Look up a tier in the catalog.

    Raises:
        ValidationError: If the tier is not a catalog entry
    """
    try:
        return DEFAULT_TIER_CONFIGS[BillingTier(tier)]
    except (ValueError, KeyError):
        raise ValidationError(f"Invalid tier: {tier}")
