"""
Proration arithmetic for tier changes.

Prices are prorated by whole days: both the period length and the time
left in it are rounded up to full days. The result is rounded to cents
once, half away from zero, so reversing a transition at the same instant
yields exactly the negated amount.
"""

import math
from datetime import datetime, timedelta
from decimal import Decimal

from common.core.exceptions import ValidationError
from packages.billing.models.domain.base import ensure_utc, quantize_money
from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.enums import BillingPeriod, BillingTier
from packages.billing.models.domain.tiers import get_tier_config

ONE_DAY = timedelta(days=1)


def _ceil_days(delta: timedelta) -> int:
    return math.ceil(delta / ONE_DAY)


def compute_proration(
    contract: Contract,
    old_tier: BillingTier,
    new_tier: BillingTier,
    billing_period: BillingPeriod,
    now: datetime,
) -> Decimal:
    """
    Amount owed (positive) or credited (negative) for switching tiers now.

    Args:
        contract: The contract being replaced; supplies the current period
        old_tier: Tier being left
        new_tier: Tier being entered
        billing_period: Period whose list prices apply
        now: Effective instant of the change

    Returns:
        Delta in major currency units, rounded to cents

    Raises:
        ValidationError: If a tier is unknown or the period has no length
    """
    old_price = get_tier_config(old_tier).price_for(billing_period)
    new_price = get_tier_config(new_tier).price_for(billing_period)

    now = ensure_utc(now)
    if contract.end_date is None or now >= contract.end_date:
        return quantize_money(new_price - old_price)

    total_days = _ceil_days(contract.end_date - contract.start_date)
    if total_days <= 0:
        raise ValidationError(
            f"Contract {contract.id} has an empty billing period "
            f"({contract.start_date.isoformat()} to {contract.end_date.isoformat()})"
        )

    # A change dated before the period starts is charged as a full period
    remaining_days = min(_ceil_days(contract.end_date - now), total_days)

    prorated_old = old_price * remaining_days / total_days
    prorated_new = new_price * remaining_days / total_days
    return quantize_money(prorated_new - prorated_old)


def compute_credit_delta(old_tier: BillingTier, new_tier: BillingTier) -> int:
    """Difference in monthly credit allotment, regardless of billing period."""
    return (
        get_tier_config(new_tier).monthly_credits
        - get_tier_config(old_tier).monthly_credits
    )
