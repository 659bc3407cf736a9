"""
Domain models for customer onboarding.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.customer import (
    BillingEntity,
    PaymentCustomer,
    PaymentMethod,
    SubscriptionCustomer,
)
from packages.billing.models.domain.enums import (
    BillingEntityType,
    BillingPeriod,
    BillingTier,
)


class OnboardingEntity(BaseModel):
    """Entity as submitted for onboarding. The ID is generated when absent."""

    id: Optional[str] = None
    type: BillingEntityType = BillingEntityType.USER
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)


class CustomerOnboardingRequest(BaseModel):
    entity: OnboardingEntity
    tier: BillingTier = BillingTier.FREE
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    payment_method_id: Optional[str] = None


class CustomerOnboardingResult(BaseModel):
    """Every record created while onboarding an entity."""

    entity: BillingEntity
    subscription_customer: SubscriptionCustomer
    payment_customer: PaymentCustomer
    contract: Contract
    payment_method: Optional[PaymentMethod] = None


class OnboardingStatus(BaseModel):
    entity_id: str
    has_entity: bool = False
    has_subscription_customer: bool = False
    has_payment_customer: bool = False
    has_active_contract: bool = False
    onboarded_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return (
            self.has_entity
            and self.has_subscription_customer
            and self.has_payment_customer
            and self.has_active_contract
        )
