"""
API schemas for billing operations.

Request and response models for billing endpoints. Field names are
camelCase on the wire; snake_case is accepted on input as well.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from packages.billing.models.domain.enums import (
    BillingEntityType,
    BillingPeriod,
    BillingTier,
    ContractStatus,
    WebhookEventStatus,
    WebhookSource,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# ============================================================================
# Shared Schemas
# ============================================================================


class ContractResponse(CamelModel):
    """Contract as returned by the API."""

    id: str
    customer_id: str
    tier: BillingTier
    status: ContractStatus
    billing_period: BillingPeriod
    start_date: datetime
    end_date: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    rate_card_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Onboarding Schemas
# ============================================================================


class EntityRequest(CamelModel):
    id: Optional[str] = None
    type: BillingEntityType = BillingEntityType.USER
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)


class OnboardRequest(CamelModel):
    """Request to onboard a user or organization."""

    entity: EntityRequest
    tier: BillingTier = BillingTier.FREE
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    payment_method_id: Optional[str] = Field(
        default=None, description="Stripe payment method ID to attach"
    )


class EntityResponse(CamelModel):
    id: str
    type: BillingEntityType
    name: str
    email: str
    created_at: datetime
    updated_at: datetime


class SubscriptionCustomerResponse(CamelModel):
    id: str
    entity_id: str
    email: str
    name: str


class PaymentCustomerResponse(CamelModel):
    id: str
    entity_id: str
    email: str
    name: str


class PaymentMethodResponse(CamelModel):
    id: str
    type: str
    brand: Optional[str] = None
    last4: Optional[str] = None


class OnboardResponse(CamelModel):
    """Records created during onboarding."""

    entity: EntityResponse
    metronome_customer: SubscriptionCustomerResponse
    stripe_customer: PaymentCustomerResponse
    contract: ContractResponse
    payment_method: Optional[PaymentMethodResponse] = None


class OnboardingStatusResponse(CamelModel):
    entity_id: str
    onboarded: bool
    has_subscription_customer: bool
    has_payment_customer: bool
    has_active_contract: bool


# ============================================================================
# Tier Management Schemas
# ============================================================================


class TierChangeRequest(CamelModel):
    """Request to change tier or billing period."""

    entity_id: str
    new_tier: BillingTier
    billing_period: Optional[BillingPeriod] = None
    effective_date: Optional[datetime] = None


class TierChangeResponse(CamelModel):
    """Response after a tier change."""

    entity_id: str
    old_tier: BillingTier
    new_tier: BillingTier
    contract: ContractResponse
    prorated_amount: Optional[Decimal] = Field(
        default=None,
        description="Positive: charged. Negative: credited. Absent for a period change.",
    )


class ReactivateRequest(CamelModel):
    tier: Optional[BillingTier] = None
    billing_period: Optional[BillingPeriod] = None


# ============================================================================
# Subscription Schemas
# ============================================================================


class SubscriptionStatusResponse(CamelModel):
    """Current subscription status."""

    entity_id: str
    tier: BillingTier
    status: ContractStatus
    billing_period: BillingPeriod
    current_period_start: datetime
    current_period_end: Optional[datetime] = None
    credits_balance: int
    next_invoice_date: Optional[datetime] = None


class CustomerSummary(CamelModel):
    id: str
    name: str
    email: str
    type: BillingEntityType
    tier: Optional[BillingTier] = None
    status: Optional[ContractStatus] = None
    credits_balance: int = 0


class CustomerListResponse(BaseModel):
    data: list[CustomerSummary]
    total: int


# ============================================================================
# Webhook Schemas
# ============================================================================


class WebhookReceivedResponse(BaseModel):
    received: bool = True
    duplicate: bool = False


class WebhookEventResponse(CamelModel):
    id: str
    source: WebhookSource
    type: str
    status: WebhookEventStatus
    attempts: int
    last_error: Optional[str] = None
    created_at: datetime
    received_at: datetime


class WebhookEventListResponse(BaseModel):
    data: list[WebhookEventResponse]
    total: int
