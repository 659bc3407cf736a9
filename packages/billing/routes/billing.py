"""
Billing API routes.

Endpoints for onboarding, tier management and subscription lifecycle.
Domain errors are translated to HTTP status codes by the application's
exception handlers.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from packages.billing.models.domain.enums import WebhookEventStatus, WebhookSource
from packages.billing.models.domain.onboarding import (
    CustomerOnboardingRequest,
    OnboardingEntity,
)
from packages.billing.repositories.entity_repository import BillingEntityRepository
from packages.billing.repositories.webhook_event_repository import (
    WebhookEventRepository,
)
from packages.billing.services.customer_onboarding_service import (
    CustomerOnboardingService,
)
from packages.billing.services.tier_management_service import TierManagementService
from packages.billing.models.schemas.billing import (
    ContractResponse,
    CustomerListResponse,
    CustomerSummary,
    EntityResponse,
    OnboardRequest,
    OnboardResponse,
    OnboardingStatusResponse,
    PaymentCustomerResponse,
    PaymentMethodResponse,
    ReactivateRequest,
    SubscriptionCustomerResponse,
    SubscriptionStatusResponse,
    TierChangeRequest,
    TierChangeResponse,
    WebhookEventListResponse,
    WebhookEventResponse,
)

router = APIRouter()


# ============================================================================
# Onboarding
# ============================================================================


@router.post("/onboard", response_model=OnboardResponse)
async def onboard_customer(request: OnboardRequest):
    """
    Onboard a user or organization.

    Creates the customer in both providers and the initial contract.
    """
    onboarding_service = CustomerOnboardingService()

    result = await onboarding_service.onboard_customer(
        CustomerOnboardingRequest(
            entity=OnboardingEntity(**request.entity.model_dump()),
            tier=request.tier,
            billing_period=request.billing_period,
            payment_method_id=request.payment_method_id,
        )
    )

    payment_method = None
    if result.payment_method:
        card = result.payment_method.card
        payment_method = PaymentMethodResponse(
            id=result.payment_method.id,
            type=result.payment_method.type,
            brand=card.brand if card else None,
            last4=card.last4 if card else None,
        )

    return OnboardResponse(
        entity=EntityResponse.model_validate(result.entity),
        metronome_customer=SubscriptionCustomerResponse.model_validate(
            result.subscription_customer
        ),
        stripe_customer=PaymentCustomerResponse.model_validate(result.payment_customer),
        contract=ContractResponse.model_validate(result.contract),
        payment_method=payment_method,
    )


@router.get("/onboard/{entity_id}", response_model=OnboardingStatusResponse)
async def get_onboarding_status(entity_id: str):
    onboarding_service = CustomerOnboardingService()
    onboarding = await onboarding_service.get_onboarding_status(entity_id)

    return OnboardingStatusResponse(
        entity_id=entity_id,
        onboarded=onboarding.is_complete,
        has_subscription_customer=onboarding.has_subscription_customer,
        has_payment_customer=onboarding.has_payment_customer,
        has_active_contract=onboarding.has_active_contract,
    )


# ============================================================================
# Tier Management
# ============================================================================


@router.post("/tier/change", response_model=TierChangeResponse)
async def change_tier(request: TierChangeRequest):
    """
    Upgrade or downgrade an entity, or switch its billing period.

    The prorated difference is charged (upgrade) or credited (downgrade).
    """
    tier_service = TierManagementService()

    result = await tier_service.change_tier(
        entity_id=request.entity_id,
        new_tier=request.new_tier,
        billing_period=request.billing_period,
        effective_date=request.effective_date,
    )

    return TierChangeResponse(
        entity_id=result.entity_id,
        old_tier=result.old_tier,
        new_tier=result.new_tier,
        contract=ContractResponse.model_validate(result.contract),
        prorated_amount=result.prorated_amount,
    )


# ============================================================================
# Subscription Lifecycle
# ============================================================================


@router.get("/subscription/{entity_id}", response_model=SubscriptionStatusResponse)
async def get_subscription_status(entity_id: str):
    tier_service = TierManagementService()

    subscription = await tier_service.get_subscription_status(entity_id)
    if not subscription:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )

    return SubscriptionStatusResponse.model_validate(subscription)


@router.post("/subscription/{entity_id}/cancel", response_model=ContractResponse)
async def cancel_subscription(entity_id: str):
    """Cancel the entity's active contract."""
    tier_service = TierManagementService()
    contract = await tier_service.cancel_subscription(entity_id)
    return ContractResponse.model_validate(contract)


@router.post("/subscription/{entity_id}/reactivate", response_model=ContractResponse)
async def reactivate_subscription(
    entity_id: str, request: Optional[ReactivateRequest] = None
):
    """
    Start a new contract for the entity.

    Tier and billing period default to those of the most recent contract.
    """
    request = request or ReactivateRequest()
    tier_service = TierManagementService()

    contract = await tier_service.reactivate_subscription(
        entity_id, tier=request.tier, billing_period=request.billing_period
    )
    return ContractResponse.model_validate(contract)


# ============================================================================
# Customers
# ============================================================================


@router.get("/customers", response_model=CustomerListResponse)
async def list_customers(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    """List billing entities with their current tier and credit balance."""
    entity_repo = BillingEntityRepository()
    tier_service = TierManagementService()

    entities = await entity_repo.get_multi(skip=skip, limit=limit)

    customers = []
    for entity in entities:
        subscription = await tier_service.get_subscription_status(entity.id)
        customers.append(
            CustomerSummary(
                id=entity.id,
                name=entity.name,
                email=entity.email,
                type=entity.type,
                tier=subscription.tier if subscription else None,
                status=subscription.status if subscription else None,
                credits_balance=subscription.credits_balance if subscription else 0,
            )
        )

    return CustomerListResponse(data=customers, total=len(customers))


# ============================================================================
# Webhook Event Log
# ============================================================================


@router.get("/webhooks/events", response_model=WebhookEventListResponse)
async def list_webhook_events(
    limit: int = Query(100, ge=1, le=1000),
    source: Optional[WebhookSource] = None,
    event_status: Optional[WebhookEventStatus] = Query(None, alias="status"),
):
    """Most recently received webhook events, for operators."""
    event_repo = WebhookEventRepository()

    events = await event_repo.list_recent(limit=limit, source=source, status=event_status)

    return WebhookEventListResponse(
        data=[WebhookEventResponse.model_validate(event) for event in events],
        total=len(events),
    )
