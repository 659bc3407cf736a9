"""Billing services."""

from packages.billing.services.tier_management_service import TierManagementService
from packages.billing.services.webhook_service import WebhookService
from packages.billing.services.payment_execution_service import (
    PaymentExecutionService,
)
from packages.billing.services.customer_onboarding_service import (
    CustomerOnboardingService,
)

__all__ = [
    "TierManagementService",
    "WebhookService",
    "PaymentExecutionService",
    "CustomerOnboardingService",
]
