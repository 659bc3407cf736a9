"""Domain models for billing."""

from packages.billing.models.domain.enums import (
    BillingTier,
    BillingPeriod,
    BillingEntityType,
    ContractStatus,
    InvoiceStatus,
    WebhookSource,
    WebhookEventStatus,
)
from packages.billing.models.domain.tiers import (
    TierConfig,
    DEFAULT_TIER_CONFIGS,
    get_tier_config,
)
from packages.billing.models.domain.customer import (
    BillingEntity,
    SubscriptionCustomer,
    PaymentCustomer,
    PaymentMethod,
    PaymentCard,
)
from packages.billing.models.domain.contract import Contract, ContractUpdateModel
from packages.billing.models.domain.invoice import (
    Invoice,
    InvoiceLineItem,
    InvoiceUpdateModel,
)
from packages.billing.models.domain.credit import Credit, CreditBalance
from packages.billing.models.domain.payment import PaymentResult
from packages.billing.models.domain.tier_change import (
    TierChangeRequest,
    TierChangeResult,
    SubscriptionStatusView,
)
from packages.billing.models.domain.onboarding import (
    OnboardingEntity,
    CustomerOnboardingRequest,
    CustomerOnboardingResult,
    OnboardingStatus,
)
from packages.billing.models.domain.webhooks import (
    MetronomeWebhookType,
    StripeWebhookType,
    WebhookEvent,
    StripeWebhookEvent,
    WebhookEventRecord,
)

__all__ = [
    # Enums
    "BillingTier",
    "BillingPeriod",
    "BillingEntityType",
    "ContractStatus",
    "InvoiceStatus",
    "WebhookSource",
    "WebhookEventStatus",
    # Catalog
    "TierConfig",
    "DEFAULT_TIER_CONFIGS",
    "get_tier_config",
    # Customers
    "BillingEntity",
    "SubscriptionCustomer",
    "PaymentCustomer",
    "PaymentMethod",
    "PaymentCard",
    # Contracts, invoices, credits
    "Contract",
    "ContractUpdateModel",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceUpdateModel",
    "Credit",
    "CreditBalance",
    "PaymentResult",
    # Service models
    "TierChangeRequest",
    "TierChangeResult",
    "SubscriptionStatusView",
    "OnboardingEntity",
    "CustomerOnboardingRequest",
    "CustomerOnboardingResult",
    "OnboardingStatus",
    # Webhooks
    "MetronomeWebhookType",
    "StripeWebhookType",
    "WebhookEvent",
    "StripeWebhookEvent",
    "WebhookEventRecord",
]
