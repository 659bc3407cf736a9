"""Database models for billing."""

from packages.billing.models.database.entity import BillingEntityEntity
from packages.billing.models.database.customer import (
    SubscriptionCustomerEntity,
    PaymentCustomerEntity,
)
from packages.billing.models.database.contract import ContractEntity
from packages.billing.models.database.invoice import InvoiceEntity
from packages.billing.models.database.credit import CreditEntity
from packages.billing.models.database.webhook_event import (
    WebhookEventEntity,
    ProcessedWebhookEventEntity,
)

__all__ = [
    "BillingEntityEntity",
    "SubscriptionCustomerEntity",
    "PaymentCustomerEntity",
    "ContractEntity",
    "InvoiceEntity",
    "CreditEntity",
    "WebhookEventEntity",
    "ProcessedWebhookEventEntity",
]
