"""Billing repositories."""

from packages.billing.repositories.entity_repository import BillingEntityRepository
from packages.billing.repositories.customer_repository import (
    SubscriptionCustomerRepository,
    PaymentCustomerRepository,
)
from packages.billing.repositories.contract_repository import ContractRepository
from packages.billing.repositories.invoice_repository import InvoiceRepository
from packages.billing.repositories.credit_repository import CreditRepository
from packages.billing.repositories.webhook_event_repository import (
    WebhookEventRepository,
    ProcessedWebhookEventRepository,
)

__all__ = [
    "BillingEntityRepository",
    "SubscriptionCustomerRepository",
    "PaymentCustomerRepository",
    "ContractRepository",
    "InvoiceRepository",
    "CreditRepository",
    "WebhookEventRepository",
    "ProcessedWebhookEventRepository",
]
