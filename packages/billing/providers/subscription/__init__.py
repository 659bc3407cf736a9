"""Subscription providers - contracts, invoices and the credit ledger."""

from packages.billing.providers.subscription.interface import (
    SubscriptionProviderInterface,
)
from packages.billing.providers.subscription.factory import get_subscription_provider

__all__ = [
    "SubscriptionProviderInterface",
    "get_subscription_provider",
]
