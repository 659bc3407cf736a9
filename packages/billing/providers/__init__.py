"""Billing providers - abstracted external platform integrations."""

from packages.billing.providers.subscription.factory import get_subscription_provider
from packages.billing.providers.payment.factory import get_payment_provider

__all__ = [
    "get_subscription_provider",
    "get_payment_provider",
]
