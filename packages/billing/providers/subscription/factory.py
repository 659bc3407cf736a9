"""
Factory for getting subscription provider instance.
"""

from typing import Optional

from packages.billing.providers.subscription.interface import (
    SubscriptionProviderInterface,
)
from packages.billing.providers.subscription.metronome_subscription import (
    MetronomeSubscriptionProvider,
)

_subscription_provider: Optional[SubscriptionProviderInterface] = None


def get_subscription_provider() -> SubscriptionProviderInterface:
    """
    Get the subscription provider singleton.

    The Metronome client caches its OAuth token, so one instance is shared
    across requests.
    """
    global _subscription_provider
    if _subscription_provider is None:
        _subscription_provider = MetronomeSubscriptionProvider()
    return _subscription_provider
