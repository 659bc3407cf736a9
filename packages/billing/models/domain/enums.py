"""
Billing enums - strongly typed enumerations for contract and billing states.
"""

from enum import Enum


class BillingTier(str, Enum):
    """
    Subscription pricing tiers.

    Prices and credit allotments live in the tier catalog (tiers.py).
    """

    FREE = "free"
    PRO = "pro"
    TEAM = "team"
    ENTERPRISE = "enterprise"


class BillingPeriod(str, Enum):
    """Contract billing cadence."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


class ContractStatus(str, Enum):
    """
    Contract status lifecycle.

    Flow: pending -> active -> cancelled | expired
    """

    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PENDING = "pending"


class InvoiceStatus(str, Enum):
    """Invoice payment status."""

    DRAFT = "draft"
    OPEN = "open"
    PAID = "paid"
    VOID = "void"
    UNCOLLECTIBLE = "uncollectible"

    def is_settled(self) -> bool:
        """Check if nothing more is owed on this invoice."""
        return self in (InvoiceStatus.PAID, InvoiceStatus.VOID)


class BillingEntityType(str, Enum):
    """Kind of first-party customer that owns a subscription."""

    USER = "user"
    ORGANIZATION = "organization"


class WebhookSource(str, Enum):
    """Provider that sent a webhook event."""

    METRONOME = "metronome"
    STRIPE = "stripe"


class WebhookEventStatus(str, Enum):
    """Processing state of a logged webhook event."""

    RECEIVED = "received"
    PROCESSED = "processed"
    FAILED = "failed"
