"""
Domain models for billing entities and their provider-side customers.
"""

from typing import Any, Optional
from pydantic import AliasChoices, Field

from packages.billing.models.domain.base import BillingModel, UtcDatetime
from packages.billing.models.domain.enums import BillingEntityType


class BillingEntity(BillingModel):
    """
    First-party customer record (a user or an organization).

    The entity ID is ours; provider customers point back to it.
    """

    id: str
    type: BillingEntityType
    name: str
    email: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


class SubscriptionCustomer(BillingModel):
    """Customer as known to the subscription/credits provider."""

    id: str
    entity_id: str
    entity_type: BillingEntityType = BillingEntityType.USER
    email: str = ""
    name: str = ""
    created_at: UtcDatetime
    updated_at: UtcDatetime
    customer_metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("customer_metadata", "metadata"),
    )


class PaymentCustomer(BillingModel):
    """Customer as known to the payment provider (Stripe)."""

    id: str
    entity_id: str
    email: str = ""
    name: str = ""
    created: int
    customer_metadata: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("customer_metadata", "metadata"),
    )


class PaymentCard(BillingModel):
    """Card details exposed for a payment method."""

    brand: str
    last4: str
    exp_month: int
    exp_year: int


class PaymentMethod(BillingModel):
    """Stripe payment method summary."""

    id: str
    type: str = "card"  # card or bank_account
    card: Optional[PaymentCard] = None
    created: int = 0
