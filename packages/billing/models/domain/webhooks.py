"""
Domain models for inbound provider webhooks.

Event types are closed enums per provider. The envelope keeps ``type`` as a
plain string so a type we do not know about still parses and can be logged
and skipped instead of being rejected at the edge.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from packages.billing.models.domain.base import UtcDatetime
from packages.billing.models.domain.enums import WebhookEventStatus, WebhookSource


class MetronomeWebhookType(str, Enum):
    """Subscription provider event types we handle."""

    CUSTOMER_CREATED = "customer.created"
    CUSTOMER_UPDATED = "customer.updated"

    CONTRACT_CREATED = "contract.created"
    CONTRACT_UPDATED = "contract.updated"
    CONTRACT_CANCELLED = "contract.cancelled"

    INVOICE_CREATED = "invoice.created"
    INVOICE_PAID = "invoice.paid"
    INVOICE_FAILED = "invoice.failed"

    CREDIT_APPLIED = "credit.applied"
    CREDIT_EXPIRED = "credit.expired"


class StripeWebhookType(str, Enum):
    """Stripe event types we handle."""

    # Payment method
    PAYMENT_METHOD_ATTACHED = "payment_method.attached"
    PAYMENT_METHOD_DETACHED = "payment_method.detached"

    # Payment intent
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_FAILED = "payment_intent.failed"
    PAYMENT_INTENT_PAYMENT_FAILED = "payment_intent.payment_failed"

    # Charge
    CHARGE_SUCCEEDED = "charge.succeeded"
    CHARGE_FAILED = "charge.failed"

    # Customer
    CUSTOMER_CREATED = "customer.created"
    CUSTOMER_UPDATED = "customer.updated"


class WebhookEvent(BaseModel):
    """Subscription provider webhook envelope: {id, type, data, created_at}."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: UtcDatetime = Field(alias="createdAt")


class StripeEventData(BaseModel):
    """Stripe event data wrapper."""

    object: dict[str, Any]  # The actual object (payment intent, customer, ...)


class StripeWebhookEvent(BaseModel):
    """Stripe webhook envelope."""

    id: str = Field(min_length=1)
    type: str
    data: StripeEventData
    created: int
    livemode: bool = False


class WebhookEventRecord(BaseModel):
    """Row of the persisted webhook event log."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    source: WebhookSource
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: UtcDatetime
    received_at: UtcDatetime
    status: WebhookEventStatus = WebhookEventStatus.RECEIVED
    attempts: int = 0
    last_error: Optional[str] = None


class ProcessedWebhookEvent(BaseModel):
    """Entry of the idempotency index."""

    model_config = ConfigDict(from_attributes=True)

    event_id: str
    source: WebhookSource
    processed_at: datetime
