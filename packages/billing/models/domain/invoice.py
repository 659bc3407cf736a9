"""
Domain models for invoices.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from packages.billing.models.domain.base import BillingModel, UtcDatetime
from packages.billing.models.domain.enums import InvoiceStatus


class InvoiceLineItem(BaseModel):
    """Single billable line on an invoice."""

    id: str
    description: str
    quantity: int = 1
    unit_price: Decimal
    amount: Decimal


class Invoice(BillingModel):
    """Invoice issued by the subscription provider. Amount is never negative."""

    id: str
    customer_id: str
    contract_id: Optional[str] = None
    amount: Decimal = Field(ge=0)
    currency: str = "USD"
    status: InvoiceStatus = InvoiceStatus.OPEN
    due_date: Optional[UtcDatetime] = None
    paid_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None
    line_items: list[InvoiceLineItem] = Field(default_factory=list)


class InvoiceUpdateModel(BaseModel):
    """Model for updating a mirrored invoice."""

    status: Optional[InvoiceStatus] = None
    paid_at: Optional[datetime] = None
