"""
Shared pieces for billing domain models.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict

CENTS = Decimal("0.01")


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def quantize_money(value: Decimal) -> Decimal:
    """Round a monetary amount to cents, ties away from zero."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class BillingModel(BaseModel):
    """Base for records mirrored from the billing providers."""

    model_config = ConfigDict(from_attributes=True)
