"""
Domain models for payment execution results.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class PaymentResult(BaseModel):
    """Result of a payment intent or charge against the payment provider."""

    id: str
    status: str
    amount: Decimal
    currency: str = "usd"
    customer_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    client_secret: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @property
    def requires_confirmation(self) -> bool:
        return self.status == "requires_confirmation"
