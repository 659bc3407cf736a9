"""
Domain models for the credit ledger.

A customer's balance is always the sum of its ledger rows' balances; no
row holds a running total.
"""

from typing import Optional

from pydantic import BaseModel, Field

from packages.billing.models.domain.base import BillingModel, UtcDatetime


class Credit(BillingModel):
    """One signed adjustment in a customer's credit ledger."""

    id: str
    customer_id: str
    amount: int
    balance: int
    currency: str = "USD"
    expires_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None


class CreditBalanceEntry(BaseModel):
    """Ledger row as returned by the provider's balance endpoint."""

    id: str
    amount: int
    balance: int
    expires_at: Optional[UtcDatetime] = None


class CreditBalance(BaseModel):
    """Provider view of a customer's credit ledger."""

    customer_id: str
    currency: str = "USD"
    credits: list[CreditBalanceEntry] = Field(default_factory=list)
    reported_balance: Optional[int] = Field(default=None, alias="balance")

    model_config = {"populate_by_name": True}

    @property
    def total(self) -> int:
        """Sum of the ledger rows, falling back to the reported balance."""
        if self.credits:
            return sum(credit.balance for credit in self.credits)
        return self.reported_balance or 0
