"""
Interface for subscription providers.

Abstracts the contract, invoice and credit ledger engine away from a
specific platform.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.credit import Credit, CreditBalance
from packages.billing.models.domain.customer import SubscriptionCustomer
from packages.billing.models.domain.enums import (
    BillingEntityType,
    BillingPeriod,
    BillingTier,
)
from packages.billing.models.domain.invoice import Invoice, InvoiceLineItem


class SubscriptionProviderInterface(ABC):
    """Abstract interface for subscription providers."""

    @abstractmethod
    async def create_customer(
        self,
        entity_id: str,
        entity_type: BillingEntityType,
        email: str,
        name: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SubscriptionCustomer:
        """
        Create a customer in the subscription provider.

        Args:
            entity_id: Our internal entity ID
            entity_type: User or organization
            email: Billing email
            name: Display name
            metadata: Extra attributes stored with the customer

        Returns:
            The provider customer
        """
        pass

    @abstractmethod
    async def create_contract(
        self,
        customer_id: str,
        tier: BillingTier,
        billing_period: BillingPeriod,
        rate_card_id: Optional[str] = None,
    ) -> Contract:
        """Create an active contract for a customer."""
        pass

    @abstractmethod
    async def cancel_contract(self, contract_id: str) -> Contract:
        """Cancel a contract. Returns the cancelled contract."""
        pass

    @abstractmethod
    async def update_contract(
        self,
        contract_id: str,
        billing_period: Optional[BillingPeriod] = None,
    ) -> Contract:
        """Update a contract in place (billing period only)."""
        pass

    @abstractmethod
    async def list_contracts(self, customer_id: Optional[str] = None) -> list[Contract]:
        """List contracts, optionally for one customer."""
        pass

    @abstractmethod
    async def create_invoice(
        self,
        customer_id: str,
        contract_id: str,
        amount: Decimal,
        currency: str = "USD",
        line_items: Optional[list[InvoiceLineItem]] = None,
    ) -> Invoice:
        """
        Create an invoice.

        Args:
            customer_id: Provider customer ID
            contract_id: Contract the invoice belongs to
            amount: Non-negative amount in major currency units
            currency: ISO currency code
            line_items: Optional line items

        Returns:
            The open invoice
        """
        pass

    @abstractmethod
    async def pay_invoice(self, invoice_id: str) -> Invoice:
        """Mark an invoice as paid. Returns the paid invoice."""
        pass

    @abstractmethod
    async def apply_credit(
        self,
        customer_id: str,
        amount: int,
        currency: str = "USD",
        expires_at: Optional[datetime] = None,
        idempotency_key: Optional[str] = None,
    ) -> Credit:
        """
        Append a signed credit adjustment to the customer's ledger.

        Calls sharing an idempotency_key apply the adjustment once.
        """
        pass

    @abstractmethod
    async def get_credit_balance(self, customer_id: str) -> CreditBalance:
        """Get the customer's credit ledger and balance."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the subscription backend is available and healthy.

        Returns:
            True if healthy, False otherwise
        """
        pass

    async def aclose(self) -> None:
        """Release network resources held by the client."""
        pass
