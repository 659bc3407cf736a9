"""
Interface for payment providers.

Abstracts payment processing away from specific platforms (Stripe, PayPal, etc.)
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from packages.billing.models.domain.customer import PaymentCustomer, PaymentMethod
from packages.billing.models.domain.payment import PaymentResult
from packages.billing.models.domain.webhooks import StripeWebhookEvent


class PaymentProviderInterface(ABC):
    """Abstract interface for payment providers."""

    @abstractmethod
    async def create_customer(
        self,
        entity_id: str,
        email: str,
        name: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> PaymentCustomer:
        """
        Create a customer in the payment provider.

        Args:
            entity_id: Internal entity ID, stored in the customer metadata
            email: Customer email
            name: Customer name
            metadata: Extra metadata

        Returns:
            The payment provider customer
        """
        pass

    @abstractmethod
    async def attach_payment_method(
        self, customer_id: str, payment_method_id: str
    ) -> PaymentMethod:
        """Attach a payment method to a customer."""
        pass

    @abstractmethod
    async def detach_payment_method(self, payment_method_id: str) -> None:
        pass

    @abstractmethod
    async def list_payment_methods(self, customer_id: str) -> list[PaymentMethod]:
        """List the card payment methods attached to a customer."""
        pass

    @abstractmethod
    async def create_payment_intent(
        self,
        customer_id: str,
        amount: Decimal,
        currency: str,
        payment_method_id: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
        off_session: bool = False,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        """
        Create a payment intent.

        The intent is confirmed immediately when a payment method is given.

        Args:
            customer_id: Payment provider customer ID
            amount: Amount in major currency units
            currency: ISO currency code
            payment_method_id: Payment method to charge
            metadata: Metadata stored on the intent
            off_session: Charge without the customer present
            idempotency_key: Key that makes retried requests safe to replay

        Returns:
            The intent's id, status and amount
        """
        pass

    @abstractmethod
    async def confirm_payment_intent(
        self, payment_intent_id: str, payment_method_id: Optional[str] = None
    ) -> PaymentResult:
        pass

    @abstractmethod
    async def create_charge(
        self,
        customer_id: str,
        amount: Decimal,
        currency: str,
        payment_method_id: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> PaymentResult:
        """Create a direct charge against a customer."""
        pass

    @abstractmethod
    def construct_webhook_event(
        self, payload: bytes, signature: str
    ) -> StripeWebhookEvent:
        """
        Verify a webhook signature and parse the event.

        Raises:
            ValidationError: If the signature or payload is invalid
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the payment backend is available and healthy.

        Returns:
            True if healthy, False otherwise
        """
        pass
