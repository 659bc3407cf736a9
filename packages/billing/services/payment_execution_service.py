"""
Service for charging customers through the payment provider.
"""

import uuid
from decimal import Decimal
from typing import Optional

from common.core.config import settings
from common.core.exceptions import NotFoundError, RemoteServiceError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.core.retry import retry
from packages.billing.models.domain.enums import BillingTier
from packages.billing.models.domain.invoice import Invoice
from packages.billing.models.domain.payment import PaymentResult
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.repositories.customer_repository import (
    PaymentCustomerRepository,
)

logger = get_logger(__name__)


class PaymentExecutionService:
    """Thin adapter issuing payment intents for tier changes and invoices."""

    def __init__(self):
        self.payment_customer_repo = PaymentCustomerRepository()
        self.payment = get_payment_provider()

    @trace_span
    async def charge_for_tier_change(
        self,
        entity_id: str,
        amount: Decimal,
        old_tier: BillingTier,
        new_tier: BillingTier,
    ) -> Optional[PaymentResult]:
        """
        Charge the prorated upgrade amount to the customer's first card.

        Returns:
            The payment result, or None when no payment method is on file

        Raises:
            NotFoundError: If the entity has no payment customer
            RemoteServiceError: If the charge still fails after retries
        """
        payment_customer = await self.payment_customer_repo.get_by_entity_id(entity_id)
        if not payment_customer:
            raise NotFoundError(f"Payment customer not found for entity: {entity_id}")

        payment_methods = await self.payment.list_payment_methods(payment_customer.id)
        if not payment_methods:
            logger.warning(
                f"No payment method found for entity {entity_id}, skipping payment",
                extra={"entity_id": entity_id, "customer_id": payment_customer.id},
            )
            return None

        payment_method = payment_methods[0]
        # Same key on every attempt so a retried request cannot double charge
        idempotency_key = f"tier-change-{entity_id}-{uuid.uuid4()}"

        result = await retry(
            lambda: self.payment.create_payment_intent(
                customer_id=payment_customer.id,
                amount=amount,
                currency=settings.billing_currency,
                payment_method_id=payment_method.id,
                metadata={
                    "entity_id": entity_id,
                    "tier_change": f"{old_tier.value}_to_{new_tier.value}",
                },
                off_session=True,
                idempotency_key=idempotency_key,
            ),
            max_attempts=settings.remote_max_retries,
            delay=settings.remote_retry_delay_seconds,
            retry_on=(RemoteServiceError,),
        )

        logger.info(
            f"Charged {amount} for tier change {old_tier.value} -> {new_tier.value}",
            extra={
                "entity_id": entity_id,
                "payment_intent_id": result.id,
                "payment_status": result.status,
            },
        )
        return result

    @trace_span
    async def pay_invoice(
        self,
        payment_customer_id: str,
        invoice: Invoice,
        payment_method_id: str,
    ) -> PaymentResult:
        """
        Pay an invoice with a specific payment method.

        Confirms the payment intent when the provider asks for confirmation.
        """
        result = await self.payment.create_payment_intent(
            customer_id=payment_customer_id,
            amount=invoice.amount,
            currency=invoice.currency,
            payment_method_id=payment_method_id,
            metadata={
                "invoice_id": invoice.id,
                "type": "subscription_initial_payment",
            },
        )

        if result.requires_confirmation:
            result = await self.payment.confirm_payment_intent(
                result.id, payment_method_id
            )

        logger.info(
            f"Payment for invoice {invoice.id}: {result.status}",
            extra={"invoice_id": invoice.id, "payment_intent_id": result.id},
        )
        return result
