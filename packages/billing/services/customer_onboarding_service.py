"""
Service for onboarding billing customers.

Onboarding creates the entity, its customer in both providers and an
initial contract. Payment method attachment and the first payment are
best effort: onboarding completes without them.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.customer import (
    BillingEntity,
    PaymentCustomer,
    PaymentMethod,
)
from packages.billing.models.domain.enums import BillingPeriod, BillingTier
from packages.billing.models.domain.onboarding import (
    CustomerOnboardingRequest,
    CustomerOnboardingResult,
    OnboardingStatus,
)
from packages.billing.models.domain.tiers import get_tier_config
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.subscription.factory import get_subscription_provider
from packages.billing.repositories.contract_repository import ContractRepository
from packages.billing.repositories.customer_repository import (
    PaymentCustomerRepository,
    SubscriptionCustomerRepository,
)
from packages.billing.repositories.entity_repository import BillingEntityRepository
from packages.billing.repositories.invoice_repository import InvoiceRepository
from packages.billing.services.payment_execution_service import (
    PaymentExecutionService,
)
from packages.billing.services.tier_management_service import rate_card_id

logger = get_logger(__name__)


class CustomerOnboardingService:
    """Service for creating customers across both providers."""

    def __init__(self):
        self.entity_repo = BillingEntityRepository()
        self.subscription_customer_repo = SubscriptionCustomerRepository()
        self.payment_customer_repo = PaymentCustomerRepository()
        self.contract_repo = ContractRepository()
        self.invoice_repo = InvoiceRepository()
        self.subscription = get_subscription_provider()
        self.payment = get_payment_provider()
        self.payment_execution = PaymentExecutionService()

    @trace_span
    async def onboard_customer(
        self, request: CustomerOnboardingRequest
    ) -> CustomerOnboardingResult:
        """
        Onboard a new user or organization.

        Steps:
        1. Save the entity (an ID is generated when absent)
        2. Create the subscription provider customer
        3. Create the Stripe customer
        4. Attach the payment method, if given
        5. Create the initial contract
        6. For a paid tier, invoice the first period and pay it when a
           payment method is attached

        Raises:
            ValidationError: If the tier is invalid
            RemoteServiceError: If a customer or the contract cannot be created
        """
        tier_config = get_tier_config(request.tier)
        now = datetime.now(timezone.utc)

        entity = await self.entity_repo.save(
            BillingEntity(
                id=request.entity.id or str(uuid.uuid4()),
                type=request.entity.type,
                name=request.entity.name,
                email=request.entity.email,
                created_at=now,
                updated_at=now,
            )
        )

        logger.info(
            f"Onboarding entity {entity.id} on {tier_config.id.value} tier",
            extra={"entity_id": entity.id, "tier": tier_config.id.value},
        )

        subscription_customer = await self.subscription.create_customer(
            entity_id=entity.id,
            entity_type=entity.type,
            email=entity.email,
            name=entity.name,
            metadata={"created_at": entity.created_at.isoformat()},
        )
        await self.subscription_customer_repo.save(subscription_customer)

        payment_customer = await self.payment.create_customer(
            entity_id=entity.id,
            email=entity.email,
            name=entity.name,
            metadata={
                "metronome_customer_id": subscription_customer.id,
                "entity_type": entity.type.value,
            },
        )
        await self.payment_customer_repo.save(payment_customer)

        payment_method = None
        if request.payment_method_id:
            payment_method = await self._attach_payment_method(
                payment_customer, request.payment_method_id
            )

        contract = await self.subscription.create_contract(
            customer_id=subscription_customer.id,
            tier=tier_config.id,
            billing_period=request.billing_period,
            rate_card_id=rate_card_id(tier_config.id),
        )
        await self.contract_repo.save(contract)

        if tier_config.id != BillingTier.FREE and tier_config.monthly_price > 0:
            await self._invoice_initial_period(
                subscription_customer.id,
                payment_customer,
                contract,
                request.billing_period,
                payment_method,
            )

        logger.info(
            f"Onboarded entity {entity.id}",
            extra={
                "entity_id": entity.id,
                "customer_id": subscription_customer.id,
                "payment_customer_id": payment_customer.id,
                "contract_id": contract.id,
            },
        )

        return CustomerOnboardingResult(
            entity=entity,
            subscription_customer=subscription_customer,
            payment_customer=payment_customer,
            contract=contract,
            payment_method=payment_method,
        )

    async def _attach_payment_method(
        self, payment_customer: PaymentCustomer, payment_method_id: str
    ) -> Optional[PaymentMethod]:
        try:
            return await self.payment.attach_payment_method(
                payment_customer.id, payment_method_id
            )
        except Exception as e:
            logger.warning(
                f"Failed to attach payment method: {str(e)}",
                extra={
                    "customer_id": payment_customer.id,
                    "payment_method_id": payment_method_id,
                },
            )
            return None

    async def _invoice_initial_period(
        self,
        customer_id: str,
        payment_customer: PaymentCustomer,
        contract: Contract,
        billing_period: BillingPeriod,
        payment_method: Optional[PaymentMethod],
    ) -> None:
        amount = get_tier_config(contract.tier).price_for(billing_period)
        try:
            invoice = await self.subscription.create_invoice(
                customer_id=customer_id,
                contract_id=contract.id,
                amount=amount,
                currency=settings.billing_currency,
            )
            await self.invoice_repo.save(invoice)
        except Exception as e:
            logger.warning(
                f"Failed to create initial invoice: {str(e)}",
                extra={"customer_id": customer_id, "contract_id": contract.id},
            )
            return

        if not payment_method:
            return

        try:
            await self.payment_execution.pay_invoice(
                payment_customer.id, invoice, payment_method.id
            )
            paid = await self.subscription.pay_invoice(invoice.id)
            await self.invoice_repo.save(paid)
        except Exception as e:
            # Invoice stays open
            logger.warning(
                f"Failed to process initial payment: {str(e)}",
                extra={"customer_id": customer_id, "invoice_id": invoice.id},
            )

    @trace_span
    async def get_onboarding_status(self, entity_id: str) -> OnboardingStatus:
        entity = await self.entity_repo.get(entity_id)
        subscription_customer = await self.subscription_customer_repo.get_by_entity_id(
            entity_id
        )
        payment_customer = await self.payment_customer_repo.get_by_entity_id(entity_id)

        active_contract = None
        if subscription_customer:
            active_contract = await self.contract_repo.get_active_by_customer_id(
                subscription_customer.id
            )

        return OnboardingStatus(
            entity_id=entity_id,
            has_entity=entity is not None,
            has_subscription_customer=subscription_customer is not None,
            has_payment_customer=payment_customer is not None,
            has_active_contract=active_contract is not None,
            onboarded_at=entity.created_at if entity else None,
        )
