"""
Service for tier changes and the subscription lifecycle.

Every contract mutation for an entity runs under that entity's lock so at
most one change is in flight per customer.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from common.core.config import settings
from common.core.exceptions import NotFoundError, RemoteServiceError, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.core.retry import retry
from common.providers.locking.factory import get_lock_provider
from packages.billing.lock_keys import entity_contract_lock_key
from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.customer import SubscriptionCustomer
from packages.billing.models.domain.enums import BillingPeriod, BillingTier
from packages.billing.models.domain.invoice import Invoice, InvoiceLineItem
from packages.billing.models.domain.payment import PaymentResult
from packages.billing.models.domain.tier_change import (
    SubscriptionStatusView,
    TierChangeResult,
)
from packages.billing.models.domain.tiers import get_tier_config
from packages.billing.providers.subscription.factory import get_subscription_provider
from packages.billing.repositories.contract_repository import ContractRepository
from packages.billing.repositories.credit_repository import CreditRepository
from packages.billing.repositories.customer_repository import (
    SubscriptionCustomerRepository,
)
from packages.billing.repositories.invoice_repository import InvoiceRepository
from packages.billing.services.payment_execution_service import (
    PaymentExecutionService,
)
from packages.billing.services.proration import (
    compute_credit_delta,
    compute_proration,
)

logger = get_logger(__name__)


def rate_card_id(tier: BillingTier) -> str:
    return f"rate_{tier.value}"


class TierManagementService:
    """Service for upgrades, downgrades, cancellation and reactivation."""

    def __init__(self):
        self.customer_repo = SubscriptionCustomerRepository()
        self.contract_repo = ContractRepository()
        self.invoice_repo = InvoiceRepository()
        self.credit_repo = CreditRepository()
        self.subscription = get_subscription_provider()
        self.payment_execution = PaymentExecutionService()
        self.lock_provider = get_lock_provider()

    def _entity_lock(self, entity_id: str):
        return self.lock_provider.hold(
            entity_contract_lock_key(entity_id),
            lock_ttl_seconds=settings.tier_change_lock_ttl_seconds,
            acquire_timeout_seconds=settings.tier_change_lock_timeout_seconds,
        )

    async def _get_customer(self, entity_id: str) -> SubscriptionCustomer:
        customer = await self.customer_repo.get_by_entity_id(entity_id)
        if not customer:
            raise NotFoundError(f"Customer not found for entity: {entity_id}")
        return customer

    async def _get_active_contract(self, customer: SubscriptionCustomer) -> Contract:
        contract = await self.contract_repo.get_active_by_customer_id(customer.id)
        if not contract:
            raise NotFoundError(f"No active contract found for customer: {customer.id}")
        return contract

    @trace_span
    async def change_tier(
        self,
        entity_id: str,
        new_tier: BillingTier,
        billing_period: Optional[BillingPeriod] = None,
        effective_date: Optional[datetime] = None,
    ) -> TierChangeResult:
        """
        Move an entity to a different tier, or change its billing period.

        The active contract is cancelled and replaced; the price difference
        for the rest of the period is invoiced (upgrade) or credited
        (downgrade), and the credit allotment is adjusted.

        Raises:
            NotFoundError: If the entity has no customer or active contract
            ValidationError: If the tier is invalid or nothing would change
            RemoteServiceError: If the contract swap fails
            ConcurrentModificationError: If another change holds the lock
        """
        async with self._entity_lock(entity_id):
            customer = await self._get_customer(entity_id)
            current = await self._get_active_contract(customer)

            old_tier = current.tier
            new_tier = get_tier_config(new_tier).id

            if old_tier == new_tier:
                if billing_period is not None and billing_period != current.billing_period:
                    return await self._update_billing_period(
                        entity_id, current, billing_period
                    )
                raise ValidationError(f"Customer is already on {new_tier.value} tier")

            period = billing_period or current.billing_period
            now = effective_date or datetime.now(timezone.utc)
            prorated_amount = compute_proration(current, old_tier, new_tier, period, now)

            logger.info(
                f"Changing tier {old_tier.value} -> {new_tier.value} for entity {entity_id}",
                extra={
                    "entity_id": entity_id,
                    "customer_id": customer.id,
                    "contract_id": current.id,
                    "prorated_amount": str(prorated_amount),
                },
            )

            new_contract = await self._swap_contract(customer, current, new_tier, period)
            await self._adjust_credits(customer.id, new_contract, old_tier, new_tier)

            payment: Optional[PaymentResult] = None
            if prorated_amount > 0:
                payment = await self._charge_tier_change(
                    entity_id, prorated_amount, old_tier, new_tier
                )

            if prorated_amount != 0:
                await self._invoice_tier_change(
                    customer.id,
                    new_contract,
                    prorated_amount,
                    old_tier,
                    new_tier,
                    charged=payment is not None and payment.succeeded,
                )

        return TierChangeResult(
            entity_id=entity_id,
            old_tier=old_tier,
            new_tier=new_tier,
            contract=new_contract,
            prorated_amount=prorated_amount,
        )

    async def _update_billing_period(
        self, entity_id: str, contract: Contract, billing_period: BillingPeriod
    ) -> TierChangeResult:
        updated = await self.subscription.update_contract(
            contract.id, billing_period=billing_period
        )
        await self.contract_repo.save(updated)

        logger.info(
            f"Changed billing period to {billing_period.value} for entity {entity_id}",
            extra={"entity_id": entity_id, "contract_id": contract.id},
        )

        return TierChangeResult(
            entity_id=entity_id,
            old_tier=contract.tier,
            new_tier=contract.tier,
            contract=updated,
        )

    async def _swap_contract(
        self,
        customer: SubscriptionCustomer,
        current: Contract,
        new_tier: BillingTier,
        billing_period: BillingPeriod,
    ) -> Contract:
        """
        Cancel the active contract and create its replacement.

        Creation is retried. If it still fails, a contract on the previous
        tier and period is created so the customer keeps an active contract,
        and the failure is raised.
        """
        cancelled = await self.subscription.cancel_contract(current.id)
        await self.contract_repo.save(cancelled)

        try:
            new_contract = await retry(
                lambda: self.subscription.create_contract(
                    customer_id=customer.id,
                    tier=new_tier,
                    billing_period=billing_period,
                    rate_card_id=rate_card_id(new_tier),
                ),
                max_attempts=settings.remote_max_retries,
                delay=settings.remote_retry_delay_seconds,
                retry_on=(RemoteServiceError,),
            )
        except RemoteServiceError as e:
            logger.error(
                f"Failed to create {new_tier.value} contract after cancelling {current.id}, restoring",
                extra={"customer_id": customer.id, "contract_id": current.id},
            )
            await self._restore_contract(customer, current)
            raise RemoteServiceError(
                f"Failed to create {new_tier.value} contract for customer {customer.id}: {e}",
                service=e.service,
                status_code=e.status_code,
            ) from e

        await self.contract_repo.save(new_contract)
        return new_contract

    async def _restore_contract(
        self, customer: SubscriptionCustomer, previous: Contract
    ) -> Optional[Contract]:
        try:
            restored = await self.subscription.create_contract(
                customer_id=customer.id,
                tier=previous.tier,
                billing_period=previous.billing_period,
                rate_card_id=previous.rate_card_id or rate_card_id(previous.tier),
            )
        except RemoteServiceError as e:
            logger.critical(
                f"Customer {customer.id} has no active contract: restore failed: {e}",
                extra={"customer_id": customer.id, "contract_id": previous.id},
            )
            return None

        await self.contract_repo.save(restored)
        logger.info(
            f"Restored {previous.tier.value} contract for customer {customer.id}",
            extra={"customer_id": customer.id, "contract_id": restored.id},
        )
        return restored

    async def _adjust_credits(
        self,
        customer_id: str,
        contract: Contract,
        old_tier: BillingTier,
        new_tier: BillingTier,
    ) -> None:
        """
        Apply the credit difference between the tiers.

        Retried with a key derived from the new contract so the provider
        applies it at most once. A final failure is logged for operators
        and does not undo the tier change.
        """
        credit_delta = compute_credit_delta(old_tier, new_tier)
        if credit_delta == 0:
            return

        idempotency_key = f"tier-change-{contract.id}-credits"
        try:
            credit = await retry(
                lambda: self.subscription.apply_credit(
                    customer_id=customer_id,
                    amount=credit_delta,
                    currency=settings.billing_currency,
                    idempotency_key=idempotency_key,
                ),
                max_attempts=settings.remote_max_retries,
                delay=settings.remote_retry_delay_seconds,
                retry_on=(RemoteServiceError,),
            )
        except RemoteServiceError as e:
            logger.critical(
                f"Credit adjustment of {credit_delta} not applied for customer {customer_id}: {e}",
                extra={
                    "customer_id": customer_id,
                    "contract_id": contract.id,
                    "credit_delta": str(credit_delta),
                    "idempotency_key": idempotency_key,
                },
            )
            return

        await self.credit_repo.save(credit)

    async def _charge_tier_change(
        self,
        entity_id: str,
        amount: Decimal,
        old_tier: BillingTier,
        new_tier: BillingTier,
    ) -> Optional[PaymentResult]:
        """Best effort: a failed charge leaves the upgrade invoice open."""
        try:
            return await self.payment_execution.charge_for_tier_change(
                entity_id, amount, old_tier, new_tier
            )
        except Exception as e:
            logger.error(
                f"Failed to process tier change payment: {str(e)}",
                extra={"entity_id": entity_id, "error": str(e)},
            )
            return None

    async def _invoice_tier_change(
        self,
        customer_id: str,
        contract: Contract,
        prorated_amount: Decimal,
        old_tier: BillingTier,
        new_tier: BillingTier,
        charged: bool,
    ) -> Optional[Invoice]:
        """
        Invoice the prorated difference.

        Downgrade credits are settled immediately; upgrade invoices only once
        the charge went through.
        """
        amount = abs(prorated_amount)
        suffix = " (credit)" if prorated_amount < 0 else ""
        try:
            invoice = await self.subscription.create_invoice(
                customer_id=customer_id,
                contract_id=contract.id,
                amount=amount,
                currency=settings.billing_currency,
                line_items=[
                    InvoiceLineItem(
                        id=f"line_{uuid.uuid4().hex}",
                        description=f"Tier change from {old_tier.value} to {new_tier.value}{suffix}",
                        quantity=1,
                        unit_price=amount,
                        amount=amount,
                    )
                ],
            )
            await self.invoice_repo.save(invoice)

            if prorated_amount < 0 or charged:
                invoice = await self.subscription.pay_invoice(invoice.id)
                await self.invoice_repo.save(invoice)

            return invoice
        except Exception as e:
            logger.warning(
                f"Failed to create tier change invoice: {str(e)}",
                extra={"customer_id": customer_id, "contract_id": contract.id},
            )
            return None

    @trace_span
    async def get_subscription_status(
        self, entity_id: str
    ) -> Optional[SubscriptionStatusView]:
        """Current tier, period and credit balance, or None if not subscribed."""
        customer = await self.customer_repo.get_by_entity_id(entity_id)
        if not customer:
            return None

        contract = await self.contract_repo.get_active_by_customer_id(customer.id)
        if not contract:
            return None

        try:
            credits_balance = (
                await self.subscription.get_credit_balance(customer.id)
            ).total
        except RemoteServiceError as e:
            # Fall back to the ledger mirror, which webhooks keep current
            logger.warning(
                f"Credit balance unavailable for customer {customer.id}, using mirror: {e}",
                extra={"customer_id": customer.id, "entity_id": entity_id},
            )
            credits_balance = await self.credit_repo.get_balance(customer.id)

        return SubscriptionStatusView(
            entity_id=entity_id,
            tier=contract.tier,
            status=contract.status,
            billing_period=contract.billing_period,
            current_period_start=contract.start_date,
            current_period_end=contract.end_date,
            credits_balance=credits_balance,
            next_invoice_date=contract.end_date,
        )

    @trace_span
    async def cancel_subscription(self, entity_id: str) -> Contract:
        async with self._entity_lock(entity_id):
            customer = await self._get_customer(entity_id)
            contract = await self._get_active_contract(customer)

            cancelled = await self.subscription.cancel_contract(contract.id)
            await self.contract_repo.save(cancelled)

        logger.info(
            f"Cancelled subscription for entity {entity_id}",
            extra={"entity_id": entity_id, "contract_id": contract.id},
        )
        return cancelled

    @trace_span
    async def reactivate_subscription(
        self,
        entity_id: str,
        tier: Optional[BillingTier] = None,
        billing_period: Optional[BillingPeriod] = None,
    ) -> Contract:
        """
        Start a new active contract from the most recently created one.

        The previous contract supplies the tier and period unless given. A
        still-active contract is cancelled first.

        Raises:
            NotFoundError: If the entity has no customer or no contracts
        """
        if tier is not None:
            tier = get_tier_config(tier).id

        async with self._entity_lock(entity_id):
            customer = await self._get_customer(entity_id)

            contracts = await self.contract_repo.get_by_customer_id(customer.id)
            if not contracts:
                # Mirror may be behind; ask the provider
                contracts = await self.subscription.list_contracts(customer.id)
                for contract in contracts:
                    await self.contract_repo.save(contract)
            if not contracts:
                raise NotFoundError(f"No contract found for customer: {customer.id}")

            last_contract = max(contracts, key=lambda c: c.created_at)
            reactivation_tier = tier or last_contract.tier
            reactivation_period = billing_period or last_contract.billing_period

            for contract in contracts:
                if contract.is_active():
                    cancelled = await self.subscription.cancel_contract(contract.id)
                    await self.contract_repo.save(cancelled)

            new_contract = await self.subscription.create_contract(
                customer_id=customer.id,
                tier=reactivation_tier,
                billing_period=reactivation_period,
                rate_card_id=rate_card_id(reactivation_tier),
            )
            await self.contract_repo.save(new_contract)

        logger.info(
            f"Reactivated {reactivation_tier.value} subscription for entity {entity_id}",
            extra={"entity_id": entity_id, "contract_id": new_contract.id},
        )
        return new_contract
