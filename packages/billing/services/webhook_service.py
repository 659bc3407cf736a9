"""
Service for processing provider webhooks.

Each event is applied at most once: its ID goes into the persisted
idempotency index only after its handler succeeded, so a failed event is
re-attempted on redelivery or retry. Handlers make no assumption about
delivery order between different events.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Type, Union

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger, log_span_event
from common.core.retry import retry
from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.credit import Credit
from packages.billing.models.domain.customer import (
    PaymentCustomer,
    SubscriptionCustomer,
)
from packages.billing.models.domain.enums import (
    ContractStatus,
    InvoiceStatus,
    WebhookEventStatus,
    WebhookSource,
)
from packages.billing.models.domain.invoice import Invoice, InvoiceUpdateModel
from packages.billing.models.domain.webhooks import (
    MetronomeWebhookType,
    StripeWebhookEvent,
    StripeWebhookType,
    WebhookEvent,
    WebhookEventRecord,
)
from packages.billing.repositories.contract_repository import ContractRepository
from packages.billing.repositories.credit_repository import CreditRepository
from packages.billing.repositories.customer_repository import (
    PaymentCustomerRepository,
    SubscriptionCustomerRepository,
)
from packages.billing.repositories.invoice_repository import InvoiceRepository
from packages.billing.repositories.webhook_event_repository import (
    ProcessedWebhookEventRepository,
    WebhookEventRepository,
)

logger = get_logger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[None]]


def _check_exhaustive(event_types: Type[Enum], handlers: Mapping[Enum, Handler]) -> None:
    """Fail fast if an event type has no handler."""
    missing = [t.value for t in event_types if t not in handlers]
    if missing:
        raise TypeError(f"No handler for {event_types.__name__}: {', '.join(missing)}")


class WebhookService:
    """Service for idempotent, retryable webhook processing."""

    def __init__(self):
        self.event_repo = WebhookEventRepository()
        self.processed_repo = ProcessedWebhookEventRepository(
            retention_days=settings.processed_event_retention_days
        )
        self.subscription_customer_repo = SubscriptionCustomerRepository()
        self.payment_customer_repo = PaymentCustomerRepository()
        self.contract_repo = ContractRepository()
        self.invoice_repo = InvoiceRepository()
        self.credit_repo = CreditRepository()

        self._metronome_handlers: dict[MetronomeWebhookType, Handler] = {
            MetronomeWebhookType.CUSTOMER_CREATED: self._handle_customer_upsert,
            MetronomeWebhookType.CUSTOMER_UPDATED: self._handle_customer_upsert,
            MetronomeWebhookType.CONTRACT_CREATED: self._handle_contract_upsert,
            MetronomeWebhookType.CONTRACT_UPDATED: self._handle_contract_upsert,
            MetronomeWebhookType.CONTRACT_CANCELLED: self._handle_contract_cancelled,
            MetronomeWebhookType.INVOICE_CREATED: self._handle_invoice_created,
            MetronomeWebhookType.INVOICE_PAID: self._handle_invoice_paid,
            MetronomeWebhookType.INVOICE_FAILED: self._handle_invoice_failed,
            MetronomeWebhookType.CREDIT_APPLIED: self._handle_credit_applied,
            MetronomeWebhookType.CREDIT_EXPIRED: self._handle_credit_expired,
        }
        self._stripe_handlers: dict[StripeWebhookType, Handler] = {
            StripeWebhookType.PAYMENT_METHOD_ATTACHED: self._handle_payment_method_attached,
            StripeWebhookType.PAYMENT_METHOD_DETACHED: self._handle_payment_method_detached,
            StripeWebhookType.PAYMENT_INTENT_SUCCEEDED: self._handle_payment_intent_succeeded,
            StripeWebhookType.PAYMENT_INTENT_FAILED: self._handle_payment_intent_failed,
            StripeWebhookType.PAYMENT_INTENT_PAYMENT_FAILED: self._handle_payment_intent_failed,
            StripeWebhookType.CHARGE_SUCCEEDED: self._handle_charge_succeeded,
            StripeWebhookType.CHARGE_FAILED: self._handle_charge_failed,
            StripeWebhookType.CUSTOMER_CREATED: self._handle_stripe_customer_upsert,
            StripeWebhookType.CUSTOMER_UPDATED: self._handle_stripe_customer_upsert,
        }
        _check_exhaustive(MetronomeWebhookType, self._metronome_handlers)
        _check_exhaustive(StripeWebhookType, self._stripe_handlers)

    # ========================================================================
    # Entry points
    # ========================================================================

    @trace_span
    async def process_metronome_event(self, event: WebhookEvent) -> bool:
        """
        Process a subscription provider event.

        Returns:
            True if the event was applied, False if it was a duplicate
        """
        return await self._process(
            source=WebhookSource.METRONOME,
            event_id=event.id,
            event_type=event.type,
            data=event.data,
            created_at=event.created_at,
            event_types=MetronomeWebhookType,
            handlers=self._metronome_handlers,
        )

    @trace_span
    async def process_stripe_event(self, event: StripeWebhookEvent) -> bool:
        """
        Process a Stripe event.

        Returns:
            True if the event was applied, False if it was a duplicate
        """
        return await self._process(
            source=WebhookSource.STRIPE,
            event_id=event.id,
            event_type=event.type,
            data=event.data.object,
            created_at=datetime.fromtimestamp(event.created, tz=timezone.utc),
            event_types=StripeWebhookType,
            handlers=self._stripe_handlers,
        )

    @trace_span
    async def process_with_retry(
        self,
        source: WebhookSource,
        event: Union[WebhookEvent, StripeWebhookEvent],
    ) -> bool:
        """
        Process an event, retrying failed attempts with linear backoff.

        Raises:
            The last handler error once retries are exhausted
        """
        if source == WebhookSource.STRIPE:
            process = self.process_stripe_event
        else:
            process = self.process_metronome_event

        try:
            return await retry(
                lambda: process(event),
                max_attempts=settings.webhook_max_retries,
                delay=settings.webhook_retry_delay_seconds,
            )
        except Exception as e:
            logger.error(
                f"Webhook event {event.id} from {source.value} failed after "
                f"{settings.webhook_max_retries} attempts: {str(e)}",
                extra={
                    "event_id": event.id,
                    "event_type": event.type,
                    "source": source.value,
                    "error": str(e),
                },
            )
            raise

    async def _process(
        self,
        source: WebhookSource,
        event_id: str,
        event_type: str,
        data: dict[str, Any],
        created_at: datetime,
        event_types: Type[Enum],
        handlers: Mapping[Enum, Handler],
    ) -> bool:
        if await self.processed_repo.is_processed(event_id):
            logger.info(
                f"Event {event_id} already processed, skipping",
                extra={"event_id": event_id, "source": source.value},
            )
            return False

        if not await self.processed_repo.claim(event_id, source):
            # A concurrent delivery of the same event got there first
            return False

        try:
            await self.event_repo.append(
                WebhookEventRecord(
                    id=event_id,
                    source=source,
                    type=event_type,
                    data=data,
                    created_at=created_at,
                    received_at=datetime.now(timezone.utc),
                )
            )
            await self._dispatch(source, event_id, event_type, data, event_types, handlers)
        except Exception as e:
            logger.error(
                f"Failed to process {source.value} webhook {event_id}: {str(e)}",
                extra={"event_id": event_id, "event_type": event_type, "error": str(e)},
            )
            await self.processed_repo.release(event_id)
            await self.event_repo.mark_status(
                event_id, WebhookEventStatus.FAILED, error=str(e)
            )
            raise

        await self.processed_repo.mark_processed(event_id, source)
        await self.event_repo.mark_status(event_id, WebhookEventStatus.PROCESSED)
        await self._enforce_retention()
        return True

    async def _dispatch(
        self,
        source: WebhookSource,
        event_id: str,
        event_type: str,
        data: dict[str, Any],
        event_types: Type[Enum],
        handlers: Mapping[Enum, Handler],
    ) -> None:
        try:
            variant = event_types(event_type)
        except ValueError:
            # Unhandled variant: recorded, not an error
            logger.warning(
                f"Unknown {source.value} event type: {event_type}",
                extra={"event_id": event_id, "event_type": event_type},
            )
            log_span_event(
                "webhook.unhandled_type",
                {"event_id": event_id, "event_type": event_type, "source": source.value},
            )
            return

        await handlers[variant](data)

    async def _enforce_retention(self) -> None:
        await self.event_repo.trim(settings.webhook_event_retention)
        await self.processed_repo.purge_expired()

    # ========================================================================
    # Subscription provider handlers
    # ========================================================================

    async def _handle_customer_upsert(self, data: dict[str, Any]) -> None:
        if not data.get("entity_id"):
            logger.info(
                f"Customer {data.get('id')} has no entity_id, not mirrored",
                extra={"customer_id": data.get("id")},
            )
            return

        customer = SubscriptionCustomer.model_validate(data)
        existing = await self.subscription_customer_repo.get(customer.id)
        if existing and existing.updated_at > customer.updated_at:
            logger.info(
                f"Ignoring stale update for customer {customer.id}",
                extra={"customer_id": customer.id},
            )
            return

        await self.subscription_customer_repo.save(customer)
        logger.info(f"Customer mirrored: {customer.id}", extra={"customer_id": customer.id})

    async def _handle_contract_upsert(self, data: dict[str, Any]) -> None:
        await self._upsert_contract(Contract.model_validate(data))

    async def _handle_contract_cancelled(self, data: dict[str, Any]) -> None:
        existing = await self.contract_repo.get(data["id"])
        if existing and set(data) <= {"id", "cancelled_at", "updated_at"}:
            # Minimal payload: apply the cancellation to the mirror row
            data = {**existing.model_dump(), **data}
        contract = Contract.model_validate(
            {**data, "status": ContractStatus.CANCELLED.value}
        )
        if contract.cancelled_at is None:
            contract = contract.model_copy(update={"cancelled_at": contract.updated_at})
        await self._upsert_contract(contract)

    async def _upsert_contract(self, contract: Contract) -> None:
        existing = await self.contract_repo.get(contract.id)
        if existing and not contract.is_newer_than(existing):
            logger.info(
                f"Ignoring stale update for contract {contract.id}",
                extra={
                    "contract_id": contract.id,
                    "incoming_updated_at": contract.updated_at.isoformat(),
                    "mirror_updated_at": existing.updated_at.isoformat(),
                },
            )
            return

        await self.contract_repo.save(contract)
        logger.info(
            f"Contract mirrored: {contract.id} ({contract.status.value}) for customer {contract.customer_id}",
            extra={"contract_id": contract.id, "customer_id": contract.customer_id},
        )

    async def _handle_invoice_created(self, data: dict[str, Any]) -> None:
        invoice = Invoice.model_validate(data)
        existing = await self.invoice_repo.get(invoice.id)
        if existing and existing.status.is_settled() and not invoice.status.is_settled():
            # invoice.paid arrived first
            logger.info(
                f"Invoice {invoice.id} already settled, keeping mirror",
                extra={"invoice_id": invoice.id},
            )
            return

        await self.invoice_repo.save(invoice)
        logger.info(
            f"Invoice created: {invoice.id} for {invoice.amount} {invoice.currency}",
            extra={"invoice_id": invoice.id, "customer_id": invoice.customer_id},
        )

    async def _handle_invoice_paid(self, data: dict[str, Any]) -> None:
        paid_at = data.get("paid_at") or datetime.now(timezone.utc)
        existing = await self.invoice_repo.get(data["id"])
        if existing:
            await self.invoice_repo.update(
                existing.id,
                InvoiceUpdateModel(status=InvoiceStatus.PAID, paid_at=paid_at),
            )
        else:
            # invoice.created has not arrived yet
            await self.invoice_repo.save(
                Invoice.model_validate(
                    {**data, "status": InvoiceStatus.PAID.value, "paid_at": paid_at}
                )
            )
        logger.info(f"Invoice paid: {data['id']}", extra={"invoice_id": data["id"]})

    async def _handle_invoice_failed(self, data: dict[str, Any]) -> None:
        existing = await self.invoice_repo.get(data["id"])
        if existing is None and "customer_id" in data and "amount" in data:
            await self.invoice_repo.save(
                Invoice.model_validate({**data, "status": InvoiceStatus.OPEN.value})
            )
        logger.warning(
            f"Invoice payment failed: {data['id']}",
            extra={"invoice_id": data["id"], "customer_id": data.get("customer_id")},
        )

    async def _handle_credit_applied(self, data: dict[str, Any]) -> None:
        credit = Credit.model_validate(data)
        if await self.credit_repo.get(credit.id):
            # Ledger rows are immutable once recorded (an expiry may have landed first)
            return
        await self.credit_repo.save(credit)
        logger.info(
            f"Credit applied: {credit.id} for {credit.amount} {credit.currency}",
            extra={"credit_id": credit.id, "customer_id": credit.customer_id},
        )

    async def _handle_credit_expired(self, data: dict[str, Any]) -> None:
        credit_id = data["id"]
        if not await self.credit_repo.expire(credit_id):
            # credit.applied has not arrived yet
            await self.credit_repo.save(Credit.model_validate({**data, "balance": 0}))
        logger.info(f"Credit expired: {credit_id}", extra={"credit_id": credit_id})

    # ========================================================================
    # Stripe handlers
    # ========================================================================

    async def _handle_payment_method_attached(self, data: dict[str, Any]) -> None:
        logger.info(
            f"Payment method attached: {data.get('id')} to customer {data.get('customer')}",
            extra={"payment_method_id": data.get("id"), "customer_id": data.get("customer")},
        )

    async def _handle_payment_method_detached(self, data: dict[str, Any]) -> None:
        logger.info(
            f"Payment method detached: {data.get('id')}",
            extra={"payment_method_id": data.get("id")},
        )

    async def _handle_payment_intent_succeeded(self, data: dict[str, Any]) -> None:
        invoice_id = (data.get("metadata") or {}).get("invoice_id")
        logger.info(
            f"Payment intent succeeded: {data.get('id')}",
            extra={"payment_intent_id": data.get("id"), "invoice_id": invoice_id},
        )
        if not invoice_id:
            return

        invoice = await self.invoice_repo.get(invoice_id)
        if invoice and not invoice.status.is_settled():
            await self.invoice_repo.update(
                invoice_id,
                InvoiceUpdateModel(
                    status=InvoiceStatus.PAID, paid_at=datetime.now(timezone.utc)
                ),
            )

    async def _handle_payment_intent_failed(self, data: dict[str, Any]) -> None:
        error = (data.get("last_payment_error") or {}).get("message")
        logger.warning(
            f"Payment intent failed: {data.get('id')}",
            extra={
                "payment_intent_id": data.get("id"),
                "customer_id": data.get("customer"),
                "error": error,
            },
        )

    async def _handle_charge_succeeded(self, data: dict[str, Any]) -> None:
        amount = (data.get("amount") or 0) / 100
        logger.info(
            f"Charge succeeded: {data.get('id')} for {amount} {data.get('currency')}",
            extra={"charge_id": data.get("id"), "customer_id": data.get("customer")},
        )

    async def _handle_charge_failed(self, data: dict[str, Any]) -> None:
        logger.warning(
            f"Charge failed: {data.get('id')}",
            extra={
                "charge_id": data.get("id"),
                "customer_id": data.get("customer"),
                "failure_message": data.get("failure_message"),
            },
        )

    async def _handle_stripe_customer_upsert(self, data: dict[str, Any]) -> None:
        metadata = data.get("metadata") or {}
        entity_id = metadata.get("entity_id")
        if not entity_id:
            logger.info(
                f"Stripe customer {data.get('id')} has no entity_id, not mirrored",
                extra={"customer_id": data.get("id")},
            )
            return

        await self.payment_customer_repo.save(
            PaymentCustomer(
                id=data["id"],
                entity_id=entity_id,
                email=data.get("email") or "",
                name=data.get("name") or "",
                created=data.get("created") or 0,
                customer_metadata=metadata,
            )
        )
        logger.info(
            f"Stripe customer mirrored: {data['id']}",
            extra={"customer_id": data["id"], "entity_id": entity_id},
        )
