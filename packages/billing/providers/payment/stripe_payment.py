"""
Stripe implementation of payment provider.
"""

import asyncio
import functools
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Optional

import stripe

from common.core.config import settings
from common.core.exceptions import RemoteServiceError, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.base import CENTS
from packages.billing.models.domain.customer import (
    PaymentCard,
    PaymentCustomer,
    PaymentMethod,
)
from packages.billing.models.domain.payment import PaymentResult
from packages.billing.models.domain.webhooks import StripeWebhookEvent
from packages.billing.providers.payment.interface import PaymentProviderInterface

logger = get_logger(__name__)

SERVICE_NAME = "stripe"


def to_cents(amount: Decimal) -> int:
    """Convert a major-unit amount to integer cents."""
    return int((amount / CENTS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(amount: int) -> Decimal:
    return (Decimal(amount) * CENTS).quantize(CENTS)


class StripePaymentProvider(PaymentProviderInterface):
    """Stripe-based payment implementation."""

    def __init__(
        self,
        webhook_secret: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize Stripe with API credentials."""
        stripe.api_key = settings.stripe_secret_key
        self.webhook_secret = (
            webhook_secret
            if webhook_secret is not None
            else settings.stripe_webhook_secret
        )
        self.timeout = timeout or settings.billing_request_timeout_seconds

    async def _call(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run a blocking Stripe SDK call in a worker thread with a timeout.

        Stripe errors and timeouts surface as RemoteServiceError.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(functools.partial(fn, *args, **kwargs)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                f"Stripe {operation} timed out after {self.timeout}s",
                extra={"operation": operation},
            )
            raise RemoteServiceError(
                f"Stripe {operation} timed out", service=SERVICE_NAME
            ) from e
        except stripe.StripeError as e:
            logger.error(
                f"Stripe {operation} failed: {str(e)}",
                extra={"operation": operation, "error": str(e)},
            )
            raise RemoteServiceError(
                f"Stripe {operation} failed: {e.user_message or str(e)}",
                service=SERVICE_NAME,
                status_code=e.http_status,
            ) from e

    @trace_span
    async def create_customer(
        self,
        entity_id: str,
        email: str,
        name: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> PaymentCustomer:
        """Create a Stripe customer tagged with our entity ID."""
        customer = await self._call(
            "create_customer",
            stripe.Customer.create,
            email=email,
            name=name,
            metadata={"entity_id": entity_id, **(metadata or {})},
        )

        logger.info(
            "Created Stripe customer",
            extra={"entity_id": entity_id, "customer_id": customer.id},
        )

        return PaymentCustomer(
            id=customer.id,
            entity_id=entity_id,
            email=customer.email or "",
            name=customer.name or "",
            created=customer.created,
            customer_metadata=dict(customer.metadata or {}),
        )

    @trace_span
    async def attach_payment_method(
        self, customer_id: str, payment_method_id: str
    ) -> PaymentMethod:
        payment_method = await self._call(
            "attach_payment_method",
            stripe.PaymentMethod.attach,
            payment_method_id,
            customer=customer_id,
        )

        logger.info(
            "Attached payment method",
            extra={
                "customer_id": customer_id,
                "payment_method_id": payment_method_id,
            },
        )

        return _map_payment_method(payment_method)

    @trace_span
    async def detach_payment_method(self, payment_method_id: str) -> None:
        await self._call(
            "detach_payment_method", stripe.PaymentMethod.detach, payment_method_id
        )
        logger.info(
            "Detached payment method", extra={"payment_method_id": payment_method_id}
        )

    @trace_span
    async def list_payment_methods(self, customer_id: str) -> list[PaymentMethod]:
        payment_methods = await self._call(
            "list_payment_methods",
            stripe.PaymentMethod.list,
            customer=customer_id,
            type="card",
        )
        return [_map_payment_method(pm) for pm in payment_methods.data]

    @trace_span
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
        params: dict[str, Any] = {
            "amount": to_cents(amount),
            "currency": currency.lower(),
            "customer": customer_id,
            "metadata": metadata or {},
        }
        if payment_method_id:
            params["payment_method"] = payment_method_id
            params["confirm"] = True
            if off_session:
                params["off_session"] = True
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        intent = await self._call(
            "create_payment_intent", stripe.PaymentIntent.create, **params
        )

        logger.info(
            f"Created payment intent for {amount} {currency}",
            extra={
                "customer_id": customer_id,
                "payment_intent_id": intent.id,
                "status": intent.status,
            },
        )

        return _map_payment_intent(intent)

    @trace_span
    async def confirm_payment_intent(
        self, payment_intent_id: str, payment_method_id: Optional[str] = None
    ) -> PaymentResult:
        params: dict[str, Any] = {}
        if payment_method_id:
            params["payment_method"] = payment_method_id

        intent = await self._call(
            "confirm_payment_intent",
            stripe.PaymentIntent.confirm,
            payment_intent_id,
            **params,
        )
        return _map_payment_intent(intent)

    @trace_span
    async def create_charge(
        self,
        customer_id: str,
        amount: Decimal,
        currency: str,
        payment_method_id: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> PaymentResult:
        params: dict[str, Any] = {
            "amount": to_cents(amount),
            "currency": currency.lower(),
            "customer": customer_id,
            "metadata": metadata or {},
        }
        if description:
            params["description"] = description
        if payment_method_id:
            params["source"] = payment_method_id

        charge = await self._call("create_charge", stripe.Charge.create, **params)

        logger.info(
            f"Created charge for {amount} {currency}",
            extra={"customer_id": customer_id, "charge_id": charge.id},
        )

        return PaymentResult(
            id=charge.id,
            status=charge.status,
            amount=from_cents(charge.amount),
            currency=charge.currency,
            customer_id=customer_id,
            payment_method_id=payment_method_id,
        )

    def construct_webhook_event(
        self, payload: bytes, signature: str
    ) -> StripeWebhookEvent:
        if not self.webhook_secret:
            raise ValidationError("Stripe webhook secret not configured")

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.error(f"Stripe webhook signature verification failed: {str(e)}")
            raise ValidationError("Invalid signature") from e
        except ValueError as e:
            raise ValidationError("Invalid webhook payload") from e

        return StripeWebhookEvent.model_validate_json(payload)

    @trace_span
    async def health_check(self) -> bool:
        try:
            await self._call("health_check", stripe.Balance.retrieve)
            return True
        except RemoteServiceError:
            return False


def _map_payment_method(payment_method: Any) -> PaymentMethod:
    card = None
    if payment_method.type == "card" and getattr(payment_method, "card", None):
        card = PaymentCard(
            brand=payment_method.card.brand,
            last4=payment_method.card.last4,
            exp_month=payment_method.card.exp_month,
            exp_year=payment_method.card.exp_year,
        )
    return PaymentMethod(
        id=payment_method.id,
        type="card" if payment_method.type == "card" else "bank_account",
        card=card,
        created=payment_method.created,
    )


def _map_payment_intent(intent: Any) -> PaymentResult:
    return PaymentResult(
        id=intent.id,
        status=intent.status,
        amount=from_cents(intent.amount),
        currency=intent.currency,
        customer_id=intent.customer,
        payment_method_id=intent.payment_method,
        client_secret=intent.client_secret,
    )
