"""
Stripe webhook handler for payment events.

Verifies the signature, then hands the event to the webhook service:
- Payment method attach/detach
- Payment intent and charge outcomes
- Customer updates
"""

from fastapi import Request, HTTPException, status
from pydantic import ValidationError

from common.core.exceptions import ValidationError as InvalidWebhookError
from common.core.otel_axiom_exporter import get_logger
from packages.billing.models.domain.enums import WebhookSource
from packages.billing.models.schemas.billing import WebhookReceivedResponse
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.services.webhook_service import WebhookService

logger = get_logger(__name__)


async def handle_stripe_webhook(request: Request) -> WebhookReceivedResponse:
    """
    Handle incoming webhook from Stripe.

    Validates webhook signature and routes to the webhook service.
    """
    # Get raw body for signature verification
    payload_bytes = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header",
        )

    try:
        event = get_payment_provider().construct_webhook_event(
            payload_bytes, sig_header
        )
    except InvalidWebhookError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ValidationError as e:
        logger.error(
            "Invalid Stripe webhook payload",
            extra={"validation_errors": e.errors(include_url=False)},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload"
        )

    logger.info(
        f"Received Stripe webhook: {event.type}",
        extra={
            "event_id": event.id,
            "event_type": event.type,
            "livemode": event.livemode,
        },
    )

    try:
        applied = await WebhookService().process_with_retry(WebhookSource.STRIPE, event)
    except Exception as e:
        logger.error(
            f"Failed to process Stripe webhook: {str(e)}",
            extra={"event_id": event.id, "error": str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    return WebhookReceivedResponse(duplicate=not applied)
