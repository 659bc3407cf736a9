"""
Subscription provider webhook handler.

Events are processed with retries; the response is only sent once the
event has been applied, so a 500 makes the provider redeliver it.
"""

from fastapi import Request, HTTPException, status
from pydantic import ValidationError

from common.core.otel_axiom_exporter import get_logger
from packages.billing.models.domain.enums import WebhookSource
from packages.billing.models.domain.webhooks import WebhookEvent
from packages.billing.models.schemas.billing import WebhookReceivedResponse
from packages.billing.services.webhook_service import WebhookService

logger = get_logger(__name__)


async def handle_metronome_webhook(request: Request) -> WebhookReceivedResponse:
    """Parse, deduplicate and apply an incoming subscription provider event."""
    try:
        payload_bytes = await request.body()
        event = WebhookEvent.model_validate_json(payload_bytes)
    except ValidationError as e:
        logger.error(
            "Invalid Metronome webhook payload",
            extra={"validation_errors": e.errors(include_url=False)},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload"
        )

    logger.info(
        f"Received Metronome webhook: {event.type}",
        extra={"event_id": event.id, "event_type": event.type},
    )

    try:
        applied = await WebhookService().process_with_retry(
            WebhookSource.METRONOME, event
        )
    except Exception as e:
        logger.error(
            f"Failed to process Metronome webhook: {str(e)}",
            extra={"event_id": event.id, "error": str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    return WebhookReceivedResponse(duplicate=not applied)
