"""
Webhook endpoints for billing events.

Public endpoints (no auth required) for provider webhooks.
"""

from fastapi import APIRouter, Request

from packages.billing.models.schemas.billing import WebhookReceivedResponse
from packages.billing.webhooks.metronome_webhook import handle_metronome_webhook
from packages.billing.webhooks.stripe_webhook import handle_stripe_webhook

router = APIRouter()


@router.post("/webhooks/metronome", response_model=WebhookReceivedResponse)
async def metronome_webhook(request: Request):
    """Receive webhook events from the subscription provider."""
    return await handle_metronome_webhook(request)


@router.post("/webhooks/stripe", response_model=WebhookReceivedResponse)
async def stripe_webhook(request: Request):
    """
    Receive webhook events from Stripe payment platform.

    No authentication required - webhook signature validated internally.
    """
    return await handle_stripe_webhook(request)
