"""
Metronome implementation of the subscription provider.

Talks to the REST API with an OAuth client-credentials token that is
cached until shortly before it expires.
"""

import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import httpx

from common.core.config import settings
from common.core.exceptions import RemoteServiceError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.credit import Credit, CreditBalance
from packages.billing.models.domain.customer import SubscriptionCustomer
from packages.billing.models.domain.enums import (
    BillingEntityType,
    BillingPeriod,
    BillingTier,
)
from packages.billing.models.domain.invoice import Invoice, InvoiceLineItem
from packages.billing.providers.subscription.interface import (
    SubscriptionProviderInterface,
)

logger = get_logger(__name__)

SERVICE_NAME = "metronome"

# Refresh the token when it has less than this many seconds left
TOKEN_REFRESH_MARGIN_SECONDS = 60
DEFAULT_TOKEN_TTL_SECONDS = 3600


class MetronomeSubscriptionProvider(SubscriptionProviderInterface):
    """Metronome-based subscription implementation."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        token_url: Optional[str] = None,
        scope: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client from settings, with optional overrides.

        Args:
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.api_url = (api_url or settings.metronome_api_url).rstrip("/")
        self.client_id = client_id if client_id is not None else settings.metronome_client_id
        self.client_secret = (
            client_secret
            if client_secret is not None
            else settings.metronome_client_secret
        )
        self.token_url = token_url or settings.metronome_token_url
        self.scope = scope or settings.metronome_scope
        self.timeout = timeout or settings.billing_request_timeout_seconds
        self._transport = transport

        self._client: Optional[httpx.AsyncClient] = None
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _authenticate(self) -> str:
        """Return a cached access token, fetching a new one when needed."""
        if (
            self._access_token
            and self._token_expires_at > time.monotonic() + TOKEN_REFRESH_MARGIN_SECONDS
        ):
            return self._access_token

        try:
            response = await self._get_client().post(
                self.token_url,
                json={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "scope": self.scope,
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteServiceError(
                f"Metronome authentication failed: {e.response.status_code}",
                service=SERVICE_NAME,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise RemoteServiceError(
                f"Metronome authentication failed: {e}", service=SERVICE_NAME
            ) from e

        token_data = response.json()
        self._access_token = token_data["access_token"]
        expires_in = token_data.get("expires_in") or DEFAULT_TOKEN_TTL_SECONDS
        self._token_expires_at = time.monotonic() + expires_in

        logger.info(
            "Obtained Metronome access token",
            extra={"expires_in": expires_in},
        )
        return self._access_token

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Make an authenticated API request and return the decoded body."""
        token = await self._authenticate()
        try:
            response = await self._get_client().request(
                method,
                endpoint,
                json=json,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 401:
                # Force a fresh token on the next call
                self._access_token = None
            logger.error(
                f"Metronome API error ({method} {endpoint}): {status_code}",
                extra={"endpoint": endpoint, "status_code": status_code},
            )
            raise RemoteServiceError(
                f"Metronome API error ({method} {endpoint}): {status_code}",
                service=SERVICE_NAME,
                status_code=status_code,
            ) from e
        except httpx.TimeoutException as e:
            logger.error(
                f"Metronome API timeout ({method} {endpoint})",
                extra={"endpoint": endpoint, "timeout": self.timeout},
            )
            raise RemoteServiceError(
                f"Metronome API timeout ({method} {endpoint}) after {self.timeout}s",
                service=SERVICE_NAME,
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                f"Metronome API transport error ({method} {endpoint}): {e}",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            raise RemoteServiceError(
                f"Metronome API transport error ({method} {endpoint}): {e}",
                service=SERVICE_NAME,
            ) from e

        if not response.content:
            return None
        return response.json()

    @trace_span
    async def create_customer(
        self,
        entity_id: str,
        entity_type: BillingEntityType,
        email: str,
        name: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SubscriptionCustomer:
        data = await self._request(
            "POST",
            "/api/v1/customers",
            json={
                "entity_id": entity_id,
                "entity_type": entity_type.value,
                "email": email,
                "name": name,
                "metadata": metadata or {},
            },
        )
        customer = SubscriptionCustomer.model_validate(data)
        logger.info(
            "Created Metronome customer",
            extra={"entity_id": entity_id, "customer_id": customer.id},
        )
        return customer

    @trace_span
    async def create_contract(
        self,
        customer_id: str,
        tier: BillingTier,
        billing_period: BillingPeriod,
        rate_card_id: Optional[str] = None,
    ) -> Contract:
        payload: dict[str, Any] = {
            "customer_id": customer_id,
            "tier": tier.value,
            "billing_period": billing_period.value,
        }
        if rate_card_id:
            payload["rate_card_id"] = rate_card_id

        contract = Contract.model_validate(
            await self._request("POST", "/api/v1/contracts", json=payload)
        )
        logger.info(
            "Created Metronome contract",
            extra={
                "customer_id": customer_id,
                "contract_id": contract.id,
                "tier": tier.value,
            },
        )
        return contract

    @trace_span
    async def cancel_contract(self, contract_id: str) -> Contract:
        contract = Contract.model_validate(
            await self._request("POST", f"/api/v1/contracts/{contract_id}/cancel")
        )
        logger.info("Cancelled Metronome contract", extra={"contract_id": contract_id})
        return contract

    @trace_span
    async def update_contract(
        self,
        contract_id: str,
        billing_period: Optional[BillingPeriod] = None,
    ) -> Contract:
        updates: dict[str, Any] = {}
        if billing_period is not None:
            updates["billing_period"] = billing_period.value
        return Contract.model_validate(
            await self._request("PATCH", f"/api/v1/contracts/{contract_id}", json=updates)
        )

    @trace_span
    async def list_contracts(self, customer_id: Optional[str] = None) -> list[Contract]:
        params = {"customer_id": customer_id} if customer_id else None
        data = await self._request("GET", "/api/v1/contracts", params=params)
        return [Contract.model_validate(item) for item in data.get("data", [])]

    @trace_span
    async def create_invoice(
        self,
        customer_id: str,
        contract_id: str,
        amount: Decimal,
        currency: str = "USD",
        line_items: Optional[list[InvoiceLineItem]] = None,
    ) -> Invoice:
        payload: dict[str, Any] = {
            "customer_id": customer_id,
            "contract_id": contract_id,
            "amount": float(amount),
            "currency": currency,
        }
        if line_items:
            payload["line_items"] = [
                item.model_dump(mode="json") for item in line_items
            ]

        invoice = Invoice.model_validate(
            await self._request("POST", "/api/v1/invoices", json=payload)
        )
        logger.info(
            f"Created Metronome invoice for {amount} {currency}",
            extra={"customer_id": customer_id, "invoice_id": invoice.id},
        )
        return invoice

    @trace_span
    async def pay_invoice(self, invoice_id: str) -> Invoice:
        return Invoice.model_validate(
            await self._request("POST", f"/api/v1/invoices/{invoice_id}/pay")
        )

    @trace_span
    async def apply_credit(
        self,
        customer_id: str,
        amount: int,
        currency: str = "USD",
        expires_at: Optional[datetime] = None,
        idempotency_key: Optional[str] = None,
    ) -> Credit:
        payload: dict[str, Any] = {
            "customer_id": customer_id,
            "amount": amount,
            "currency": currency,
        }
        if expires_at is not None:
            payload["expires_at"] = expires_at.isoformat()
        if idempotency_key is not None:
            payload["uniqueness_key"] = idempotency_key

        credit = Credit.model_validate(
            await self._request("POST", "/api/v1/credits", json=payload)
        )
        logger.info(
            f"Applied {amount} credits",
            extra={"customer_id": customer_id, "credit_id": credit.id},
        )
        return credit

    @trace_span
    async def get_credit_balance(self, customer_id: str) -> CreditBalance:
        data = await self._request(
            "GET", "/api/v1/credits/balance", params={"customer_id": customer_id}
        )
        return CreditBalance.model_validate(data)

    @trace_span
    async def health_check(self) -> bool:
        try:
            response = await self._get_client().get("/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Metronome health check failed: {e}")
            return False
