"""
Unit tests for the Metronome subscription provider.

HTTP is served by httpx.MockTransport; no network access.
"""

import json
import pytest
import httpx
from decimal import Decimal

from common.core.exceptions import RemoteServiceError
from packages.billing.models.domain.enums import (
    BillingEntityType,
    BillingPeriod,
    BillingTier,
    ContractStatus,
)
from packages.billing.models.domain.invoice import InvoiceLineItem
from packages.billing.providers.subscription.metronome_subscription import (
    MetronomeSubscriptionProvider,
)

API_URL = "https://metronome.test"
TOKEN_URL = "https://metronome.test/oauth/token"

CONTRACT = {
    "id": "contract_1",
    "customer_id": "cust_1",
    "tier": "pro",
    "status": "active",
    "billing_period": "monthly",
    "start_date": "2024-01-01T00:00:00Z",
    "end_date": "2024-02-01T00:00:00Z",
    "created_at": "2024-01-01T00:00:00Z",
    "updated_at": "2024-01-01T00:00:00Z",
}


class FakeMetronome:
    """Routes requests to canned responses and records them."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response] = {}
        self.token_calls = 0

    def add(self, method: str, path: str, status_code: int = 200, body=None):
        self.routes[(method, path)] = httpx.Response(status_code, json=body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/token":
            self.token_calls += 1
            return httpx.Response(
                200,
                json={"access_token": f"token_{self.token_calls}", "expires_in": 3600},
            )
        self.requests.append(request)
        return self.routes[(request.method, request.url.path)]

    def last_json(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def fake_api():
    return FakeMetronome()


@pytest.fixture
async def provider(fake_api):
    provider = MetronomeSubscriptionProvider(
        api_url=API_URL,
        client_id="client",
        client_secret="secret",
        token_url=TOKEN_URL,
        transport=httpx.MockTransport(fake_api),
    )
    yield provider
    await provider.aclose()


@pytest.mark.asyncio
class TestAuthentication:
    async def test_token_is_cached(self, provider, fake_api):
        fake_api.add("GET", "/api/v1/contracts", body={"data": []})

        await provider.list_contracts("cust_1")
        await provider.list_contracts("cust_1")

        assert fake_api.token_calls == 1
        assert fake_api.requests[-1].headers["Authorization"] == "Bearer token_1"

    async def test_unauthorized_clears_token(self, provider, fake_api):
        fake_api.add("GET", "/api/v1/contracts", status_code=401, body={})

        with pytest.raises(RemoteServiceError):
            await provider.list_contracts("cust_1")

        fake_api.add("GET", "/api/v1/contracts", body={"data": []})
        await provider.list_contracts("cust_1")

        assert fake_api.token_calls == 2

    async def test_token_failure(self, fake_api):
        def reject(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"error": "invalid_client"})

        provider = MetronomeSubscriptionProvider(
            api_url=API_URL, token_url=TOKEN_URL, transport=httpx.MockTransport(reject)
        )

        with pytest.raises(RemoteServiceError) as exc_info:
            await provider.list_contracts()

        assert exc_info.value.status_code == 403
        await provider.aclose()


@pytest.mark.asyncio
class TestEndpoints:
    async def test_create_customer(self, provider, fake_api):
        fake_api.add(
            "POST",
            "/api/v1/customers",
            body={
                "id": "cust_1",
                "entity_id": "ent_1",
                "entity_type": "organization",
                "email": "billing@example.com",
                "name": "Example",
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z",
                "metadata": {"created_at": "2024-01-01T00:00:00+00:00"},
            },
        )

        customer = await provider.create_customer(
            "ent_1", BillingEntityType.ORGANIZATION, "billing@example.com", "Example"
        )

        assert customer.id == "cust_1"
        assert customer.customer_metadata["created_at"].startswith("2024-01-01")
        assert fake_api.last_json()["entity_type"] == "organization"

    async def test_create_contract(self, provider, fake_api):
        fake_api.add("POST", "/api/v1/contracts", body=CONTRACT)

        contract = await provider.create_contract(
            "cust_1", BillingTier.PRO, BillingPeriod.MONTHLY, rate_card_id="rate_pro"
        )

        assert contract.tier == BillingTier.PRO
        assert fake_api.last_json() == {
            "customer_id": "cust_1",
            "tier": "pro",
            "billing_period": "monthly",
            "rate_card_id": "rate_pro",
        }

    async def test_cancel_contract(self, provider, fake_api):
        fake_api.add(
            "POST",
            "/api/v1/contracts/contract_1/cancel",
            body={**CONTRACT, "status": "cancelled", "cancelled_at": "2024-01-16T00:00:00Z"},
        )

        contract = await provider.cancel_contract("contract_1")

        assert contract.status == ContractStatus.CANCELLED
        assert contract.cancelled_at is not None

    async def test_update_contract(self, provider, fake_api):
        fake_api.add(
            "PATCH",
            "/api/v1/contracts/contract_1",
            body={**CONTRACT, "billing_period": "yearly"},
        )

        contract = await provider.update_contract(
            "contract_1", billing_period=BillingPeriod.YEARLY
        )

        assert contract.billing_period == BillingPeriod.YEARLY
        assert fake_api.last_json() == {"billing_period": "yearly"}

    async def test_list_contracts(self, provider, fake_api):
        fake_api.add("GET", "/api/v1/contracts", body={"data": [CONTRACT]})

        contracts = await provider.list_contracts("cust_1")

        assert [c.id for c in contracts] == ["contract_1"]
        assert fake_api.requests[-1].url.params["customer_id"] == "cust_1"

    async def test_create_invoice(self, provider, fake_api):
        fake_api.add(
            "POST",
            "/api/v1/invoices",
            body={
                "id": "inv_1",
                "customer_id": "cust_1",
                "contract_id": "contract_1",
                "amount": "4.65",
                "currency": "USD",
                "status": "open",
            },
        )

        invoice = await provider.create_invoice(
            "cust_1",
            "contract_1",
            Decimal("4.65"),
            line_items=[
                InvoiceLineItem(
                    id="line_1",
                    description="Tier change from free to pro",
                    unit_price=Decimal("4.65"),
                    amount=Decimal("4.65"),
                )
            ],
        )

        assert invoice.amount == Decimal("4.65")
        sent = fake_api.last_json()
        assert sent["amount"] == 4.65
        assert sent["line_items"][0]["description"] == "Tier change from free to pro"

    async def test_apply_credit_and_balance(self, provider, fake_api):
        fake_api.add(
            "POST",
            "/api/v1/credits",
            body={"id": "cr_1", "customer_id": "cust_1", "amount": -5000, "balance": -5000},
        )
        fake_api.add(
            "GET",
            "/api/v1/credits/balance",
            body={
                "customer_id": "cust_1",
                "balance": 5000,
                "credits": [
                    {"id": "cr_0", "amount": 10000, "balance": 10000},
                    {"id": "cr_1", "amount": -5000, "balance": -5000},
                ],
            },
        )

        credit = await provider.apply_credit("cust_1", -5000)
        balance = await provider.get_credit_balance("cust_1")

        assert credit.balance == -5000
        assert balance.total == 5000

    async def test_apply_credit_sends_uniqueness_key(self, provider, fake_api):
        fake_api.add(
            "POST",
            "/api/v1/credits",
            body={"id": "cr_1", "customer_id": "cust_1", "amount": 2000, "balance": 2000},
        )

        await provider.apply_credit(
            "cust_1", 2000, idempotency_key="tier-change-ctr_1-credits"
        )

        assert fake_api.last_json()["uniqueness_key"] == "tier-change-ctr_1-credits"

    async def test_http_error_maps_to_remote_service_error(self, provider, fake_api):
        fake_api.add("POST", "/api/v1/contracts", status_code=503, body={})

        with pytest.raises(RemoteServiceError) as exc_info:
            await provider.create_contract(
                "cust_1", BillingTier.PRO, BillingPeriod.MONTHLY
            )

        assert exc_info.value.service == "metronome"
        assert exc_info.value.status_code == 503

    async def test_timeout_maps_to_remote_service_error(self):
        def slow(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/token":
                return httpx.Response(200, json={"access_token": "t"})
            raise httpx.ReadTimeout("timed out", request=request)

        provider = MetronomeSubscriptionProvider(
            api_url=API_URL, token_url=TOKEN_URL, transport=httpx.MockTransport(slow)
        )

        with pytest.raises(RemoteServiceError, match="timeout"):
            await provider.pay_invoice("inv_1")
        await provider.aclose()

    async def test_health_check(self, provider, fake_api):
        fake_api.add("GET", "/health", body={"status": "ok"})
        assert await provider.health_check() is True

        fake_api.add("GET", "/health", status_code=500, body={})
        assert await provider.health_check() is False
