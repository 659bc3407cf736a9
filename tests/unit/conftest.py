"""
Fixtures shared by the unit tests.

Provider doubles stand in for Metronome and Stripe. The subscription
provider double hands back records built from the call arguments, the way
the real provider echoes what it created.
"""

import itertools
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from common.core.config import settings
from common.providers.locking.memory_lock import MemoryLock
from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.credit import Credit, CreditBalance
from packages.billing.models.domain.customer import (
    PaymentCard,
    PaymentCustomer,
    PaymentMethod,
    SubscriptionCustomer,
)
from packages.billing.models.domain.enums import ContractStatus, InvoiceStatus
from packages.billing.models.domain.invoice import Invoice
from packages.billing.models.domain.payment import PaymentResult

NOW = datetime(2024, 1, 16, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    """Retries run back to back in unit tests."""
    monkeypatch.setattr(settings, "remote_retry_delay_seconds", 0)
    monkeypatch.setattr(settings, "webhook_retry_delay_seconds", 0)


@pytest.fixture
def lock_provider():
    """In-process lock provider, fresh per test."""
    return MemoryLock()


@pytest.fixture(autouse=True)
def mock_get_lock_provider(lock_provider):
    """Automatically use the in-process lock provider for all unit tests."""
    with patch(
        "packages.billing.services.tier_management_service.get_lock_provider",
        return_value=lock_provider,
    ):
        yield


@pytest.fixture
def id_sequence():
    return itertools.count(1)


@pytest.fixture
def mock_subscription_provider(id_sequence):
    """Subscription provider double echoing created records."""
    provider = AsyncMock()
    invoices: dict[str, Invoice] = {}

    async def create_customer(entity_id, entity_type, email, name, metadata=None):
        return SubscriptionCustomer(
            id=f"cust_{next(id_sequence)}",
            entity_id=entity_id,
            entity_type=entity_type,
            email=email,
            name=name,
            created_at=NOW,
            updated_at=NOW,
            customer_metadata=metadata or {},
        )

    async def create_contract(customer_id, tier, billing_period, rate_card_id=None):
        return Contract(
            id=f"contract_{next(id_sequence)}",
            customer_id=customer_id,
            tier=tier,
            status=ContractStatus.ACTIVE,
            billing_period=billing_period,
            start_date=NOW,
            end_date=NOW + timedelta(days=31),
            rate_card_id=rate_card_id,
            created_at=NOW,
            updated_at=NOW,
        )

    async def cancel_contract(contract_id):
        return Contract(
            id=contract_id,
            customer_id="cust_123",
            tier="free",
            status=ContractStatus.CANCELLED,
            billing_period="monthly",
            start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            end_date=datetime(2024, 2, 1, tzinfo=timezone.utc),
            cancelled_at=NOW,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            updated_at=NOW,
        )

    async def create_invoice(
        customer_id, contract_id=None, amount=Decimal("0"), currency="USD", line_items=None
    ):
        invoice = Invoice(
            id=f"inv_{next(id_sequence)}",
            customer_id=customer_id,
            contract_id=contract_id,
            amount=amount,
            currency=currency,
            status=InvoiceStatus.OPEN,
            created_at=NOW,
            line_items=line_items or [],
        )
        invoices[invoice.id] = invoice
        return invoice

    async def pay_invoice(invoice_id):
        return invoices[invoice_id].model_copy(
            update={"status": InvoiceStatus.PAID, "paid_at": NOW}
        )

    async def apply_credit(
        customer_id, amount, currency="USD", expires_at=None, idempotency_key=None
    ):
        return Credit(
            id=f"credit_{next(id_sequence)}",
            customer_id=customer_id,
            amount=amount,
            balance=amount,
            currency=currency,
            created_at=NOW,
        )

    provider.create_customer = AsyncMock(side_effect=create_customer)
    provider.create_contract = AsyncMock(side_effect=create_contract)
    provider.cancel_contract = AsyncMock(side_effect=cancel_contract)
    provider.list_contracts = AsyncMock(return_value=[])
    provider.create_invoice = AsyncMock(side_effect=create_invoice)
    provider.pay_invoice = AsyncMock(side_effect=pay_invoice)
    provider.apply_credit = AsyncMock(side_effect=apply_credit)
    provider.get_credit_balance = AsyncMock(
        return_value=CreditBalance(customer_id="cust_123", reported_balance=0)
    )
    provider.health_check = AsyncMock(return_value=True)
    return provider


@pytest.fixture
def sample_card_payment_method():
    return PaymentMethod(
        id="pm_card_visa",
        type="card",
        card=PaymentCard(brand="visa", last4="4242", exp_month=12, exp_year=2030),
        created=1704067200,
    )


@pytest.fixture
def mock_payment_provider(sample_card_payment_method):
    """Stripe provider double; payments succeed by default."""
    provider = AsyncMock()

    async def create_customer(entity_id, email, name, metadata=None):
        return PaymentCustomer(
            id=f"cus_{entity_id}",
            entity_id=entity_id,
            email=email,
            name=name,
            created=1704067200,
            customer_metadata={**(metadata or {}), "entity_id": entity_id},
        )

    async def create_payment_intent(customer_id, amount, currency, **kwargs):
        return PaymentResult(
            id="pi_123",
            status="succeeded",
            amount=amount,
            currency=currency.lower(),
            customer_id=customer_id,
            payment_method_id=kwargs.get("payment_method_id"),
        )

    provider.create_customer = AsyncMock(side_effect=create_customer)
    provider.attach_payment_method = AsyncMock(return_value=sample_card_payment_method)
    provider.list_payment_methods = AsyncMock(return_value=[sample_card_payment_method])
    provider.create_payment_intent = AsyncMock(side_effect=create_payment_intent)
    provider.confirm_payment_intent = AsyncMock()
    provider.construct_webhook_event = MagicMock()
    provider.health_check = AsyncMock(return_value=True)
    return provider


@pytest.fixture(autouse=True)
def patch_billing_providers(mock_subscription_provider, mock_payment_provider):
    """Route every billing service to the provider doubles."""
    with patch(
        "packages.billing.services.tier_management_service.get_subscription_provider",
        return_value=mock_subscription_provider,
    ), patch(
        "packages.billing.services.customer_onboarding_service.get_subscription_provider",
        return_value=mock_subscription_provider,
    ), patch(
        "packages.billing.services.customer_onboarding_service.get_payment_provider",
        return_value=mock_payment_provider,
    ), patch(
        "packages.billing.services.payment_execution_service.get_payment_provider",
        return_value=mock_payment_provider,
    ), patch(
        "packages.billing.webhooks.stripe_webhook.get_payment_provider",
        return_value=mock_payment_provider,
    ), patch(
        "api.v1.routes.health.get_subscription_provider",
        return_value=mock_subscription_provider,
    ), patch(
        "api.v1.routes.health.get_payment_provider",
        return_value=mock_payment_provider,
    ):
        yield
