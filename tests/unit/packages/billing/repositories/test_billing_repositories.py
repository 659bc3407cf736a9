"""
Unit tests for the billing mirror repositories.

Tests database operations without mocking the database.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.credit import Credit
from packages.billing.models.domain.customer import PaymentCustomer
from packages.billing.models.domain.enums import (
    BillingPeriod,
    BillingTier,
    ContractStatus,
    InvoiceStatus,
)
from packages.billing.models.domain.invoice import (
    Invoice,
    InvoiceLineItem,
    InvoiceUpdateModel,
)
from packages.billing.repositories.contract_repository import ContractRepository
from packages.billing.repositories.credit_repository import CreditRepository
from packages.billing.repositories.customer_repository import (
    PaymentCustomerRepository,
    SubscriptionCustomerRepository,
)
from packages.billing.repositories.entity_repository import BillingEntityRepository
from packages.billing.repositories.invoice_repository import InvoiceRepository

JAN_1 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_contract(contract_id: str, status: ContractStatus, created_at: datetime):
    return Contract(
        id=contract_id,
        customer_id="cust_123",
        tier=BillingTier.PRO,
        status=status,
        billing_period=BillingPeriod.MONTHLY,
        start_date=created_at,
        end_date=created_at + timedelta(days=31),
        created_at=created_at,
        updated_at=created_at,
    )


@pytest.mark.asyncio
class TestCustomerRepositories:
    async def test_get_entity_by_email(self, sample_entity):
        repo = BillingEntityRepository()

        entity = await repo.get_by_email("ada@example.com")

        assert entity is not None
        assert entity.id == sample_entity.id
        assert await repo.get_by_email("nobody@example.com") is None

    async def test_get_subscription_customer_by_entity(
        self, sample_subscription_customer
    ):
        repo = SubscriptionCustomerRepository()

        customer = await repo.get_by_entity_id("ent_123")

        assert customer.id == sample_subscription_customer.id
        assert await repo.get_by_entity_id("ent_missing") is None

    async def test_save_keeps_customer_metadata(self, sample_entity):
        repo = PaymentCustomerRepository()

        await repo.save(
            PaymentCustomer(
                id="cus_new",
                entity_id=sample_entity.id,
                email=sample_entity.email,
                created=1704067200,
                customer_metadata={"entity_id": sample_entity.id, "tier": "pro"},
            )
        )

        customer = await repo.get_by_entity_id(sample_entity.id)
        assert customer.customer_metadata == {"entity_id": "ent_123", "tier": "pro"}

    async def test_save_replaces_existing_row(self, sample_payment_customer):
        repo = PaymentCustomerRepository()

        await repo.save(sample_payment_customer.model_copy(update={"name": "Countess"}))

        customer = await repo.get(sample_payment_customer.id)
        assert customer.name == "Countess"


@pytest.mark.asyncio
class TestContractRepository:
    async def test_active_contract_is_newest_active(self):
        repo = ContractRepository()
        await repo.save(make_contract("c_old", ContractStatus.CANCELLED, JAN_1))
        await repo.save(
            make_contract("c_active", ContractStatus.ACTIVE, JAN_1 + timedelta(days=1))
        )

        active = await repo.get_active_by_customer_id("cust_123")

        assert active.id == "c_active"

    async def test_no_active_contract(self):
        repo = ContractRepository()
        await repo.save(make_contract("c_old", ContractStatus.CANCELLED, JAN_1))

        assert await repo.get_active_by_customer_id("cust_123") is None

    async def test_contracts_newest_first(self):
        repo = ContractRepository()
        await repo.save(make_contract("c_1", ContractStatus.CANCELLED, JAN_1))
        await repo.save(
            make_contract("c_2", ContractStatus.ACTIVE, JAN_1 + timedelta(days=5))
        )

        contracts = await repo.get_by_customer_id("cust_123")

        assert [c.id for c in contracts] == ["c_2", "c_1"]
        assert contracts[0].start_date.tzinfo is not None


@pytest.mark.asyncio
class TestInvoiceRepository:
    async def test_round_trip_with_line_items(self):
        repo = InvoiceRepository()
        invoice = Invoice(
            id="inv_1",
            customer_id="cust_123",
            contract_id="c_1",
            amount=Decimal("4.65"),
            created_at=JAN_1,
            line_items=[
                InvoiceLineItem(
                    id="line_1",
                    description="Tier change from free to pro",
                    unit_price=Decimal("4.65"),
                    amount=Decimal("4.65"),
                )
            ],
        )

        await repo.save(invoice)
        stored = await repo.get("inv_1")

        assert stored.amount == Decimal("4.65")
        assert stored.status == InvoiceStatus.OPEN
        assert stored.line_items[0].amount == Decimal("4.65")

    async def test_update_marks_paid(self):
        repo = InvoiceRepository()
        await repo.save(Invoice(id="inv_1", customer_id="cust_123", amount=Decimal("9")))

        updated = await repo.update(
            "inv_1", InvoiceUpdateModel(status=InvoiceStatus.PAID, paid_at=JAN_1)
        )

        assert updated.status == InvoiceStatus.PAID
        assert updated.paid_at == JAN_1


@pytest.mark.asyncio
class TestCreditRepository:
    async def test_balance_is_sum_of_ledger_rows(self):
        repo = CreditRepository()
        await repo.save(
            Credit(id="cr_1", customer_id="cust_123", amount=10_000, balance=10_000)
        )
        await repo.save(
            Credit(id="cr_2", customer_id="cust_123", amount=-5_000, balance=-5_000)
        )

        assert await repo.get_balance("cust_123") == 5_000

    async def test_balance_without_rows_is_zero(self):
        assert await CreditRepository().get_balance("cust_none") == 0

    async def test_expire_zeroes_balance(self):
        repo = CreditRepository()
        await repo.save(
            Credit(id="cr_1", customer_id="cust_123", amount=10_000, balance=10_000)
        )

        assert await repo.expire("cr_1") is True
        assert (await repo.get("cr_1")).balance == 0
        assert await repo.get_balance("cust_123") == 0

    async def test_expire_unknown_credit(self):
        assert await CreditRepository().expire("cr_missing") is False
