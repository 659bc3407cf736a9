# Shared pytest configuration and fixtures for all test types
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from datetime import datetime, timezone

from api.main import app
from common.db.session import get_db
from common.db.base import Base

# Register billing tables on Base.metadata
import packages.billing.models.database  # noqa: F401
from packages.billing.models.database.contract import ContractEntity
from packages.billing.models.database.customer import (
    PaymentCustomerEntity,
    SubscriptionCustomerEntity,
)
from packages.billing.models.database.entity import BillingEntityEntity
from packages.billing.models.domain.contract import Contract
from packages.billing.models.domain.customer import (
    BillingEntity,
    PaymentCustomer,
    SubscriptionCustomer,
)
from packages.billing.models.domain.enums import (
    BillingEntityType,
    BillingPeriod,
    BillingTier,
    ContractStatus,
)

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PERIOD_START = datetime(2024, 1, 1, tzinfo=timezone.utc)
PERIOD_END = datetime(2024, 2, 1, tzinfo=timezone.utc)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so nested transaction()
    calls create savepoints instead of real nested transactions.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)


@pytest_asyncio.fixture(scope="function")
async def client(test_db: AsyncSession):
    """Create a test client."""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def sample_entity(test_db: AsyncSession):
    """Create a sample billing entity."""
    entity = BillingEntityEntity(
        id="ent_123",
        type=BillingEntityType.USER.value,
        name="Ada Lovelace",
        email="ada@example.com",
        created_at=PERIOD_START,
        updated_at=PERIOD_START,
    )
    test_db.add(entity)
    await test_db.commit()
    await test_db.refresh(entity)
    return BillingEntity.model_validate(entity)


@pytest_asyncio.fixture(scope="function")
async def sample_subscription_customer(test_db: AsyncSession, sample_entity):
    """Create the subscription provider customer for the sample entity."""
    customer = SubscriptionCustomerEntity(
        id="cust_123",
        entity_id=sample_entity.id,
        entity_type=sample_entity.type.value,
        email=sample_entity.email,
        name=sample_entity.name,
        customer_metadata={},
        created_at=PERIOD_START,
        updated_at=PERIOD_START,
    )
    test_db.add(customer)
    await test_db.commit()
    await test_db.refresh(customer)
    return SubscriptionCustomer.model_validate(customer)


@pytest_asyncio.fixture(scope="function")
async def sample_payment_customer(test_db: AsyncSession, sample_entity):
    """Create the Stripe customer for the sample entity."""
    customer = PaymentCustomerEntity(
        id="cus_stripe_123",
        entity_id=sample_entity.id,
        email=sample_entity.email,
        name=sample_entity.name,
        created=1704067200,
        customer_metadata={"entity_id": sample_entity.id},
    )
    test_db.add(customer)
    await test_db.commit()
    await test_db.refresh(customer)
    return PaymentCustomer.model_validate(customer)


@pytest_asyncio.fixture(scope="function")
async def sample_contract(test_db: AsyncSession, sample_subscription_customer):
    """Create an active free monthly contract for January 2024."""
    contract = ContractEntity(
        id="contract_free_123",
        customer_id=sample_subscription_customer.id,
        tier=BillingTier.FREE.value,
        status=ContractStatus.ACTIVE.value,
        billing_period=BillingPeriod.MONTHLY.value,
        start_date=PERIOD_START,
        end_date=PERIOD_END,
        rate_card_id="rate_free",
        created_at=PERIOD_START,
        updated_at=PERIOD_START,
    )
    test_db.add(contract)
    await test_db.commit()
    await test_db.refresh(contract)
    return Contract.model_validate(contract)
