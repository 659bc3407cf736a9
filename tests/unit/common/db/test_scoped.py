import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy import text

from common.db.base import Base
from common.db.scoped import get_session, in_transaction, transaction
from packages.billing.models.database.entity import BillingEntityEntity


# Create a separate test engine for scoped tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _entity(entity_id: str) -> BillingEntityEntity:
    return BillingEntityEntity(
        id=entity_id, type="user", name=entity_id, email=f"{entity_id}@example.com"
    )


async def _entity_ids(session_factory) -> list[str]:
    async with session_factory() as verify_session:
        result = await verify_session.execute(text("SELECT id FROM billing_entities"))
        return [row[0] for row in result.fetchall()]


@pytest_asyncio.fixture(scope="function")
async def scoped_test_engine():
    """Create a test engine for scoped session tests."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def scoped_session_factory(scoped_test_engine):
    """Create session factory for scoped tests."""
    return async_sessionmaker(
        scoped_test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def patch_session_factories(scoped_session_factory, monkeypatch):
    """Patch the session factory in scoped.py to use the test database."""
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", scoped_session_factory)
    yield


class TestTransaction:
    """Test the transaction() context manager with real database."""

    async def test_transaction_commits_on_success(
        self, patch_session_factories, scoped_session_factory
    ):
        async with transaction() as session:
            session.add(_entity("ent_commit"))

        assert await _entity_ids(scoped_session_factory) == ["ent_commit"]

    async def test_transaction_rollback_on_exception(
        self, patch_session_factories, scoped_session_factory
    ):
        with pytest.raises(ValueError):
            async with transaction() as session:
                session.add(_entity("ent_rollback"))
                await session.flush()  # Make sure it would have been written
                raise ValueError("Simulated error")

        assert await _entity_ids(scoped_session_factory) == []

    async def test_transaction_marks_context(self, patch_session_factories):
        assert in_transaction() is False

        async with transaction():
            assert in_transaction() is True

        assert in_transaction() is False

    async def test_nested_transaction_reuses_session(self, patch_session_factories):
        async with transaction() as outer_session:
            async with transaction() as inner_session:
                assert inner_session is outer_session

    async def test_nested_exception_rolls_back_outer(
        self, patch_session_factories, scoped_session_factory
    ):
        """An error inside a nested block discards the outer block's writes too."""
        with pytest.raises(ValueError):
            async with transaction() as outer_session:
                outer_session.add(_entity("ent_outer"))
                await outer_session.flush()

                async with transaction() as inner_session:
                    inner_session.add(_entity("ent_inner"))
                    await inner_session.flush()
                    raise ValueError("Error in nested transaction")

        assert await _entity_ids(scoped_session_factory) == []


class TestGetSession:
    """Test the per-operation get_session() context manager."""

    async def test_get_session_commits_each_operation(
        self, patch_session_factories, scoped_session_factory
    ):
        async with get_session() as session:
            session.add(_entity("ent_single"))

        assert await _entity_ids(scoped_session_factory) == ["ent_single"]

    async def test_get_session_joins_enclosing_transaction(
        self, patch_session_factories
    ):
        async with transaction() as outer_session:
            async with get_session() as session:
                assert session is outer_session
