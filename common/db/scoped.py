"""
Operation-scoped database sessions.

Provides lazy session acquisition that releases connections immediately
after each operation, so no connection is held while a provider call is
in flight.

Usage:
    # Single operation - acquires and releases immediately
    async with get_session() as session:
        result = await session.get(Model, id)

    # Multiple operations in a transaction - share one session
    async with transaction():
        await repo.save(thing1)
        await repo.save(thing2)
    # Commits together, then releases
"""

import time
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal

logger = get_logger(__name__)

# Holds the current session if inside a transaction() block
_current_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_session", default=None
)


def in_transaction() -> bool:
    """Check if we're currently inside a transaction."""
    return _current_session.get() is not None


@asynccontextmanager
async def transaction() -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    All DB operations inside share one session/connection.
    Commits on success, rolls back on exception. Nested calls reuse the
    outer session.
    """
    existing = _current_session.get()
    if existing is not None:
        yield existing
        return

    async with AsyncSessionLocal() as session:
        token = _current_session.set(session)
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Transaction rollback due to: {e}")
            await session.rollback()
            raise
        finally:
            _current_session.reset(token)


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a session for a single DB operation.

    Reuses the session if inside a transaction() block, otherwise acquires
    a new one, commits, and releases it immediately.
    """
    existing = _current_session.get()

    if existing is not None:
        yield existing
        return

    start = time.perf_counter()
    async with AsyncSessionLocal() as session:
        logger.debug(
            f"Operation session acquire: {(time.perf_counter() - start) * 1000:.2f}ms"
        )
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Operation rollback due to: {e}")
            await session.rollback()
            raise
