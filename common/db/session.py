import os
import time

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import pool
from sqlalchemy.engine import make_url

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger
from common.db.base import Base

logger = get_logger(__name__)

ASYNC_DATABASE_URL = settings.async_database_url
_is_sqlite = make_url(ASYNC_DATABASE_URL).get_backend_name() == "sqlite"

engine_kwargs = {"echo": settings.debug}

# NullPool (db_use_nullpool=True): No pooling, new connection per operation
# SQLite: file-level locking, pool sizing does not apply
if settings.db_use_nullpool:
    logger.info("Using NullPool - no connection pooling")
    engine_kwargs["poolclass"] = pool.NullPool
elif not _is_sqlite:
    logger.info(
        f"Using connection pooling - pool_size={settings.db_pool_size}, max_overflow={settings.db_pool_overflow}"
    )
    engine_kwargs["pool_size"] = settings.db_pool_size
    engine_kwargs["max_overflow"] = settings.db_pool_overflow
    engine_kwargs["pool_pre_ping"] = True
    engine_kwargs["pool_recycle"] = 3600

engine = create_async_engine(ASYNC_DATABASE_URL, **engine_kwargs)
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db():
    start = time.perf_counter()
    async with AsyncSessionLocal() as session:
        acquire_time = time.perf_counter() - start
        logger.debug(f"Session acquire: {acquire_time * 1000:.2f}ms")

        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Rolling back due to error {e}")
            await session.rollback()
            raise


async def init_db():
    """Create the mirror tables if they do not exist yet."""
    # Register billing entities on Base.metadata
    import packages.billing.models.database  # noqa: F401

    if _is_sqlite:
        database = make_url(ASYNC_DATABASE_URL).database
        if database and database != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(database)), exist_ok=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")
