from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text

from common.core.config import settings
from common.db.session import get_db
from common.core.otel_axiom_exporter import get_logger
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.subscription.factory import get_subscription_provider

logger = get_logger(__name__)

router = APIRouter()


@router.get("")
async def health_check():
    # No logging - probes hit this every few seconds
    return {"status": "healthy", "service": settings.app_name}


@router.get("/db")
async def db_check(db: AsyncSession = Depends(get_db)):
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "database": "disconnected"}


@router.get("/providers")
async def providers_check():
    metronome = await get_subscription_provider().health_check()
    stripe = await get_payment_provider().health_check()
    return {
        "status": "healthy" if metronome and stripe else "degraded",
        "metronome": "up" if metronome else "down",
        "stripe": "up" if stripe else "down",
    }
