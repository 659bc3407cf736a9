import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from common.core.config import settings
from common.core.exceptions import (
    AppException,
    ConcurrentModificationError,
    NotFoundError,
    RemoteServiceError,
    ValidationError,
)
from api.v1.routes import health
from api.v1.routes.router import api_router
from common.db.session import init_db
from common.providers.locking.factory import get_lock_provider
from common.providers.locking.redis_lock import RedisLock
from packages.billing.providers.subscription.factory import get_subscription_provider
from packages.billing.routes import webhooks

# Initialize Axiom OpenTelemetry exporter (must be first)
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.asgi import OpenTelemetryMiddleware
from common.core.otel_axiom_exporter import (
    _initialize_telemetry,
    get_logger,
)  # noqa


_initialize_telemetry()
# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Get logger
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    await init_db()
    logger.info("Database initialized")
    yield
    # Shutdown
    logger.info("Shutting down application...")
    await get_subscription_provider().aclose()
    lock_provider = get_lock_provider()
    if isinstance(lock_provider, RedisLock):
        await lock_provider.disconnect()


# Only expose OpenAPI docs in local development
docs_url = "/docs" if settings.environment == "local" else None
redoc_url = "/redoc" if settings.environment == "local" else None
openapi_url = "/openapi.json" if settings.environment == "local" else None

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
    openapi_url=openapi_url,
)

_STATUS_BY_EXCEPTION = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ConcurrentModificationError: status.HTTP_409_CONFLICT,
    RemoteServiceError: status.HTTP_502_BAD_GATEWAY,
}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    status_code = _STATUS_BY_EXCEPTION.get(
        type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    if status_code >= 500:
        logger.error(
            f"{type(exc).__name__} on {request.url.path}: {exc}",
            extra={"path": request.url.path, "status_code": status_code},
        )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


app.add_exception_handler(AppException, app_exception_handler)


# Instrument FastAPI with OpenTelemetry
FastAPIInstrumentor.instrument_app(app)
# Add ASGI middleware for context propagation
app.add_middleware(OpenTelemetryMiddleware)

# Add gzip compression middleware
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health check and provider webhooks sit outside the versioned API
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(webhooks.router, tags=["webhooks"])
app.include_router(api_router, prefix="/api/v1")


# Internal health endpoint for k8s probes
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}
