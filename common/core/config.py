from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import Environment, LockProvider


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "billing-orchestrator"
    api_version: str = "1.0.0"
    debug: bool = False
    cors_allowed_origins: list[str] = ["http://localhost:3000"]

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/billing.db"
    db_use_nullpool: bool = False
    db_pool_size: int = 10
    db_pool_overflow: int = 5

    @property
    def async_database_url(self) -> str:
        """Database URL with an async driver."""
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://")
        return self.database_url

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    # Locking
    lock_provider: LockProvider = LockProvider.MEMORY
    tier_change_lock_ttl_seconds: float = 60.0
    tier_change_lock_timeout_seconds: float = 10.0

    # OpenTelemetry
    otel_service_name: str = "billing-orchestrator"
    otel_service_version: str = "1.0.0"

    # Axiom (traces are only exported when a token is configured)
    axiom_token: Optional[str] = None
    axiom_dataset: Optional[str] = None

    # Metronome (subscription/credits provider)
    metronome_api_url: str = "http://localhost:3001"
    metronome_client_id: str = ""
    metronome_client_secret: str = ""
    metronome_token_url: str = "http://localhost:3001/oauth/token"
    metronome_scope: str = "billing:read billing:write"

    # Stripe (payment provider)
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""

    # Remote calls
    billing_request_timeout_seconds: float = 30.0
    billing_currency: str = "USD"
    # Retries for contract creation and payment calls
    remote_max_retries: int = 3
    remote_retry_delay_seconds: float = 1.0

    # Webhook processing
    webhook_max_retries: int = 3
    webhook_retry_delay_seconds: float = 1.0
    webhook_event_retention: int = 1000
    processed_event_retention_days: Optional[int] = None  # None keeps forever


settings = Settings()
