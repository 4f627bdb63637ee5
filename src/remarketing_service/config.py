"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import (
    DISCOUNT_VALIDITY_DAYS,
    FOLLOW_UP_BATCH_SIZE,
    FOLLOW_UP_LOOKBACK_DAYS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "cart-remarketing"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # -------------------------------------------------------------------------
    # PostgreSQL Database
    # -------------------------------------------------------------------------
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "remarketing"
    postgres_password: str = ""
    postgres_db: str = "remarketing"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Construct PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        """Construct synchronous PostgreSQL connection URL (for Alembic)."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # -------------------------------------------------------------------------
    # Redis
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Celery
    # -------------------------------------------------------------------------
    celery_broker_url: str = ""
    celery_result_backend: str = ""

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to Redis URL."""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """Get Celery result backend URL, defaulting to Redis URL."""
        return self.celery_result_backend or self.redis_url

    # -------------------------------------------------------------------------
    # Follow-up Policy
    # -------------------------------------------------------------------------
    follow_up_lookback_days: int = FOLLOW_UP_LOOKBACK_DAYS
    follow_up_batch_size: int = FOLLOW_UP_BATCH_SIZE
    follow_up_interval_minutes: int = 15
    follow_up_lock_ttl_seconds: int = 600
    collaborator_timeout_seconds: float = 30.0

    # -------------------------------------------------------------------------
    # Store Branding
    # -------------------------------------------------------------------------
    store_name: str = "Alliance Chemical"
    store_cart_url: str = "https://alliance-chemical-store.myshopify.com/cart"
    sales_cc_address: str = "sales@alliancechemical.com"
    sales_cc_name: str = "Alliance Chemical Sales"

    # -------------------------------------------------------------------------
    # Message Generation
    # -------------------------------------------------------------------------
    message_generator: Literal["template", "openai"] = "template"
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4"
    openai_temperature: float = 0.7
    openai_max_tokens: int = 500

    # -------------------------------------------------------------------------
    # Discount Issuing (Shopify)
    # -------------------------------------------------------------------------
    shopify_shop_domain: str = ""
    shopify_access_token: str = ""
    shopify_api_version: str = "2023-10"
    discount_validity_days: int = DISCOUNT_VALIDITY_DAYS

    @property
    def shopify_configured(self) -> bool:
        return bool(self.shopify_shop_domain and self.shopify_access_token)

    # -------------------------------------------------------------------------
    # Email Service
    # -------------------------------------------------------------------------
    email_service: Literal["mock", "graph"] = "mock"
    email_sender_mailbox: str = "andre@alliancechemical.com"
    mock_email_storage_path: str = "/tmp/remarketing_mock_emails"
    azure_tenant_id: str = ""
    azure_client_id: str = ""
    azure_client_secret: str = ""


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
