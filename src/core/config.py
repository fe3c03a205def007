"""Application configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="pickup-orders-api", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    public_base_url: str = Field(
        default="http://localhost:8080",
        description="Externally reachable base URL, used for locally served receipt links",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Store schedule
    store_timezone: str = Field(default="America/Chicago", description="IANA timezone of the store")
    store_open_hour: int = Field(default=9, ge=0, le=23, description="First pickup hour (local time)")
    store_close_hour: int = Field(default=20, ge=1, le=24, description="Hour the last pickup slot ends (local time)")
    slot_capacity: int = Field(default=20, ge=1, description="Maximum orders per pickup slot")
    lead_time_minutes: int = Field(default=60, ge=0, description="Minimum notice before a slot is bookable")
    tax_rate_bps: int = Field(default=0, ge=0, le=10000, description="Sales tax in basis points")
    currency: str = Field(default="usd", description="ISO currency code for payments")

    # Persistence
    order_store_backend: Literal["memory", "sql"] = Field(
        default="sql",
        description="Order store implementation (memory for tests and demos, sql otherwise)",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./pickup_orders.db",
        description="SQLAlchemy async database URL",
    )
    database_isolation_level: str = Field(
        default="SERIALIZABLE",
        description="Transaction isolation level for the SQL store",
    )
    database_echo: bool = Field(default=False, description="Log emitted SQL statements")

    # Payments
    payment_provider: Literal["stripe", "mock"] = Field(default="stripe", description="Payment provider")
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_webhook_secret: str = Field(default="", description="Stripe webhook signing secret")

    # Receipt storage
    storage_provider: Literal["supabase", "local"] = Field(default="local", description="Receipt storage backend")
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_secret_key: str = Field(default="", description="Supabase secret key for backend operations")
    receipt_bucket: str = Field(default="receipts", description="Storage bucket for receipt documents")
    receipt_url_ttl_seconds: int = Field(default=86400, description="Lifetime of signed receipt URLs")
    local_storage_dir: str = Field(default=".tmp/storage", description="Directory used by local receipt storage")

    # Admin auth
    admin_jwt_secret: str = Field(..., min_length=16, description="HS256 secret used to verify admin tokens")
    admin_jwt_refresh_secret: str = Field(
        ..., min_length=16, description="HS256 secret used to sign and verify admin refresh tokens"
    )
    admin_jwt_audience: str = Field(default="pickup-admin", description="Expected audience of admin tokens")
    admin_access_token_ttl_seconds: int = Field(default=900, ge=60, description="Lifetime of admin access tokens")
    admin_refresh_token_ttl_seconds: int = Field(
        default=30 * 24 * 60 * 60, ge=60, description="Lifetime of admin refresh tokens"
    )
    password_hash_rounds: int = Field(default=12, ge=4, le=31, description="bcrypt cost factor for admin passwords")
    superadmin_email: str | None = Field(default=None, description="Superadmin account created at startup if missing")
    superadmin_password: str | None = Field(default=None, description="Password for the seeded superadmin")

    @model_validator(mode="after")
    def check_store_hours(self) -> "Settings":
        """Reject a default schedule that would never produce a slot."""
        if self.store_close_hour <= self.store_open_hour:
            raise ValueError("STORE_CLOSE_HOUR must be greater than STORE_OPEN_HOUR")
        return self

    @model_validator(mode="after")
    def check_token_secrets(self) -> "Settings":
        """Refresh tokens must not verify as access tokens."""
        if self.admin_jwt_refresh_secret == self.admin_jwt_secret:
            raise ValueError("ADMIN_JWT_REFRESH_SECRET must differ from ADMIN_JWT_SECRET")
        return self

    @property
    def superadmin_seed_configured(self) -> bool:
        """Check whether both superadmin seed credentials are present."""
        return bool(self.superadmin_email and self.superadmin_password)

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_stripe_configured(self) -> bool:
        """Check whether both Stripe secrets are present."""
        return bool(self.stripe_secret_key and self.stripe_webhook_secret)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
