"""
Centralized configuration management with Pydantic Settings.
All environment variables are validated and typed.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Storefront API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|test|staging|production)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database (postgresql:// is rewritten to asyncpg, sqlite+aiosqlite:// is accepted for tests)
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_echo: bool = False

    # Redis (background worker)
    redis_url: Optional[RedisDsn] = None

    # Security
    secret_key: str = Field(min_length=32)
    jwt_algorithm: str = "HS256"
    jwt_expiration_hours: int = 24

    # CORS - stored as comma-separated string to avoid JSON parsing issues
    allowed_origins_str: str = Field(default="http://localhost:3000", alias="ALLOWED_ORIGINS")

    @property
    def allowed_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    # Store
    site_currency: str = "CAD"
    default_locale: str = "fr"
    site_url: str = "http://localhost:3000"
    store_name: str = "Storefront"
    admin_email: Optional[str] = None
    admin_locale: str = "fr"
    store_origin_country: str = "CA"
    store_origin_street1: Optional[str] = None
    store_origin_city: Optional[str] = None
    store_origin_state: Optional[str] = None
    store_origin_zip: Optional[str] = None
    store_origin_phone: Optional[str] = None
    cart_cookie_name: str = "cart_anonymous_id"
    cart_expiration_days: int = 30

    # Stripe
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_automatic_tax: bool = False
    stripe_webhook_tolerance_seconds: int = 300

    # Clerk (auth provider webhooks)
    clerk_webhook_secret: Optional[str] = None

    # Shippo
    shippo_api_key: Optional[str] = None
    shippo_webhook_secret: Optional[str] = None
    shippo_carrier_accounts_str: str = Field(default="", alias="SHIPPO_CARRIER_ACCOUNTS")
    shipping_providers_str: str = Field(default="", alias="SHIPPING_PROVIDERS")

    @property
    def shippo_carrier_accounts(self) -> List[str]:
        return [a.strip() for a in self.shippo_carrier_accounts_str.split(",") if a.strip()]

    @property
    def shipping_providers(self) -> List[str]:
        """Allowed carrier names for rate display (empty means all)."""
        return [p.strip().lower() for p in self.shipping_providers_str.split(",") if p.strip()]

    @property
    def store_origin_address(self) -> dict[str, str]:
        """Warehouse address used when a product has no shipping origin."""
        return {
            "name": self.store_name,
            "street1": self.store_origin_street1 or "",
            "city": self.store_origin_city or "",
            "state": self.store_origin_state or "",
            "zip": self.store_origin_zip or "",
            "country": self.store_origin_country,
            "phone": self.store_origin_phone or "",
            "email": self.admin_email or "",
        }

    # Notifications
    resend_api_key: Optional[str] = None
    from_email: str = "Storefront <orders@storefront.dev>"
    slack_webhook_url: Optional[str] = None

    # Internal cron
    cron_secret: Optional[str] = None
    analytics_retention_days: int = 14

    # Observability
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
