# 📄 File: app/shared/config/settings.py
#
# 🧭 Purpose (Layman Explanation):
# The main configuration center that reads all settings from environment variables
# and hands them to the rest of the subscription service in one organized place.
#
# 🧪 Purpose (Technical Summary):
# Pydantic-based settings management with environment variable loading,
# validation, and type safety for database, Supabase, billing, payment processor,
# email, Celery and rate limiting configuration.
#
# 🔗 Dependencies:
# - pydantic-settings for configuration management
# - python-dotenv for .env file loading (used by pydantic-settings)
#
# 🔄 Connected Modules / Calls From:
# - app.main (application startup)
# - Database connection modules
# - Payment gateway and email clients
# - Subscription domain services (trial length, grace period, retry cap)
# - celery_config

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Settings are loaded from environment variables with fallback to a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================

    APP_NAME: str = Field(default="Event Marketplace Subscriptions API", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    APP_DESCRIPTION: str = Field(
        default="Subscription tiers, pricing, trials and payment recovery for contractors",
        description="Application description"
    )
    ENVIRONMENT: str = Field(default="development", description="Runtime environment")
    DEBUG: bool = Field(default=False, description="Debug mode flag")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="json", description="Log output format: json or text")
    API_PREFIX: str = Field(default="/api", description="Prefix for all API routes")

    # =========================================================================
    # SERVER CONFIGURATION
    # =========================================================================

    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=8000, description="Server port")
    RELOAD: bool = Field(default=False, description="Auto-reload on changes")
    WORKERS: int = Field(default=1, description="Number of worker processes")

    # =========================================================================
    # DATABASE CONFIGURATION
    # =========================================================================

    # Supabase project
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_ANON_KEY: str = Field(..., description="Supabase anonymous key")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")
    SUPABASE_JWT_SECRET: Optional[str] = Field(
        None, description="Secret used by Supabase to sign access tokens"
    )

    # Direct PostgreSQL connection to the Supabase database
    DATABASE_URL: Optional[str] = Field(None, description="PostgreSQL connection URL")
    DB_HOST: str = Field(default="localhost", description="Database host")
    DB_PORT: int = Field(default=5432, description="Database port")
    DB_NAME: str = Field(default="postgres", description="Database name")
    DB_USER: str = Field(default="postgres", description="Database user")
    DB_PASSWORD: str = Field(default="", description="Database password")

    DB_POOL_SIZE: int = Field(default=10, description="Database pool size")
    DB_MAX_OVERFLOW: int = Field(default=20, description="Database pool overflow")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Database pool timeout")
    DB_POOL_RECYCLE: int = Field(default=3600, description="Database pool recycle time")
    DB_ECHO: bool = Field(default=False, description="Echo SQL statements")

    # =========================================================================
    # SECURITY SETTINGS
    # =========================================================================

    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_AUDIENCE: str = Field(default="authenticated", description="Expected token audience")

    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="CORS allowed origins"
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True, description="CORS allow credentials")

    # =========================================================================
    # BILLING RULES
    # =========================================================================

    TRIAL_DURATION_DAYS: int = Field(default=14, description="Length of a free trial")
    PAYMENT_GRACE_PERIOD_DAYS: int = Field(
        default=7, description="Days a failed payment can be retried before expiry"
    )
    MAX_PAYMENT_RETRY_ATTEMPTS: int = Field(
        default=3, description="User-initiated retries allowed per failed payment"
    )
    FAILED_PAYMENT_NOTIFICATION_DAYS: str = Field(
        default="3,6,7",
        description="Days after a payment failure on which reminder emails go out"
    )
    BILLING_CURRENCY: str = Field(default="usd", description="ISO currency for charges")

    # =========================================================================
    # PAYMENT PROCESSOR (STRIPE)
    # =========================================================================

    STRIPE_SECRET_KEY: Optional[str] = Field(None, description="Stripe secret key")
    STRIPE_API_URL: str = Field(default="https://api.stripe.com/v1", description="Stripe API base URL")
    STRIPE_TIMEOUT: int = Field(default=30, description="Stripe request timeout (seconds)")

    # =========================================================================
    # EMAIL (SENDGRID)
    # =========================================================================

    SENDGRID_API_KEY: Optional[str] = Field(None, description="SendGrid API key")
    SENDGRID_API_URL: str = Field(default="https://api.sendgrid.com/v3", description="SendGrid API base URL")
    FROM_EMAIL: str = Field(default="billing@eventhire.example", description="Sender address")
    FROM_NAME: str = Field(default="Event Marketplace Billing", description="Sender name")
    BILLING_PORTAL_URL: str = Field(
        default="http://localhost:3000/dashboard/billing",
        description="Link included in billing emails"
    )

    # =========================================================================
    # BACKGROUND JOBS
    # =========================================================================

    CELERY_BROKER_URL: str = Field(default="redis://localhost:6379/1", description="Celery broker")
    CELERY_RESULT_BACKEND: str = Field(default="redis://localhost:6379/2", description="Celery results")

    # =========================================================================
    # RATE LIMITING
    # =========================================================================

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable per-route rate limits")
    RATE_LIMIT_MUTATIONS: str = Field(default="20/minute", description="Limit for state-changing routes")
    RATE_LIMIT_PAYMENT_RETRY: str = Field(default="5/minute", description="Limit for payment retries")
    RATE_LIMIT_STORAGE_URI: str = Field(default="memory://", description="Limiter storage, e.g. redis://localhost:6379/3")

    # =========================================================================
    # VALIDATORS
    # =========================================================================

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed_environments = ["development", "staging", "production", "test"]
        if v.lower() not in allowed_environments:
            raise ValueError(f"Environment must be one of {allowed_environments}")
        return v.lower()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level value."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of {allowed_levels}")
        return v.upper()

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Validate JWT algorithm."""
        allowed_algorithms = ["HS256", "HS384", "HS512", "RS256"]
        if v not in allowed_algorithms:
            raise ValueError(f"JWT algorithm must be one of {allowed_algorithms}")
        return v

    @field_validator("CORS_ORIGINS")
    @classmethod
    def validate_cors_origins(cls, v: str) -> str:
        """Validate CORS origins format."""
        origins = [origin.strip() for origin in v.split(",")]
        for origin in origins:
            if not origin.startswith(("http://", "https://", "*")):
                raise ValueError(f"Invalid CORS origin format: {origin}")
        return v

    @field_validator("FAILED_PAYMENT_NOTIFICATION_DAYS")
    @classmethod
    def validate_notification_days(cls, v: str) -> str:
        """Validate the comma separated reminder schedule."""
        for part in v.split(","):
            if not part.strip().isdigit():
                raise ValueError(f"Notification day must be a positive integer: {part}")
        return v

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================

    @property
    def database_url(self) -> str:
        """Get the database URL, preferring explicit DATABASE_URL."""
        if self.DATABASE_URL:
            # Supabase hands out plain postgres:// URLs; the engine needs the asyncpg driver
            for scheme in ("postgresql://", "postgres://"):
                if self.DATABASE_URL.startswith(scheme):
                    return "postgresql+asyncpg://" + self.DATABASE_URL[len(scheme):]
            return self.DATABASE_URL

        return (
            f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def notification_days(self) -> List[int]:
        """Reminder schedule as sorted integers."""
        return sorted({int(part) for part in self.FAILED_PAYMENT_NOTIFICATION_DAYS.split(",")})

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in test environment."""
        return self.ENVIRONMENT == "test"


# ============================================================================
# SETTINGS FACTORY
# ============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings singleton.

    Uses lru_cache to ensure settings are loaded only once
    and reused throughout the application lifecycle.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
