"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from decimal import Decimal

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str | None = "logs/tierpay.log"

    # HTTP server
    http_host: str = "0.0.0.0"
    http_port: int = Field(
        default=8080, ge=1, le=65535, description="Public HTTP API port"
    )
    admin_api_token: str | None = None

    # Custodian gateway
    custodian_base_url: str = "https://sandbox-api.fireblocks.io"
    custodian_api_key: str | None = None
    custodian_private_key: str | None = None  # PEM, used to sign API requests
    custodian_environment: str = Field(
        default="sandbox",
        description="Selects the webhook public key: sandbox or production",
    )
    custodian_webhook_public_key: str | None = None  # PEM override
    custodian_signature_bypass: bool = Field(
        default=False,
        description="Accept webhooks with invalid signatures (non-production only)",
    )
    custodian_timeout_seconds: float = Field(default=30.0, gt=0)

    # Treasury
    treasury_vault_id: str | None = None
    treasury_sweep_batch_limit: int = Field(default=100, gt=0, le=500)

    # Payments
    supported_assets: str = "BTC_TEST"  # Comma-separated custodian asset ids
    payment_session_ttl_minutes: int = Field(default=30, gt=0)
    payment_tolerance_percent: Decimal = Field(
        default=Decimal("2"),
        ge=0,
        lt=100,
        description="Allowed shortfall before a payment is considered partial",
    )
    ack_unmatched_notifications: bool = Field(
        default=True,
        description="Acknowledge notifications that match no session (after auditing)",
    )

    # Exchange rates
    exchange_rate_url: str = "https://api.coingecko.com/api/v3/simple/price"
    exchange_rate_fallback_usd: Decimal = Field(
        default=Decimal("80000"),
        gt=0,
        description="Used when the live rate source is unavailable",
    )

    # Background jobs
    session_expiry_interval_seconds: int = Field(default=60, gt=0)
    treasury_sweep_interval_minutes: int = Field(
        default=0, ge=0, description="Periodic treasury sweep; 0 disables it"
    )
    scheduler_health_port: int = Field(default=8081, ge=1, le=65535)

    # Redis (for Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production":
            if self.debug:
                raise ValueError(
                    "DEBUG must be False in production environment. "
                    "Set DEBUG=false in your .env file."
                )

            if self.custodian_signature_bypass:
                raise ValueError(
                    "CUSTODIAN_SIGNATURE_BYPASS cannot be enabled in production. "
                    "Webhook signatures must always be verified."
                )

            if not self.admin_api_token or len(self.admin_api_token) < 32:
                raise ValueError(
                    "ADMIN_API_TOKEN must be at least 32 characters in "
                    "production. Generate one with: openssl rand -hex 32"
                )

            if self.custodian_environment != "production":
                logger.warning(
                    f"ENVIRONMENT=production but CUSTODIAN_ENVIRONMENT="
                    f"{self.custodian_environment}. Webhooks will be verified "
                    "against the sandbox key."
                )
        elif self.custodian_signature_bypass:
            logger.warning(
                "CUSTODIAN_SIGNATURE_BYPASS is enabled. Webhooks with invalid "
                "signatures will be accepted."
            )

        return self

    @field_validator("custodian_environment")
    @classmethod
    def validate_custodian_environment(cls, v: str) -> str:
        """Validate custodian environment name."""
        v = v.lower()
        if v not in ("sandbox", "production"):
            raise ValueError(
                "CUSTODIAN_ENVIRONMENT must be 'sandbox' or 'production'"
            )
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(
            ("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")
        ):
            raise ValueError(
                "DATABASE_URL must start with postgresql://, "
                "postgresql+asyncpg:// or sqlite+aiosqlite://"
            )
        return v

    @property
    def is_production(self) -> bool:
        """True when running against production."""
        return self.environment == "production"

    @property
    def async_database_url(self) -> str:
        """Database URL with an async driver."""
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace(
                "postgresql://", "postgresql+asyncpg://", 1
            )
        return self.database_url

    def get_supported_assets(self) -> list[str]:
        """Parse supported asset ids from comma-separated string."""
        return [
            asset.strip()
            for asset in self.supported_assets.split(",")
            if asset.strip()
        ]


# Global settings instance
settings = Settings()
