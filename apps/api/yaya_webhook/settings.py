"""Application settings and configuration."""

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from yaya_webhook.webhooks.verifier import VerificationConfig

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_SECRET = "default_secret_change_in_production"


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "development"
    max_body_bytes: int = Field(default=10 * 1024 * 1024, gt=0)  # 10 MB
    gzip_minimum_size: int = Field(default=1024, ge=0)

    # Webhook verification
    webhook_secret: str = Field(..., min_length=1)  # Required, startup fails without it
    webhook_timestamp_tolerance: int = Field(default=300_000, ge=0)  # 5 minutes in ms
    trusted_ips: str = ""  # Comma-separated addresses or CIDR networks
    allow_loopback: bool = False  # Development only, forced off in production
    trusted_proxies: str = "127.0.0.1,::1"  # Hops allowed to set X-Forwarded-For

    # Processing
    dispatch_backend: str = "inline"  # inline, celery
    processing_delay_ms: int = Field(default=100, ge=0)
    shutdown_drain_timeout_seconds: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # Rate Limiting
    rate_limit_enabled: bool = True
    rate_limit_window_ms: int = 900_000  # 15 minutes
    rate_limit_max_requests: int = 100

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # CORS
    allowed_origins: str = ""

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() in ("development", "dev")

    @property
    def trusted_ip_list(self) -> list[str]:
        return _split_csv(self.trusted_ips)

    @property
    def trusted_proxy_list(self) -> list[str]:
        return _split_csv(self.trusted_proxies)

    @property
    def allowed_origin_list(self) -> list[str]:
        return _split_csv(self.allowed_origins)

    @property
    def loopback_allowed(self) -> bool:
        """Loopback carve-out, resolved once against the environment."""
        return self.allow_loopback and not self.is_production

    def verification_config(self) -> VerificationConfig:
        """Build the immutable verification config handed to the verifier."""
        return VerificationConfig(
            secret=self.webhook_secret,
            timestamp_tolerance_ms=self.webhook_timestamp_tolerance,
            trusted_ips=frozenset(self.trusted_ip_list),
            allow_loopback=self.loopback_allowed,
        )

    def validate_production_settings(self):
        """Validate settings for production environment."""
        if self.dispatch_backend not in ("inline", "celery"):
            raise ValueError(
                f"DISPATCH_BACKEND={self.dispatch_backend} is not supported. "
                "Use DISPATCH_BACKEND=inline or DISPATCH_BACKEND=celery."
            )
        if self.is_production:
            if not self.webhook_secret or self.webhook_secret == DEFAULT_WEBHOOK_SECRET:
                raise ValueError(
                    "WEBHOOK_SECRET must be set to a non-default value in production."
                )

    def configuration_warnings(self) -> list[str]:
        """Collect non-fatal configuration problems worth reporting at startup."""
        warnings = []
        if self.webhook_secret == DEFAULT_WEBHOOK_SECRET:
            warnings.append(
                "Using default webhook secret. Change WEBHOOK_SECRET in production!"
            )
        if not self.trusted_ip_list:
            warnings.append(
                "No trusted IPs configured. Every webhook will be rejected until "
                "TRUSTED_IPS is set."
            )
        if self.allow_loopback and self.is_production:
            warnings.append("ALLOW_LOOPBACK is ignored in production.")
        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
