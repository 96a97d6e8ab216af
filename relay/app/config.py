"""
Configuration module for the Webhook Relay.

This module uses Pydantic Settings to load and validate environment variables
for the upstream service, the local listener, the ngrok tunnel and the
provider (Twilio) webhook registration.

Environment variables are loaded from .env file or system environment.
"""

import logging
from functools import lru_cache
from typing import List, Optional

import httpx
from pydantic import Field, HttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_WEBHOOK_CONFIGURATION_URL = (
    "https://numbers.twilio.com/v1/Porting/Configuration/Webhook"
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Read once at startup and frozen for the lifetime of the process.
    """

    # =========================================================================
    # Upstream Service Configuration
    # =========================================================================

    SERVICE_BASE_URL: HttpUrl = Field(
        ...,
        description="Upstream service base URL (e.g., http://10.0.0.12:8000)",
    )

    FORWARD_PATH: str = Field(
        default="/v1/webhooks/port-in",
        description="Path on the upstream service that receives every relayed callback",
    )

    HEALTH_CHECK_PATH: Optional[str] = Field(
        default="/v1/health/check",
        description="Upstream health probe path (empty string disables the probe)",
    )

    # =========================================================================
    # Listener Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the relay listener",
    )

    PORT: int = Field(
        default=3000,
        description="Port to bind the relay listener",
        ge=1,
        le=65535,
    )

    # =========================================================================
    # Tunnel Configuration
    # =========================================================================

    NGROK_AUTH_TOKEN: Optional[str] = Field(
        None,
        description="ngrok auth token (anonymous tunnel when unset)",
    )

    NGROK_REGION: Optional[str] = Field(
        None,
        description="ngrok region (us, eu, ap, ...)",
    )

    # =========================================================================
    # Provider Webhook Registration
    # =========================================================================

    TWILIO_ACCOUNT_SID: Optional[str] = Field(
        None,
        description="Twilio account SID used as the basic auth user",
    )

    TWILIO_AUTH_TOKEN: Optional[str] = Field(
        None,
        description="Twilio auth token used as the basic auth password",
    )

    WEBHOOK_CONFIGURATION_URL: str = Field(
        default=DEFAULT_WEBHOOK_CONFIGURATION_URL,
        description="Provider endpoint that stores the port-in webhook target",
    )

    WEBHOOK_TARGET_SUFFIX: str = Field(
        default="/api",
        description="Sub-path appended to the public tunnel URL when registering",
    )

    # =========================================================================
    # Logging
    # =========================================================================

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra env vars not defined here
        frozen=True,
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def service_base_url_str(self) -> str:
        """Upstream base URL as string without trailing slash."""
        return str(self.SERVICE_BASE_URL).rstrip("/")

    @property
    def forward_endpoint(self) -> str:
        """Fixed URL every inbound request is relayed to."""
        return f"{self.service_base_url_str}{self.FORWARD_PATH}"

    @property
    def health_check_endpoint(self) -> Optional[str]:
        """
        URL probed before the listener starts.

        Returns:
            Full health check URL, or None when the probe is disabled.
        """
        if not self.HEALTH_CHECK_PATH:
            return None
        return f"{self.service_base_url_str}{self.HEALTH_CHECK_PATH}"

    @property
    def upstream_host(self) -> str:
        """Value of the Host header sent upstream (includes non-default port)."""
        return httpx.URL(self.forward_endpoint).netloc.decode("ascii")

    @property
    def provider_credentials_configured(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN)

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("FORWARD_PATH", "HEALTH_CHECK_PATH", "WEBHOOK_TARGET_SUFFIX")
    @classmethod
    def normalize_path(cls, v: Optional[str]) -> Optional[str]:
        """
        Ensure configured paths start with a single slash.

        Empty values are kept empty (a disabled health check stays disabled).
        """
        if v is None:
            return None
        v = v.strip()
        if not v:
            return v
        return "/" + v.lstrip("/")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        level = v.strip().upper()
        if level not in allowed_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {allowed_levels}, got: {v}"
            )

        return level

    @model_validator(mode="after")
    def validate_provider_credentials(self) -> "Settings":
        """
        Require the Twilio account SID and auth token to be set together.

        Raises:
            ValueError: If only one of the two is configured
        """
        if bool(self.TWILIO_ACCOUNT_SID) != bool(self.TWILIO_AUTH_TOKEN):
            raise ValueError(
                "TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN must be set together"
            )
        return self


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the process lifecycle.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Inspect loaded settings and return a status report.

    Called during startup; warnings are logged but never block the relay.

    Example:
        >>> report = validate_configuration(get_settings())
        >>> for warning in report["warnings"]:
        ...     print(warning)
    """
    warnings: List[str] = []

    if not settings.NGROK_AUTH_TOKEN:
        warnings.append("NGROK_AUTH_TOKEN is not set (anonymous ngrok session)")

    if not settings.provider_credentials_configured:
        warnings.append(
            "Twilio credentials are not set, webhook URL will not be registered"
        )

    if settings.health_check_endpoint is None:
        warnings.append("HEALTH_CHECK_PATH is empty, upstream probe disabled")

    host = httpx.URL(settings.forward_endpoint).host
    if host in ("localhost", "127.0.0.1"):
        warnings.append("Upstream URL points to localhost (may cause issues in containers)")

    return {
        "warnings": warnings,
        "forward_endpoint": settings.forward_endpoint,
        "health_check_endpoint": settings.health_check_endpoint,
        "port": settings.PORT,
    }


def log_configuration(settings: Settings, logger: Optional[logging.Logger] = None) -> None:
    logger = logger or logging.getLogger(__name__)
    report = validate_configuration(settings)
    for warning in report["warnings"]:
        logger.warning(warning)
