"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Critical config is validated at startup.
"""

import sys
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 1800

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "AuraFlow Core API"
    api_version: str = "0.1.0"
    api_description: str = "Message generation, daily drops and entitlements for AuraFlow"

    # AI Providers
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-haiku-20240307"
    anthropic_api_url: str = "https://api.anthropic.com"
    preferred_ai_provider: Literal["openai", "anthropic"] = "openai"
    enable_ai_fallback: bool = True
    ai_request_timeout: float = 10.0  # seconds, per provider call
    ai_max_retries: int = 3  # provider-side retries

    # Payment Back-ends
    revenuecat_api_key: str = ""
    revenuecat_api_url: str = "https://api.revenuecat.com/v1"
    stripe_api_key: str = ""  # Stripe secret key (sk_test_... or sk_live_...)
    stripe_webhook_secret: str = ""  # Stripe webhook signing secret (whsec_...)
    stripe_premium_core_price_id: str = ""
    stripe_voice_pack_price_id: str = ""

    # Deduplication
    dedup_window_days: int = 90
    dedup_max_records: int = 50
    dedup_similarity_threshold: float = 0.7

    # Message Generation
    message_max_retries: int = 3
    message_cache_enabled: bool = True
    message_cache_window_minutes: int = 60
    max_words_per_message: int = 40

    # Daily Drop
    daily_drop_max_retries: int = 3
    daily_drop_cache_enabled: bool = True
    daily_drop_cache_ttl_seconds: int = 3600
    daily_drop_cache_max_entries: int = 512
    daily_drop_retention_days: int = 90
    default_locale: str = "en-US"
    supported_locales: str = "en-US"  # Comma-separated

    @property
    def supported_locale_list(self) -> list[str]:
        """Get list of supported locales."""
        locales = []
        for locale in self.supported_locales.split(","):
            locale = locale.strip()
            if locale and locale not in locales:
                locales.append(locale)
        return locales

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "auraflow-core"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start if critical config is missing.
        """
        errors: list[str] = []

        # DATABASE_URL is absolutely required
        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if not 0.0 < self.dedup_similarity_threshold <= 1.0:
            errors.append(
                f"DEDUP_SIMILARITY_THRESHOLD must be in (0, 1], got: {self.dedup_similarity_threshold}"
            )

        if self.daily_drop_max_retries < 1 or self.message_max_retries < 1:
            errors.append("Retry counts must be at least 1")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
