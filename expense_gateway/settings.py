# ==== APPLICATION SETTINGS CONFIGURATION ==== #

"""
Application settings configuration for the expense gateway.

This module provides centralized configuration management using Pydantic Settings
with environment variable loading and validation for the dispatcher and its
resilience components.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


# ==== MAIN SETTINGS CLASS ==== #


class Settings(BaseSettings):
    """
    Gateway settings loaded from environment variables.

    Covers the API endpoint, logging and observability, and the tuning knobs
    of the circuit breaker, throttle, response cache and retry executor.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra='ignore'
    )

    # --► CORE APPLICATION SETTINGS
    APP_ENV: str = "dev"
    SERVICE_NAME: str = "expense-gateway"
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILES: bool = False

    # --► EXPENSE API CONFIGURATION
    API_BASE_URL: str = "http://localhost:5000/api/v1"
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # --► CIRCUIT BREAKER
    CIRCUIT_FAILURE_THRESHOLD: int = 5
    CIRCUIT_RECOVERY_TIMEOUT_SECONDS: float = 30.0

    # --► THROTTLE WINDOW
    THROTTLE_WINDOW_SECONDS: float = 1.0
    THROTTLE_MAX_REQUESTS: int = 10

    # --► RESPONSE CACHE
    CACHE_TTL_SECONDS: float = 300.0

    # --► RETRY EXECUTOR
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0
    RETRY_JITTER: bool = False
    RETRY_NETWORK_ERRORS: bool = False

    # --► OBSERVABILITY CONFIGURATION
    OTEL_EXPORTER_OTLP_ENDPOINT: str | None = None
    OTEL_EXPORTER_OTLP_HEADERS: str | None = None
    OTEL_SERVICE_NAME: str | None = None


# ==== GLOBAL SETTINGS INSTANCE ==== #


# Global settings instance for application-wide access
settings = Settings()


def get_settings() -> Settings:
    """
    Get global settings instance.

    Returns:
        Settings: Global application settings instance
    """
    return settings
