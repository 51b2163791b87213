"""
Configuration Management Module

This module handles loading, validating, and providing access to client configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Provides the default API key for both REST and WebSocket clients
- Keeps endpoint URLs overridable (useful against staging servers)
- Handles optional settings with sensible defaults

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.vyper_base_url)
    print(settings.has_api_key)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Client Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        vyper_api_key: API key used when a client is created without one
        vyper_base_url: Base URL for the Vyper REST API
        vyper_ws_url: Base URL for the Vyper WebSocket feeds
        request_timeout: Total timeout for a single REST request in seconds
        rate_limit_retry_after: Fallback retry delay when a 429 has no Retry-After
        log_level: Logging level for the "vyper" logger tree
    """

    # ============================================
    # Vyper API Configuration
    # ============================================

    vyper_api_key: str = Field(
        default="",
        description="Vyper API key (required for token endpoints and WebSocket feeds)"
    )

    vyper_base_url: str = Field(
        default="https://api.vyper.trade",
        description="Vyper REST API base URL"
    )

    vyper_ws_url: str = Field(
        default="wss://api.vyper.trade/api/v1/ws",
        description="Vyper WebSocket feeds base URL"
    )

    # ============================================
    # Requests
    # ============================================

    request_timeout: int = Field(
        default=30,
        description="HTTP request timeout in seconds"
    )

    rate_limit_retry_after: float = Field(
        default=3.0,
        description="Retry-after seconds reported when a 429 response carries no usable header"
    )

    # ============================================
    # Logging
    # ============================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the working directory
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    @property
    def has_api_key(self) -> bool:
        """
        Check if a default API key is configured.

        Returns:
            True if VYPER_API_KEY is set, False otherwise
        """
        return bool(self.vyper_api_key)


# ============================================
# Global Settings Instance
# ============================================

# Loaded once and shared by both clients
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration() -> None:
    """
    Validate configuration settings.

    Raises:
        ValueError: If a setting is missing or invalid

    Call this once at startup of an application embedding the clients;
    the clients themselves never call it.
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    if not settings.vyper_base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid VYPER_BASE_URL: '{settings.vyper_base_url}'. "
            f"Must start with http:// or https://"
        )

    if not settings.vyper_ws_url.startswith(("ws://", "wss://")):
        raise ValueError(
            f"Invalid VYPER_WS_URL: '{settings.vyper_ws_url}'. "
            f"Must start with ws:// or wss://"
        )

    if settings.request_timeout <= 0:
        raise ValueError(
            f"Invalid REQUEST_TIMEOUT: {settings.request_timeout}. Must be greater than 0"
        )

    if settings.rate_limit_retry_after < 0:
        raise ValueError(
            f"Invalid RATE_LIMIT_RETRY_AFTER: {settings.rate_limit_retry_after}. Must not be negative"
        )

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if settings.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{settings.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Vyper API: {settings.vyper_base_url}")
    logger.info(f"Vyper WebSocket: {settings.vyper_ws_url}")
    logger.info(f"API key: {'configured' if settings.has_api_key else 'not set'}")
    logger.info(f"Log level: {settings.log_level.upper()}")
