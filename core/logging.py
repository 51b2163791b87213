"""
Unified Logging Configuration

This module sets up the logging used by the Vyper clients.
Every module gets its logger through get_logger() so all output lives
under the "vyper" logger tree and can be tuned in one place.

Importing the clients never touches the root logger: the "vyper" logger
only carries a NullHandler, so records propagate to whatever the host
application configured. Scripts without their own logging setup can call
setup_logging() to get console output.

Usage:
    from core.logging import get_logger, setup_logging

    setup_logging(log_level="DEBUG")  # optional, for standalone scripts
    logger = get_logger(__name__)
    logger.info("Connected to token-events feed")

Log Levels (from most to least verbose):
    DEBUG    - Request parameters, raw frame sizes, skipped frames
    INFO     - Connections opened/closed, subscriptions sent
    WARNING  - Rate limits, unexpected closes
    ERROR    - Failed requests, unparseable frames, handler failures
    CRITICAL - Unused by the clients

Configuration:
    Log level of the "vyper" logger follows the LOG_LEVEL setting in .env
    (default INFO).
"""

import logging
import sys
from typing import Optional

from core.config import settings


LOGGER_NAME = "vyper"


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Attach a stdout handler to the client logger and return it.

    Opt-in for scripts and applications that do not configure logging
    themselves. Only the "vyper" logger is changed; calling it again
    replaces the handler it installed before.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: The "vyper" logger

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Client started")
        2024-01-01 12:00:00 [INFO] vyper Client started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    client_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(client_logger.handlers):
        if getattr(handler, "_vyper_console", False):
            client_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(log_format, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._vyper_console = True
    client_logger.addHandler(handler)
    client_logger.setLevel(_level(log_level))
    # Avoid printing twice when the root logger also has a console handler
    client_logger.propagate = False

    return client_logger


# ============================================
# Library Logger
# ============================================

logger = logging.getLogger(LOGGER_NAME)
logger.addHandler(logging.NullHandler())
logger.setLevel(_level(settings.log_level))


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Child of the "vyper" logger

    Example:
        # In vyper/ws_client.py:
        logger = get_logger(__name__)  # Creates "vyper.ws_client"
    """
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """
    Change the level of the "vyper" logger at runtime.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.setLevel(_level(level))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(endpoint: str, params: dict = None, authenticated: bool = True) -> None:
    """
    Log a REST request with consistent formatting.

    Args:
        endpoint: API path being called
        params: Query parameters (optional)
        authenticated: Whether the API key header is attached

    Example:
        >>> log_api_request("/api/v1/token/ath", {"chainID": 900, "marketID": "abc"})
        [DEBUG] API Request: GET /api/v1/token/ath | Params: {'chainID': 900, 'marketID': 'abc'}
    """
    auth_str = "" if authenticated else " | No API key"
    if params:
        logger.debug(f"API Request: GET {endpoint} | Params: {params}{auth_str}")
    else:
        logger.debug(f"API Request: GET {endpoint}{auth_str}")


def log_api_response(endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log a REST response with status and timing information.

    Args:
        endpoint: API path
        status: HTTP status code
        response_time: Response time in seconds (optional)

    Example:
        >>> log_api_response("/api/v1/token/ath", 200, 0.342)
        [DEBUG] API Response: /api/v1/token/ath | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {endpoint} | Status: {status}{time_str}")


def log_websocket_event(event: str, feed: str = None, details: str = None) -> None:
    """
    Log a WebSocket event with consistent formatting.

    Args:
        event: Event type (e.g., "connected", "disconnected", "subscribed", "error")
        feed: Feed path (optional)
        details: Additional details (optional)

    Example:
        >>> log_websocket_event("connected", "wallet-events")
        [INFO] WebSocket: connected | Feed: wallet-events

        >>> log_websocket_event("error", details="Connection refused")
        [ERROR] WebSocket: error | Connection refused
    """
    feed_str = f" | Feed: {feed}" if feed else ""
    details_str = f" | {details}" if details else ""

    level = logging.ERROR if event == "error" else logging.INFO
    logger.log(level, f"WebSocket: {event}{feed_str}{details_str}")
