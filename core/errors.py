"""
Error Taxonomy

Exceptions raised by the Vyper REST and WebSocket clients.

Hierarchy:
    VyperApiError                 - any REST failure (generic non-2xx)
    ├── AuthenticationError       - 401, or API key missing for the endpoint
    ├── RateLimitError            - 429, carries retry_after seconds
    └── ServerError               - 5xx or no response (network failure)
    VyperWebsocketError           - connect / send / receive / close failures

No error is retried internally. Retry policy belongs to the caller, e.g.:

    try:
        ath = await client.get_token_ath(900, market_id)
    except RateLimitError as e:
        await asyncio.sleep(e.retry_after)
"""

from typing import Any, Optional


class VyperApiError(Exception):
    """Base error for REST API failures."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Any = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response

    def __str__(self):
        return self.message or self.__class__.__name__


class AuthenticationError(VyperApiError):
    """Missing, invalid or expired API key."""


class RateLimitError(VyperApiError):
    """
    Too many requests.

    Attributes:
        retry_after: Seconds to wait before the next request
    """

    def __init__(
        self,
        message: str,
        retry_after: float,
        status_code: Optional[int] = 429,
        response: Any = None
    ):
        super().__init__(message, status_code, response)
        self.retry_after = retry_after


class ServerError(VyperApiError):
    """Server-side failure (5xx) or no response received."""


class VyperWebsocketError(Exception):
    """Failure on the WebSocket feed connection."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        connection_info: Any = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.connection_info = connection_info

    def __str__(self):
        return self.message or self.__class__.__name__
