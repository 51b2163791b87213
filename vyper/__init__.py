"""
Vyper Connector Package

Clients for the Vyper trading-data API:
- api_client.py: REST API (VyperClient)
- ws_client.py: WebSocket event feeds (VyperWebsocketClient)

Usage:
    from vyper import VyperClient, VyperWebsocketClient, FeedType
"""

from core.errors import (
    AuthenticationError,
    RateLimitError,
    ServerError,
    VyperApiError,
    VyperWebsocketError,
)
from core.schemas import (
    SubscriptionMessageType,
    SubscriptionType,
    TokenSubscriptionMessage,
    WalletSubscriptionMessage,
)
from vyper.api_client import VyperClient
from vyper.ws_client import FeedEvent, FeedType, VyperWebsocketClient

__all__ = [
    "VyperClient",
    "VyperWebsocketClient",
    "FeedType",
    "FeedEvent",
    "SubscriptionMessageType",
    "SubscriptionType",
    "TokenSubscriptionMessage",
    "WalletSubscriptionMessage",
    "VyperApiError",
    "AuthenticationError",
    "RateLimitError",
    "ServerError",
    "VyperWebsocketError",
]
