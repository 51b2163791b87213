"""
Vyper WebSocket Client

This module provides async WebSocket streaming for the Vyper event feeds.
It handles:
- One persistent connection per client (no automatic reconnection)
- Subscribe / unsubscribe control frames
- Message parsing and normalization to our schemas
- Graceful shutdown

Supported Feeds:
    - token-events: Market/pair snapshots (TokenPair)
    - migration-events: Market/pair snapshots of migrating tokens (TokenPair)
    - wallet-events: Trades/transfers of subscribed wallets (ChainAction)

The feed chosen at connect time fixes the record type of every inbound
message for the lifetime of the connection.

Usage:
    async with VyperWebsocketClient(api_key="...") as client:
        client.set_message_handler(lambda pair: print(pair.symbol, pair.token_price_usd))
        await client.connect(FeedType.TOKEN_EVENTS)
        await client.subscribe(
            FeedType.TOKEN_EVENTS,
            TokenSubscriptionMessage(
                action=SubscriptionMessageType.SUBSCRIBE,
                types=[SubscriptionType.PUMPFUN_TOKENS],
            ),
        )
        await client.listen()        # returns once the connection is ready
        await client.wait_closed()   # raises VyperWebsocketError if the server drops us
"""

import asyncio
import inspect
import json
import websockets
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Type, Union
from urllib.parse import urlencode
from pydantic import BaseModel
from websockets.exceptions import WebSocketException

from core.config import settings
from core.errors import AuthenticationError, VyperWebsocketError
from core.logging import get_logger, log_websocket_event
from core.schemas import ChainAction, SubscriptionMessage, TokenPair, VyperModel


FeedEvent = Union[TokenPair, ChainAction]
MessageHandler = Callable[[FeedEvent], Optional[Awaitable[None]]]


class FeedType(str, Enum):
    """Vyper feeds; the value is the URL path segment."""

    TOKEN_EVENTS = "token-events"
    MIGRATION_EVENTS = "migration-events"
    WALLET_EVENTS = "wallet-events"

    @property
    def record_type(self) -> Type[VyperModel]:
        """Schema of the messages pushed on this feed."""
        return _FEED_RECORD_TYPES[self]

    @property
    def accepts_subscriptions(self) -> bool:
        """The migration feed pushes every migration and takes no control frames."""
        return self is not FeedType.MIGRATION_EVENTS


_FEED_RECORD_TYPES: Dict[FeedType, Type[VyperModel]] = {
    FeedType.TOKEN_EVENTS: TokenPair,
    FeedType.MIGRATION_EVENTS: TokenPair,
    FeedType.WALLET_EVENTS: ChainAction,
}


class VyperWebsocketClient:
    """
    Async WebSocket client for the Vyper feeds.

    Connection lifecycle:
        disconnected -> connect() -> open -> disconnect() / server close -> disconnected

    Attributes:
        BASE_URL: Default Vyper WebSocket base URL
        api_key: API key sent as the apiKey query parameter
        connection: Active WebSocket connection (None when disconnected)
        current_feed_type: Feed of the active connection
        message_handler: Callback receiving every parsed message
        logger: Logger instance

    Notes:
        - At most one connection per client
        - No reconnection; wait_closed() reports why a connection ended
        - Malformed frames and handler failures are logged and skipped
        - Frames arriving while no handler is set are dropped
    """

    BASE_URL = "wss://api.vyper.trade/api/v1/ws"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        """
        Initialize WebSocket client.

        Args:
            api_key: Vyper API key (defaults to settings.vyper_api_key, if set)
            base_url: Override for the feeds base URL (defaults to settings.vyper_ws_url)
        """
        if api_key is None and settings.has_api_key:
            api_key = settings.vyper_api_key
        self.api_key = api_key or None
        self.base_url = (base_url or settings.vyper_ws_url or self.BASE_URL).rstrip("/")

        # Connection state
        self.connection = None
        self.current_feed_type: Optional[FeedType] = None
        self.message_handler: Optional[MessageHandler] = None
        self._listener_task: Optional[asyncio.Task] = None
        self._listening_on = None
        self._closing = False

        self.logger = get_logger(__name__)

    # ============================================
    # Context Manager
    # ============================================

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.cleanup()

    @property
    def is_connected(self) -> bool:
        return self.connection is not None

    def _require_connection(self) -> None:
        if self.connection is None:
            raise VyperWebsocketError("Not connected to WebSocket")

    def _feed_name(self) -> Optional[str]:
        return self.current_feed_type.value if self.current_feed_type else None

    @staticmethod
    def _resolve_feed(feed_type) -> FeedType:
        """Accept a FeedType or its path string ("token-events", ...)."""
        try:
            return FeedType(feed_type)
        except ValueError as e:
            known = ", ".join(feed.value for feed in FeedType)
            raise VyperWebsocketError(
                f"Unknown feed type: {feed_type!r}. Expected one of: {known}"
            ) from e

    def build_url(self, feed_type: FeedType) -> str:
        """
        Build the feed URL.

        Example:
            >>> client.build_url(FeedType.WALLET_EVENTS)
            'wss://api.vyper.trade/api/v1/ws/wallet-events?apiKey=my-key'

        Raises:
            VyperWebsocketError: If the feed is unknown
        """
        feed_type = self._resolve_feed(feed_type)
        return f"{self.base_url}/{feed_type.value}?{urlencode({'apiKey': self.api_key})}"

    # ============================================
    # Connection Management
    # ============================================

    async def connect(self, feed_type: FeedType) -> None:
        """
        Open the WebSocket connection for a feed.

        Returns once the connection is open.

        Args:
            feed_type: Feed to connect to; fixes the message type for this connection

        Raises:
            AuthenticationError: If the client has no API key
            VyperWebsocketError: If already connected, the feed is unknown, or the connection fails
        """
        if not self.api_key:
            raise AuthenticationError("API key is required for WebSocket feeds")
        if self.connection is not None:
            raise VyperWebsocketError(
                f"Already connected to WebSocket ({self._feed_name()}). Disconnect first."
            )

        feed_type = self._resolve_feed(feed_type)
        url = self.build_url(feed_type)
        self.logger.info(f"Connecting to {self.base_url}/{feed_type.value}")

        try:
            self.connection = await websockets.connect(url)
        except Exception as e:
            log_websocket_event("error", feed_type.value, details=f"Failed to connect: {e}")
            raise VyperWebsocketError(f"Failed to connect: {e}", connection_info=url) from e

        self.current_feed_type = feed_type
        self._closing = False
        log_websocket_event("connected", feed_type.value)

    async def disconnect(self) -> None:
        """
        Close the connection and wait until it is closed.

        No-op when not connected.

        Raises:
            VyperWebsocketError: If closing the connection fails
        """
        if self.connection is None:
            return

        self._closing = True
        try:
            await self.connection.close()
        except Exception as e:
            self._closing = False
            raise VyperWebsocketError(f"Failed to disconnect: {e}") from e

        # The finished task stays around so wait_closed() returns normally.
        # A handler calling disconnect() runs inside the listener task, which
        # stops on its own once the connection is detached.
        listener = self._listener_task
        if (
            listener is not None
            and not listener.done()
            and listener is not asyncio.current_task()
        ):
            await listener

        self.connection = None
        self._closing = False
        log_websocket_event("disconnected", self._feed_name())

    async def cleanup(self) -> None:
        """Disconnect if connected."""
        if self.connection is not None:
            await self.disconnect()

    # ============================================
    # Control Frames
    # ============================================

    @staticmethod
    def _serialize(message: Union[SubscriptionMessage, Dict[str, Any]]) -> str:
        if isinstance(message, BaseModel):
            return message.model_dump_json()
        return json.dumps(message)

    async def _send_control(self, feed_type: FeedType, message, verb: str) -> None:
        self._require_connection()

        feed_type = self._resolve_feed(feed_type)
        if not feed_type.accepts_subscriptions:
            self.logger.debug(f"{feed_type.value} takes no control frames, skipping {verb}")
            return

        try:
            await self.connection.send(self._serialize(message))
        except Exception as e:
            raise VyperWebsocketError(f"Failed to {verb}: {e}") from e

        log_websocket_event(f"{verb}d", feed_type.value)

    async def subscribe(
        self,
        feed_type: FeedType,
        subscription_message: Union[SubscriptionMessage, Dict[str, Any]]
    ) -> None:
        """
        Send a subscribe frame.

        Args:
            feed_type: Feed the message targets
            subscription_message: TokenSubscriptionMessage (token feed),
                WalletSubscriptionMessage (wallet feed) or an equivalent dict

        Raises:
            VyperWebsocketError: If not connected, the feed is unknown, or the send fails

        Example:
            >>> await client.subscribe(
            ...     FeedType.WALLET_EVENTS,
            ...     WalletSubscriptionMessage(action=SubscriptionMessageType.SUBSCRIBE, wallets=["7xKX..."])
            ... )
        """
        await self._send_control(feed_type, subscription_message, "subscribe")

    async def unsubscribe(
        self,
        feed_type: FeedType,
        subscription_message: Union[SubscriptionMessage, Dict[str, Any]]
    ) -> None:
        """Send an unsubscribe frame. Same rules as subscribe()."""
        await self._send_control(feed_type, subscription_message, "unsubscribe")

    async def ping(self) -> None:
        """
        Send a protocol-level ping.

        Raises:
            VyperWebsocketError: If not connected or the send fails
        """
        self._require_connection()
        try:
            await self.connection.ping()
        except Exception as e:
            raise VyperWebsocketError(f"Failed to send ping: {e}") from e

    async def pong(self) -> None:
        """
        Send a protocol-level pong.

        Raises:
            VyperWebsocketError: If not connected or the send fails
        """
        self._require_connection()
        try:
            await self.connection.pong()
        except Exception as e:
            raise VyperWebsocketError(f"Failed to send pong: {e}") from e

    # ============================================
    # Message Streaming
    # ============================================

    def set_message_handler(self, handler: Optional[MessageHandler]) -> None:
        """
        Register the callback for inbound messages, replacing any previous one.

        Args:
            handler: Plain function or coroutine function taking a TokenPair
                (token/migration feeds) or ChainAction (wallet feed)
        """
        self.message_handler = handler

    async def listen(self) -> None:
        """
        Start delivering inbound messages to the message handler.

        Returns as soon as the connection is ready; messages keep flowing
        in a background task until the connection ends. Use wait_closed()
        to learn when and why it ended.

        Raises:
            VyperWebsocketError: If not connected
        """
        self._require_connection()

        task = self._listener_task
        if task is None or task.done() or self._listening_on is not self.connection:
            self._listening_on = self.connection
            self._listener_task = asyncio.create_task(self._read_messages(self.connection))
            self._listener_task.add_done_callback(self._on_listener_done)

        self.logger.info("WebSocket connection is open and ready to receive messages")

    async def wait_closed(self) -> None:
        """
        Wait until the listening connection ends.

        Returns normally after disconnect().

        Raises:
            VyperWebsocketError: If listen() was never called, if the server
                closed the connection, or on a transport error
        """
        if self._listener_task is None:
            raise VyperWebsocketError("Not listening to WebSocket")
        await self._listener_task

    async def listen_until_closed(self) -> None:
        """listen() followed by wait_closed()."""
        await self.listen()
        await self.wait_closed()

    async def _read_messages(self, connection) -> None:
        """
        Consume frames until the connection ends.

        Raises:
            VyperWebsocketError: If the connection ends without disconnect()
        """
        try:
            async for frame in connection:
                await self._dispatch(frame)
                if self._closed_by_us(connection):
                    return

        except (WebSocketException, OSError) as e:
            if self._closed_by_us(connection):
                return
            self._drop_connection(connection)
            code = getattr(getattr(e, "rcvd", None), "code", None)
            raise VyperWebsocketError(f"Error while listening to messages: {e}", code) from e

        if self._closed_by_us(connection):
            return
        self._drop_connection(connection)
        raise VyperWebsocketError("Connection closed unexpectedly")

    def _closed_by_us(self, connection) -> bool:
        """disconnect() is in progress, or already detached this connection."""
        return self._closing or self.connection is not connection

    def _drop_connection(self, connection) -> None:
        if self.connection is connection:
            self.connection = None

    def _on_listener_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log_websocket_event("error", self._feed_name(), details=str(error))

    async def _dispatch(self, frame: Any) -> None:
        if self.message_handler is None:
            return

        try:
            record = self._convert_message(json.loads(self._decode_frame(frame)))
        except (ValueError, TypeError) as e:
            # json.JSONDecodeError, UnicodeDecodeError and ValidationError are ValueErrors
            self.logger.error(f"Error parsing message: {e}")
            return

        try:
            result = self.message_handler(record)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.logger.error(f"Message handler failed: {e}", exc_info=True)

    @staticmethod
    def _decode_frame(frame: Any) -> str:
        """Turn a text frame, binary frame or list of binary fragments into text."""
        if isinstance(frame, str):
            return frame
        if isinstance(frame, (bytes, bytearray, memoryview)):
            return bytes(frame).decode("utf-8")
        if isinstance(frame, (list, tuple)):
            return b"".join(bytes(part) for part in frame).decode("utf-8")
        raise TypeError(f"Unsupported frame type: {type(frame).__name__}")

    def _convert_message(self, data: Any) -> FeedEvent:
        if self.current_feed_type is None:
            raise ValueError("Unknown feed type: no feed connected")
        return self.current_feed_type.record_type.model_validate(data)
