"""
Vyper REST API Client

This module provides an async HTTP client for the Vyper trading-data REST API.
It handles:
- One GET request per operation (no retries)
- Unwrapping the standard {status, message, data} envelope
- Classifying failures by HTTP status into typed errors
- Data normalization to our schemas

Error Classification:
    - 401: AuthenticationError
    - 429: RateLimitError (retry_after from the Retry-After header, default 3.0s)
    - 5xx: ServerError
    - other non-2xx: VyperApiError
    - no response (connection error, timeout): ServerError

Authentication:
    Token endpoints require an API key, checked locally before any request
    is made. Wallet and pair endpoints work without one. The chain ids
    endpoint is always called without the key.

Usage:
    async with VyperClient(api_key="...") as client:
        chains = await client.get_chain_ids()
        pair = await client.get_token_market("8sLbNZoA1cfn...")
"""

import aiohttp
import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError

from core.config import settings
from core.errors import AuthenticationError, RateLimitError, ServerError, VyperApiError
from core.logging import get_logger, log_api_request, log_api_response
from core.schemas import (
    APIResponse,
    TokenATH,
    TokenHolders,
    TokenMarket,
    TokenMetadata,
    TokenPair,
    TokenPairs,
    TokenPairsParams,
    TokenSearchResult,
    TokenSymbol,
    TopTrader,
    WalletAggregatedPnL,
    WalletHolding,
    WalletPnL,
)


ModelT = TypeVar("ModelT", bound=BaseModel)


class VyperClient:
    """
    Async HTTP client for the Vyper REST API

    All methods return the envelope's data normalized to our Pydantic schemas.

    Attributes:
        BASE_URL: Default Vyper API base URL
        API_KEY_HEADER: Header carrying the API key
        api_key: API key, or None for unauthenticated use
        session: aiohttp ClientSession for HTTP requests
        logger: Logger instance for debugging

    Example:
        >>> async with VyperClient(api_key="my-key") as client:
        ...     ath = await client.get_token_ath(900, "8sLbNZoA1cfn...")
        ...     print(f"ATH market cap: ${ath.market_cap_usd:,.0f}")

    Notes:
        - Uses context manager for automatic session cleanup
        - Falls back to VYPER_API_KEY from settings when no key is given
        - Never retries; RateLimitError.retry_after tells the caller how long to wait
    """

    BASE_URL = "https://api.vyper.trade"
    API_KEY_HEADER = "X-API-Key"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        """
        Initialize the Vyper API client.

        Args:
            api_key: Vyper API key (defaults to settings.vyper_api_key, if set)
            base_url: Override for the API base URL (defaults to settings.vyper_base_url)
        """
        if api_key is None and settings.has_api_key:
            api_key = settings.vyper_api_key
        self.api_key = api_key or None
        self.base_url = (base_url or settings.vyper_base_url or self.BASE_URL).rstrip("/")
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        """
        Enter async context - creates HTTP session.

        Returns:
            Self for use in async with statement
        """
        self.session = aiohttp.ClientSession()
        self.logger.debug("VyperClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """
        Exit async context - closes HTTP session.
        """
        if self.session:
            await self.session.close()
            self.logger.debug("VyperClient session closed")

    # ============================================
    # HTTP Request Handling
    # ============================================

    def _build_headers(self, include_api_key: bool = True) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if include_api_key and self.api_key:
            headers[self.API_KEY_HEADER] = self.api_key
        return headers

    def _require_api_key(self) -> None:
        """Fail fast, before any request, when the endpoint needs a key."""
        if not self.api_key:
            raise AuthenticationError("API key is required for this endpoint")

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        include_api_key: bool = True
    ) -> Any:
        """
        Make GET request to the Vyper API and unwrap the response envelope.

        Args:
            path: API endpoint path (e.g., "/api/v1/token/ath")
            params: Optional query parameters (names sent exactly as given)
            include_api_key: Send the API key header for this call only

        Returns:
            The "data" field of the response envelope

        Raises:
            RuntimeError: If the session is not initialized
            AuthenticationError: On HTTP 401
            RateLimitError: On HTTP 429
            ServerError: On HTTP 5xx or when no response was received
            VyperApiError: On any other non-2xx status or a malformed envelope
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        url = f"{self.base_url}{path}"
        headers = self._build_headers(include_api_key)

        log_api_request(path, params, authenticated=self.API_KEY_HEADER in headers)
        started = time.monotonic()

        try:
            async with self.session.get(
                url,
                params=params,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=settings.request_timeout)
            ) as resp:
                log_api_response(path, resp.status, time.monotonic() - started)

                if 200 <= resp.status < 300:
                    try:
                        payload = await resp.json(content_type=None)
                    except ValueError as e:
                        raise VyperApiError(f"Invalid JSON response from {path}", resp.status) from e
                    return self._unwrap(path, resp.status, payload)

                body = await self._read_body(resp)
                raise self._classify_error(path, resp.status, resp.headers, body)

        except VyperApiError:
            raise

        except asyncio.TimeoutError as e:
            self.logger.error(f"Timeout on {path}")
            raise ServerError(f"An error occurred: request to {path} timed out") from e

        except aiohttp.ClientError as e:
            self.logger.error(f"Request failed on {path}: {e}")
            raise ServerError(f"An error occurred: {e}") from e

    @staticmethod
    async def _read_body(resp) -> Any:
        """Read an error body, decoding JSON when possible."""
        text = await resp.text()
        try:
            return json.loads(text)
        except ValueError:
            return text

    def _unwrap(self, path: str, status: int, payload: Any) -> Any:
        try:
            envelope = APIResponse[Any].model_validate(payload)
        except ValidationError as e:
            self.logger.error(f"Malformed response envelope on {path}: {e}")
            raise VyperApiError(f"Malformed response from {path}", status, payload) from e

        self.logger.debug(f"GET {path} - {envelope.status or 'ok'}")
        return envelope.data

    def _parse(self, path: str, model: Type[ModelT], data: Any, many: bool = False):
        """
        Validate envelope data against a schema.

        Args:
            path: API endpoint path (for errors and logging)
            model: Schema of the payload (or of each list item when many=True)
            data: The envelope's "data" field
            many: Payload is a list of records; null is read as an empty list

        Raises:
            VyperApiError: If the payload does not match the schema
        """
        try:
            if many:
                if data is None:
                    return []
                if not isinstance(data, list):
                    raise TypeError(f"expected a list, got {type(data).__name__}")
                return [model.model_validate(item) for item in data]
            return model.model_validate(data)
        except (ValidationError, TypeError) as e:
            self.logger.error(f"Malformed {model.__name__} payload on {path}: {e}")
            raise VyperApiError(f"Malformed response from {path}", response=data) from e

    def _classify_error(self, path: str, status: int, headers, body: Any) -> VyperApiError:
        """
        Map a non-2xx response to the matching error type.

        Args:
            path: API endpoint path (for logging)
            status: HTTP status code
            headers: Response headers (Retry-After is read for 429)
            body: Decoded response body

        Returns:
            The error to raise
        """
        if status == 401:
            self.logger.error(f"HTTP 401 on {path}: invalid or expired API key")
            return AuthenticationError("Invalid or expired API key", status, body)

        if status == 429:
            retry_after = self._parse_retry_after(headers.get("Retry-After"))
            self.logger.warning(f"Rate limited (HTTP 429) on {path}. Retry after {retry_after:.2f}s")
            return RateLimitError(
                f"Rate limit exceeded. Please wait {retry_after} seconds "
                f"before making another request.",
                retry_after,
                status,
                body
            )

        if 500 <= status < 600:
            self.logger.error(f"HTTP {status} on {path}: {body}")
            return ServerError(f"Server error: {status}", status, body)

        self.logger.error(f"HTTP {status} on {path}: {body}")
        return VyperApiError(f"HTTP error occurred: {status}", status, body)

    @staticmethod
    def _parse_retry_after(value: Optional[str]) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return settings.rate_limit_retry_after

    # ============================================
    # Chain Endpoints
    # ============================================

    async def get_chain_ids(self) -> Dict[str, int]:
        """
        Fetch the chain identifiers known to Vyper.

        The request never carries the API key, even when the client has one.

        Returns:
            Mapping of chain name to chain id

        Vyper Endpoint:
            GET /api/v1/chain/ids

        Example:
            >>> chains = await client.get_chain_ids()
            >>> chains["solana"]
            900
        """
        self.logger.info("Fetching chain ids")
        data = await self._get("/api/v1/chain/ids", include_api_key=False)
        if not isinstance(data, dict):
            self.logger.error(f"Malformed chain ids payload: {data!r}")
            raise VyperApiError("Malformed response from /api/v1/chain/ids", response=data)
        return data

    # ============================================
    # Token Endpoints (API key required)
    # ============================================

    async def get_token_ath(self, chain_id: int, market_id: str) -> TokenATH:
        """
        Fetch the all-time high of a market.

        Args:
            chain_id: Chain identifier (e.g., 900 for Solana)
            market_id: Market (pair) address

        Returns:
            TokenATH with market cap, liquidity and timestamp at the ATH

        Raises:
            AuthenticationError: If the client has no API key

        Vyper Endpoint:
            GET /api/v1/token/ath?chainID=...&marketID=...
        """
        self._require_api_key()
        self.logger.info(f"Fetching token ATH: {market_id} (chain {chain_id})")
        data = await self._get(
            "/api/v1/token/ath",
            {"chainID": chain_id, "marketID": market_id}
        )
        return self._parse("/api/v1/token/ath", TokenATH, data)

    async def get_token_market(
        self,
        market_id: str,
        chain_id: int = 900,
        interval: str = "24h"
    ) -> TokenPair:
        """
        Fetch the current snapshot of a market.

        Args:
            market_id: Market (pair) address
            chain_id: Chain identifier (default 900)
            interval: Window for the change/volume figures (default "24h")

        Returns:
            TokenPair snapshot

        Vyper Endpoint:
            GET /api/v1/token/market/{marketId}?chainID=...&interval=...
        """
        self._require_api_key()
        self.logger.info(f"Fetching token market: {market_id} (chain {chain_id}, {interval})")
        data = await self._get(
            f"/api/v1/token/market/{market_id}",
            {"chainID": chain_id, "interval": interval}
        )
        return self._parse(f"/api/v1/token/market/{market_id}", TokenPair, data)

    async def get_token_holders(self, market_id: str, chain_id: int) -> TokenHolders:
        """
        Fetch the holders of a market.

        Returns:
            TokenHolders; the server's "total_holders" is exposed as total_holders
            (dumped as "totalHolders")

        Vyper Endpoint:
            GET /api/v1/token/holders?marketID=...&chainID=...

        Response Format:
            {
              "holders": [{"walletAddress": "...", "percentOwned": 4.2, ...}],
              "total_holders": 1234
            }
        """
        self._require_api_key()
        self.logger.info(f"Fetching token holders: {market_id} (chain {chain_id})")
        data = await self._get(
            "/api/v1/token/holders",
            {"marketID": market_id, "chainID": chain_id}
        )
        holders = self._parse("/api/v1/token/holders", TokenHolders, data)
        self.logger.info(f"Fetched {len(holders.holders)} of {holders.total_holders} holders for {market_id}")
        return holders

    async def get_token_markets(self, token_mint: str, chain_id: int) -> List[TokenMarket]:
        """
        Fetch every market trading a token.

        Vyper Endpoint:
            GET /api/v1/token/markets?tokenMint=...&chainID=...
        """
        self._require_api_key()
        self.logger.info(f"Fetching token markets: {token_mint} (chain {chain_id})")
        data = await self._get(
            "/api/v1/token/markets",
            {"tokenMint": token_mint, "chainID": chain_id}
        )
        markets = self._parse("/api/v1/token/markets", TokenMarket, data, many=True)
        self.logger.info(f"Fetched {len(markets)} markets for {token_mint}")
        return markets

    async def get_token_metadata(self, chain_id: int, token_mint: str) -> TokenMetadata:
        """
        Fetch name, symbol, image and social links of a token.

        Vyper Endpoint:
            GET /api/v1/token/metadata?chainID=...&tokenMint=...
        """
        self._require_api_key()
        self.logger.info(f"Fetching token metadata: {token_mint} (chain {chain_id})")
        data = await self._get(
            "/api/v1/token/metadata",
            {"chainID": chain_id, "tokenMint": token_mint}
        )
        return self._parse("/api/v1/token/metadata", TokenMetadata, data)

    async def get_token_symbol(self, chain_id: int, token_mint: str) -> TokenSymbol:
        """
        Vyper Endpoint:
            GET /api/v1/token/symbol?chainID=...&tokenMint=...
        """
        self._require_api_key()
        self.logger.info(f"Fetching token symbol: {token_mint} (chain {chain_id})")
        data = await self._get(
            "/api/v1/token/symbol",
            {"chainID": chain_id, "tokenMint": token_mint}
        )
        return self._parse("/api/v1/token/symbol", TokenSymbol, data)

    async def get_top_traders(self, market_id: str, chain_id: int) -> List[TopTrader]:
        """
        Fetch the most profitable traders of a market.

        Vyper Endpoint:
            GET /api/v1/token/top-traders?marketID=...&chainID=...
        """
        self._require_api_key()
        self.logger.info(f"Fetching top traders: {market_id} (chain {chain_id})")
        data = await self._get(
            "/api/v1/token/top-traders",
            {"marketID": market_id, "chainID": chain_id}
        )
        traders = self._parse("/api/v1/token/top-traders", TopTrader, data, many=True)
        self.logger.info(f"Fetched {len(traders)} top traders for {market_id}")
        return traders

    async def search_tokens(
        self,
        criteria: str,
        chain_id: Optional[int] = None
    ) -> List[TokenSearchResult]:
        """
        Search tokens by name, symbol or address.

        Args:
            criteria: Free-text search criteria
            chain_id: Restrict the search to one chain (optional)

        Vyper Endpoint:
            GET /api/v1/token/search?criteria=...[&chainID=...]
        """
        self._require_api_key()
        params: Dict[str, Any] = {"criteria": criteria}
        if chain_id is not None:
            params["chainID"] = chain_id

        self.logger.info(f"Searching tokens: '{criteria}'")
        data = await self._get("/api/v1/token/search", params)
        results = self._parse("/api/v1/token/search", TokenSearchResult, data, many=True)
        self.logger.info(f"Found {len(results)} tokens for '{criteria}'")
        return results

    # ============================================
    # Wallet Endpoints
    # ============================================

    async def get_wallet_holdings(self, wallet_address: str, chain_id: int) -> List[WalletHolding]:
        """
        Fetch the token holdings of a wallet.

        Vyper Endpoint:
            GET /wallet/holdings?walletAddress=...&chainID=...
        """
        self.logger.info(f"Fetching wallet holdings: {wallet_address} (chain {chain_id})")
        data = await self._get(
            "/wallet/holdings",
            {"walletAddress": wallet_address, "chainID": chain_id}
        )
        return self._parse("/wallet/holdings", WalletHolding, data, many=True)

    async def get_wallet_aggregated_pnl(
        self,
        wallet_address: str,
        chain_id: int
    ) -> WalletAggregatedPnL:
        """
        Vyper Endpoint:
            GET /wallet/aggregated-pnl?walletAddress=...&chainID=...
        """
        self.logger.info(f"Fetching aggregated PnL: {wallet_address} (chain {chain_id})")
        data = await self._get(
            "/wallet/aggregated-pnl",
            {"walletAddress": wallet_address, "chainID": chain_id}
        )
        return self._parse("/wallet/aggregated-pnl", WalletAggregatedPnL, data)

    async def get_wallet_pnl(
        self,
        wallet_address: str,
        market_id: str,
        chain_id: int
    ) -> WalletPnL:
        """
        Fetch the PnL of a wallet in one market.

        Vyper Endpoint:
            GET /wallet/pnl?walletAddress=...&marketID=...&chainID=...
        """
        self.logger.info(f"Fetching wallet PnL: {wallet_address} in {market_id} (chain {chain_id})")
        data = await self._get(
            "/wallet/pnl",
            {"walletAddress": wallet_address, "marketID": market_id, "chainID": chain_id}
        )
        return self._parse("/wallet/pnl", WalletPnL, data)

    # ============================================
    # Pair Listing
    # ============================================

    async def get_token_pairs(
        self,
        params: Optional[TokenPairsParams] = None,
        **filters: Any
    ) -> TokenPairs:
        """
        List token pairs matching the given filters.

        Args:
            params: TokenPairsParams instance
            **filters: Filters as keyword arguments (snake_case or wire names),
                merged over params

        Returns:
            One page of pairs; check has_next and pass page= for more

        Vyper Endpoint:
            GET /token/pairs

        Example:
            >>> page = await client.get_token_pairs(lp_burned=True, market_cap_min=50_000, page=1)
            >>> print(f"{len(page.pairs)} pairs, more: {page.has_next}")
        """
        if filters:
            base = params.model_dump(exclude_unset=True) if params else {}
            params = TokenPairsParams.model_validate({**base, **filters})
        query = params.to_query() if params else {}

        self.logger.info(f"Fetching token pairs: {query}")
        data = await self._get("/token/pairs", query)
        pairs = self._parse("/token/pairs", TokenPairs, data)
        self.logger.info(f"Fetched {len(pairs.pairs)} token pairs (has_next={pairs.has_next})")
        return pairs
