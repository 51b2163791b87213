"""
Vyper Data Schemas

This module defines Pydantic models for every payload the Vyper API
returns and for the control messages sent over the WebSocket feeds.

Key Principle:
    Models mirror the server JSON one-to-one. Python attributes are
    snake_case, while the wire names (camelCase, plus a few irregular
    spellings such as "marketID" and "investedAmount_tokens") are kept as
    aliases. Both spellings are accepted on input and
    model_dump(by_alias=True) reproduces the server's field names.

Models:
    - APIResponse: Standard {status, message, data} envelope
    - TokenPair / TokenPairs: Market/pair snapshots (REST and token/migration feeds)
    - ChainAction: A single on-chain trade/transfer (wallet feed)
    - TokenATH, TokenHolder(s), TokenMarket, TokenMetadata, TokenSymbol,
      TokenSearchResult, TopTrader: Token endpoints
    - WalletHolding, WalletPnL, WalletAggregatedPnL: Wallet endpoints
    - TokenPairsParams: Filters for the /token/pairs endpoint
    - TokenSubscriptionMessage / WalletSubscriptionMessage: Feed control frames
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.utils.time import to_utc_datetime


DataT = TypeVar("DataT")


# ============================================
# Base Model
# ============================================

class VyperModel(BaseModel):
    """
    Base model for all Vyper payloads.

    Generates camelCase aliases from snake_case attribute names and allows
    population by either name. Unknown server fields are ignored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore"
    )

    def to_wire(self) -> Dict[str, Any]:
        """Dump the fields that were set, using server field names."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class APIResponse(VyperModel, Generic[DataT]):
    """Standard response envelope wrapping every REST payload."""

    status: str = ""
    message: str = ""
    data: Optional[DataT] = None


# ============================================
# Wallet Schemas
# ============================================

class WalletAggregatedPnL(VyperModel):
    """Profit and loss of a wallet across every token it traded."""

    invested_amount: float
    pnl_percent: float
    pnl_usd: float
    sold_amount: float
    tokens_traded: int
    total_pnl_percent: float
    total_pnl_usd: float
    unrealized_pnl_percent: float
    unrealized_pnl_usd: float


class WalletHolding(VyperModel):
    market_id: str
    token_holdings: float
    token_symbol: str
    usd_value: float


class WalletPnL(VyperModel):
    """Profit and loss of a wallet in a single market."""

    holder_since: int
    invested_amount: float
    invested_txns: int
    pnl_percent: float
    pnl_usd: float
    remaining_tokens: float
    remaining_usd: float
    sold_amount: float
    sold_txns: int

    @property
    def holder_since_at(self) -> datetime:
        return to_utc_datetime(self.holder_since)


# ============================================
# Token Schemas
# ============================================

class TopTrader(VyperModel):
    """
    A top trader of a market.

    Note the server's mixed spelling for the invested amounts
    ("investedAmount_tokens", "investedAmount_usd").
    """

    invested_amount_tokens: float = Field(..., alias="investedAmount_tokens")
    invested_amount_usd: float = Field(..., alias="investedAmount_usd")
    invested_txns: int
    pnl_usd: float
    remaining_tokens: float
    remaining_usd: float
    sold_amount_tokens: float
    sold_amount_usd: float
    sold_txns: int
    wallet_address: str
    wallet_tag: Optional[str] = None


class TokenSearchResult(VyperModel):
    chain_id: int
    market_id: str
    created_timestamp: int
    name: str
    symbol: str
    token_mint: str
    token_type: str
    percent_change_24h: float = Field(..., alias="percentChange24h")
    pooled_asset: float
    token_liquidity_usd: float
    token_market_cap_usd: float
    token_price_usd: float
    volume_usd: float
    image: Optional[str] = None
    telegram: Optional[str] = None
    twitter: Optional[str] = None
    website: Optional[str] = None


class TokenMarket(VyperModel):
    market_cap_usd: float
    market_id: str = Field(..., alias="marketID")
    token_liquidity_usd: float
    token_type: str


class TokenMetadata(VyperModel):
    image: Optional[str] = None
    name: str
    symbol: str
    telegram: Optional[str] = None
    twitter: Optional[str] = None
    website: Optional[str] = None


class TokenSymbol(VyperModel):
    symbol: str


class TokenHolder(VyperModel):
    percent_owned: float
    token_holdings: float
    usd_holdings: float
    wallet_address: str
    wallet_tag: Optional[str] = None


class TokenHolders(VyperModel):
    """
    Holders of a market plus the total holder count.

    The server sends the count as "total_holders"; it is exposed (and
    dumped) as "totalHolders" like every other camelCase field.
    """

    holders: List[TokenHolder]
    total_holders: int = Field(
        ...,
        validation_alias=AliasChoices("total_holders", "totalHolders"),
        serialization_alias="totalHolders"
    )


class TokenATH(VyperModel):
    """All-time high of a market."""

    market_cap_usd: float
    timestamp: int
    token_liquidity_usd: float

    @property
    def reached_at(self) -> datetime:
        return to_utc_datetime(self.timestamp)


class MigrationState(VyperModel):
    duration_minutes: float
    makers: int
    migration_timestamp: int
    volume: float

    @property
    def migrated_at(self) -> datetime:
        return to_utc_datetime(self.migration_timestamp)


class TokenPair(VyperModel):
    """
    Market/Pair Snapshot

    Aggregated current state of one trading pair. Returned by the
    token market and token pairs endpoints, and pushed over the
    token-events and migration-events feeds.
    """

    abused: Optional[bool] = None
    bonding_curve_percentage: Optional[float] = None
    buy_txn_count: int
    chain_id: int
    contract_creator: str
    created_timestamp: int
    description: Optional[str] = None
    freeze_authority: Optional[bool] = None
    image: Optional[str] = None
    initial_asset_liquidity: float
    initial_usd_liquidity: float
    is_migrated: Optional[bool] = None
    lp_burned: bool
    lp_creator: str
    market_id: str
    metadata_uri: Optional[str] = None
    migrated_market_id: Optional[str] = None
    migration_state: Optional[MigrationState] = None
    mint_authority: Optional[bool] = None
    name: str
    pooled_asset: float
    pooled_token: float
    price_change_percent: float
    sell_txn_count: int
    symbol: str
    telegram: Optional[str] = None
    token_liquidity_asset: float
    token_liquidity_usd: float
    token_market_cap_asset: float
    token_market_cap_usd: float
    token_mint: str
    token_price_asset: float
    token_price_usd: float
    token_type: str
    top10_holding_percent: float
    total_supply: float
    transaction_count: int
    twitter: Optional[str] = None
    volume_asset: float
    volume_usd: float
    website: Optional[str] = None

    @property
    def created_at(self) -> datetime:
        return to_utc_datetime(self.created_timestamp)


class TokenPairs(VyperModel):
    """One page of the /token/pairs listing."""

    has_next: bool
    pairs: List[TokenPair]


class ChainAction(VyperModel):
    """
    Chain Action

    A single on-chain trade or transfer, pushed over the wallet-events feed.

    Example:
        >>> action = ChainAction.model_validate(frame)
        >>> print(f"{action.action_type} {action.token_amount} @ ${action.token_price_usd}")
    """

    signer: str
    token_account: Optional[str] = None
    transaction_id: str
    token_mint: Optional[str] = None
    market_id: str
    action_type: str
    token_amount: float
    asset_amount: float
    token_price_usd: float
    token_price_asset: float
    swap_total_usd: Optional[float] = None
    swap_total_asset: Optional[float] = None
    token_market_cap_asset: float
    token_market_cap_usd: float
    token_liquidity_asset: float
    token_liquidity_usd: float
    pooled_token: float
    pooled_asset: float
    action_timestamp: int
    bonding_curve_percentage: Optional[float] = None
    bot_used: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "signer": "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU",
                "transactionId": "5UfDuX7hXbGjGHqPXRGaHdSecretTx",
                "marketId": "8sLbNZoA1cfnvMJLPfp98ZLAnFSYCFApfJKMbiXNLwxj",
                "actionType": "buy",
                "tokenAmount": 152340.5,
                "assetAmount": 1.25,
                "tokenPriceUsd": 0.0012,
                "tokenPriceAsset": 0.0000082,
                "tokenMarketCapAsset": 8200.0,
                "tokenMarketCapUsd": 1200000.0,
                "tokenLiquidityAsset": 410.0,
                "tokenLiquidityUsd": 60000.0,
                "pooledToken": 250000000.0,
                "pooledAsset": 205.0,
                "actionTimestamp": 1704110400000
            }
        }
    )

    @property
    def action_time(self) -> datetime:
        return to_utc_datetime(self.action_timestamp)


# ============================================
# Request Parameters
# ============================================

class TokenPairsParams(VyperModel):
    """
    Filters for the /token/pairs endpoint.

    Every filter is optional; unset filters are not sent.
    """

    model_config = ConfigDict(extra="forbid")

    at_least_one_social: Optional[bool] = None
    buys_max: Optional[int] = None
    buys_min: Optional[int] = None
    chain_ids: Optional[Union[str, List[int]]] = None
    freeze_auth_disabled: Optional[bool] = None
    initial_liquidity_max: Optional[Union[int, float]] = None
    initial_liquidity_min: Optional[Union[int, float]] = None
    interval: Optional[str] = None
    liquidity_max: Optional[Union[int, float]] = None
    liquidity_min: Optional[Union[int, float]] = None
    lp_burned: Optional[bool] = None
    market_cap_max: Optional[Union[int, float]] = None
    market_cap_min: Optional[Union[int, float]] = None
    mint_auth_disabled: Optional[bool] = None
    page: Optional[int] = None
    sells_max: Optional[int] = None
    sells_min: Optional[int] = None
    sorting: Optional[str] = None
    swaps_max: Optional[int] = None
    swaps_min: Optional[int] = None
    token_types: Optional[Union[str, List[str]]] = None
    top10_holders: Optional[bool] = None
    volume_max: Optional[Union[int, float]] = None
    volume_min: Optional[Union[int, float]] = None

    def to_query(self) -> Dict[str, Any]:
        """
        Build query parameters with the server's names.

        Returns:
            Dict of non-empty filters; booleans become "true"/"false"
            and lists are comma-joined.

        Example:
            >>> TokenPairsParams(lp_burned=True, chain_ids=[900, 1]).to_query()
            {'chainIds': '900,1', 'lpBurned': 'true'}
        """
        query = {}
        for key, value in self.model_dump(by_alias=True, exclude_none=True).items():
            if isinstance(value, bool):
                value = "true" if value else "false"
            elif isinstance(value, list):
                value = ",".join(str(item) for item in value)
            query[key] = value
        return query


# ============================================
# WebSocket Control Messages
# ============================================

class SubscriptionMessageType(str, Enum):
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


class SubscriptionType(str, Enum):
    """Token categories accepted by the token-events feed."""

    PUMPFUN_TOKENS = "PumpfunTokens"
    RAYDIUM_AMM_TOKENS = "RaydiumAmmTokens"
    RAYDIUM_CPMM_TOKENS = "RaydiumCpmmTokens"
    RAYDIUM_CLMM_TOKENS = "RaydiumClmmTokens"


class TokenSubscriptionMessage(BaseModel):
    """
    Control frame for the token-events feed.

    Example:
        >>> TokenSubscriptionMessage(
        ...     action=SubscriptionMessageType.SUBSCRIBE,
        ...     types=[SubscriptionType.PUMPFUN_TOKENS]
        ... ).model_dump_json()
        '{"action":"subscribe","types":["PumpfunTokens"]}'
    """

    action: SubscriptionMessageType
    types: List[SubscriptionType]


class WalletSubscriptionMessage(BaseModel):
    """Control frame for the wallet-events feed."""

    action: SubscriptionMessageType
    wallets: List[str]


SubscriptionMessage = Union[TokenSubscriptionMessage, WalletSubscriptionMessage]
