"""
Unit Tests for Vyper API Client

These tests verify that the VyperClient:
- Sends the right paths, query parameter names and headers
- Refuses key-only endpoints without an API key, before any request
- Normalizes envelope data to our schemas
- Classifies HTTP failures into typed errors

Run with:
    pytest tests/unit/test_api_client.py -v
"""

import asyncio
import aiohttp
import pytest
import pytest_asyncio
from unittest.mock import MagicMock

from vyper.api_client import VyperClient
from core.errors import AuthenticationError, RateLimitError, ServerError, VyperApiError
from core.schemas import (
    TokenATH,
    TokenHolders,
    TokenMarket,
    TokenPair,
    TokenPairs,
    TokenPairsParams,
    TopTrader,
    WalletHolding,
    WalletPnL,
)


# ============================================
# Mock HTTP Helpers
# ============================================

class MockResponse:
    """Mock aiohttp response usable as an async context manager"""

    def __init__(self, status, json_data=None, text="", headers=None):
        self.status = status
        self._json_data = json_data
        self._text = text
        self.headers = headers or {}

    async def json(self, content_type=None):
        return self._json_data

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass


class RecordingGet:
    """Replacement for session.get that records every call"""

    def __init__(self, response):
        self.response = response
        self.calls = []

    def __call__(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def envelope(data):
    return {"status": "success", "message": "OK", "data": data}


# ============================================
# Fixtures
# ============================================

@pytest_asyncio.fixture
async def api_client():
    """VyperClient with an API key"""
    async with VyperClient(api_key="test-api-key") as client:
        yield client


@pytest_asyncio.fixture
async def anonymous_client():
    """VyperClient without an API key"""
    async with VyperClient() as client:
        yield client


# ============================================
# Tests for Construction
# ============================================

class TestConstruction:
    """Tests for client construction and session handling"""

    def test_creates_with_api_key(self):
        client = VyperClient(api_key="test-api-key")
        assert client.api_key == "test-api-key"
        assert client.base_url == "https://api.vyper.trade"

    def test_creates_without_api_key(self):
        client = VyperClient()
        assert client.api_key is None

    def test_falls_back_to_configured_api_key(self, monkeypatch):
        from core.config import settings
        monkeypatch.setattr(settings, "vyper_api_key", "configured-key")

        client = VyperClient()
        assert client.api_key == "configured-key"

    @pytest.mark.asyncio
    async def test_context_manager_creates_session(self):
        client = VyperClient()
        assert client.session is None

        async with client as c:
            assert c.session is not None

    @pytest.mark.asyncio
    async def test_get_raises_if_not_used_as_context_manager(self):
        client = VyperClient(api_key="test-api-key")

        with pytest.raises(RuntimeError, match="not initialized"):
            await client._get("/api/v1/chain/ids")


# ============================================
# Tests for Authentication Preconditions
# ============================================

KEY_ONLY_CALLS = [
    ("get_token_ath", (900, "market")),
    ("get_token_market", ("market",)),
    ("get_token_holders", ("market", 900)),
    ("get_token_markets", ("mint", 900)),
    ("get_token_metadata", (900, "mint")),
    ("get_token_symbol", (900, "mint")),
    ("get_top_traders", ("market", 900)),
    ("search_tokens", ("bonk",)),
]


class TestApiKeyRequired:
    """Key-only endpoints fail locally without a key"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method, args", KEY_ONLY_CALLS)
    async def test_raises_authentication_error_without_request(self, anonymous_client, method, args):
        anonymous_client.session.get = MagicMock()

        with pytest.raises(AuthenticationError, match="API key is required"):
            await getattr(anonymous_client, method)(*args)

        anonymous_client.session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_wallet_endpoints_work_without_key(self, anonymous_client):
        recorder = RecordingGet(MockResponse(200, envelope([])))
        anonymous_client.session.get = recorder

        result = await anonymous_client.get_wallet_holdings("wallet", 900)

        assert result == []
        assert "X-API-Key" not in recorder.calls[0]["headers"]


# ============================================
# Tests for Chain Ids
# ============================================

class TestGetChainIds:
    """Tests for get_chain_ids"""

    @pytest.mark.asyncio
    async def test_returns_mapping(self, api_client):
        api_client.session.get = RecordingGet(MockResponse(200, envelope({"solana": 900, "ethereum": 1})))

        result = await api_client.get_chain_ids()

        assert result == {"solana": 900, "ethereum": 1}

    @pytest.mark.asyncio
    async def test_never_sends_api_key(self, api_client):
        recorder = RecordingGet(MockResponse(200, envelope({"solana": 900})))
        api_client.session.get = recorder

        await api_client.get_chain_ids()

        assert recorder.calls[0]["url"] == "https://api.vyper.trade/api/v1/chain/ids"
        assert "X-API-Key" not in recorder.calls[0]["headers"]

    @pytest.mark.asyncio
    async def test_following_calls_still_send_api_key(self, api_client):
        recorder = RecordingGet(MockResponse(200, envelope({"symbol": "TEST"})))
        api_client.session.get = recorder

        recorder.response = MockResponse(200, envelope({"solana": 900}))
        await api_client.get_chain_ids()
        recorder.response = MockResponse(200, envelope({"symbol": "TEST"}))
        await api_client.get_token_symbol(900, "mint")

        assert "X-API-Key" not in recorder.calls[0]["headers"]
        assert recorder.calls[1]["headers"]["X-API-Key"] == "test-api-key"
        assert api_client.api_key == "test-api-key"


# ============================================
# Tests for Token Endpoints
# ============================================

class TestTokenEndpoints:
    """Tests for the key-only token endpoints"""

    @pytest.mark.asyncio
    async def test_get_token_ath(self, api_client):
        recorder = RecordingGet(MockResponse(200, envelope({
            "marketCapUsd": 1000000,
            "timestamp": 1704110400,
            "tokenLiquidityUsd": 50000,
        })))
        api_client.session.get = recorder

        result = await api_client.get_token_ath(900, "market")

        assert isinstance(result, TokenATH)
        assert result.market_cap_usd == 1000000
        assert result.reached_at.year == 2024
        assert recorder.calls[0]["url"] == "https://api.vyper.trade/api/v1/token/ath"
        assert recorder.calls[0]["params"] == {"chainID": 900, "marketID": "market"}
        assert recorder.calls[0]["headers"]["X-API-Key"] == "test-api-key"

    @pytest.mark.asyncio
    async def test_get_token_market_uses_defaults(self, api_client, monkeypatch, token_pair_payload):
        called = {}

        async def mock_get(path, params=None, include_api_key=True):
            called["path"] = path
            called["params"] = params
            return token_pair_payload

        monkeypatch.setattr(api_client, "_get", mock_get)

        result = await api_client.get_token_market("test-market")

        assert isinstance(result, TokenPair)
        assert result.symbol == "TEST"
        assert called["path"] == "/api/v1/token/market/test-market"
        assert called["params"] == {"chainID": 900, "interval": "24h"}

    @pytest.mark.asyncio
    async def test_get_token_market_passes_arguments(self, api_client, monkeypatch, token_pair_payload):
        called = {}

        async def mock_get(path, params=None, include_api_key=True):
            called["params"] = params
            return token_pair_payload

        monkeypatch.setattr(api_client, "_get", mock_get)

        await api_client.get_token_market("test-market", chain_id=1, interval="1h")

        assert called["params"] == {"chainID": 1, "interval": "1h"}

    @pytest.mark.asyncio
    async def test_get_token_holders_maps_total_holders(self, api_client, monkeypatch):
        holders = [{
            "percentOwned": 5.5,
            "tokenHoldings": 1000,
            "usdHoldings": 1500,
            "walletAddress": "wallet-1",
        }]

        async def mock_get(path, params=None, include_api_key=True):
            assert params == {"marketID": "market", "chainID": 900}
            return {"holders": holders, "total_holders": 1234}

        monkeypatch.setattr(api_client, "_get", mock_get)

        result = await api_client.get_token_holders("market", 900)

        assert isinstance(result, TokenHolders)
        assert result.total_holders == 1234
        dumped = result.to_wire()
        assert dumped["totalHolders"] == 1234
        assert "total_holders" not in dumped
        assert dumped["holders"] == holders

    @pytest.mark.asyncio
    async def test_get_token_markets(self, api_client, monkeypatch):
        async def mock_get(path, params=None, include_api_key=True):
            assert path == "/api/v1/token/markets"
            assert params == {"tokenMint": "mint", "chainID": 900}
            return [{
                "marketCapUsd": 100000,
                "marketID": "market-1",
                "tokenLiquidityUsd": 20000,
                "tokenType": "RaydiumAmmTokens",
            }]

        monkeypatch.setattr(api_client, "_get", mock_get)

        result = await api_client.get_token_markets("mint", 900)

        assert len(result) == 1
        assert isinstance(result[0], TokenMarket)
        assert result[0].market_id == "market-1"

    @pytest.mark.asyncio
    async def test_get_token_metadata_and_symbol(self, api_client, monkeypatch):
        responses = {
            "/api/v1/token/metadata": {"name": "Test Token", "symbol": "TEST", "twitter": "@test"},
            "/api/v1/token/symbol": {"symbol": "TEST"},
        }

        async def mock_get(path, params=None, include_api_key=True):
            assert params == {"chainID": 900, "tokenMint": "mint"}
            return responses[path]

        monkeypatch.setattr(api_client, "_get", mock_get)

        metadata = await api_client.get_token_metadata(900, "mint")
        symbol = await api_client.get_token_symbol(900, "mint")

        assert metadata.name == "Test Token"
        assert metadata.twitter == "@test"
        assert metadata.website is None
        assert symbol.symbol == "TEST"

    @pytest.mark.asyncio
    async def test_get_top_traders(self, api_client, monkeypatch):
        async def mock_get(path, params=None, include_api_key=True):
            assert path == "/api/v1/token/top-traders"
            assert params == {"marketID": "market", "chainID": 900}
            return [{
                "investedAmount_tokens": 1000,
                "investedAmount_usd": 150,
                "investedTxns": 3,
                "pnlUsd": 75,
                "remainingTokens": 0,
                "remainingUsd": 0,
                "soldAmountTokens": 1000,
                "soldAmountUsd": 225,
                "soldTxns": 2,
                "walletAddress": "wallet-1",
                "walletTag": "whale",
            }]

        monkeypatch.setattr(api_client, "_get", mock_get)

        result = await api_client.get_top_traders("market", 900)

        assert isinstance(result[0], TopTrader)
        assert result[0].invested_amount_tokens == 1000
        assert result[0].wallet_tag == "whale"

    @pytest.mark.asyncio
    async def test_search_tokens_omits_chain_id_when_not_given(self, api_client, monkeypatch):
        called = []

        async def mock_get(path, params=None, include_api_key=True):
            called.append(params)
            return []

        monkeypatch.setattr(api_client, "_get", mock_get)

        await api_client.search_tokens("bonk")
        await api_client.search_tokens("bonk", chain_id=900)

        assert called[0] == {"criteria": "bonk"}
        assert called[1] == {"criteria": "bonk", "chainID": 900}


# ============================================
# Tests for Wallet Endpoints and Pairs
# ============================================

class TestWalletAndPairEndpoints:
    """Tests for wallet endpoints and the pair listing"""

    @pytest.mark.asyncio
    async def test_get_wallet_holdings(self, anonymous_client, monkeypatch):
        async def mock_get(path, params=None, include_api_key=True):
            assert path == "/wallet/holdings"
            assert params == {"walletAddress": "wallet", "chainID": 900}
            return [{"marketId": "m", "tokenHoldings": 10, "tokenSymbol": "TEST", "usdValue": 15}]

        monkeypatch.setattr(anonymous_client, "_get", mock_get)

        result = await anonymous_client.get_wallet_holdings("wallet", 900)

        assert isinstance(result[0], WalletHolding)
        assert result[0].usd_value == 15

    @pytest.mark.asyncio
    async def test_get_wallet_pnl(self, anonymous_client, monkeypatch):
        async def mock_get(path, params=None, include_api_key=True):
            assert path == "/wallet/pnl"
            assert params == {"walletAddress": "wallet", "marketID": "market", "chainID": 900}
            return {
                "holderSince": 1704110400,
                "investedAmount": 100,
                "investedTxns": 2,
                "pnlPercent": 50,
                "pnlUsd": 50,
                "remainingTokens": 0,
                "remainingUsd": 0,
                "soldAmount": 150,
                "soldTxns": 1,
            }

        monkeypatch.setattr(anonymous_client, "_get", mock_get)

        result = await anonymous_client.get_wallet_pnl("wallet", "market", 900)

        assert isinstance(result, WalletPnL)
        assert result.pnl_usd == 50

    @pytest.mark.asyncio
    async def test_get_wallet_aggregated_pnl(self, anonymous_client, monkeypatch):
        async def mock_get(path, params=None, include_api_key=True):
            assert path == "/wallet/aggregated-pnl"
            return {
                "investedAmount": 1000,
                "pnlPercent": 10,
                "pnlUsd": 100,
                "soldAmount": 1100,
                "tokensTraded": 4,
                "totalPnlPercent": 12,
                "totalPnlUsd": 120,
                "unrealizedPnlPercent": 2,
                "unrealizedPnlUsd": 20,
            }

        monkeypatch.setattr(anonymous_client, "_get", mock_get)

        result = await anonymous_client.get_wallet_aggregated_pnl("wallet", 900)

        assert result.tokens_traded == 4
        assert result.total_pnl_usd == 120

    @pytest.mark.asyncio
    async def test_get_token_pairs_with_params_and_filters(self, anonymous_client, monkeypatch, token_pair_payload):
        called = {}

        async def mock_get(path, params=None, include_api_key=True):
            called["path"] = path
            called["params"] = params
            return {"hasNext": True, "pairs": [token_pair_payload]}

        monkeypatch.setattr(anonymous_client, "_get", mock_get)

        result = await anonymous_client.get_token_pairs(
            TokenPairsParams(lp_burned=True, chain_ids=[900]),
            page=2,
            market_cap_min=50000,
        )

        assert isinstance(result, TokenPairs)
        assert result.has_next is True
        assert result.pairs[0].market_id == "test-market"
        assert called["path"] == "/token/pairs"
        assert called["params"] == {
            "chainIds": "900",
            "lpBurned": "true",
            "marketCapMin": 50000,
            "page": 2,
        }

    @pytest.mark.asyncio
    async def test_get_token_pairs_without_filters(self, anonymous_client, monkeypatch):
        called = {}

        async def mock_get(path, params=None, include_api_key=True):
            called["params"] = params
            return {"hasNext": False, "pairs": []}

        monkeypatch.setattr(anonymous_client, "_get", mock_get)

        result = await anonymous_client.get_token_pairs()

        assert called["params"] == {}
        assert result.pairs == []


# ============================================
# Tests for Error Handling
# ============================================

class TestErrorHandling:
    """Tests for HTTP status classification"""

    @pytest.mark.asyncio
    async def test_401_raises_authentication_error(self, api_client):
        api_client.session.get = RecordingGet(
            MockResponse(401, text='{"status": "error", "message": "invalid key"}')
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await api_client.get_token_symbol(900, "mint")

        assert exc_info.value.status_code == 401
        assert exc_info.value.response == {"status": "error", "message": "invalid key"}
        assert "Invalid or expired API key" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_429_raises_rate_limit_error_with_retry_after(self, api_client):
        api_client.session.get = RecordingGet(
            MockResponse(429, text="Too Many Requests", headers={"Retry-After": "5"})
        )

        with pytest.raises(RateLimitError) as exc_info:
            await api_client.get_chain_ids()

        assert exc_info.value.retry_after == 5.0
        assert exc_info.value.status_code == 429
        assert exc_info.value.response == "Too Many Requests"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("headers", [{}, {"Retry-After": "soon"}])
    async def test_429_defaults_retry_after_to_three_seconds(self, api_client, headers):
        api_client.session.get = RecordingGet(MockResponse(429, headers=headers))

        with pytest.raises(RateLimitError) as exc_info:
            await api_client.get_chain_ids()

        assert exc_info.value.retry_after == 3.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 502, 503, 599])
    async def test_5xx_raises_server_error(self, api_client, status):
        api_client.session.get = RecordingGet(MockResponse(status, text="Internal Server Error"))

        with pytest.raises(ServerError) as exc_info:
            await api_client.get_token_ath(900, "market")

        assert exc_info.value.status_code == status
        assert exc_info.value.response == "Internal Server Error"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 403, 404])
    async def test_other_status_raises_generic_api_error(self, api_client, status):
        api_client.session.get = RecordingGet(MockResponse(status, text='{"message": "Bad Request"}'))

        with pytest.raises(VyperApiError) as exc_info:
            await api_client.get_chain_ids()

        assert type(exc_info.value) is VyperApiError
        assert exc_info.value.status_code == status
        assert exc_info.value.response == {"message": "Bad Request"}

    @pytest.mark.asyncio
    async def test_network_error_raises_server_error(self, api_client):
        api_client.session.get = RecordingGet(aiohttp.ClientConnectionError("Connection refused"))

        with pytest.raises(ServerError, match="Connection refused") as exc_info:
            await api_client.get_chain_ids()

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_timeout_raises_server_error(self, api_client):
        api_client.session.get = RecordingGet(asyncio.TimeoutError())

        with pytest.raises(ServerError, match="timed out"):
            await api_client.get_chain_ids()

    @pytest.mark.asyncio
    async def test_malformed_envelope_raises_api_error(self, api_client):
        api_client.session.get = RecordingGet(MockResponse(200, ["not", "an", "envelope"]))

        with pytest.raises(VyperApiError, match="Malformed response"):
            await api_client.get_chain_ids()

    @pytest.mark.asyncio
    async def test_null_data_raises_api_error(self, api_client):
        api_client.session.get = RecordingGet(MockResponse(200, envelope(None)))

        with pytest.raises(VyperApiError, match="Malformed response from /api/v1/token/ath") as exc_info:
            await api_client.get_token_ath(900, "market")

        assert exc_info.value.response is None

    @pytest.mark.asyncio
    async def test_wrong_payload_shape_raises_api_error(self, api_client, monkeypatch):
        async def mock_get(path, params=None, include_api_key=True):
            return {"unexpected": "shape"}

        monkeypatch.setattr(api_client, "_get", mock_get)

        with pytest.raises(VyperApiError, match="Malformed response") as exc_info:
            await api_client.get_wallet_pnl("wallet", "market", 900)

        assert exc_info.value.response == {"unexpected": "shape"}

    @pytest.mark.asyncio
    async def test_object_where_list_expected_raises_api_error(self, api_client, monkeypatch):
        async def mock_get(path, params=None, include_api_key=True):
            return {"walletAddress": "wallet-1"}

        monkeypatch.setattr(api_client, "_get", mock_get)

        with pytest.raises(VyperApiError, match="Malformed response from /api/v1/token/top-traders"):
            await api_client.get_top_traders("market", 900)

    @pytest.mark.asyncio
    async def test_null_list_payload_is_empty(self, api_client, monkeypatch):
        async def mock_get(path, params=None, include_api_key=True):
            return None

        monkeypatch.setattr(api_client, "_get", mock_get)

        assert await api_client.get_token_markets("mint", 900) == []

    @pytest.mark.asyncio
    async def test_malformed_chain_ids_raises_api_error(self, api_client):
        api_client.session.get = RecordingGet(MockResponse(200, envelope(None)))

        with pytest.raises(VyperApiError, match="Malformed response from /api/v1/chain/ids"):
            await api_client.get_chain_ids()

    @pytest.mark.asyncio
    async def test_does_not_retry(self, api_client):
        recorder = RecordingGet(MockResponse(503, text="Service Unavailable"))
        api_client.session.get = recorder

        with pytest.raises(ServerError):
            await api_client.get_chain_ids()

        assert len(recorder.calls) == 1
