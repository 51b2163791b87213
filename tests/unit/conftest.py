"""
Shared fixtures for the unit tests.

Payload fixtures mirror what the Vyper API actually sends (camelCase keys).
"""

import pytest

from core.config import settings


@pytest.fixture(autouse=True)
def no_default_api_key(monkeypatch):
    """Keep a VYPER_API_KEY from the environment out of the tests"""
    monkeypatch.setattr(settings, "vyper_api_key", "")


@pytest.fixture
def chain_action_payload():
    """Chain action as pushed on the wallet-events feed"""
    return {
        "signer": "test-signer",
        "transactionId": "test-transaction",
        "marketId": "test-market",
        "actionType": "buy",
        "tokenAmount": 100,
        "assetAmount": 200,
        "tokenPriceUsd": 1.5,
        "tokenPriceAsset": 2,
        "tokenMarketCapAsset": 1000,
        "tokenMarketCapUsd": 1500,
        "tokenLiquidityAsset": 500,
        "tokenLiquidityUsd": 750,
        "pooledToken": 300,
        "pooledAsset": 400,
        "actionTimestamp": 1704110400000,
    }


@pytest.fixture
def token_pair_payload():
    """Market/pair snapshot as returned by /api/v1/token/market and the token feeds"""
    return {
        "marketId": "test-market",
        "name": "Test Token",
        "symbol": "TEST",
        "tokenMint": "test-mint",
        "tokenType": "PumpfunTokens",
        "description": "A test token",
        "image": "https://test.com/image.png",
        "chainId": 900,
        "contractCreator": "test-creator",
        "createdTimestamp": 1704110400,
        "lpCreator": "test-lp-creator",
        "lpBurned": False,
        "mintAuthority": True,
        "freezeAuthority": False,
        "buyTxnCount": 90,
        "sellTxnCount": 60,
        "transactionCount": 150,
        "priceChangePercent": 2.5,
        "tokenPriceUsd": 1.5,
        "tokenPriceAsset": 2,
        "tokenMarketCapAsset": 1000000,
        "tokenMarketCapUsd": 1500000,
        "tokenLiquidityAsset": 500000,
        "tokenLiquidityUsd": 750000,
        "pooledAsset": 400000,
        "pooledToken": 300000,
        "totalSupply": 1000000000,
        "initialAssetLiquidity": 5000,
        "initialUsdLiquidity": 7500,
        "top10HoldingPercent": 60,
        "volumeAsset": 300,
        "volumeUsd": 45000,
        "isMigrated": False,
        "bondingCurvePercentage": 0.5,
    }
