"""
Shared fixtures for the OOF chain service tests.
"""

import os
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

# Add project root to path FIRST
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from config import DEFAULT_CONFIG
from models import LookupResult

# Real mainnet addresses, used only as well-formed keys
WALLET = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
OOF_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
BRIDGE_WALLET = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
SOL_MINT = "So11111111111111111111111111111111111111112"


@pytest.fixture
def config():
    cfg = dict(DEFAULT_CONFIG)
    cfg.update({
        "SIMULATION_MODE": True,
        "OOF_TOKEN_MINT": OOF_MINT,
        "BRIDGE_WALLET_ADDRESS": BRIDGE_WALLET,
    })
    return cfg


@pytest.fixture
def rpc_client():
    """AsyncClient stand-in; each test wires the calls it needs."""
    client = MagicMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def chain_reader():
    reader = MagicMock()
    reader.fetch_balance = AsyncMock(return_value=LookupResult.success(10.0))
    reader.fetch_token_balance = AsyncMock(return_value=LookupResult.success(0.0))
    reader.fetch_associated_token_balance = AsyncMock(return_value=LookupResult.success(0.0))
    reader.get_token_accounts = AsyncMock(return_value=[])
    reader.get_transaction_history = AsyncMock(return_value=[])
    return reader


@pytest.fixture
def market():
    aggregator = MagicMock()
    aggregator.fetch_token_price = AsyncMock(return_value=LookupResult.failure("not mocked"))
    return aggregator


def make_token_account_response(*accounts):
    """Build a get_token_accounts_by_owner_json_parsed response from (pubkey, mint, amount, decimals, ui)."""
    keyed = []
    for pubkey, mint, amount, decimals, ui_amount in accounts:
        parsed = {"info": {"mint": mint, "tokenAmount": {
            "amount": str(amount), "decimals": decimals, "uiAmount": ui_amount,
        }}}
        keyed.append(SimpleNamespace(pubkey=pubkey,
                                     account=SimpleNamespace(data=SimpleNamespace(parsed=parsed))))
    return SimpleNamespace(value=keyed)
